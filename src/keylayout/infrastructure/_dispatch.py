"""
Operator routing by name.

Graph executors address kernels by operator name and hand over raw attribute
mappings. `invoke` resolves the name, parses the attributes into the
operator's parameter object, parses the request modes, and runs the kernel:

    invoke("roll", {"shift": "1", "axis": "None"}, [x], ["write"], [y])

Forward operators and their gradients are registered side by side; each
gradient operator takes the output gradient as its single input and writes
the input gradient(s) as its outputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from ..domain._params import RollParams, TransposeParams, VstackParams
from ..domain._request import RequestMode, parse_modes
from ..domain._tensor import ITensor
from .ops.roll import roll_backward, roll_forward
from .ops.transpose import transpose_backward, transpose_forward
from .ops.vstack import vstack_backward, vstack_forward


@dataclass(frozen=True)
class OperatorEntry:
    """
    Registered operator.

    Attributes
    ----------
    params_cls : type
        Parameter class exposing `from_attrs(attrs)`.
    kernel : Callable
        `kernel(params, inputs, req, outputs)`.
    """

    params_cls: type
    kernel: Callable[..., None]


OPERATORS: dict[str, OperatorEntry] = {
    "transpose": OperatorEntry(TransposeParams, transpose_forward),
    "_backward_transpose": OperatorEntry(TransposeParams, transpose_backward),
    "vstack": OperatorEntry(VstackParams, vstack_forward),
    "_backward_vstack": OperatorEntry(VstackParams, vstack_backward),
    "roll": OperatorEntry(RollParams, roll_forward),
    "_backward_roll": OperatorEntry(RollParams, roll_backward),
}


def invoke(
    op_name: str,
    attrs: Optional[Mapping[str, Any]],
    inputs: Sequence[ITensor],
    req: Sequence[Union[RequestMode, str]],
    outputs: Sequence[ITensor],
) -> None:
    """
    Run the operator registered as `op_name`.

    Parameters
    ----------
    op_name : str
        One of the keys of `OPERATORS`.
    attrs : Optional[Mapping[str, Any]]
        Raw operator attributes (values or their string spellings).
    inputs : Sequence[ITensor]
        Operator inputs.
    req : Sequence[RequestMode or str]
        One request mode per output.
    outputs : Sequence[ITensor]
        Preallocated outputs.

    Raises
    ------
    KeyError
        If no operator is registered under `op_name`.
    InvalidArgumentError
        If the attributes, request modes or operands are invalid.
    """
    try:
        entry = OPERATORS[op_name]
    except KeyError:
        raise KeyError(
            f"unknown operator {op_name!r}; registered: {sorted(OPERATORS)}"
        ) from None

    params = entry.params_cls.from_attrs(dict(attrs or {}))
    entry.kernel(params, inputs, parse_modes(req), outputs)
