"""
Vstack kernels.

Vstack is concatenation along axis 0 after promoting every rank-0 or rank-1
operand to the single-row matrix `(1, size)`. The promotion is a
storage-sharing view, so the adapter copies nothing itself and performs no
arithmetic: the forward pass delegates to `ConcatOp(axis=0).forward` and the
backward pass to `ConcatOp(axis=0).backward`.
"""

from __future__ import annotations

from typing import Sequence, Union

from ...domain._errors import InvalidArgumentError
from ...domain._params import VstackParams
from ...domain._request import RequestMode, parse_modes, require_modes
from ...domain._shape import promote_to_row, resolve_vstack
from ...domain._tensor import ITensor
from ._checks import _require_count
from .concat import ConcatOp


def _promote(t: ITensor, op: str) -> ITensor:
    shape = tuple(t.shape)
    row = promote_to_row(shape)
    if row == shape:
        return t
    view = getattr(t, "_view", None)
    if view is None:
        raise InvalidArgumentError(
            f"cannot promote a {type(t).__name__} of shape {shape} to a row", op=op
        )
    return view(row)


def vstack_forward(
    params: VstackParams,
    inputs: Sequence[ITensor],
    req: Sequence[Union[RequestMode, str]],
    outputs: Sequence[ITensor],
) -> None:
    """
    Stack `inputs` row-wise into `outputs[0]`.

    Parameters
    ----------
    params : VstackParams
        Declared number of inputs.
    inputs : Sequence[ITensor]
        `params.num_args` tensors; rank-0/1 inputs count as one row.
    req : Sequence[RequestMode or str]
        Exactly one mode, which must be WRITE.
    outputs : Sequence[ITensor]
        One preallocated output whose axis-0 extent is the sum of the promoted
        inputs' axis-0 extents.

    Raises
    ------
    InvalidArgumentError
        On an input count other than `num_args`, wrong output or mode counts,
        a non-WRITE mode, promoted shapes disagreeing beyond axis 0, or dtype
        disagreement.
    DeviceMismatchError
        If the operands live on different devices.
    """
    op = "vstack"
    _require_count(op, "output(s)", outputs, 1)
    _require_count(op, "request mode(s)", req, 1)
    modes = parse_modes(req)
    require_modes(op, modes, (RequestMode.WRITE,))
    resolve_vstack([tuple(t.shape) for t in inputs], params)

    rows = [_promote(t, op) for t in inputs]
    ConcatOp(0, op=op).forward(rows, modes, outputs)


def vstack_backward(
    params: VstackParams,
    inputs: Sequence[ITensor],
    req: Sequence[Union[RequestMode, str]],
    outputs: Sequence[ITensor],
) -> None:
    """
    Gradient of `vstack_forward`.

    `inputs[0]` is the gradient of the stacked output; `outputs` holds one
    gradient buffer per forward input, each shaped like that input and each
    honoring its own request mode (WRITE, ADD or SKIP).
    """
    op = "_backward_vstack"
    _require_count(op, "input(s)", inputs, 1)
    _require_count(op, "output(s)", outputs, params.num_args)
    _require_count(op, "request mode(s)", req, params.num_args)
    modes = parse_modes(req)
    resolve_vstack([tuple(t.shape) for t in outputs], params)

    rows = [_promote(t, op) for t in outputs]
    ConcatOp(0, op=op).backward(inputs[0], modes, rows)
