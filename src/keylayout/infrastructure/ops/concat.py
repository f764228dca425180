"""
Generic axis concatenation.

`ConcatOp` joins same-rank tensors along one axis (forward) and splits a
gradient back into per-input pieces (backward). It is the kernel vstack
delegates to once its inputs are promoted to matrices.
"""

from __future__ import annotations

from typing import Sequence, Union

from ...domain._errors import InvalidArgumentError
from ...domain._request import RequestMode, parse_modes, require_modes
from ...domain._shape import normalize_axis, resolve_concat
from ...domain._tensor import ITensor
from ..launch import KernelLauncher
from ._checks import (
    _aliases,
    _require_count,
    _require_same_device,
    _require_same_dtype,
    _require_shape,
)


class ConcatOp:
    """
    Concatenation along a fixed axis.

    Parameters
    ----------
    axis : int
        Axis to join along; negative values count from the end.
    op : str, optional
        Operator name reported in errors. Adapters pass their own name.
    """

    def __init__(self, axis: int, *, op: str = "concat") -> None:
        self.axis = int(axis)
        self.op = op

    def forward(
        self,
        inputs: Sequence[ITensor],
        req: Sequence[Union[RequestMode, str]],
        outputs: Sequence[ITensor],
    ) -> None:
        """
        Write (or accumulate) the concatenation of `inputs` into `outputs[0]`.

        Raises
        ------
        InvalidArgumentError
            On wrong operand counts, shape disagreement, dtype disagreement,
            or an output that aliases an input.
        DeviceMismatchError
            If the operands live on different devices.
        """
        op = self.op
        _require_count(op, "output(s)", outputs, 1)
        _require_count(op, "request mode(s)", req, 1)
        modes = parse_modes(req)

        out = outputs[0]
        out_shape = resolve_concat([tuple(t.shape) for t in inputs], self.axis, op=op)
        _require_shape(op, "output", out, out_shape)
        device = _require_same_device([*inputs, out])
        _require_same_dtype(op, [*inputs, out])
        if modes[0] is not RequestMode.SKIP and any(_aliases(t, out) for t in inputs):
            raise InvalidArgumentError("output must not alias an input", op=op)

        axis = normalize_axis(self.axis, len(out_shape), op=op)
        KernelLauncher(device).concat(list(inputs), axis, out, modes[0])

    def backward(
        self,
        grad: ITensor,
        req: Sequence[Union[RequestMode, str]],
        input_grads: Sequence[ITensor],
    ) -> None:
        """
        Split `grad` along the axis into `input_grads`, one mode per piece.

        Raises
        ------
        InvalidArgumentError
            If the pieces do not tile `grad`, counts disagree, or dtypes differ.
        DeviceMismatchError
            If the operands live on different devices.
        """
        op = self.op
        if not input_grads:
            raise InvalidArgumentError("requires at least one input gradient", op=op)
        _require_count(op, "request mode(s)", req, len(input_grads))
        modes = parse_modes(req)
        require_modes(
            op, modes, (RequestMode.WRITE, RequestMode.ADD, RequestMode.SKIP)
        )

        total_shape = resolve_concat(
            [tuple(t.shape) for t in input_grads], self.axis, op=op
        )
        _require_shape(op, "output gradient", grad, total_shape)
        device = _require_same_device([grad, *input_grads])
        _require_same_dtype(op, [grad, *input_grads])

        axis = normalize_axis(self.axis, len(total_shape), op=op)
        KernelLauncher(device).split(grad, axis, list(input_grads), modes)
