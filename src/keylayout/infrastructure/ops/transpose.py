"""
Transpose kernels (axis permutation).

For an input of rank `r` with row-major strides `s` and a permutation `P`,
output coordinate `o` reads the source offset `sum_k o[k] * s[P[k]]`. The
offsets are composed into a host index table and executed as a single dense
gather on the tensors' device: one read per write, no arithmetic.

Only `RequestMode.WRITE` is accepted, and the output must not alias the
input.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from ...domain._errors import InvalidArgumentError
from ...domain._params import TransposeParams
from ...domain._request import RequestMode, parse_modes, require_modes
from ...domain._shape import contiguous_strides, resolve_transpose
from ...domain._tensor import ITensor
from ..launch import KernelLauncher
from ._checks import (
    _aliases,
    _require_count,
    _require_same_device,
    _require_same_dtype,
    _require_shape,
)
from ._index import compose_offsets


def build_transpose_index(shape: Sequence[int], axes: Sequence[int]) -> np.ndarray:
    """
    Flat gather table for transposing a contiguous tensor of `shape` by the
    normalized permutation `axes`.

    Examples
    --------
    >>> build_transpose_index((2, 3), (1, 0))
    array([0, 3, 1, 4, 2, 5])
    """
    strides = contiguous_strides(shape)
    return compose_offsets(
        [np.arange(int(shape[a]), dtype=np.int64) * strides[a] for a in axes]
    )


def _transpose(
    op: str,
    params: TransposeParams,
    inputs: Sequence[ITensor],
    req: Sequence[Union[RequestMode, str]],
    outputs: Sequence[ITensor],
) -> None:
    _require_count(op, "input(s)", inputs, 1)
    _require_count(op, "output(s)", outputs, 1)
    _require_count(op, "request mode(s)", req, 1)
    modes = parse_modes(req)
    require_modes(op, modes, (RequestMode.WRITE,))

    x, y = inputs[0], outputs[0]
    out_shape, axes = resolve_transpose(tuple(x.shape), params)
    _require_shape(op, "output", y, out_shape)
    device = _require_same_device([x, y])
    _require_same_dtype(op, [x, y])
    if _aliases(x, y):
        raise InvalidArgumentError("does not support in-place operation", op=op)

    if y.numel() == 0:
        return
    KernelLauncher(device).gather(
        x, build_transpose_index(x.shape, axes), y, modes[0]
    )


def transpose_forward(
    params: TransposeParams,
    inputs: Sequence[ITensor],
    req: Sequence[Union[RequestMode, str]],
    outputs: Sequence[ITensor],
) -> None:
    """
    Write the axis permutation of `inputs[0]` into `outputs[0]`.

    Parameters
    ----------
    params : TransposeParams
        Permutation; None reverses all axes.
    inputs : Sequence[ITensor]
        Exactly one input `x`.
    req : Sequence[RequestMode or str]
        Exactly one mode, which must be WRITE.
    outputs : Sequence[ITensor]
        Exactly one preallocated output of the permuted shape, distinct from `x`.

    Raises
    ------
    InvalidArgumentError
        On a bad permutation, a non-WRITE mode, wrong operand counts, a wrong
        output shape or dtype, or an output aliasing the input.
    DeviceMismatchError
        If input and output live on different devices.
    """
    _transpose("transpose", params, inputs, req, outputs)


def transpose_backward(
    params: TransposeParams,
    inputs: Sequence[ITensor],
    req: Sequence[Union[RequestMode, str]],
    outputs: Sequence[ITensor],
) -> None:
    """
    Gradient of `transpose_forward`.

    `inputs[0]` is the gradient of the forward output; the input gradient in
    `outputs[0]` is that gradient transposed by the inverse permutation.
    """
    op = "_backward_transpose"
    _require_count(op, "input(s)", inputs, 1)
    shape = tuple(inputs[0].shape)
    _, axes = resolve_transpose(shape, params)
    inverse = TransposeParams(axes=axes).inverse(len(shape))
    _transpose(op, inverse, inputs, req, outputs)
