"""
Roll kernels (circular shift).

Two modes, with deliberately different moduli:

- flatten (`axis` is None): the tensor is treated as one flat sequence of
  `size` elements; the shift is reduced modulo `size` and output element `i`
  reads source `(i - shift + size) % size`.
- per-axis: each listed axis has its own shift, reduced modulo that axis's
  extent. Along an axis of extent `d` rolled by `s`, output coordinate `j`
  reads coordinate `(j + d - s) % d`; unlisted axes map to themselves. The
  per-axis maps, weighted by row-major strides, are composed into one flat
  table.

Either way the result is a host index table that is sent to the device once
and executed as a single gather, so roll supports every request mode the
gather primitive does. Rolling an empty tensor is a no-op.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from ...domain._errors import InvalidArgumentError
from ...domain._params import RollParams
from ...domain._request import RequestMode, parse_modes, require_modes
from ...domain._shape import contiguous_strides, flat_roll_shift, numel, resolve_roll
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


def flat_roll_index(size: int, shift: int) -> np.ndarray:
    """
    Gather table for a flattened roll by a shift already reduced into
    `[0, size)`.

    Examples
    --------
    >>> flat_roll_index(5, 2)
    array([3, 4, 0, 1, 2])
    """
    return (np.arange(size, dtype=np.int64) + (size - shift)) % max(size, 1)


def build_roll_index(shape: Sequence[int], shifts: Sequence[int]) -> np.ndarray:
    """
    Gather table for a per-axis roll.

    Parameters
    ----------
    shape : Sequence[int]
        Tensor shape.
    shifts : Sequence[int]
        One shift per axis, each already reduced modulo its axis extent.

    Examples
    --------
    >>> build_roll_index((2, 3), (0, 1))
    array([2, 0, 1, 5, 3, 4])
    """
    strides = contiguous_strides(shape)
    offsets = []
    for d, s, st in zip(shape, shifts, strides):
        j = np.arange(int(d), dtype=np.int64)
        if s:
            j = (j + (d - s)) % d
        offsets.append(j * st)
    return compose_offsets(offsets)


def _roll(
    op: str,
    params: RollParams,
    inputs: Sequence[ITensor],
    req: Sequence[Union[RequestMode, str]],
    outputs: Sequence[ITensor],
) -> None:
    _require_count(op, "input(s)", inputs, 1)
    _require_count(op, "output(s)", outputs, 1)
    _require_count(op, "request mode(s)", req, 1)
    modes = parse_modes(req)
    require_modes(op, modes, (RequestMode.WRITE, RequestMode.ADD, RequestMode.SKIP))

    x, y = inputs[0], outputs[0]
    shape, shifts = resolve_roll(tuple(x.shape), params)
    _require_shape(op, "output", y, shape)
    device = _require_same_device([x, y])
    _require_same_dtype(op, [x, y])

    if modes[0] is RequestMode.SKIP:
        return
    if _aliases(x, y):
        raise InvalidArgumentError("does not support in-place operation", op=op)
    size = numel(shape)
    if size == 0:
        return

    if shifts is None:
        index = flat_roll_index(size, flat_roll_shift(size, params))
    else:
        index = build_roll_index(shape, shifts)
    KernelLauncher(device).gather(x, index, y, modes[0])


def roll_forward(
    params: RollParams,
    inputs: Sequence[ITensor],
    req: Sequence[Union[RequestMode, str]],
    outputs: Sequence[ITensor],
) -> None:
    """
    Write (or accumulate) `inputs[0]` rolled by `params` into `outputs[0]`.

    Parameters
    ----------
    params : RollParams
        Shift(s) and optional axis/axes.
    inputs : Sequence[ITensor]
        Exactly one input `x`.
    req : Sequence[RequestMode or str]
        Exactly one mode: WRITE, ADD or SKIP.
    outputs : Sequence[ITensor]
        Exactly one preallocated output shaped like `x`, distinct from `x`.

    Raises
    ------
    InvalidArgumentError
        On an axis out of range, wrong operand counts, an output shape or
        dtype mismatch, or an output aliasing the input.
    DeviceMismatchError
        If input and output live on different devices.
    """
    _roll("roll", params, inputs, req, outputs)


def roll_backward(
    params: RollParams,
    inputs: Sequence[ITensor],
    req: Sequence[Union[RequestMode, str]],
    outputs: Sequence[ITensor],
) -> None:
    """
    Gradient of `roll_forward`: the output gradient rolled back by the
    negated shift(s) over the same axes.
    """
    _roll("_backward_roll", params.negated(), inputs, req, outputs)
