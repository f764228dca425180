"""
Validation shared by the layout kernels.

Every check here runs before a kernel touches any buffer, so a call that
fails validation leaves its outputs exactly as they were.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ...domain._errors import DeviceMismatchError, InvalidArgumentError
from ...domain._tensor import ITensor
from ...domain.device._device import Device


def _require_count(op: str, what: str, items: Sequence, expected: int) -> None:
    if len(items) != expected:
        raise InvalidArgumentError(
            f"expected {expected} {what}, got {len(items)}", op=op
        )


def _require_same_device(tensors: Sequence[ITensor]) -> Device:
    """Return the common device of `tensors`, or raise `DeviceMismatchError`."""
    ref = Device.parse(str(tensors[0].device))
    for t in tensors[1:]:
        dev = Device.parse(str(t.device))
        if dev != ref:
            raise DeviceMismatchError(str(ref), str(dev))
    return ref


def _require_same_dtype(op: str, tensors: Sequence[ITensor]) -> np.dtype:
    ref = np.dtype(tensors[0].dtype)
    for i, t in enumerate(tensors[1:], start=1):
        if np.dtype(t.dtype) != ref:
            raise InvalidArgumentError(
                f"dtype mismatch: operand 0 is {ref}, operand {i} is {np.dtype(t.dtype)}",
                op=op,
            )
    return ref


def _require_shape(op: str, name: str, t: ITensor, shape: Sequence[int]) -> None:
    if tuple(t.shape) != tuple(shape):
        raise InvalidArgumentError(
            f"{name} has shape {tuple(t.shape)}, expected {tuple(shape)}", op=op
        )


def _aliases(a: ITensor, b: ITensor) -> bool:
    """True when `a` and `b` may read or write the same memory."""
    if a is b:
        return True
    if Device.parse(str(a.device)).is_cpu():
        return bool(np.may_share_memory(a.data, b.data))
    return int(a.data) != 0 and int(a.data) == int(b.data)
