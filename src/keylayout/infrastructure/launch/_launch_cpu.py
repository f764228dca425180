"""
CPU launch paths (NumPy).

Every primitive materializes its result with vectorized NumPy indexing and
then applies the request mode to the destination ndarray in place, so views
sharing storage with the destination observe the write.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from ...domain._request import RequestMode
from ...domain._tensor import ITensor
from ...domain.device._device import DeviceType
from ._base import KernelLauncher, register_launch


def _apply(dst: np.ndarray, values: np.ndarray, req: RequestMode) -> None:
    if req is RequestMode.WRITE:
        dst[...] = values
    elif req is RequestMode.ADD:
        dst[...] += values


@register_launch(KernelLauncher.gather, DeviceType.CPU)
def gather_cpu(
    self: KernelLauncher,
    x: ITensor,
    index: Optional[np.ndarray],
    out: ITensor,
    req: RequestMode,
) -> None:
    if req is RequestMode.SKIP or out.numel() == 0:
        return
    src = np.ascontiguousarray(x.data).reshape(-1)
    values = src if index is None else src[index]
    _apply(out.data, values.reshape(out.shape), req)


@register_launch(KernelLauncher.concat, DeviceType.CPU)
def concat_cpu(
    self: KernelLauncher,
    inputs: Sequence[ITensor],
    axis: int,
    out: ITensor,
    req: RequestMode,
) -> None:
    if req is RequestMode.SKIP or out.numel() == 0:
        return
    _apply(out.data, np.concatenate([t.data for t in inputs], axis=axis), req)


@register_launch(KernelLauncher.split, DeviceType.CPU)
def split_cpu(
    self: KernelLauncher,
    grad: ITensor,
    axis: int,
    outs: Sequence[ITensor],
    req: Sequence[RequestMode],
) -> None:
    g = grad.data
    slicer = [slice(None)] * g.ndim
    start = 0
    for t, r in zip(outs, req):
        stop = start + int(t.shape[axis])
        if r is not RequestMode.SKIP and t.numel() != 0:
            slicer[axis] = slice(start, stop)
            _apply(t.data, g[tuple(slicer)], r)
        start = stop
