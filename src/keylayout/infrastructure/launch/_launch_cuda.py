"""
CUDA launch paths.

`gather` runs natively: the host index table is uploaded once into a
call-scoped scratch buffer, then a single dtype-specialized kernel produces
every output element. A plain WRITE copy with no index table is a
device-to-device memcpy.

`concat` and `split` stage through host memory (D2H, NumPy, H2D). Results
are exact, but every call pays two transfers, so a RuntimeWarning is emitted
the first time each call site takes that path.
"""

from __future__ import annotations

import warnings
from typing import Optional, Sequence

import numpy as np

from ...domain._errors import DeviceNotSupportedError
from ...domain._request import RequestMode
from ...domain._tensor import ITensor
from ...domain.device._device import DeviceType
from ..native_cuda.python.layout_ctypes import (
    GATHER_REQ_ADD,
    GATHER_REQ_WRITE,
    cuda_scratch,
    gather_supported,
    get_cuda_lib,
)
from ._base import KernelLauncher, register_launch


def _warn_host_staging(op: str) -> None:
    warnings.warn(
        f"CUDA {op} stages through host memory; expect extra transfer cost.",
        RuntimeWarning,
        stacklevel=3,
    )


@register_launch(KernelLauncher.gather, DeviceType.CUDA)
def gather_cuda(
    self: KernelLauncher,
    x: ITensor,
    index: Optional[np.ndarray],
    out: ITensor,
    req: RequestMode,
) -> None:
    n = out.numel()
    if req is RequestMode.SKIP or n == 0:
        return
    dtype = np.dtype(out.dtype)
    if not gather_supported(dtype):
        raise DeviceNotSupportedError(f"gather[{dtype}]", str(self.device))

    cuda = get_cuda_lib()
    cuda.set_device(int(self.device.index or 0))

    if index is None and req is RequestMode.WRITE:
        cuda.memcpy_d2d(int(out.data), int(x.data), n * dtype.itemsize)
        cuda.synchronize()
        return

    table = np.ascontiguousarray(
        np.arange(n) if index is None else index, dtype=np.uint64
    )
    with cuda_scratch(cuda, table.nbytes) as index_dev:
        cuda.memcpy_h2d(index_dev, table)
        cuda.gather(
            x_dev=int(x.data),
            index_dev=index_dev,
            y_dev=int(out.data),
            n=n,
            dtype=dtype,
            req=GATHER_REQ_ADD if req is RequestMode.ADD else GATHER_REQ_WRITE,
        )
        # the scratch table is freed on exit; the kernel must be done with it
        cuda.synchronize()


# TODO: native concat/split kernels so these two paths stop staging through
# host memory.
@register_launch(KernelLauncher.concat, DeviceType.CUDA)
def concat_cuda(
    self: KernelLauncher,
    inputs: Sequence[ITensor],
    axis: int,
    out: ITensor,
    req: RequestMode,
) -> None:
    if req is RequestMode.SKIP or out.numel() == 0:
        return
    _warn_host_staging("concat")
    values = np.concatenate([t.to_numpy() for t in inputs], axis=axis)
    if req is RequestMode.ADD:
        values = out.to_numpy() + values
    out.copy_from_numpy(values)


@register_launch(KernelLauncher.split, DeviceType.CUDA)
def split_cuda(
    self: KernelLauncher,
    grad: ITensor,
    axis: int,
    outs: Sequence[ITensor],
    req: Sequence[RequestMode],
) -> None:
    if all(r is RequestMode.SKIP for r in req):
        return
    _warn_host_staging("split")
    g = grad.to_numpy()
    slicer = [slice(None)] * g.ndim
    start = 0
    for t, r in zip(outs, req):
        stop = start + int(t.shape[axis])
        if r is not RequestMode.SKIP and t.numel() != 0:
            slicer[axis] = slice(start, stop)
            piece = g[tuple(slicer)]
            if r is RequestMode.ADD:
                piece = t.to_numpy() + piece
            t.copy_from_numpy(piece)
        start = stop
