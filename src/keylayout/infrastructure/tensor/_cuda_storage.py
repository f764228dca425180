"""
CUDA storage lifetime.

A CUDA tensor does not hold its raw device pointer directly; it holds a
`_CudaStorage`, and views created for vstack promotion hold the *same*
storage object. Python reference counting therefore decides when the last
user is gone, and a `weakref.finalize` callback frees the allocation exactly
once at that point.

Borrowed pointers (memory owned by someone else) are wrapped with
`owned=False`, which skips the finalizer entirely.
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from ..native_cuda.python.layout_ctypes import CudaLib


@dataclass(eq=False)
class _CudaStorage:
    """
    One contiguous CUDA allocation shared by every tensor viewing it.

    Attributes
    ----------
    cuda : CudaLib
        Bindings used to free the allocation.
    device_index : int
        CUDA device the allocation lives on.
    dev_ptr : int
        Raw device pointer (0 for empty allocations).
    nbytes : int
        Allocation size in bytes.
    owned : bool
        Whether this storage frees `dev_ptr` when collected.
    """

    cuda: CudaLib
    device_index: int
    dev_ptr: int
    nbytes: int
    owned: bool = True
    _finalizer: Optional[weakref.finalize] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.owned or int(self.dev_ptr) == 0:
            return
        cuda = self.cuda
        device_index = int(self.device_index)
        dev_ptr = int(self.dev_ptr)

        def _free_ptr() -> None:
            # finalizers may run during interpreter shutdown; never raise here
            try:
                cuda.set_device(device_index)
                cuda.free(dev_ptr)
            except Exception:
                pass

        self._finalizer = weakref.finalize(self, _free_ptr)

    @classmethod
    def allocate(
        cls, cuda: CudaLib, device_index: int, shape: tuple[int, ...], dtype
    ) -> "_CudaStorage":
        """
        Allocate zero-initialized storage for a tensor of `shape` and `dtype`.
        """
        dtype = np.dtype(dtype)
        n = 1
        for d in shape:
            n *= int(d)
        nbytes = n * dtype.itemsize
        if nbytes == 0:
            return cls(cuda, int(device_index), 0, 0)

        cuda.set_device(int(device_index))
        ptr = cuda.malloc(nbytes)
        storage = cls(cuda, int(device_index), ptr, nbytes)
        cuda.memcpy_h2d(ptr, np.zeros(n, dtype=dtype))
        return storage
