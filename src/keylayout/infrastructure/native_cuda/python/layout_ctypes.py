"""
ctypes bindings for the keylayout CUDA native library.

Close to the metal on purpose:
- device pointers are plain Python `int` (uintptr_t)
- gather kernels are dtype-specialized and take a device array of uint64
  source offsets (the index table)
- every native call returns an int status; non-zero raises `RuntimeError`

Expected native exports
-----------------------
- keylayout_cuda_set_device
- keylayout_cuda_malloc / keylayout_cuda_free
- keylayout_cuda_memcpy_h2d / keylayout_cuda_memcpy_d2h / keylayout_cuda_memcpy_d2d
- keylayout_cuda_synchronize
- keylayout_cuda_gather_u64_{f32,f64,i32,i64}
- keylayout_cuda_debug_set_enabled / keylayout_cuda_debug_get_last (optional)

Gather ABI
----------
    int keylayout_cuda_gather_u64_<dt>(const T* x, const uint64_t* index,
                                       T* y, int64_t n, int req)

computes `y[i] = x[index[i]]` (req == 0) or `y[i] += x[index[i]]` (req == 1)
for every `i < n`.
"""

from __future__ import annotations

import ctypes
from contextlib import contextmanager
from ctypes import c_int, c_int64, c_size_t, c_uint64, c_void_p
from typing import Iterator, Optional

import numpy as np

from ._native_loader import debug_enabled, load_keylayout_cuda_native

DevPtr = int

GATHER_REQ_WRITE = 0
GATHER_REQ_ADD = 1

_GATHER_SYMBOLS = {
    np.dtype(np.float32): "keylayout_cuda_gather_u64_f32",
    np.dtype(np.float64): "keylayout_cuda_gather_u64_f64",
    np.dtype(np.int32): "keylayout_cuda_gather_u64_i32",
    np.dtype(np.int64): "keylayout_cuda_gather_u64_i64",
}


class CudaLib:
    """
    Thin binding layer around the loaded native library.

    Signatures are bound lazily and idempotently the first time a group of
    exports is used, so a library lacking an optional export only fails when
    that export is actually needed.

    Parameters
    ----------
    lib : ctypes.CDLL
        Loaded native library handle.
    """

    def __init__(self, lib: ctypes.CDLL) -> None:
        self.lib = lib
        self._utils_bound = False
        self._gather_bound: set[str] = set()
        self._debug_bound: Optional[bool] = None

    # ----------------------------
    # binders
    # ----------------------------

    def _bind_utils(self) -> None:
        if self._utils_bound:
            return
        lib = self.lib

        lib.keylayout_cuda_set_device.argtypes = [c_int]
        lib.keylayout_cuda_set_device.restype = c_int

        lib.keylayout_cuda_malloc.argtypes = [ctypes.POINTER(c_uint64), c_size_t]
        lib.keylayout_cuda_malloc.restype = c_int

        lib.keylayout_cuda_free.argtypes = [c_uint64]
        lib.keylayout_cuda_free.restype = c_int

        lib.keylayout_cuda_memcpy_h2d.argtypes = [c_uint64, c_void_p, c_size_t]
        lib.keylayout_cuda_memcpy_h2d.restype = c_int

        lib.keylayout_cuda_memcpy_d2h.argtypes = [c_void_p, c_uint64, c_size_t]
        lib.keylayout_cuda_memcpy_d2h.restype = c_int

        lib.keylayout_cuda_memcpy_d2d.argtypes = [c_uint64, c_uint64, c_size_t]
        lib.keylayout_cuda_memcpy_d2d.restype = c_int

        lib.keylayout_cuda_synchronize.argtypes = []
        lib.keylayout_cuda_synchronize.restype = c_int

        self._utils_bound = True

    def _bind_debug(self) -> bool:
        """
        Bind the optional debug exports. Returns False when they are missing.
        """
        if self._debug_bound is not None:
            return self._debug_bound
        lib = self.lib
        if not (
            hasattr(lib, "keylayout_cuda_debug_set_enabled")
            and hasattr(lib, "keylayout_cuda_debug_get_last")
        ):
            self._debug_bound = False
            return False

        lib.keylayout_cuda_debug_set_enabled.argtypes = [c_int]
        lib.keylayout_cuda_debug_set_enabled.restype = None
        lib.keylayout_cuda_debug_get_last.argtypes = [c_void_p, c_int]
        lib.keylayout_cuda_debug_get_last.restype = c_int

        lib.keylayout_cuda_debug_set_enabled(1 if debug_enabled() else 0)
        self._debug_bound = True
        return True

    def _bind_gather(self, sym: str) -> None:
        if sym in self._gather_bound:
            return
        fn = getattr(self.lib, sym, None)
        if fn is None:
            raise AttributeError(f"CUDA native library missing symbol: {sym}")
        fn.argtypes = [c_void_p, c_void_p, c_void_p, c_int64, c_int]
        fn.restype = c_int
        self._gather_bound.add(sym)

    # ----------------------------
    # error reporting
    # ----------------------------

    def last_debug_message(self) -> str:
        """Native last debug message, or "" when unavailable or disabled."""
        if not debug_enabled() or not self._bind_debug():
            return ""
        buf = ctypes.create_string_buffer(1024)
        n = int(self.lib.keylayout_cuda_debug_get_last(buf, len(buf)))
        if n <= 0:
            return ""
        return buf.value.decode("utf-8", errors="replace")

    def _check(self, sym: str, status: int) -> None:
        if int(status) == 0:
            return
        msg = f"{sym} failed with status={int(status)}"
        native = self.last_debug_message()
        if native:
            msg += f" native_debug={native!r}"
        raise RuntimeError(msg)

    # ----------------------------
    # device utilities
    # ----------------------------

    def set_device(self, index: int) -> None:
        self._bind_utils()
        self._check("keylayout_cuda_set_device", self.lib.keylayout_cuda_set_device(int(index)))

    def malloc(self, nbytes: int) -> DevPtr:
        self._bind_utils()
        out = c_uint64(0)
        self._check(
            "keylayout_cuda_malloc",
            self.lib.keylayout_cuda_malloc(ctypes.byref(out), c_size_t(int(nbytes))),
        )
        return int(out.value)

    def free(self, dev_ptr: DevPtr) -> None:
        self._bind_utils()
        if int(dev_ptr) == 0:
            return
        self._check("keylayout_cuda_free", self.lib.keylayout_cuda_free(c_uint64(int(dev_ptr))))

    def memcpy_h2d(self, dst_dev: DevPtr, src_host: np.ndarray) -> None:
        if not isinstance(src_host, np.ndarray) or not src_host.flags["C_CONTIGUOUS"]:
            raise TypeError("src_host must be a C-contiguous numpy.ndarray")
        if src_host.nbytes == 0:
            return
        self._bind_utils()
        self._check(
            "keylayout_cuda_memcpy_h2d",
            self.lib.keylayout_cuda_memcpy_h2d(
                c_uint64(int(dst_dev)),
                c_void_p(int(src_host.ctypes.data)),
                c_size_t(int(src_host.nbytes)),
            ),
        )

    def memcpy_d2h(self, dst_host: np.ndarray, src_dev: DevPtr) -> None:
        if not isinstance(dst_host, np.ndarray) or not dst_host.flags["C_CONTIGUOUS"]:
            raise TypeError("dst_host must be a C-contiguous numpy.ndarray")
        if dst_host.nbytes == 0:
            return
        self._bind_utils()
        self._check(
            "keylayout_cuda_memcpy_d2h",
            self.lib.keylayout_cuda_memcpy_d2h(
                c_void_p(int(dst_host.ctypes.data)),
                c_uint64(int(src_dev)),
                c_size_t(int(dst_host.nbytes)),
            ),
        )

    def memcpy_d2d(self, dst_dev: DevPtr, src_dev: DevPtr, nbytes: int) -> None:
        if int(nbytes) == 0:
            return
        self._bind_utils()
        self._check(
            "keylayout_cuda_memcpy_d2d",
            self.lib.keylayout_cuda_memcpy_d2d(
                c_uint64(int(dst_dev)), c_uint64(int(src_dev)), c_size_t(int(nbytes))
            ),
        )

    def synchronize(self) -> None:
        self._bind_utils()
        self._check("keylayout_cuda_synchronize", self.lib.keylayout_cuda_synchronize())

    # ----------------------------
    # kernels
    # ----------------------------

    def gather(
        self,
        *,
        x_dev: DevPtr,
        index_dev: DevPtr,
        y_dev: DevPtr,
        n: int,
        dtype: np.dtype,
        req: int,
    ) -> None:
        """
        Launch the dtype-specialized gather kernel over `n` outputs.

        Raises
        ------
        TypeError
            If no kernel exists for `dtype`.
        """
        dtype = np.dtype(dtype)
        sym = _GATHER_SYMBOLS.get(dtype)
        if sym is None:
            raise TypeError(f"CUDA gather has no kernel for dtype {dtype}")
        self._bind_gather(sym)
        fn = getattr(self.lib, sym)
        self._check(
            sym,
            fn(
                c_void_p(int(x_dev)),
                c_void_p(int(index_dev)),
                c_void_p(int(y_dev)),
                c_int64(int(n)),
                c_int(int(req)),
            ),
        )


def gather_supported(dtype) -> bool:
    """Whether a native gather kernel exists for `dtype`."""
    return np.dtype(dtype) in _GATHER_SYMBOLS


_CUDA_LIB: Optional[CudaLib] = None


def get_cuda_lib() -> CudaLib:
    """
    Process-wide `CudaLib` around the cached native library handle.

    Raises
    ------
    FileNotFoundError, OSError
        Propagated from `load_keylayout_cuda_native` when the library is
        unavailable.
    """
    global _CUDA_LIB
    if _CUDA_LIB is None:
        _CUDA_LIB = CudaLib(load_keylayout_cuda_native())
    return _CUDA_LIB


def cuda_available() -> bool:
    """True when the native library can be loaded in this process."""
    try:
        get_cuda_lib()
    except OSError:
        return False
    return True


@contextmanager
def cuda_scratch(cuda: CudaLib, nbytes: int) -> Iterator[DevPtr]:
    """
    Call-scoped device scratch buffer of `nbytes`, freed on exit.

    A zero-byte request yields a null pointer and allocates nothing.
    """
    ptr = cuda.malloc(int(nbytes)) if int(nbytes) > 0 else 0
    try:
        yield ptr
    finally:
        cuda.free(ptr)
