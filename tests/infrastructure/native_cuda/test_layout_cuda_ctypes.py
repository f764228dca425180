import os
import unittest

import numpy as np

try:
    from dotenv import load_dotenv
except ImportError as e:
    raise ImportError(
        "python-dotenv is required to load .env for native tests. "
        "Install it with: pip install python-dotenv"
    ) from e

# Load repo_root/.env (may set KEYLAYOUT_CUDA_NATIVE) before the library is located.
_THIS_DIR = os.path.dirname(os.path.abspath(__file__))
_REPO_ROOT = os.path.abspath(os.path.join(_THIS_DIR, "..", "..", ".."))
load_dotenv(os.path.join(_REPO_ROOT, ".env"))

from src.keylayout.infrastructure.native_cuda.python.layout_ctypes import (  # noqa: E402
    GATHER_REQ_ADD,
    GATHER_REQ_WRITE,
    cuda_available,
    cuda_scratch,
    gather_supported,
    get_cuda_lib,
)


class TestCudaGatherCtypes(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        if not cuda_available():
            raise unittest.SkipTest("CUDA native library not available.")
        cls.cuda = get_cuda_lib()
        try:
            cls.cuda.set_device(0)
        except RuntimeError as e:
            raise unittest.SkipTest(f"CUDA device not usable: {e}")

    def _upload(self, arr: np.ndarray) -> int:
        arr = np.ascontiguousarray(arr)
        ptr = self.cuda.malloc(arr.nbytes)
        self.cuda.memcpy_h2d(ptr, arr)
        return ptr

    def _gather(self, x: np.ndarray, index: np.ndarray, y0: np.ndarray, req: int):
        x_dev = self._upload(x)
        y_dev = self._upload(y0)
        try:
            table = np.ascontiguousarray(index, dtype=np.uint64)
            with cuda_scratch(self.cuda, table.nbytes) as index_dev:
                self.cuda.memcpy_h2d(index_dev, table)
                self.cuda.gather(
                    x_dev=x_dev,
                    index_dev=index_dev,
                    y_dev=y_dev,
                    n=table.size,
                    dtype=x.dtype,
                    req=req,
                )
                self.cuda.synchronize()
            y = np.empty_like(y0)
            self.cuda.memcpy_d2h(y, y_dev)
            return y
        finally:
            self.cuda.free(x_dev)
            self.cuda.free(y_dev)

    def test_supported_dtypes(self):
        for dt in (np.float32, np.float64, np.int32, np.int64):
            self.assertTrue(gather_supported(dt))
        self.assertFalse(gather_supported(np.float16))

    def test_gather_write_all_dtypes(self):
        rng = np.random.default_rng(0)
        for dt in (np.float32, np.float64, np.int32, np.int64):
            with self.subTest(dtype=dt):
                x = (rng.standard_normal(257) * 100).astype(dt)
                index = rng.permutation(257)
                y = self._gather(x, index, np.zeros_like(x), GATHER_REQ_WRITE)
                np.testing.assert_array_equal(y, x[index])

    def test_gather_add(self):
        x = np.arange(8, dtype=np.float32)
        index = np.arange(8)[::-1]
        y = self._gather(x, index, np.ones(8, dtype=np.float32), GATHER_REQ_ADD)
        np.testing.assert_array_equal(y, x[index] + 1)

    def test_memcpy_roundtrip(self):
        x = np.arange(10, dtype=np.float64)
        a = self._upload(x)
        b = self.cuda.malloc(x.nbytes)
        try:
            self.cuda.memcpy_d2d(b, a, x.nbytes)
            y = np.empty_like(x)
            self.cuda.memcpy_d2h(y, b)
            np.testing.assert_array_equal(y, x)
        finally:
            self.cuda.free(a)
            self.cuda.free(b)


class TestCudaScratch(unittest.TestCase):
    def test_zero_bytes_allocates_nothing(self):
        class _NoAlloc:
            def __init__(self):
                self.freed = []

            def malloc(self, nbytes):
                raise AssertionError("malloc must not be called")

            def free(self, ptr):
                self.freed.append(ptr)

        fake = _NoAlloc()
        with cuda_scratch(fake, 0) as ptr:
            self.assertEqual(ptr, 0)
        self.assertEqual(fake.freed, [0])

    def test_freed_on_error(self):
        class _Recorder:
            def __init__(self):
                self.freed = []

            def malloc(self, nbytes):
                return 1234

            def free(self, ptr):
                self.freed.append(ptr)

        rec = _Recorder()
        with self.assertRaises(ValueError):
            with cuda_scratch(rec, 64):
                raise ValueError("kernel failed")
        self.assertEqual(rec.freed, [1234])


if __name__ == "__main__":
    unittest.main()
