import os
import unittest
import warnings

import numpy as np

try:
    from dotenv import load_dotenv
except ImportError as e:
    raise ImportError(
        "python-dotenv is required to load .env for native tests. "
        "Install it with: pip install python-dotenv"
    ) from e

_THIS_DIR = os.path.dirname(os.path.abspath(__file__))
_REPO_ROOT = os.path.abspath(os.path.join(_THIS_DIR, "..", "..", ".."))
load_dotenv(os.path.join(_REPO_ROOT, ".env"))

from src.keylayout.domain._errors import DeviceMismatchError  # noqa: E402
from src.keylayout.domain._params import RollParams  # noqa: E402
from src.keylayout.infrastructure._layout_functions import (  # noqa: E402
    roll,
    transpose,
    vstack,
)
from src.keylayout.infrastructure.native_cuda.python.layout_ctypes import (  # noqa: E402
    cuda_available,
)
from src.keylayout.infrastructure.ops.roll import roll_forward  # noqa: E402
from src.keylayout.infrastructure.tensor._tensor import Tensor  # noqa: E402


class TestLayoutOpsCuda(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        if not cuda_available():
            raise unittest.SkipTest("CUDA native library not available.")
        cls.device = "cuda:0"

    def _cuda(self, arr, requires_grad=False) -> Tensor:
        return Tensor._from_numpy(arr, device=self.device, requires_grad=requires_grad)

    def test_transpose_matches_cpu(self):
        x = np.random.default_rng(0).standard_normal((3, 4, 5)).astype(np.float32)
        y = transpose(self._cuda(x), (2, 0, 1))
        self.assertTrue(y.device.is_cuda())
        np.testing.assert_array_equal(y.to_numpy(), np.transpose(x, (2, 0, 1)))

    def test_roll_matches_numpy(self):
        x = np.arange(24, dtype=np.float64).reshape(2, 3, 4)
        for shift, axis in ((5, None), ((1, -1), (0, 2))):
            with self.subTest(shift=shift, axis=axis):
                y = roll(self._cuda(x), shift, axis)
                np.testing.assert_array_equal(y.to_numpy(), np.roll(x, shift, axis=axis))

    def test_roll_add_mode(self):
        x = np.arange(6, dtype=np.float32)
        out = self._cuda(np.ones(6, dtype=np.float32))
        roll_forward(RollParams(shift=2), [self._cuda(x)], ["add"], [out])
        np.testing.assert_array_equal(out.to_numpy(), np.roll(x, 2) + 1)

    def test_vstack_stages_through_host_with_warning(self):
        a = np.ones((2, 3), dtype=np.float32)
        b = np.arange(3, dtype=np.float32)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            y = vstack([self._cuda(a), self._cuda(b)])
        np.testing.assert_array_equal(y.to_numpy(), np.vstack([a, b]))
        self.assertTrue(any(issubclass(w.category, RuntimeWarning) for w in caught))

    def test_backward_on_cuda(self):
        x = self._cuda(np.arange(6, dtype=np.float32).reshape(2, 3), requires_grad=True)
        g = np.arange(6, dtype=np.float32).reshape(3, 2)
        x.T.backward(self._cuda(g))
        np.testing.assert_array_equal(x.grad.to_numpy(), g.T)

    def test_device_mismatch(self):
        x = self._cuda(np.ones((2, 2), dtype=np.float32))
        out = Tensor((2, 2), "cpu")
        with self.assertRaises(DeviceMismatchError):
            roll_forward(RollParams(shift=1), [x], ["write"], [out])


if __name__ == "__main__":
    unittest.main()
