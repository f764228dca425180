import unittest

import numpy as np

from src.keylayout.domain._errors import DeviceMismatchError, InvalidArgumentError
from src.keylayout.domain._params import TransposeParams
from src.keylayout.domain._request import RequestMode
from src.keylayout.infrastructure.ops.transpose import (
    build_transpose_index,
    transpose_backward,
    transpose_forward,
)
from src.keylayout.infrastructure.tensor._tensor import Tensor


def _t(arr) -> Tensor:
    return Tensor._from_numpy(np.asarray(arr))


def _empty(shape, dtype=np.float32) -> Tensor:
    return Tensor(shape, "cpu", dtype=dtype)


class TestBuildTransposeIndex(unittest.TestCase):
    def test_matches_numpy_transpose_of_arange(self):
        shape, axes = (2, 3, 4), (1, 2, 0)
        ref = np.arange(24).reshape(shape).transpose(axes).reshape(-1)
        np.testing.assert_array_equal(build_transpose_index(shape, axes), ref)

    def test_scalar_is_single_offset(self):
        np.testing.assert_array_equal(build_transpose_index((), ()), [0])

    def test_empty(self):
        self.assertEqual(build_transpose_index((2, 0), (1, 0)).size, 0)


class TestTransposeForward(unittest.TestCase):
    def test_2d_default_is_matrix_transpose(self):
        x = np.arange(6, dtype=np.float32).reshape(2, 3)
        y = _empty((3, 2))
        transpose_forward(TransposeParams(), [_t(x)], [RequestMode.WRITE], [y])
        np.testing.assert_array_equal(y.to_numpy(), x.T)

    def test_default_reverses_all_axes(self):
        x = np.random.default_rng(0).standard_normal((2, 3, 4)).astype(np.float32)
        y = _empty((4, 3, 2))
        transpose_forward(TransposeParams(), [_t(x)], ["write"], [y])
        np.testing.assert_array_equal(y.to_numpy(), np.transpose(x))

    def test_explicit_and_negative_axes(self):
        x = np.random.default_rng(1).standard_normal((2, 3, 4, 5))
        for axes in ((0, 2, 3, 1), (-1, 0, -2, 1), (3, 2, 1, 0)):
            with self.subTest(axes=axes):
                ref = np.transpose(x, axes)
                y = _empty(ref.shape, dtype=np.float64)
                transpose_forward(TransposeParams(axes=axes), [_t(x)], ["write"], [y])
                np.testing.assert_array_equal(y.to_numpy(), ref)

    def test_integer_dtypes(self):
        for dtype in (np.int32, np.int64):
            with self.subTest(dtype=dtype):
                x = np.arange(12, dtype=dtype).reshape(3, 4)
                y = _empty((4, 3), dtype=dtype)
                transpose_forward(TransposeParams(axes=(1, 0)), [_t(x)], ["write"], [y])
                np.testing.assert_array_equal(y.to_numpy(), x.T)

    def test_roundtrip_with_inverse_is_identity(self):
        x = np.random.default_rng(2).standard_normal((2, 3, 4)).astype(np.float32)
        p = TransposeParams(axes=(2, 0, 1))
        y = _empty((4, 2, 3))
        z = _empty((2, 3, 4))
        transpose_forward(p, [_t(x)], ["write"], [y])
        transpose_forward(p.inverse(3), [y], ["write"], [z])
        np.testing.assert_array_equal(z.to_numpy(), x)

    def test_scalar_and_empty(self):
        y = _empty(())
        transpose_forward(TransposeParams(), [_t(np.float32(7))], ["write"], [y])
        self.assertEqual(float(y.to_numpy()), 7.0)

        y = _empty((3, 0))
        transpose_forward(TransposeParams(), [_empty((0, 3))], ["write"], [y])
        self.assertEqual(y.to_numpy().shape, (3, 0))

    def test_rejects_non_write_modes(self):
        x = _t(np.ones((2, 3), dtype=np.float32))
        for mode in ("add", "skip"):
            with self.subTest(mode=mode):
                y = _empty((3, 2))
                with self.assertRaises(InvalidArgumentError):
                    transpose_forward(TransposeParams(), [x], [mode], [y])

    def test_rejects_non_permutation(self):
        x = _t(np.ones((2, 3), dtype=np.float32))
        y = _empty((3, 2))
        with self.assertRaises(InvalidArgumentError):
            transpose_forward(TransposeParams(axes=(0, 0)), [x], ["write"], [y])

    def test_rejects_in_place(self):
        x = _t(np.arange(4, dtype=np.float32).reshape(2, 2))
        with self.assertRaises(InvalidArgumentError):
            transpose_forward(TransposeParams(), [x], ["write"], [x])

    def test_rejects_wrong_output_shape_and_dtype(self):
        x = _t(np.ones((2, 3), dtype=np.float32))
        with self.assertRaises(InvalidArgumentError):
            transpose_forward(TransposeParams(), [x], ["write"], [_empty((2, 3))])
        with self.assertRaises(InvalidArgumentError):
            transpose_forward(
                TransposeParams(), [x], ["write"], [_empty((3, 2), dtype=np.float64)]
            )

    def test_rejects_wrong_counts(self):
        x = _t(np.ones((2, 3), dtype=np.float32))
        y = _empty((3, 2))
        with self.assertRaises(InvalidArgumentError):
            transpose_forward(TransposeParams(), [x, x], ["write"], [y])
        with self.assertRaises(InvalidArgumentError):
            transpose_forward(TransposeParams(), [x], ["write", "write"], [y])

    def test_rejects_device_mismatch(self):
        class _OtherDevice:
            shape = (3, 2)
            dtype = np.dtype(np.float32)
            device = "cuda:0"
            data = 0

            def numel(self):
                return 6

        x = _t(np.ones((2, 3), dtype=np.float32))
        with self.assertRaises(DeviceMismatchError):
            transpose_forward(TransposeParams(), [x], ["write"], [_OtherDevice()])

    def test_rejected_call_leaves_output_untouched(self):
        x = _t(np.ones((2, 3), dtype=np.float32))
        y = _t(np.full((3, 2), 5.0, dtype=np.float32))
        with self.assertRaises(InvalidArgumentError):
            transpose_forward(TransposeParams(), [x], ["add"], [y])
        np.testing.assert_array_equal(y.to_numpy(), np.full((3, 2), 5.0))


class TestTransposeBackward(unittest.TestCase):
    def test_uses_inverse_permutation(self):
        axes = (1, 2, 0)
        g = np.random.default_rng(3).standard_normal((3, 4, 2)).astype(np.float32)
        dx = _empty((2, 3, 4))
        transpose_backward(TransposeParams(axes=axes), [_t(g)], ["write"], [dx])
        np.testing.assert_array_equal(dx.to_numpy(), np.transpose(g, np.argsort(axes)))

    def test_default_axes(self):
        g = np.arange(6, dtype=np.float32).reshape(3, 2)
        dx = _empty((2, 3))
        transpose_backward(TransposeParams(), [_t(g)], ["write"], [dx])
        np.testing.assert_array_equal(dx.to_numpy(), g.T)

    def test_rejects_invalid_axes(self):
        g = _t(np.ones((3, 2), dtype=np.float32))
        with self.assertRaises(InvalidArgumentError):
            transpose_backward(TransposeParams(axes=(5, 0)), [g], ["write"], [_empty((2, 3))])


if __name__ == "__main__":
    unittest.main()
