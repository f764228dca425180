import unittest

import numpy as np

from src.keylayout.domain._errors import DeviceNotSupportedError
from src.keylayout.domain._request import RequestMode
from src.keylayout.domain.device._device import DeviceType
from src.keylayout.infrastructure.launch import KernelLauncher
from src.keylayout.infrastructure.tensor._tensor import Tensor


def _t(arr) -> Tensor:
    return Tensor._from_numpy(np.asarray(arr, dtype=np.float32))


class TestCpuLaunch(unittest.TestCase):
    def setUp(self) -> None:
        self.launcher = KernelLauncher("cpu")

    def test_device_type(self):
        self.assertIs(self.launcher.device_type, DeviceType.CPU)
        self.assertEqual(str(self.launcher.device), "cpu")

    def test_gather_write(self):
        x = _t([10, 20, 30, 40])
        out = Tensor((2, 2), "cpu")
        self.launcher.gather(x, np.array([3, 2, 1, 0]), out, RequestMode.WRITE)
        np.testing.assert_array_equal(out.to_numpy(), [[40, 30], [20, 10]])

    def test_gather_identity_add(self):
        out = _t([1, 1, 1])
        self.launcher.gather(_t([1, 2, 3]), None, out, RequestMode.ADD)
        np.testing.assert_array_equal(out.to_numpy(), [2, 3, 4])

    def test_gather_skip(self):
        out = _t([5, 5])
        self.launcher.gather(_t([1, 2]), np.array([1, 0]), out, RequestMode.SKIP)
        np.testing.assert_array_equal(out.to_numpy(), [5, 5])

    def test_concat_and_split(self):
        a, b = _t([[1, 2]]), _t([[3, 4], [5, 6]])
        out = Tensor((3, 2), "cpu")
        self.launcher.concat([a, b], 0, out, RequestMode.WRITE)
        np.testing.assert_array_equal(out.to_numpy(), [[1, 2], [3, 4], [5, 6]])

        ga, gb = Tensor((1, 2), "cpu"), _t(np.ones((2, 2)))
        self.launcher.split(out, 0, [ga, gb], [RequestMode.WRITE, RequestMode.ADD])
        np.testing.assert_array_equal(ga.to_numpy(), [[1, 2]])
        np.testing.assert_array_equal(gb.to_numpy(), [[4, 5], [6, 7]])


class TestUnregisteredDevice(unittest.TestCase):
    def test_raises_device_not_supported(self):
        class _FutureLauncher(KernelLauncher):
            @property
            def device_type(self):
                return "tpu"

        launcher = _FutureLauncher("cpu")
        out = Tensor((1,), "cpu")
        with self.assertRaises(DeviceNotSupportedError) as ctx:
            launcher.gather(_t([1]), None, out, RequestMode.WRITE)
        self.assertEqual(ctx.exception.op, "gather")
        self.assertEqual(ctx.exception.device, "tpu")


if __name__ == "__main__":
    unittest.main()
