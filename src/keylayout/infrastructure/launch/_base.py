"""
Device-selected launch primitives.

`KernelLauncher` is the one interface every layout kernel executes through.
It exposes three bulk primitives:

- `gather`: `out[i] = x[index[i]]` for every output element (or an elementwise
  copy when `index` is None)
- `concat`: join tensors along an axis into one output
- `split`: the reverse of `concat`, one piece per output

The base methods below only define signatures. Implementations register
themselves per `DeviceType` through `launch_control_path_manager` (see
`_launch_cpu.py` and `_launch_cuda.py`), and the wrapper picks one at call
time from `launcher.device_type`. Requesting a device type nobody registered
raises `DeviceNotSupportedError`.

All primitives honor a `RequestMode` per output and assume validation has
already happened: shapes, dtypes and devices agree, and `index` holds valid
source offsets.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from ...domain._errors import DeviceNotSupportedError
from ...domain._request import RequestMode
from ...domain._tensor import ITensor
from ...domain.device._device import Device, DeviceType
from ...domain.utils._control_path import create_path_builder

launch_control_path_manager = create_path_builder("device_type")
"""Registers launch implementations keyed by `KernelLauncher.device_type`."""


def _unsupported(method, state) -> DeviceNotSupportedError:
    return DeviceNotSupportedError(method.__name__, str(state))


def register_launch(method, device_type: DeviceType):
    """
    Decorator registering the `device_type` implementation of a
    `KernelLauncher` method. Calls for device types with no registration
    raise `DeviceNotSupportedError`.
    """
    return launch_control_path_manager(
        KernelLauncher, method, device_type, trap_exception=_unsupported
    )


class KernelLauncher:
    """
    Launch primitives bound to one device.

    Parameters
    ----------
    device : Device or str
        Device every operand of a launch must live on.
    """

    def __init__(self, device) -> None:
        self._device = Device.parse(device)

    @property
    def device(self) -> Device:
        return self._device

    @property
    def device_type(self) -> DeviceType:
        """Dispatch key for the registered launch paths."""
        return self._device.type

    def gather(
        self,
        x: ITensor,
        index: Optional[np.ndarray],
        out: ITensor,
        req: RequestMode,
    ) -> None:
        """
        Elementwise gather from `x` into `out` through a flat index table.

        Parameters
        ----------
        x : ITensor
            Source tensor (row-major contiguous).
        index : Optional[np.ndarray]
            Host int64 array of length `out.numel()` with flat source offsets.
            None means the identity mapping (plain copy or accumulate).
        out : ITensor
            Destination tensor.
        req : RequestMode
            WRITE, ADD or SKIP.
        """
        ...

    def concat(
        self,
        inputs: Sequence[ITensor],
        axis: int,
        out: ITensor,
        req: RequestMode,
    ) -> None:
        """
        Concatenate `inputs` along `axis` into `out`.
        """
        ...

    def split(
        self,
        grad: ITensor,
        axis: int,
        outs: Sequence[ITensor],
        req: Sequence[RequestMode],
    ) -> None:
        """
        Split `grad` along `axis` into consecutive pieces sized like `outs`,
        honoring one request mode per piece.
        """
        ...

