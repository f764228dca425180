"""
Device descriptors for keylayout kernels.

Every layout kernel executes on exactly one device, taken from its operands.
This module defines:

- `DeviceType`: the device category used as the dispatch key when selecting a
  launch implementation (CPU or CUDA)
- `Device`: a concrete, hashable descriptor parsed from strings such as
  "cpu", "cuda" or "cuda:1"

The descriptor carries no backend resources; allocation and transfers live in
the infrastructure layer.
"""

from enum import Enum
from typing import Optional, Union
import re


class DeviceType(Enum):
    """
    Device category.

    The launch layer registers one implementation per member, so adding a new
    backend means adding a member here and registering its launch paths.

    Attributes
    ----------
    CPU : DeviceType
        Host execution through NumPy.
    CUDA : DeviceType
        NVIDIA GPU execution through the native CUDA library.
    """

    CPU = "cpu"
    CUDA = "cuda"


class Device:
    """
    Concrete computation device descriptor.

    Parameters
    ----------
    device : str
        One of "cpu", "cuda" (shorthand for "cuda:0") or "cuda:<index>".

    Raises
    ------
    ValueError
        If the string does not name a supported device.

    Notes
    -----
    Devices compare equal when type and index match, so they can key
    dictionaries and be compared across tensors of one call.
    """

    __slots__ = ("type", "index")

    _CUDA_PATTERN = re.compile(r"^cuda(?::(\d+))?$")

    def __init__(self, device: str):
        if device == "cpu":
            self.type = DeviceType.CPU
            self.index: Optional[int] = None
            return
        m = self._CUDA_PATTERN.match(device)
        if not m:
            raise ValueError(
                f"Invalid device '{device}'. Expected 'cpu', 'cuda' or 'cuda:<index>'"
            )
        self.type = DeviceType.CUDA
        self.index = int(m.group(1) or 0)

    @classmethod
    def parse(cls, device: Union[str, "Device"]) -> "Device":
        """
        Return `device` unchanged if it is already a `Device`, else parse it.
        """
        if isinstance(device, Device):
            return device
        return cls(str(device))

    def __str__(self) -> str:
        return "cpu" if self.type is DeviceType.CPU else f"cuda:{self.index}"

    def __repr__(self) -> str:
        return f"Device('{self}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Device):
            return NotImplemented
        return (self.type, self.index) == (other.type, other.index)

    def __hash__(self) -> int:
        return hash((self.type, self.index))

    def is_cpu(self) -> bool:
        """Return True for host devices."""
        return self.type is DeviceType.CPU

    def is_cuda(self) -> bool:
        """Return True for CUDA devices."""
        return self.type is DeviceType.CUDA
