"""
Exceptions raised by keylayout kernels.

All validation happens before a kernel touches any output buffer, so every
exception defined here signals a call that had no side effects.

- `InvalidArgumentError`: a parameter, shape, request mode or operand count
  that the operator cannot accept.
- `DeviceMismatchError`: operands of a single call living on different devices.
- `DeviceNotSupportedError`: no launch path (or dtype specialization) exists
  for the requested device.
"""

from typing import Optional


class InvalidArgumentError(ValueError):
    """
    Raised when an operator call is rejected during validation.

    Attributes
    ----------
    op : Optional[str]
        Name of the operator that rejected the call (e.g. "transpose").
    """

    def __init__(self, message: str, *, op: Optional[str] = None) -> None:
        prefix = f"{op}: " if op else ""
        super().__init__(f"{prefix}{message}")
        self.op = op


class DeviceNotSupportedError(RuntimeError):
    """
    Raised when an operation is requested on a device backend that has no
    registered implementation.

    Attributes
    ----------
    op : str
        The operation that was attempted (e.g. "gather").
    device : str
        String form of the device the operation was attempted on.
    """

    def __init__(self, op: str, device: str) -> None:
        super().__init__(f"{op} is not implemented for device '{device}'.")
        self.op = op
        self.device = device


class DeviceMismatchError(RuntimeError):
    """
    Raised when tensors taking part in one kernel call reside on different
    devices.
    """

    def __init__(self, device_a: str, device_b: str) -> None:
        super().__init__(f"Device mismatch: '{device_a}' vs '{device_b}'.")
        self.device_a = device_a
        self.device_b = device_b
