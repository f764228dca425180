"""
Tensor interface definitions.

Kernels in this package are written against `ITensor`, a structural protocol
covering what a layout kernel needs from a tensor descriptor: shape, dtype,
device, raw storage and host interop, plus the autograd hooks used by the
functional wrappers.

The concrete NumPy/CUDA implementation lives in
`infrastructure/tensor/_tensor.py`.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from .device._device_protocol import DeviceLike


@runtime_checkable
class ITensor(Protocol):
    """
    Tensor interface.

    Notes
    -----
    `data` is backend-specific: a NumPy ndarray for CPU tensors and a raw
    device pointer (`int`) for CUDA tensors. Kernels never interpret it
    directly; they hand it to the launch layer of the matching device.
    """

    @property
    def shape(self) -> tuple[int, ...]:
        """Tensor shape."""
        ...

    @property
    def dtype(self) -> Any:
        """NumPy dtype of the elements."""
        ...

    @property
    def device(self) -> DeviceLike:
        """Device holding the storage."""
        ...

    @property
    def data(self) -> Any:
        """Backend storage (ndarray on CPU, device pointer on CUDA)."""
        ...

    @property
    def requires_grad(self) -> bool:
        """Whether gradients flow into this tensor."""
        ...

    @property
    def grad(self) -> Optional["ITensor"]:
        """Accumulated gradient, if any."""
        ...

    def numel(self) -> int:
        """Number of elements."""
        ...

    def to_numpy(self) -> Any:
        """Copy (or view, on CPU) of the contents as a host ndarray."""
        ...

    def copy_from_numpy(self, arr: Any) -> None:
        """Overwrite the contents from a host array of identical shape."""
        ...

    def backward(self, grad_out: Optional["ITensor"] = None) -> None:
        """Backpropagate from this tensor."""
        ...
