"""
Concrete tensor for the layout kernels.

`Tensor` backs the `ITensor` interface with either a NumPy array (CPU) or a
`_CudaStorage` allocation (CUDA). It carries just enough autograd machinery to
drive the layout operators end to end: a `Context` attached by the functional
wrappers and a reverse-topological `backward`.

Storage is always row-major contiguous. `_view` produces a tensor of a
different shape over the same storage, which is how vstack promotes rank-0/1
inputs to single-row matrices without copying.
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np

from ...domain._request import RequestMode
from ...domain._tensor import ITensor
from ...domain.device._device import Device
from ..launch import KernelLauncher
from ..ops._checks import _aliases
from ..native_cuda.python.layout_ctypes import get_cuda_lib
from ._cuda_storage import _CudaStorage
from ._tensor_context import Context


class Tensor(ITensor):
    """
    Device-resident tensor with optional autograd context.

    Parameters
    ----------
    shape : tuple[int, ...]
        Tensor shape; `()` is a scalar.
    device : Device or str
        Device holding the storage ("cpu", "cuda", "cuda:N").
    requires_grad : bool, optional
        Whether gradients flow into this tensor. Defaults to False.
    ctx : Optional[Context], optional
        Backward context for tensors produced by an operator.
    dtype : numpy dtype, optional
        Element type. Defaults to float32.

    Notes
    -----
    New tensors are zero-initialized on every device.
    """

    def __init__(
        self,
        shape: Sequence[int],
        device: Union[Device, str],
        *,
        requires_grad: bool = False,
        ctx: Optional[Context] = None,
        dtype=np.float32,
    ) -> None:
        self._shape = tuple(int(d) for d in shape)
        if any(d < 0 for d in self._shape):
            raise ValueError(f"shape must be non-negative, got {self._shape}")
        self._device = Device.parse(device)
        self._dtype = np.dtype(dtype)
        self._requires_grad = bool(requires_grad)
        self._ctx = ctx
        self._grad: Optional["Tensor"] = None
        self._data: Optional[np.ndarray] = None
        self._storage: Optional[_CudaStorage] = None

        if self._device.is_cpu():
            self._data = np.zeros(self._shape, dtype=self._dtype)
        else:
            self._storage = _CudaStorage.allocate(
                get_cuda_lib(), int(self._device.index or 0), self._shape, self._dtype
            )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def device(self) -> Device:
        return self._device

    @property
    def data(self) -> Union[np.ndarray, int]:
        """
        Backend storage: the ndarray on CPU, the raw device pointer on CUDA.
        """
        if self._device.is_cpu():
            return self._data
        return int(self._storage.dev_ptr)

    @property
    def requires_grad(self) -> bool:
        return self._requires_grad

    @requires_grad.setter
    def requires_grad(self, value: bool) -> None:
        self._requires_grad = bool(value)

    @property
    def grad(self) -> Optional["Tensor"]:
        return self._grad

    def zero_grad(self) -> None:
        """Drop the accumulated gradient."""
        self._grad = None

    def _set_ctx(self, ctx: Optional[Context]) -> None:
        self._ctx = ctx

    def _get_ctx(self) -> Optional[Context]:
        return self._ctx

    def numel(self) -> int:
        n = 1
        for d in self._shape:
            n *= d
        return n

    def __repr__(self) -> str:
        return (
            f"Tensor(shape={self._shape}, dtype={self._dtype}, "
            f"device={self._device}, requires_grad={self._requires_grad})"
        )

    # ------------------------------------------------------------------
    # Host interop
    # ------------------------------------------------------------------
    @staticmethod
    def _from_numpy(arr, *, device="cpu", requires_grad: bool = False) -> "Tensor":
        """
        Build a tensor holding a copy of `arr`, keeping its dtype.
        """
        arr = np.asarray(arr)
        t = Tensor(arr.shape, device, requires_grad=requires_grad, dtype=arr.dtype)
        t.copy_from_numpy(arr)
        return t

    def to_numpy(self) -> np.ndarray:
        """
        Return the contents as a host ndarray.

        CPU tensors return their storage itself (writes are visible to the
        tensor); CUDA tensors return a fresh copy.
        """
        if self._device.is_cpu():
            return self._data

        host = np.empty(self._shape, dtype=self._dtype)
        if host.nbytes:
            cuda = get_cuda_lib()
            cuda.set_device(int(self._device.index or 0))
            cuda.memcpy_d2h(host, int(self._storage.dev_ptr))
        return host

    def copy_from_numpy(self, arr) -> None:
        """
        Overwrite the contents from an array-like of identical shape.

        Raises
        ------
        ValueError
            If the shapes differ.
        """
        arr_nd = np.asarray(arr, dtype=self._dtype)
        if arr_nd.shape != self._shape:
            raise ValueError(
                f"Shape mismatch: tensor {self._shape} vs array {arr_nd.shape}"
            )
        if self._device.is_cpu():
            self._data[...] = arr_nd
            return

        if arr_nd.nbytes == 0:
            return
        cuda = get_cuda_lib()
        cuda.set_device(int(self._device.index or 0))
        cuda.memcpy_h2d(int(self._storage.dev_ptr), np.ascontiguousarray(arr_nd))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def _view(self, shape: Sequence[int]) -> "Tensor":
        """
        Tensor of `shape` over the same storage (no copy, no autograd link).

        Raises
        ------
        ValueError
            If `shape` holds a different number of elements.
        """
        shape = tuple(int(d) for d in shape)
        n = 1
        for d in shape:
            n *= d
        if n != self.numel():
            raise ValueError(f"cannot view {self._shape} as {shape}")

        view = Tensor.__new__(Tensor)
        view._shape = shape
        view._device = self._device
        view._dtype = self._dtype
        view._requires_grad = False
        view._ctx = None
        view._grad = None
        view._data = None if self._data is None else self._data.reshape(shape)
        view._storage = self._storage
        return view

    def shares_storage(self, other: ITensor) -> bool:
        """
        Return True when `other` reads or writes the same memory as `self`.
        """
        if Device.parse(str(other.device)) != self._device:
            return False
        return _aliases(self, other)

    # ------------------------------------------------------------------
    # Layout operators
    # ------------------------------------------------------------------
    def transpose(self, axes: Optional[Sequence[int]] = None) -> "Tensor":
        """Permute axes (reverse them when `axes` is None)."""
        from .._layout_functions import transpose

        return transpose(self, axes)

    @property
    def T(self) -> "Tensor":
        """Reverse all axes."""
        return self.transpose()

    def roll(
        self,
        shift: Union[int, Sequence[int]],
        axis: Optional[Union[int, Sequence[int]]] = None,
    ) -> "Tensor":
        """Circularly shift elements (over the flattened tensor when `axis` is None)."""
        from .._layout_functions import roll

        return roll(self, shift, axis)

    @staticmethod
    def vstack(tensors: Sequence["Tensor"]) -> "Tensor":
        """Stack tensors row-wise, promoting rank-0/1 inputs to single rows."""
        from .._layout_functions import vstack

        return vstack(tensors)

    # ------------------------------------------------------------------
    # Autograd
    # ------------------------------------------------------------------
    def _accumulate_into(self, dst: "Tensor", g: "Tensor", req: RequestMode) -> None:
        KernelLauncher(dst.device).gather(g, None, dst, req)

    def _accumulate_grad_(self, g: "Tensor") -> None:
        if self._grad is None:
            self._grad = Tensor(self._shape, self._device, dtype=self._dtype)
            self._accumulate_into(self._grad, g, RequestMode.WRITE)
        else:
            self._accumulate_into(self._grad, g, RequestMode.ADD)

    def backward(self, grad_out: Optional["Tensor"] = None) -> None:
        """
        Backpropagate gradients from this tensor through the autograd graph.

        Parameters
        ----------
        grad_out : Optional[Tensor], optional
            Gradient w.r.t. this tensor. If omitted, this tensor must be a
            scalar and the gradient is taken to be 1.

        Raises
        ------
        ValueError
            If `grad_out` is omitted for a non-scalar tensor, or its shape or
            device disagrees with this tensor.
        RuntimeError
            If a backward function returns the wrong number of gradients.

        Notes
        -----
        Gradients accumulate into `.grad` of leaf tensors (no context) with
        `requires_grad=True`. Intermediate results do not retain gradients.
        """
        if grad_out is None:
            if self._shape != ():
                raise ValueError(
                    "grad_out must be provided for non-scalar tensors. "
                    f"Got shape={self._shape}."
                )
            grad_out = Tensor((), self._device, dtype=self._dtype)
            grad_out.copy_from_numpy(np.ones((), dtype=self._dtype))
        else:
            if not isinstance(grad_out, Tensor):
                raise TypeError(f"grad_out must be a Tensor, got {type(grad_out)!r}")
            if grad_out.shape != self._shape:
                raise ValueError(
                    f"grad_out shape mismatch: expected {self._shape}, got {grad_out.shape}"
                )
            if grad_out.device != self._device:
                raise ValueError("grad_out must be on the same device as self")

        topo: list[Tensor] = []
        nodes: dict[int, Tensor] = {}

        def dfs(t: "Tensor") -> None:
            if id(t) in nodes:
                return
            nodes[id(t)] = t
            ctx = t._get_ctx()
            if ctx is not None:
                for p in ctx.parents:
                    dfs(p)
            topo.append(t)

        dfs(self)

        grads: dict[int, Tensor] = {id(self): grad_out}
        for t in reversed(topo):
            ctx = t._get_ctx()
            grad_t = grads.get(id(t))
            if ctx is None or grad_t is None:
                continue

            parent_grads = ctx.backward_fn(grad_t)
            if len(parent_grads) != len(ctx.parents):
                raise RuntimeError(
                    "backward_fn must return one grad per parent. "
                    f"Got {len(parent_grads)} grads for {len(ctx.parents)} parents."
                )

            for parent, g in zip(ctx.parents, parent_grads):
                if g is None:
                    continue
                if g.shape != parent.shape:
                    raise ValueError(
                        f"Gradient shape mismatch for parent: expected {parent.shape}, got {g.shape}"
                    )
                pid = id(parent)
                if pid in grads:
                    # grads produced by backward_fn are fresh, so accumulate in place
                    self._accumulate_into(grads[pid], g, RequestMode.ADD)
                else:
                    grads[pid] = g

        for tid, g in grads.items():
            t = nodes[tid]
            if t.requires_grad and t._get_ctx() is None:
                t._accumulate_grad_(g)
