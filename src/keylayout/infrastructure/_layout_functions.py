"""
Differentiable layout operators.

Each operator is a `Function` subclass whose `forward` allocates the output,
runs the forward kernel and records what `backward` needs on the `Context`,
and whose `backward` allocates input gradients and runs the gradient kernel.

The public wrappers (`transpose`, `vstack`, `roll`) build the `Context`, call
`forward`, and attach the context to the output only when some input requires
gradients, so plain inference never builds a graph.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple, Union

from ..domain._errors import InvalidArgumentError
from ..domain._function import Function
from ..domain._params import RollParams, TransposeParams, VstackParams
from ..domain._request import RequestMode
from ..domain._shape import resolve_transpose, resolve_vstack
from .ops.roll import roll_backward, roll_forward
from .ops.transpose import transpose_backward, transpose_forward
from .ops.vstack import vstack_backward, vstack_forward
from .tensor._tensor import Tensor
from .tensor._tensor_context import Context


def _like(t: Tensor, shape: Optional[Tuple[int, ...]] = None, *, requires_grad=False) -> Tensor:
    return Tensor(
        t.shape if shape is None else shape,
        t.device,
        requires_grad=requires_grad,
        dtype=t.dtype,
    )


class TransposeFn(Function):
    """
    Axis permutation.

    Saved context
    -------------
    - `saved_meta["params"]`: the `TransposeParams` of the call
    """

    @staticmethod
    def forward(ctx: Context, x: Tensor, params: TransposeParams) -> Tensor:
        out_shape, _ = resolve_transpose(tuple(x.shape), params)
        out = _like(x, out_shape, requires_grad=x.requires_grad)
        transpose_forward(params, [x], [RequestMode.WRITE], [out])
        ctx.saved_meta["params"] = params
        return out

    @staticmethod
    def backward(ctx: Context, grad_out: Tensor) -> Sequence[Optional[Tensor]]:
        (x,) = ctx.parents
        if not x.requires_grad:
            return (None,)
        grad_x = _like(x)
        transpose_backward(
            ctx.saved_meta["params"], [grad_out], [RequestMode.WRITE], [grad_x]
        )
        return (grad_x,)


class RollFn(Function):
    """
    Circular shift.

    Saved context
    -------------
    - `saved_meta["params"]`: the `RollParams` of the call
    """

    @staticmethod
    def forward(ctx: Context, x: Tensor, params: RollParams) -> Tensor:
        out = _like(x, requires_grad=x.requires_grad)
        roll_forward(params, [x], [RequestMode.WRITE], [out])
        ctx.saved_meta["params"] = params
        return out

    @staticmethod
    def backward(ctx: Context, grad_out: Tensor) -> Sequence[Optional[Tensor]]:
        (x,) = ctx.parents
        if not x.requires_grad:
            return (None,)
        grad_x = _like(x)
        roll_backward(ctx.saved_meta["params"], [grad_out], [RequestMode.WRITE], [grad_x])
        return (grad_x,)


class VstackFn(Function):
    """
    Row-wise stacking.

    Backward writes only the gradients of inputs that require them; the
    others are requested with `RequestMode.SKIP` and reported as None.
    """

    @staticmethod
    def forward(ctx: Context, *tensors: Tensor) -> Tensor:
        params = VstackParams(num_args=len(tensors))
        out_shape = resolve_vstack([tuple(t.shape) for t in tensors], params)
        out = _like(
            tensors[0],
            out_shape,
            requires_grad=any(t.requires_grad for t in tensors),
        )
        vstack_forward(params, list(tensors), [RequestMode.WRITE], [out])
        ctx.saved_meta["params"] = params
        return out

    @staticmethod
    def backward(ctx: Context, grad_out: Tensor) -> Sequence[Optional[Tensor]]:
        grads = [_like(t) for t in ctx.parents]
        modes = [
            RequestMode.WRITE if t.requires_grad else RequestMode.SKIP
            for t in ctx.parents
        ]
        vstack_backward(ctx.saved_meta["params"], [grad_out], modes, grads)
        return tuple(
            g if t.requires_grad else None for g, t in zip(grads, ctx.parents)
        )


def _require_tensor(x, name: str) -> None:
    if not isinstance(x, Tensor):
        raise TypeError(f"{name} must be a Tensor, got {type(x)!r}")


def _apply(fn: type, tensors: Sequence[Tensor], *args) -> Tensor:
    ctx = Context(parents=tuple(tensors), backward_fn=None)
    ctx.backward_fn = lambda g: fn.backward(ctx, g)
    out = fn.forward(ctx, *tensors, *args)
    if any(t.requires_grad for t in tensors):
        out._set_ctx(ctx)
    return out


def transpose(x: Tensor, axes: Optional[Sequence[int]] = None) -> Tensor:
    """
    Permute the axes of `x`.

    Parameters
    ----------
    x : Tensor
        Input tensor.
    axes : Optional[Sequence[int]], optional
        Permutation of `range(x.ndim)`; negative entries count from the end.
        None reverses all axes.

    Returns
    -------
    Tensor
        New tensor of the permuted shape.

    Raises
    ------
    InvalidArgumentError
        If `axes` is not a permutation of the input axes.
    """
    _require_tensor(x, "x")
    return _apply(TransposeFn, (x,), TransposeParams(axes=axes))


def roll(
    x: Tensor,
    shift: Union[int, Sequence[int]],
    axis: Optional[Union[int, Sequence[int]]] = None,
) -> Tensor:
    """
    Circularly shift the elements of `x`.

    Parameters
    ----------
    x : Tensor
        Input tensor.
    shift : int or Sequence[int]
        Places to shift by; a single value applies to every listed axis.
    axis : int or Sequence[int], optional
        Axes to shift along. None rolls the flattened tensor and restores the
        shape.

    Returns
    -------
    Tensor
        New tensor shaped like `x`.

    Raises
    ------
    InvalidArgumentError
        If an axis is out of range or `shift` and `axis` lengths disagree.
    """
    _require_tensor(x, "x")
    return _apply(RollFn, (x,), RollParams(shift=shift, axis=axis))


def vstack(tensors: Sequence[Tensor]) -> Tensor:
    """
    Stack tensors row-wise.

    Rank-0 and rank-1 inputs are treated as single rows `(1, size)`; all
    promoted inputs must agree on every dimension but the first.

    Raises
    ------
    InvalidArgumentError
        If `tensors` is empty or the promoted shapes disagree.
    """
    tensors = tuple(tensors)
    for i, t in enumerate(tensors):
        _require_tensor(t, f"tensors[{i}]")
    if not tensors:
        raise InvalidArgumentError("requires at least one input", op="vstack")
    return _apply(VstackFn, tensors)
