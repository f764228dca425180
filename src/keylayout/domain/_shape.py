"""
Shape resolution for layout operators.

Given input shapes and an operator's parameters, the functions in this module
either return the output shape (plus the normalized parameters kernels need)
or raise `InvalidArgumentError`. They never look at data, so every kernel can
validate a call completely before touching a buffer.

Conventions
-----------
- Shapes are tuples of non-negative ints; `()` is a scalar.
- Strides are row-major element strides (not bytes).
- Negative axes are normalized by adding the rank, as array libraries do.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ._errors import InvalidArgumentError
from ._params import RollParams, TransposeParams, VstackParams

Shape = tuple[int, ...]


def numel(shape: Sequence[int]) -> int:
    """Number of elements implied by `shape` (1 for a scalar)."""
    n = 1
    for d in shape:
        n *= int(d)
    return n


def contiguous_strides(shape: Sequence[int]) -> Shape:
    """
    Row-major element strides of a contiguous tensor of `shape`.

    Examples
    --------
    >>> contiguous_strides((2, 3, 4))
    (12, 4, 1)
    """
    strides = [1] * len(shape)
    acc = 1
    for i in range(len(shape) - 1, -1, -1):
        strides[i] = acc
        acc *= int(shape[i])
    return tuple(strides)


def normalize_axis(axis: int, ndim: int, *, op: str) -> int:
    """
    Map `axis` into `[0, ndim)`.

    Raises
    ------
    InvalidArgumentError
        If the axis lies outside `[-ndim, ndim)`.
    """
    a = axis + ndim if axis < 0 else axis
    if a < 0 or a >= ndim:
        raise InvalidArgumentError(
            f"axis {axis} is out of bounds for a tensor of rank {ndim}", op=op
        )
    return a


def resolve_transpose(shape: Shape, params: TransposeParams) -> tuple[Shape, Shape]:
    """
    Validate a transpose and compute its output shape.

    Parameters
    ----------
    shape : Shape
        Input shape.
    params : TransposeParams
        Requested permutation (None reverses all axes).

    Returns
    -------
    tuple[Shape, Shape]
        `(out_shape, axes)` where `axes` is the normalized permutation.

    Raises
    ------
    InvalidArgumentError
        If `axes` is not a permutation of `[0, rank)`.
    """
    ndim = len(shape)
    if params.axes is None:
        axes = tuple(range(ndim - 1, -1, -1))
    else:
        if len(params.axes) != ndim:
            raise InvalidArgumentError(
                f"axes {params.axes} do not match a tensor of rank {ndim}",
                op="transpose",
            )
        axes = tuple(normalize_axis(a, ndim, op="transpose") for a in params.axes)
        if sorted(axes) != list(range(ndim)):
            raise InvalidArgumentError(
                f"axes {params.axes} are not a permutation of range({ndim})",
                op="transpose",
            )
    return tuple(int(shape[a]) for a in axes), axes


def promote_to_row(shape: Shape) -> Shape:
    """
    Promote a rank-0 or rank-1 shape to the single-row matrix `(1, size)`.

    Shapes of rank >= 2 are returned unchanged.
    """
    if len(shape) <= 1:
        return (1, numel(shape))
    return tuple(int(d) for d in shape)


def resolve_concat(shapes: Sequence[Shape], axis: int, *, op: str) -> Shape:
    """
    Output shape of concatenating `shapes` along `axis`.

    Raises
    ------
    InvalidArgumentError
        If there are no inputs, ranks differ, the axis is out of range, or a
        pair of inputs disagrees on a dimension other than `axis`.
    """
    if not shapes:
        raise InvalidArgumentError("requires at least one input", op=op)
    ref = shapes[0]
    ndim = len(ref)
    if ndim == 0:
        raise InvalidArgumentError("cannot concatenate scalars", op=op)
    axis = normalize_axis(axis, ndim, op=op)

    total = 0
    for i, s in enumerate(shapes):
        if len(s) != ndim:
            raise InvalidArgumentError(
                f"input {i} has rank {len(s)}, expected {ndim}", op=op
            )
        for d in range(ndim):
            if d != axis and s[d] != ref[d]:
                raise InvalidArgumentError(
                    f"shape mismatch on dim {d}: input 0 has {ref}, input {i} has {s}",
                    op=op,
                )
        total += int(s[axis])

    out = list(ref)
    out[axis] = total
    return tuple(int(d) for d in out)


def resolve_vstack(shapes: Sequence[Shape], params: VstackParams) -> Shape:
    """
    Validate a vstack and compute its output shape.

    Inputs are promoted with `promote_to_row` and concatenated along axis 0.

    Raises
    ------
    InvalidArgumentError
        If the number of shapes differs from `params.num_args` or the promoted
        shapes disagree on any dimension other than axis 0.
    """
    if len(shapes) != params.num_args:
        raise InvalidArgumentError(
            f"expected {params.num_args} inputs, got {len(shapes)}", op="vstack"
        )
    return resolve_concat([promote_to_row(s) for s in shapes], 0, op="vstack")


def resolve_roll(shape: Shape, params: RollParams) -> tuple[Shape, Optional[Shape]]:
    """
    Validate a roll and compute its normalized per-axis shifts.

    Returns
    -------
    tuple[Shape, Optional[Shape]]
        `(out_shape, shifts)`. `out_shape` always equals `shape`. In flatten
        mode `shifts` is None; otherwise it holds one shift per input axis,
        reduced modulo that axis's size (0 for axes not listed and for
        zero-sized axes). Repeated axes accumulate their shifts.

    Raises
    ------
    InvalidArgumentError
        If a listed axis is out of range.
    """
    shape = tuple(int(d) for d in shape)
    if params.axis is None:
        return shape, None

    ndim = len(shape)
    axes = [normalize_axis(a, ndim, op="roll") for a in params.axis]
    if len(params.shift) == 1:
        per_axis = [params.shift[0]] * len(axes)
    else:
        per_axis = list(params.shift)

    shifts = [0] * ndim
    # a repeated axis keeps its last listed shift
    for a, s in zip(axes, per_axis):
        shifts[a] = s
    for a in range(ndim):
        # a zero-sized axis makes the whole tensor empty; keep the modulo safe
        shifts[a] = shifts[a] % shape[a] if shape[a] else 0
    return shape, tuple(shifts)


def flat_roll_shift(size: int, params: RollParams) -> int:
    """
    Flatten-mode shift reduced into `[0, size)`.

    The modulus is the total element count, unlike per-axis mode where each
    axis is reduced by its own size.
    """
    if size == 0:
        return 0
    return params.shift[0] % size
