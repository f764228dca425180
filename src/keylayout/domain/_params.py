"""
Operator parameter objects.

Each layout operator receives an immutable, call-scoped parameter object:

- `TransposeParams`: optional axis permutation
- `VstackParams`: declared number of inputs
- `RollParams`: shift amount(s) and optional axis/axes

Parameters can be constructed directly from Python values, or from a raw
attribute mapping through `from_attrs`. Attribute values may be Python ints,
sequences of ints, None, or their string spellings ("(1, 0)", "-2", "None"),
which is how attributes arrive from a serialized operator graph.

Only rank-independent checks happen here. Everything that depends on the input
shape (axis ranges, permutation validity) belongs to the shape resolver.
"""

from __future__ import annotations

import ast
import numbers
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

import numpy as np

from ._errors import InvalidArgumentError

IntOrInts = Union[int, Sequence[int]]


def _as_int(value: Any, *, name: str, op: str) -> int:
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Integral):
        raise InvalidArgumentError(
            f"{name} must contain integers, got {value!r}", op=op
        )
    return int(value)


def parse_int_tuple(
    value: Any, *, name: str, op: str, allow_none: bool
) -> Optional[tuple[int, ...]]:
    """
    Normalize an int, a sequence of ints, None or a string spelling of any of
    these into a tuple of Python ints (or None).

    Parameters
    ----------
    value : Any
        Raw attribute value.
    name : str
        Attribute name used in error messages.
    op : str
        Operator name used in error messages.
    allow_none : bool
        Whether a missing value (None / "None") is acceptable.

    Returns
    -------
    Optional[tuple[int, ...]]
        A scalar becomes a one-tuple; None stays None when allowed.

    Raises
    ------
    InvalidArgumentError
        If the value cannot be interpreted as integers, or is None while
        `allow_none` is False.
    """
    if isinstance(value, str):
        text = value.strip()
        if text in ("", "None", "none"):
            value = None
        else:
            try:
                value = ast.literal_eval(text)
            except (ValueError, SyntaxError):
                raise InvalidArgumentError(
                    f"cannot parse {name}={value!r}", op=op
                ) from None

    if value is None:
        if allow_none:
            return None
        raise InvalidArgumentError(f"{name} is required", op=op)

    if isinstance(value, np.ndarray):
        value = value.tolist()
    if isinstance(value, (list, tuple)):
        return tuple(_as_int(v, name=name, op=op) for v in value)
    return (_as_int(value, name=name, op=op),)


def _check_keys(attrs: Mapping[str, Any], known: tuple[str, ...], op: str) -> None:
    unknown = sorted(set(attrs) - set(known))
    if unknown:
        raise InvalidArgumentError(f"unknown attribute(s) {unknown}", op=op)


@dataclass(frozen=True)
class TransposeParams:
    """
    Parameters of `transpose`.

    Attributes
    ----------
    axes : Optional[tuple[int, ...]]
        Permutation of the input axes. None reverses all axes. Negative
        entries are allowed and normalized against the input rank.
    """

    axes: Optional[tuple[int, ...]] = None

    def __post_init__(self) -> None:
        if self.axes is not None:
            object.__setattr__(
                self,
                "axes",
                parse_int_tuple(self.axes, name="axes", op="transpose", allow_none=False),
            )

    @classmethod
    def from_attrs(cls, attrs: Mapping[str, Any]) -> "TransposeParams":
        _check_keys(attrs, ("axes",), "transpose")
        return cls(
            axes=parse_int_tuple(
                attrs.get("axes"), name="axes", op="transpose", allow_none=True
            )
        )

    def inverse(self, ndim: int) -> "TransposeParams":
        """
        Return the parameters of the inverse permutation for a rank-`ndim` input.

        The inverse of the default (reversal) is itself.
        """
        if self.axes is None:
            return self
        axes = [a + ndim if a < 0 else a for a in self.axes]
        inv = [0] * len(axes)
        for i, a in enumerate(axes):
            inv[a] = i
        return TransposeParams(axes=tuple(inv))


@dataclass(frozen=True)
class VstackParams:
    """
    Parameters of `vstack`.

    Attributes
    ----------
    num_args : int
        Declared number of stacked inputs, at least 1.
    """

    num_args: int

    def __post_init__(self) -> None:
        n = _as_int(self.num_args, name="num_args", op="vstack")
        if n < 1:
            raise InvalidArgumentError(f"num_args must be >= 1, got {n}", op="vstack")
        object.__setattr__(self, "num_args", n)

    @classmethod
    def from_attrs(cls, attrs: Mapping[str, Any]) -> "VstackParams":
        _check_keys(attrs, ("num_args",), "vstack")
        values = parse_int_tuple(
            attrs.get("num_args"), name="num_args", op="vstack", allow_none=False
        )
        if len(values) != 1:
            raise InvalidArgumentError(
                f"num_args must be a single integer, got {values}", op="vstack"
            )
        return cls(num_args=values[0])


@dataclass(frozen=True)
class RollParams:
    """
    Parameters of `roll`.

    Attributes
    ----------
    shift : tuple[int, ...]
        Places to shift by. A single entry is broadcast to every listed axis.
    axis : Optional[tuple[int, ...]]
        Axes to shift along. None flattens the tensor, shifts, and restores
        the original shape.

    Raises
    ------
    InvalidArgumentError
        If `shift` is empty, if a multi-entry `shift` accompanies no axis, or
        if a multi-entry `shift` differs in length from `axis`.
    """

    shift: tuple[int, ...]
    axis: Optional[tuple[int, ...]] = None

    def __post_init__(self) -> None:
        shift = parse_int_tuple(self.shift, name="shift", op="roll", allow_none=False)
        axis = parse_int_tuple(self.axis, name="axis", op="roll", allow_none=True)
        if not shift:
            raise InvalidArgumentError("shift must not be empty", op="roll")
        if axis is None and len(shift) != 1:
            raise InvalidArgumentError(
                f"a flattened roll takes a single shift, got {shift}", op="roll"
            )
        if axis is not None and len(shift) not in (1, len(axis)):
            raise InvalidArgumentError(
                "shift and axis must be sequences of the same size, "
                f"got shift={shift} axis={axis}",
                op="roll",
            )
        object.__setattr__(self, "shift", shift)
        object.__setattr__(self, "axis", axis)

    @classmethod
    def from_attrs(cls, attrs: Mapping[str, Any]) -> "RollParams":
        _check_keys(attrs, ("shift", "axis"), "roll")
        return cls(shift=attrs.get("shift"), axis=attrs.get("axis"))

    def negated(self) -> "RollParams":
        """Return the parameters that undo this roll."""
        return RollParams(shift=tuple(-s for s in self.shift), axis=self.axis)
