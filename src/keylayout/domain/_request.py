"""
Per-output request modes.

Every kernel call carries one `RequestMode` per output buffer. The mode tells
the launch primitive how the computed values meet whatever the buffer already
holds:

- `WRITE`: overwrite unconditionally
- `ADD`: accumulate into the existing contents
- `SKIP`: leave the buffer untouched (e.g. a gradient nobody asked for)
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Sequence, Union

from ._errors import InvalidArgumentError


class RequestMode(Enum):
    """
    How a kernel writes one of its outputs.
    """

    WRITE = "write"
    ADD = "add"
    SKIP = "skip"

    @classmethod
    def parse(cls, value: Union["RequestMode", str]) -> "RequestMode":
        """
        Convert a mode or its string spelling into a `RequestMode`.

        Accepts the member names ("write", "add", "skip", case-insensitive)
        and the graph-level spellings "write_to", "add_to" and "null".

        Raises
        ------
        InvalidArgumentError
            If `value` names no known mode.
        """
        if isinstance(value, RequestMode):
            return value
        key = str(value).strip().lower()
        try:
            return _ALIASES[key]
        except KeyError:
            raise InvalidArgumentError(f"unknown request mode {value!r}") from None


_ALIASES = {
    "write": RequestMode.WRITE,
    "write_to": RequestMode.WRITE,
    "add": RequestMode.ADD,
    "add_to": RequestMode.ADD,
    "skip": RequestMode.SKIP,
    "null": RequestMode.SKIP,
}


def parse_modes(
    req: Iterable[Union[RequestMode, str]],
) -> tuple[RequestMode, ...]:
    """Parse every entry of `req` with `RequestMode.parse`."""
    return tuple(RequestMode.parse(r) for r in req)


def require_modes(
    op: str,
    req: Sequence[RequestMode],
    allowed: Iterable[RequestMode],
) -> None:
    """
    Reject any request mode outside `allowed` for operator `op`.

    Raises
    ------
    InvalidArgumentError
        If some entry of `req` is not allowed.
    """
    allowed = tuple(allowed)
    for i, r in enumerate(req):
        if r not in allowed:
            names = ", ".join(a.name for a in allowed)
            raise InvalidArgumentError(
                f"request mode {r.name} for output {i} is not supported "
                f"(supported: {names})",
                op=op,
            )
