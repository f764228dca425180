"""
Structural device contract.

Kernels only need a handful of members from a device descriptor: its category
(the launch dispatch key), its index (for CUDA device selection) and the two
predicates. `DeviceLike` captures exactly that so tests and alternative
descriptors can stand in for `Device` without subclassing it.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class DeviceLike(Protocol):
    """
    Duck-typed device contract used across the domain and launch layers.
    """

    type: object
    index: Optional[int]

    def is_cpu(self) -> bool: ...
    def is_cuda(self) -> bool: ...
    def __str__(self) -> str: ...
