from ._base import KernelLauncher
from . import _launch_cpu, _launch_cuda  # noqa: F401  (registers launch paths)

__all__ = [KernelLauncher.__name__]
