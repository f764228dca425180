"""
Loader for the keylayout native CUDA library.

The CUDA launch path calls into a separately built shared library
(`KeyLayoutCudaNative.dll` on Windows, `libkeylayout_cuda_native.so`
elsewhere) through `ctypes`. This module resolves where that library lives,
makes its dependencies discoverable and returns a cached `ctypes.CDLL`.

Environment variables
---------------------
KEYLAYOUT_CUDA_NATIVE : str, optional
    Explicit path to the shared library. Takes precedence over the default
    build location.
CUDA_PATH : str, optional
    On Windows, `<CUDA_PATH>/bin` is added to the DLL search path so the CUDA
    runtime resolves.
KEYLAYOUT_CUDA_DEBUG : str, optional
    "1"/"true" asks the native side to record a last debug message, which is
    appended to native error reports.
"""

from __future__ import annotations

import ctypes
import os
import sys
from functools import lru_cache
from pathlib import Path

_ENV_LIBRARY = "KEYLAYOUT_CUDA_NATIVE"
_ENV_DEBUG = "KEYLAYOUT_CUDA_DEBUG"


def default_library_path() -> Path:
    """
    Default build location of the native library, next to this package.
    """
    name = (
        "KeyLayoutCudaNative.dll"
        if sys.platform == "win32"
        else "libkeylayout_cuda_native.so"
    )
    return (Path(__file__).resolve().parents[1] / "build" / name).resolve()


def resolve_library_path() -> Path:
    """
    Path of the library to load: `$KEYLAYOUT_CUDA_NATIVE` when set, else the
    default build location.
    """
    override = os.environ.get(_ENV_LIBRARY, "")
    if override:
        return Path(override).expanduser().resolve()
    return default_library_path()


def debug_enabled() -> bool:
    """Whether `KEYLAYOUT_CUDA_DEBUG` asks for native debug messages."""
    return os.environ.get(_ENV_DEBUG, "0").strip().lower() not in ("0", "", "false")


def _add_dll_dir(dir_path: str) -> None:
    """
    Make `dir_path` searchable for dependent DLLs (Windows only).

    Some Windows setups raise WinError 206 from `os.add_dll_directory`; in that
    case the directory is prepended to this process's PATH instead.
    """
    if not dir_path or not os.path.isdir(dir_path):
        return
    try:
        os.add_dll_directory(dir_path)
    except OSError as e:
        if getattr(e, "winerror", None) != 206:
            raise
        cur = os.environ.get("PATH", "")
        if dir_path not in cur.split(os.pathsep):
            os.environ["PATH"] = dir_path + os.pathsep + cur if cur else dir_path


@lru_cache(maxsize=1)
def load_keylayout_cuda_native() -> ctypes.CDLL:
    """
    Load and cache the native CUDA library.

    Returns
    -------
    ctypes.CDLL
        Library handle, loaded at most once per process.

    Raises
    ------
    FileNotFoundError
        If no library exists at the resolved path.
    OSError
        If the library (or one of its dependencies) fails to load.
    """
    p = resolve_library_path()
    if not p.exists():
        raise FileNotFoundError(f"keylayout CUDA native library not found at: {p}")

    if sys.platform == "win32":
        cuda_path = os.environ.get("CUDA_PATH", "")
        if cuda_path:
            _add_dll_dir(os.path.join(cuda_path, "bin"))
        _add_dll_dir(str(p.parent))

    return ctypes.CDLL(str(p))
