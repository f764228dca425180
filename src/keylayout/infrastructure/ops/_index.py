"""
Flat index tables for gather-based layout kernels.

A layout kernel that moves every element independently can be described by a
table `index` with `out.flat[i] = x.flat[index[i]]`. When the source offset is
a sum of independent per-axis terms, the table is the cartesian composition
of one small offset vector per output axis, walked in row-major order (last
axis fastest). `compose_offsets` performs that walk with `np.add.outer`, one
axis at a time, so the cost is linear in the output size.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np


def compose_offsets(axis_offsets: Sequence[np.ndarray]) -> np.ndarray:
    """
    Compose per-axis source offsets into one flat row-major index table.

    Parameters
    ----------
    axis_offsets : Sequence[np.ndarray]
        One int64 vector per output axis; entry `j` of vector `k` is the
        source offset contributed by output coordinate `j` along axis `k`.

    Returns
    -------
    np.ndarray
        int64 table of length `prod(len(v) for v in axis_offsets)`. A rank-0
        output yields the single offset 0.

    Examples
    --------
    >>> compose_offsets([np.array([0, 3]), np.array([0, 1, 2])])
    array([0, 1, 2, 3, 4, 5])
    """
    table = np.zeros(1, dtype=np.int64)
    for offs in axis_offsets:
        table = np.add.outer(table, np.asarray(offs, dtype=np.int64)).reshape(-1)
    return table
