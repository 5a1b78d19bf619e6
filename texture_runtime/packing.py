"""Square packing: deterministic N-D -> 2-D square layout for textures.

A tensor with ``n`` elements is flattened row-major into a ``dim x dim``
square, ``dim = ceil(sqrt(n))``. Element with flat index ``i`` lands on
texel ``(i // dim, i % dim)``; the unused tail is filled with a pad value.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


@dataclass
class SquareIndices:
    """Row/column texel coordinates for every element of a packed tensor."""
    row: np.ndarray
    col: np.ndarray


def square_dim(size: int) -> int:
    """Side length of the smallest square holding ``size`` elements."""
    return max(1, math.isqrt(max(size, 1) - 1) + 1)


def square_indices(shape: tuple[int, ...]) -> SquareIndices:
    """Return int32 row/col tensors of ``shape`` describing the square packing."""
    size = int(np.prod(shape))
    dim = square_dim(size)
    flat = np.arange(size, dtype=np.int32)
    return SquareIndices(
        row=(flat // dim).reshape(shape),
        col=(flat % dim).reshape(shape),
    )


def pack_2d_square(arr: np.ndarray, fill=0) -> np.ndarray:
    """Flatten ``arr`` row-major into a square 2-D array padded with ``fill``."""
    dim = square_dim(arr.size)
    packed = np.full(dim * dim, fill, dtype=arr.dtype)
    packed[: arr.size] = arr.ravel()
    return packed.reshape(dim, dim)


def unpack_2d_square(arr: np.ndarray, shape: tuple[int, ...]) -> np.ndarray:
    """Inverse of :func:`pack_2d_square`."""
    size = int(np.prod(shape))
    if arr.size < size:
        raise ValueError(f"Packed array has {arr.size} elements, need {size} for shape {tuple(shape)}")
    return arr.ravel()[:size].reshape(shape).copy()
