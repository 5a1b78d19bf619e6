"""Tensor container: host ndarray plus optional square-packed device texture."""

from __future__ import annotations

import ml_dtypes
import numpy as np

from texture_runtime.backend import DeviceTexture, TextureBackend
from texture_runtime.packing import SquareIndices, pack_2d_square, square_indices, unpack_2d_square

_DTYPE_MAP = {
    "float16": np.float16,
    "float32": np.float32,
    "bfloat16": ml_dtypes.bfloat16,
    "int32": np.int32,
    "int64": np.int64,
}


def resolve_dtype(dtype) -> np.dtype:
    """Resolve a dtype name (or numpy dtype) to a numpy dtype."""
    if isinstance(dtype, str):
        if dtype not in _DTYPE_MAP:
            raise ValueError(f"Unsupported dtype '{dtype}', expected one of {sorted(_DTYPE_MAP)}")
        return np.dtype(_DTYPE_MAP[dtype])
    return np.dtype(dtype)


class Tensor:
    """Shape-tagged numeric buffer.

    ``tensor`` always holds the current host view. After
    ``reshape_to_2d_square()`` it is the packed ``(dim, dim)`` array and
    ``original_shape`` / ``indices_for_reshaped`` describe the logical tensor.
    """

    def __init__(self, data=None, shape: tuple[int, ...] | None = None, dtype="float32"):
        np_dtype = resolve_dtype(dtype)
        if data is None or (not isinstance(data, np.ndarray) and len(data) == 0):
            if shape is None:
                raise ValueError("Tensor needs either data or a shape")
            self.tensor = np.zeros(tuple(shape), dtype=np_dtype)
        else:
            arr = np.asarray(data, dtype=np_dtype)
            self.tensor = arr.reshape(shape) if shape is not None else arr
        self.original_shape: tuple[int, ...] = tuple(self.tensor.shape)
        self.indices_for_reshaped: SquareIndices | None = None
        self.is_2d_square_reshaped = False
        self.texture: DeviceTexture | None = None

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.tensor.shape)

    @property
    def dtype(self) -> np.dtype:
        return self.tensor.dtype

    def reshape_to_2d_square(self, fill=0) -> None:
        """Pack the tensor into a square 2-D layout (no-op if already packed)."""
        if self.is_2d_square_reshaped:
            return
        self.original_shape = tuple(self.tensor.shape)
        self.indices_for_reshaped = square_indices(self.original_shape)
        self.tensor = pack_2d_square(self.tensor, fill=fill)
        self.is_2d_square_reshaped = True

    def reshape_from_2d_square(self) -> None:
        """Restore the logical shape recorded by ``reshape_to_2d_square``."""
        if not self.is_2d_square_reshaped:
            return
        self.tensor = unpack_2d_square(self.tensor, self.original_shape)
        self.is_2d_square_reshaped = False

    def create_texture(self, backend: TextureBackend, kind: str = "float") -> DeviceTexture:
        """Upload the packed host array as a device texture."""
        if not self.is_2d_square_reshaped:
            raise RuntimeError(
                f"Tensor of shape {self.shape} must be reshaped to a 2-D square before texture creation"
            )
        self.texture = backend.allocate_texture(self.tensor, kind=kind)
        return self.texture

    def transfer_from_texture(self) -> None:
        """Read the device texture back into the host array (packed layout)."""
        if self.texture is None:
            raise RuntimeError("Tensor has no device texture to transfer from")
        self.tensor = self.texture.to_numpy().astype(self.tensor.dtype, copy=False)
        self.is_2d_square_reshaped = True

    def __repr__(self) -> str:
        where = "device" if self.texture is not None else "host"
        return f"Tensor(shape={self.original_shape}, dtype={self.tensor.dtype}, {where})"
