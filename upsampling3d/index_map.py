"""Index maps that let a gather program emulate the strided broadcast.

``rowIndexMap[p]`` / ``colIndexMap[p]`` hold the texel of the square-packed
input that supplies output element ``p``. They are built with the same
offset-cuboid assignment as the CPU path, applied to the input's packing
indices instead of its values, so they depend only on shapes, size and data
format and are cached per layer instance.
"""

from __future__ import annotations

import logging

import numpy as np

from texture_runtime.backend import TextureBackend
from texture_runtime.packing import SquareIndices
from texture_runtime.tensor import Tensor
from upsampling3d.broadcast import broadcast_into
from upsampling3d.config import UpSamplingConfig
from upsampling3d.errors import PreconditionError

logger = logging.getLogger(__name__)

# Texels outside the packed output carry no source; the gather writes 0 there.
_NO_SOURCE = -1


class IndexMapBuilder:
    """Builds and caches the row/column index-map textures of one layer."""

    def __init__(self, config: UpSamplingConfig, backend: TextureBackend):
        self._config = config
        self._backend = backend
        self.row_index_map: Tensor | None = None
        self.col_index_map: Tensor | None = None
        self.built_for: tuple[int, ...] | None = None
        self.build_count = 0

    @property
    def is_built(self) -> bool:
        return self.row_index_map is not None and self.col_index_map is not None

    def build(self, indices_for_reshaped: SquareIndices | None, input_shape) -> tuple[Tensor, Tensor]:
        """Return the cached maps, building them on first use or on a new input shape."""
        input_shape = tuple(input_shape)
        if indices_for_reshaped is None:
            raise PreconditionError(
                "Input has no square-packing indices; call reshape_to_2d_square() before the GPU path"
            )
        if self.is_built and self.built_for == input_shape:
            return self.row_index_map, self.col_index_map

        if self.built_for is not None:
            logger.debug("input shape changed %s -> %s, rebuilding index maps", self.built_for, input_shape)

        output_shape = self._config.output_shape(input_shape)
        row = np.full(output_shape, _NO_SOURCE, dtype=np.int32)
        col = np.full(output_shape, _NO_SOURCE, dtype=np.int32)
        broadcast_into(row, np.asarray(indices_for_reshaped.row, dtype=np.int32), self._config)
        broadcast_into(col, np.asarray(indices_for_reshaped.col, dtype=np.int32), self._config)

        row_map = Tensor(row, dtype="int32")
        col_map = Tensor(col, dtype="int32")
        for index_map in (row_map, col_map):
            index_map.reshape_to_2d_square(fill=_NO_SOURCE)
            index_map.create_texture(self._backend, kind="int")

        self.row_index_map, self.col_index_map = row_map, col_map
        self.built_for = input_shape
        self.build_count += 1
        logger.debug(
            "built index maps for input %s -> output %s (texture %s)",
            input_shape, output_shape, row_map.tensor.shape,
        )
        return row_map, col_map
