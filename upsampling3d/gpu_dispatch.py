"""GPU path: texture upload, index-map lookup, gather dispatch, optional readback."""

from __future__ import annotations

import logging

from texture_runtime.backend import TextureBackend, TextureInput
from texture_runtime.tensor import Tensor
from upsampling3d.config import UpSamplingConfig
from upsampling3d.errors import PreconditionError
from upsampling3d.index_map import IndexMapBuilder
from upsampling3d.kernels import MAP_INPUT_KERNEL

logger = logging.getLogger(__name__)


class GPUDispatchAdapter:
    """Runs the upsampling gather on a texture backend.

    The program is compiled once at construction; compile and dispatch
    errors from the backend propagate unchanged.
    """

    def __init__(self, config: UpSamplingConfig, backend: TextureBackend, outbound: int = 0):
        self._config = config
        self._backend = backend
        self.outbound = outbound
        self.index_maps = IndexMapBuilder(config, backend)
        self.program = backend.compile_program(MAP_INPUT_KERNEL)
        self.output: Tensor | None = None
        self.input_shape: tuple[int, ...] | None = None
        self.output_shape: tuple[int, ...] | None = None

    def upsample(self, x: Tensor) -> Tensor:
        # shape check first so a rejected input is left as the caller passed it
        input_shape = tuple(x.original_shape if x.is_2d_square_reshaped else x.shape)
        output_shape = self._config.output_shape(input_shape)

        if x.texture is None:
            x.reshape_to_2d_square()
            x.create_texture(self._backend)
        if x.texture is None:
            raise PreconditionError("Input tensor has no device texture after upload")

        self.input_shape = input_shape
        self.output_shape = output_shape

        row_map, col_map = self.index_maps.build(x.indices_for_reshaped, self.input_shape)

        if self.output is None or self.output.original_shape != self.output_shape:
            logger.debug("allocating output texture for shape %s", self.output_shape)
            self.output = Tensor(shape=self.output_shape)
            self.output.reshape_to_2d_square()
            self.output.create_texture(self._backend)

        self._backend.run_program(
            self.program,
            output=self.output.texture,
            inputs=[
                TextureInput("x", x.texture),
                TextureInput("rowIndexMap", row_map.texture),
                TextureInput("colIndexMap", col_map.texture),
            ],
        )

        # GPU -> CPU transfer only when nothing downstream consumes the texture
        if self.outbound == 0:
            self.output.transfer_from_texture()
            self.output.reshape_from_2d_square()
        return self.output
