"""Metal GPU backend implementation.

Textures are shared-storage MTLBuffers holding a row-major square; programs
are Metal compute kernels compiled from source text and dispatched over the
output texture as a 2-D grid.
"""

from __future__ import annotations

import struct
from typing import Any

import numpy as np

from texture_runtime.backend import (
    DeviceTexture,
    DispatchError,
    KernelSource,
    TextureBackend,
    TextureInput,
    check_texture_shape,
    texture_dtype,
)
from texture_runtime.device import Device
from texture_runtime.target_config import METAL_GPU, TextureConfig

# MTLResourceStorageModeShared: CPU writes on upload and reads on readback.
_STORAGE_MODE_SHARED = 0


class MetalTexture(DeviceTexture):
    """Metal-backed square texture."""

    def __init__(self, mtl_buffer, shape: tuple[int, int], dtype: np.dtype, kind: str):
        self._buffer = mtl_buffer
        self._shape = shape
        self._dtype = dtype
        self._kind = kind

    @property
    def shape(self) -> tuple[int, int]:
        return self._shape

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def size_bytes(self) -> int:
        return int(np.prod(self._shape)) * self._dtype.itemsize

    @property
    def native_handle(self):
        return self._buffer

    @staticmethod
    def from_numpy(data: np.ndarray, device: Device, kind: str) -> MetalTexture:
        contiguous = np.ascontiguousarray(data, dtype=texture_dtype(kind))
        raw_bytes = contiguous.tobytes()
        # Metal cannot allocate 0-byte buffers
        mtl_buffer = device.mtl_device.newBufferWithBytes_length_options_(
            raw_bytes or b"\x00",
            max(len(raw_bytes), 1),
            _STORAGE_MODE_SHARED,
        )
        if mtl_buffer is None:
            raise RuntimeError(f"Failed to allocate Metal buffer ({len(raw_bytes)} bytes)")
        return MetalTexture(mtl_buffer, tuple(contiguous.shape), contiguous.dtype, kind)

    def to_numpy(self) -> np.ndarray:
        nbytes = self.size_bytes
        if nbytes == 0:
            return np.zeros(self._shape, dtype=self._dtype)
        mv = self._buffer.contents().as_buffer(nbytes)
        return np.frombuffer(mv, dtype=self._dtype).copy().reshape(self._shape)


class MetalProgram:
    """Compiled Metal compute pipeline for one kernel."""

    def __init__(self, kernel_name: str, pipeline):
        self.kernel_name = kernel_name
        self.pipeline = pipeline


class MetalBackend(TextureBackend):
    """Backend implementation using Apple Metal GPU."""

    def __init__(self, config: TextureConfig | None = None):
        self._config = config or METAL_GPU
        self._device = Device()

    @property
    def name(self) -> str:
        return "metal"

    @property
    def config(self) -> TextureConfig:
        return self._config

    @property
    def device(self) -> Device:
        return self._device

    def allocate_texture(self, data: np.ndarray, kind: str = "float") -> MetalTexture:
        check_texture_shape(data.shape, self._config)
        return MetalTexture.from_numpy(data, self._device, kind)

    def allocate_zeros(self, shape: tuple[int, int], kind: str = "float") -> MetalTexture:
        check_texture_shape(shape, self._config)
        return MetalTexture.from_numpy(np.zeros(shape, dtype=texture_dtype(kind)), self._device, kind)

    def compile_program(self, source: KernelSource) -> MetalProgram:
        library = self._device.compile_source(source.source_for(self.name))
        pipeline = self._device.get_pipeline(library, source.kernel_name)
        return MetalProgram(source.kernel_name, pipeline)

    def run_program(self, program: Any, output: DeviceTexture, inputs: list[TextureInput]) -> None:
        if not isinstance(program, MetalProgram):
            raise DispatchError(f"Program {program!r} was not compiled by the Metal backend")
        src_width = inputs[0].texture.shape[1]
        out_height, out_width = output.shape
        params = struct.pack("III", src_width, out_width, out_height)

        cmd_buf = self._device.new_command_buffer()
        encoder = cmd_buf.computeCommandEncoder()
        encoder.setComputePipelineState_(program.pipeline)
        for idx, inp in enumerate(inputs):
            encoder.setBuffer_offset_atIndex_(inp.texture.native_handle, 0, idx)
        encoder.setBuffer_offset_atIndex_(output.native_handle, 0, len(inputs))
        encoder.setBytes_length_atIndex_(params, len(params), len(inputs) + 1)

        tpg_x = min(self._config.max_threadgroup_2d, out_width)
        tpg_y = min(self._config.max_threadgroup_2d, out_height)
        groups_x = (out_width + tpg_x - 1) // tpg_x
        groups_y = (out_height + tpg_y - 1) // tpg_y
        encoder.dispatchThreadgroups_threadsPerThreadgroup_((groups_x, groups_y, 1), (tpg_x, tpg_y, 1))
        encoder.endEncoding()
        self._device.wait(cmd_buf)

    def synchronize(self):
        pass  # run_program waits for completion
