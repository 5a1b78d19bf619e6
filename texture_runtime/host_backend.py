"""Host reference backend: numpy-backed textures and host gather kernels.

Runs the same programs as the device backends on the CPU, with explicit
copies on upload and readback so device residency is modelled faithfully.
Programs are resolved by kernel name against ``HOST_KERNELS``; the source
text of other backends is not interpreted.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import numpy as np

from texture_runtime.backend import (
    DeviceTexture,
    DispatchError,
    KernelSource,
    ProgramCompileError,
    TextureBackend,
    TextureInput,
    check_texture_shape,
    texture_dtype,
)
from texture_runtime.target_config import HOST_REFERENCE, TextureConfig

logger = logging.getLogger(__name__)


def _map_input_host(inputs: dict[str, np.ndarray], out: np.ndarray) -> None:
    """Gather: out[p] = x[rowIndexMap[p], colIndexMap[p]], 0 where the map is negative."""
    x = inputs["x"]
    rows = inputs["rowIndexMap"]
    cols = inputs["colIndexMap"]
    valid = (rows >= 0) & (cols >= 0)
    out[...] = 0
    out[valid] = x[rows[valid], cols[valid]]


HOST_KERNELS: dict[str, Callable[[dict[str, np.ndarray], np.ndarray], None]] = {
    "map_input_kernel": _map_input_host,
}


class HostTexture(DeviceTexture):
    """Texture stored in a private host numpy array."""

    def __init__(self, data: np.ndarray, kind: str):
        self._data = data
        self._kind = kind

    @property
    def shape(self) -> tuple[int, int]:
        return tuple(self._data.shape)

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def size_bytes(self) -> int:
        return self._data.nbytes

    @property
    def native_handle(self) -> np.ndarray:
        return self._data

    def to_numpy(self) -> np.ndarray:
        return self._data.copy()


class HostProgram:
    """A host kernel resolved from a KernelSource."""

    def __init__(self, kernel_name: str, fn: Callable):
        self.kernel_name = kernel_name
        self._fn = fn

    def __call__(self, inputs: dict[str, np.ndarray], out: np.ndarray) -> None:
        self._fn(inputs, out)


class HostBackend(TextureBackend):
    """Backend implementation executing programs with numpy on the host."""

    def __init__(self, config: TextureConfig | None = None):
        self._config = config or HOST_REFERENCE
        self._program_cache: dict[str, HostProgram] = {}

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> TextureConfig:
        return self._config

    def allocate_texture(self, data: np.ndarray, kind: str = "float") -> HostTexture:
        check_texture_shape(data.shape, self._config)
        return HostTexture(np.array(data, dtype=texture_dtype(kind), copy=True), kind)

    def allocate_zeros(self, shape: tuple[int, int], kind: str = "float") -> HostTexture:
        check_texture_shape(shape, self._config)
        return HostTexture(np.zeros(shape, dtype=texture_dtype(kind)), kind)

    def compile_program(self, source: KernelSource) -> HostProgram:
        cached = self._program_cache.get(source.kernel_name)
        if cached is not None:
            return cached
        fn = HOST_KERNELS.get(source.kernel_name)
        if fn is None:
            raise ProgramCompileError(f"Host backend has no kernel named '{source.kernel_name}'")
        program = HostProgram(source.kernel_name, fn)
        self._program_cache[source.kernel_name] = program
        logger.debug("compiled host program %s", source.kernel_name)
        return program

    def run_program(self, program: Any, output: DeviceTexture, inputs: list[TextureInput]) -> None:
        if not isinstance(program, HostProgram):
            raise DispatchError(f"Program {program!r} was not compiled by the host backend")
        bound = {inp.name: inp.texture.native_handle for inp in inputs}
        try:
            program(bound, output.native_handle)
        except (KeyError, IndexError) as e:
            raise DispatchError(f"Host kernel '{program.kernel_name}' failed: {e}") from e

    def synchronize(self):
        pass  # host kernels run synchronously
