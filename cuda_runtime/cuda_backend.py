"""CUDA backend: CuPy-based TextureBackend and DeviceTexture implementations.

Implements the TextureBackend ABC from texture_runtime.backend using CuPy for
GPU memory and NVRTC for compiling program sources.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any

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
from texture_runtime.target_config import CUDA_GPU, TextureConfig

try:
    import cupy as cp

    HAS_CUPY = True
except ImportError:
    cp = None
    HAS_CUPY = False

logger = logging.getLogger(__name__)

# Module-level NVRTC compilation cache: source_hash:kernel_name -> RawKernel
# Survives across CUDABackend instances, avoiding redundant NVRTC calls
_KERNEL_CACHE: dict[str, "cp.RawKernel"] = {}


def _get_or_compile_kernel(source_code: str, kernel_name: str) -> "cp.RawKernel":
    """Get a compiled kernel from cache or compile via NVRTC."""
    key = hashlib.md5(source_code.encode()).hexdigest() + ":" + kernel_name
    cached = _KERNEL_CACHE.get(key)
    if cached is not None:
        return cached
    kernel = cp.RawKernel(source_code, kernel_name)
    try:
        # RawKernel compiles lazily; force it so errors surface here
        kernel.compile()
    except cp.cuda.compiler.CompileException as e:
        raise ProgramCompileError(f"NVRTC compilation of '{kernel_name}' failed: {e}") from e
    _KERNEL_CACHE[key] = kernel
    logger.debug("compiled CUDA kernel %s", key)
    return kernel


class CUDATexture(DeviceTexture):
    """CUDA GPU texture backed by a 2-D cupy.ndarray."""

    def __init__(self, data: cp.ndarray, kind: str):
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
    def native_handle(self) -> Any:
        """Return the underlying cupy.ndarray."""
        return self._data

    def to_numpy(self) -> np.ndarray:
        """Download to CPU as numpy array."""
        return cp.asnumpy(self._data)

    @classmethod
    def from_numpy(cls, data: np.ndarray, kind: str) -> CUDATexture:
        """Upload numpy array to CUDA GPU."""
        return cls(cp.ascontiguousarray(cp.asarray(data, dtype=texture_dtype(kind))), kind)


class CUDAProgram:
    """NVRTC-compiled kernel for one program source."""

    def __init__(self, kernel_name: str, kernel: "cp.RawKernel"):
        self.kernel_name = kernel_name
        self.kernel = kernel


class CUDABackend(TextureBackend):
    """CUDA GPU execution backend using CuPy."""

    def __init__(self, device_id: int = 0, config: TextureConfig | None = None):
        if not HAS_CUPY:
            raise RuntimeError("CuPy is not installed. Install with: pip install -e '.[cuda]'")
        self._config = config or CUDA_GPU
        self._device_id = device_id
        self._cp_device = cp.cuda.Device(device_id)

    @property
    def name(self) -> str:
        return "cuda"

    @property
    def config(self) -> TextureConfig:
        return self._config

    @property
    def device(self) -> Any:
        """Return CuPy device object."""
        return self._cp_device

    def allocate_texture(self, data: np.ndarray, kind: str = "float") -> CUDATexture:
        check_texture_shape(data.shape, self._config)
        with self._cp_device:
            return CUDATexture.from_numpy(data, kind)

    def allocate_zeros(self, shape: tuple[int, int], kind: str = "float") -> CUDATexture:
        check_texture_shape(shape, self._config)
        with self._cp_device:
            return CUDATexture(cp.zeros(tuple(shape), dtype=texture_dtype(kind)), kind)

    def compile_program(self, source: KernelSource) -> CUDAProgram:
        with self._cp_device:
            kernel = _get_or_compile_kernel(source.source_for(self.name), source.kernel_name)
        return CUDAProgram(source.kernel_name, kernel)

    def run_program(self, program: Any, output: DeviceTexture, inputs: list[TextureInput]) -> None:
        """Launch ``program`` with args (inputs..., output, src_width, out_size)."""
        if not isinstance(program, CUDAProgram):
            raise DispatchError(f"Program {program!r} was not compiled by the CUDA backend")
        src_width = inputs[0].texture.shape[1]
        out_size = int(np.prod(output.shape))
        block = self._config.max_threadgroup_1d
        grid = (out_size + block - 1) // block
        args = tuple(inp.texture.native_handle for inp in inputs) + (
            output.native_handle,
            np.int32(src_width),
            np.int32(out_size),
        )
        with self._cp_device:
            program.kernel((grid,), (block,), args)
            self.synchronize()

    def synchronize(self):
        """Synchronize CUDA device."""
        cp.cuda.Device(self._device_id).synchronize()
