from texture_runtime.backend import (
    DeviceTexture,
    DispatchError,
    KernelSource,
    ProgramCompileError,
    TextureBackend,
    TextureInput,
)
from texture_runtime.host_backend import HostBackend, HostTexture
from texture_runtime.packing import SquareIndices, pack_2d_square, square_dim, square_indices, unpack_2d_square
from texture_runtime.target_config import CUDA_GPU, HOST_REFERENCE, METAL_GPU, TextureConfig
from texture_runtime.tensor import Tensor, resolve_dtype

__all__ = [
    "DeviceTexture",
    "DispatchError",
    "KernelSource",
    "ProgramCompileError",
    "TextureBackend",
    "TextureInput",
    "HostBackend",
    "HostTexture",
    "SquareIndices",
    "pack_2d_square",
    "square_dim",
    "square_indices",
    "unpack_2d_square",
    "CUDA_GPU",
    "HOST_REFERENCE",
    "METAL_GPU",
    "TextureConfig",
    "Tensor",
    "resolve_dtype",
]

try:
    from texture_runtime.device import Device
    from texture_runtime.metal_backend import MetalBackend, MetalTexture

    __all__ += [
        "Device",
        "MetalBackend",
        "MetalTexture",
    ]
except ImportError:
    pass
