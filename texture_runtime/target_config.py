"""Hardware target configuration for texture backends."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TextureConfig:
    """Target-specific constants for a texture backend."""
    name: str = "host"
    max_texture_size: int = 16384
    max_threadgroup_1d: int = 256
    max_threadgroup_2d: int = 16


HOST_REFERENCE = TextureConfig()
METAL_GPU = TextureConfig(name="metal")
CUDA_GPU = TextureConfig(name="cuda", max_texture_size=32768)
