"""Abstract backend interfaces for the texture runtime."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from texture_runtime.target_config import TextureConfig

# Texture kinds: "float" textures hold float32 data, "int" textures hold int32 indices.
TEXTURE_DTYPES = {
    "float": np.dtype(np.float32),
    "int": np.dtype(np.int32),
}


class ProgramCompileError(RuntimeError):
    """A program source failed to compile for the backend."""


class DispatchError(RuntimeError):
    """A compiled program failed to run on the device."""


@dataclass(frozen=True)
class KernelSource:
    """Program source text, one variant per backend name."""

    kernel_name: str
    sources: dict[str, str] = field(default_factory=dict, hash=False)

    def source_for(self, backend_name: str) -> str:
        try:
            return self.sources[backend_name]
        except KeyError:
            raise ProgramCompileError(
                f"No '{backend_name}' source for kernel '{self.kernel_name}'"
            ) from None


@dataclass
class TextureInput:
    """A named texture bound as program input."""

    name: str
    texture: DeviceTexture


class DeviceTexture(ABC):
    """Abstract 2-D device texture with numpy interop."""

    @property
    @abstractmethod
    def shape(self) -> tuple[int, int]:
        ...

    @property
    @abstractmethod
    def dtype(self) -> np.dtype:
        ...

    @property
    @abstractmethod
    def kind(self) -> str:
        ...

    @property
    @abstractmethod
    def size_bytes(self) -> int:
        ...

    @property
    @abstractmethod
    def native_handle(self) -> Any:
        """Backend-native storage object (e.g. MTLBuffer, cupy.ndarray)."""
        ...

    @abstractmethod
    def to_numpy(self) -> np.ndarray:
        ...


class TextureBackend(ABC):
    """Abstract compute backend restricted to 2-D textures."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def config(self) -> TextureConfig:
        ...

    @abstractmethod
    def allocate_texture(self, data: np.ndarray, kind: str = "float") -> DeviceTexture:
        ...

    @abstractmethod
    def allocate_zeros(self, shape: tuple[int, int], kind: str = "float") -> DeviceTexture:
        ...

    @abstractmethod
    def compile_program(self, source: KernelSource) -> Any:
        """Compile a gather-style program. Raises ProgramCompileError on failure."""
        ...

    @abstractmethod
    def run_program(self, program: Any, output: DeviceTexture, inputs: list[TextureInput]) -> None:
        """Run ``program`` over every texel of ``output``. Blocks until done."""
        ...

    @abstractmethod
    def synchronize(self):
        ...


def texture_dtype(kind: str) -> np.dtype:
    """Storage dtype for a texture kind."""
    if kind not in TEXTURE_DTYPES:
        raise ValueError(f"Unknown texture kind '{kind}', expected one of {sorted(TEXTURE_DTYPES)}")
    return TEXTURE_DTYPES[kind]


def check_texture_shape(shape: tuple[int, ...], config: TextureConfig) -> None:
    """Validate a texture shape against the target limits."""
    if len(shape) != 2:
        raise ValueError(f"Textures are 2-D, got shape {tuple(shape)}")
    if max(shape) > config.max_texture_size:
        raise ValueError(
            f"Texture {tuple(shape)} exceeds max_texture_size={config.max_texture_size} on '{config.name}'"
        )
