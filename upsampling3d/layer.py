"""UpSampling3D layer: single entry point selecting the CPU or GPU path."""

from __future__ import annotations

import numpy as np

from texture_runtime.backend import TextureBackend
from texture_runtime.tensor import Tensor
from upsampling3d.broadcast import upsample
from upsampling3d.config import DataFormat, ExecutionMode, UpSamplingConfig
from upsampling3d.errors import ConfigurationError
from upsampling3d.gpu_dispatch import GPUDispatchAdapter
from upsampling3d.index_map import IndexMapBuilder


class UpSampling3D:
    """Nearest-neighbor upsampling of a 4-D tensor along its three spatial axes.

    Args:
        size: Int, or sequence of 3 ints, the replication factor per spatial axis.
        data_format: ``"channels_last"`` (``[D0, D1, D2, C]``) or
            ``"channels_first"`` (``[C, D0, D1, D2]``).
        mode: ``"cpu"`` or ``"gpu"``. Fixed for the lifetime of the layer.
        backend: Texture backend, required for the GPU path.
        outbound: Number of downstream consumers. With 0 the GPU result is
            transferred back to host memory; otherwise it stays on the device.
        name: Optional layer name.
    """

    layer_class = "UpSampling3D"

    def __init__(
        self,
        size=(2, 2, 2),
        data_format: DataFormat | str = DataFormat.CHANNELS_LAST,
        mode: ExecutionMode | str = ExecutionMode.CPU,
        backend: TextureBackend | None = None,
        outbound: int = 0,
        name: str | None = None,
    ):
        self.config = UpSamplingConfig.create(size, data_format)
        self.mode = ExecutionMode.parse(mode)
        if outbound < 0:
            raise ConfigurationError(f"outbound must be >= 0, got {outbound}")
        self.name = name or "up_sampling3d"
        self.input_shape: tuple[int, ...] | None = None
        self.output_shape: tuple[int, ...] | None = None
        self.output: Tensor | None = None

        self._gpu: GPUDispatchAdapter | None = None
        if self.mode is ExecutionMode.GPU:
            if backend is None:
                raise ConfigurationError("GPU mode requires a texture backend")
            self._gpu = GPUDispatchAdapter(self.config, backend, outbound=outbound)

    @property
    def size(self) -> tuple[int, int, int]:
        return self.config.size

    @property
    def data_format(self) -> DataFormat:
        return self.config.data_format

    @property
    def gpu(self) -> bool:
        return self.mode is ExecutionMode.GPU

    @property
    def index_maps(self) -> IndexMapBuilder | None:
        return self._gpu.index_maps if self._gpu is not None else None

    def call(self, x: Tensor | np.ndarray) -> Tensor:
        """Upsample ``x`` and return the layer's output tensor."""
        if not isinstance(x, Tensor):
            x = Tensor(x)
        if self._gpu is not None:
            self.output = self._gpu.upsample(x)
            self.input_shape = self._gpu.input_shape
            self.output_shape = self._gpu.output_shape
        else:
            self._call_cpu(x)
        return self.output

    __call__ = call

    def _call_cpu(self, x: Tensor) -> None:
        self.input_shape = tuple(x.tensor.shape)
        self.output_shape = self.config.output_shape(self.input_shape)
        cached = self.output.tensor if self.output is not None else None
        result = upsample(x.tensor, self.config.size, self.config.data_format, out=cached)
        if self.output is None or self.output.shape != self.output_shape:
            self.output = Tensor(result, dtype=result.dtype)
        else:
            # channels_first returns a fresh transpose view of the same buffer
            self.output.tensor = result

    def compute_output_shape(self, input_shape) -> tuple[int, ...]:
        """Shape of the output for a 4-D ``input_shape``."""
        return self.config.output_shape(input_shape)

    def get_config(self) -> dict:
        return {
            "name": self.name,
            "size": self.config.size,
            "data_format": self.config.data_format.value,
        }

    @classmethod
    def from_config(cls, config: dict, **kwargs) -> UpSampling3D:
        return cls(
            size=config.get("size", (2, 2, 2)),
            data_format=config.get("data_format", DataFormat.CHANNELS_LAST),
            name=config.get("name"),
            **kwargs,
        )

    def __repr__(self) -> str:
        return (
            f"{self.layer_class}(name={self.name!r}, size={self.config.size}, "
            f"data_format={self.config.data_format.value!r}, mode={self.mode.value!r})"
        )
