"""Upsampling factors and axis-order configuration."""

from __future__ import annotations

import numbers
from dataclasses import dataclass
from enum import Enum
from itertools import product
from typing import Iterator

from upsampling3d.errors import ConfigurationError


class DataFormat(str, Enum):
    """Position of the channel axis in the logical 4-D tensor."""

    CHANNELS_LAST = "channels_last"
    CHANNELS_FIRST = "channels_first"

    @classmethod
    def parse(cls, value) -> DataFormat:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(
                f"Unknown data_format {value!r}, expected 'channels_last' or 'channels_first'"
            ) from None


class ExecutionMode(str, Enum):
    """Static execution path, decided at construction."""

    CPU = "cpu"
    GPU = "gpu"

    @classmethod
    def parse(cls, value) -> ExecutionMode:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(f"Unknown execution mode {value!r}, expected 'cpu' or 'gpu'") from None


def _check_factor(value) -> int:
    # bool is an int subclass; True must not pass as a factor of 1
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ConfigurationError(f"Upsampling factors must be integers, got {value!r}")
    if value <= 0:
        raise ConfigurationError(f"Upsampling factors must be positive, got {value}")
    return int(value)


@dataclass(frozen=True)
class UpSamplingConfig:
    """Validated upsampling factors plus axis order."""

    size: tuple[int, int, int] = (2, 2, 2)
    data_format: DataFormat = DataFormat.CHANNELS_LAST

    @classmethod
    def create(cls, size=(2, 2, 2), data_format="channels_last") -> UpSamplingConfig:
        """Build a config from an int or a 3-sequence of ints and a data format name."""
        if isinstance(size, (list, tuple)):
            if len(size) != 3:
                raise ConfigurationError(f"size must have 3 entries, got {len(size)}: {size!r}")
            factors = tuple(_check_factor(s) for s in size)
        else:
            f = _check_factor(size)
            factors = (f, f, f)
        return cls(size=factors, data_format=DataFormat.parse(data_format))

    @property
    def channels_first(self) -> bool:
        return self.data_format is DataFormat.CHANNELS_FIRST

    @property
    def spatial_axes(self) -> tuple[int, int, int]:
        return (1, 2, 3) if self.channels_first else (0, 1, 2)

    def output_shape(self, input_shape) -> tuple[int, int, int, int]:
        """Scale the three spatial axes; the channel axis is untouched."""
        if len(input_shape) != 4:
            raise ValueError(f"Expected a 4-D shape, got {tuple(input_shape)}")
        out = list(input_shape)
        for axis, factor in zip(self.spatial_axes, self.size):
            out[axis] = input_shape[axis] * factor
        return tuple(out)

    def offsets(self) -> Iterator[tuple[int, int, int]]:
        """Every offset triple of the cuboid [0,s0) x [0,s1) x [0,s2)."""
        return product(*(range(s) for s in self.size))

    def strided_region(self, offset: tuple[int, int, int]) -> tuple[slice, ...]:
        """Index selecting the output sub-view that starts at ``offset`` and steps by ``size``."""
        region = [slice(None)] * 4
        for axis, start, step in zip(self.spatial_axes, offset, self.size):
            region[axis] = slice(start, None, step)
        return tuple(region)
