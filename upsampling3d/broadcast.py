"""CPU path: nearest-neighbor replication through strided-view assignment.

The output is written with one bulk assignment per offset of the
replication cuboid, so the loop runs ``s0 * s1 * s2`` times regardless of
the tensor volume.
"""

from __future__ import annotations

import numpy as np

from upsampling3d.config import DataFormat, UpSamplingConfig


def broadcast_into(dest: np.ndarray, src: np.ndarray, config: UpSamplingConfig) -> np.ndarray:
    """Write ``src`` into every strided sub-view of ``dest``.

    ``dest`` and ``src`` are both laid out in ``config.data_format``; for
    channels_first the steps fall on axes 1..3 and no transpose is needed.
    """
    expected = config.output_shape(src.shape)
    if tuple(dest.shape) != expected:
        raise ValueError(f"Destination shape {tuple(dest.shape)} does not match expected {expected}")
    for offset in config.offsets():
        dest[config.strided_region(offset)] = src
    return dest


def upsample(
    x: np.ndarray,
    size: tuple[int, int, int],
    data_format: DataFormat | str = DataFormat.CHANNELS_LAST,
    out: np.ndarray | None = None,
) -> np.ndarray:
    """Upsample a 4-D array by integer replication.

    Args:
        x: Input array, ``[D0, D1, D2, C]`` (channels_last) or
           ``[C, D0, D1, D2]`` (channels_first). Not modified.
        size: Replication factor per spatial axis.
        data_format: Axis order of ``x`` and of the result.
        out: Optional preallocated result in the same axis order as ``x``;
             reused when its shape and dtype match, otherwise ignored.

    Returns:
        The upsampled array in the axis order of ``x``.
    """
    if x.ndim != 4:
        raise ValueError(f"UpSampling3D expects a 4-D tensor, got shape {x.shape}")
    channels_first = DataFormat.parse(data_format) is DataFormat.CHANNELS_FIRST
    config = UpSamplingConfig.create(size, DataFormat.CHANNELS_LAST)

    # channels_last view of the input; the caller's array keeps its orientation
    src = x.transpose(1, 2, 3, 0) if channels_first else x
    out_shape = config.output_shape(src.shape)

    if out is not None and out.dtype == x.dtype:
        dest = out.transpose(1, 2, 3, 0) if channels_first else out
        if tuple(dest.shape) != out_shape:
            dest = None
    else:
        dest = None
    if dest is None:
        dest = np.empty(out_shape, dtype=x.dtype)

    broadcast_into(dest, src, config)
    return dest.transpose(3, 0, 1, 2) if channels_first else dest
