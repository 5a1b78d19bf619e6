"""Profiler: measure UpSampling3D call time."""

from __future__ import annotations

import time
from dataclasses import dataclass

from texture_runtime.tensor import Tensor
from upsampling3d.layer import UpSampling3D


@dataclass
class ProfileResult:
    """Mean wall-clock time per call over ``iterations`` calls."""
    total_ms: float
    iterations: int


def profile(
    layer: UpSampling3D,
    x: Tensor,
    warmup: int = 3,
    iterations: int = 10,
) -> ProfileResult:
    """Profile layer calls.

    Runs warmup iterations (which also build the index maps and output
    buffers) then measures average call time.
    """
    for _ in range(warmup):
        layer.call(x)

    start = time.perf_counter()
    for _ in range(iterations):
        layer.call(x)
    end = time.perf_counter()

    return ProfileResult(
        total_ms=(end - start) / iterations * 1000,
        iterations=iterations,
    )
