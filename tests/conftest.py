"""Shared fixtures and helpers for upsampling tests."""

from itertools import product

import numpy as np
import numpy.testing as npt
import pytest

from texture_runtime.host_backend import HostBackend


@pytest.fixture
def host_backend():
    """Fresh host reference backend per test."""
    return HostBackend()


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


def repeat_reference(x, size, channels_first=False):
    """Nearest-neighbor upsampling via np.repeat, independent of the layer code."""
    axes = (1, 2, 3) if channels_first else (0, 1, 2)
    out = x
    for axis, factor in zip(axes, size):
        out = np.repeat(out, factor, axis=axis)
    return out


def assert_broadcast_law(x, out, size):
    """Output[i*s0+di, j*s1+dj, k*s2+dk, c] == Input[i, j, k, c] (channels_last)."""
    s0, s1, s2 = size
    d0, d1, d2, c = x.shape
    assert out.shape == (d0 * s0, d1 * s1, d2 * s2, c)
    for di, dj, dk in product(range(s0), range(s1), range(s2)):
        npt.assert_array_equal(out[di::s0, dj::s1, dk::s2, :], x)
