"""Tests for the UpSampling3D layer on both execution paths."""

import numpy as np
import numpy.testing as npt
import pytest

from conftest import assert_broadcast_law, repeat_reference
from texture_runtime.backend import KernelSource, ProgramCompileError
from texture_runtime.host_backend import HostBackend
from texture_runtime.tensor import Tensor
from upsampling3d import profile
from upsampling3d.errors import ConfigurationError, PreconditionError
from upsampling3d.layer import UpSampling3D


def _gpu_layer(backend, **kwargs):
    return UpSampling3D(mode="gpu", backend=backend, **kwargs)


class TestConstruction:
    def test_defaults(self):
        layer = UpSampling3D()
        assert layer.size == (2, 2, 2)
        assert layer.data_format.value == "channels_last"
        assert not layer.gpu
        assert layer.index_maps is None

    def test_gpu_requires_backend(self):
        with pytest.raises(ConfigurationError, match="backend"):
            UpSampling3D(mode="gpu")

    def test_negative_outbound_rejected(self, host_backend):
        with pytest.raises(ConfigurationError, match="outbound"):
            _gpu_layer(host_backend, outbound=-1)

    def test_bad_size_rejected(self):
        with pytest.raises(ConfigurationError):
            UpSampling3D(size=(2, 0, 2))

    def test_compile_failure_propagates(self, host_backend, monkeypatch):
        import upsampling3d.gpu_dispatch as gpu_dispatch

        monkeypatch.setattr(gpu_dispatch, "MAP_INPUT_KERNEL", KernelSource("broken_kernel", {}))
        with pytest.raises(ProgramCompileError):
            _gpu_layer(host_backend)

    def test_config_roundtrip(self):
        layer = UpSampling3D(size=(1, 2, 3), data_format="channels_first", name="up1")
        config = layer.get_config()
        assert config == {"name": "up1", "size": (1, 2, 3), "data_format": "channels_first"}
        clone = UpSampling3D.from_config(config)
        assert clone.size == (1, 2, 3)
        assert clone.data_format.value == "channels_first"
        assert clone.name == "up1"

    def test_compute_output_shape(self):
        assert UpSampling3D(size=3, data_format="channels_first").compute_output_shape((4, 1, 2, 3)) == (4, 3, 6, 9)


class TestCPU:
    def test_scenario_a(self):
        out = UpSampling3D(size=(2, 2, 2)).call(Tensor([5.0], (1, 1, 1, 1)))
        assert out.shape == (2, 2, 2, 1)
        assert np.all(out.tensor == 5.0)

    def test_accepts_ndarray(self, rng):
        x = rng.standard_normal((2, 2, 2, 3)).astype(np.float32)
        layer = UpSampling3D(size=(1, 2, 1))
        out = layer(x)
        assert_broadcast_law(x, out.tensor, (1, 2, 1))
        assert layer.input_shape == (2, 2, 2, 3)
        assert layer.output_shape == (2, 4, 2, 3)

    def test_output_reused_for_same_shape(self, rng):
        layer = UpSampling3D()
        first = layer.call(Tensor(rng.standard_normal((2, 2, 2, 1))))
        buffer = first.tensor
        x = rng.standard_normal((2, 2, 2, 1)).astype(np.float32)
        second = layer.call(Tensor(x))
        assert second is first
        assert second.tensor is buffer
        npt.assert_array_equal(second.tensor, repeat_reference(x, (2, 2, 2)))

    def test_output_reallocated_for_new_shape(self, rng):
        layer = UpSampling3D()
        first = layer.call(Tensor(rng.standard_normal((1, 1, 1, 1))))
        second = layer.call(Tensor(rng.standard_normal((2, 1, 1, 1))))
        assert second is not first
        assert second.shape == (4, 2, 2, 1)

    def test_channels_first_leaves_input_untouched(self, rng):
        x = Tensor(rng.standard_normal((3, 1, 2, 2)))
        before = x.tensor.copy()
        out = UpSampling3D(data_format="channels_first").call(x)
        assert out.shape == (3, 2, 4, 4)
        npt.assert_array_equal(x.tensor, before)

    def test_channels_first_reuses_output_tensor(self, rng):
        layer = UpSampling3D(data_format="channels_first")
        first = layer.call(Tensor(rng.standard_normal((2, 1, 2, 1))))
        buffer = first.tensor
        x = rng.standard_normal((2, 1, 2, 1)).astype(np.float32)
        second = layer.call(Tensor(x))
        assert second is first
        assert np.shares_memory(second.tensor, buffer)
        npt.assert_array_equal(second.tensor, repeat_reference(x, (2, 2, 2), channels_first=True))

    def test_ndarray_wrapped_as_float32(self, rng):
        out = UpSampling3D().call(rng.standard_normal((1, 2, 1, 2)))
        assert out.dtype == np.float32


class TestGPU:
    def test_scenario_a(self, host_backend):
        out = _gpu_layer(host_backend).call(Tensor([5.0], (1, 1, 1, 1)))
        assert out.shape == (2, 2, 2, 1)
        assert np.all(out.tensor == 5.0)

    def test_scenario_b(self, host_backend):
        x = Tensor([1.0, 2.0, 3.0, 4.0], (2, 1, 2, 1))
        out = _gpu_layer(host_backend, size=(1, 2, 1)).call(x)
        npt.assert_array_equal(out.tensor[..., 0], [[[1, 2], [1, 2]], [[3, 4], [3, 4]]])

    def test_scenario_c(self, host_backend):
        out = _gpu_layer(host_backend, data_format="channels_first").call(Tensor([5.0], (1, 1, 1, 1)))
        assert out.shape == (1, 2, 2, 2)
        assert np.all(out.tensor == 5.0)

    @pytest.mark.parametrize("data_format", ["channels_last", "channels_first"])
    @pytest.mark.parametrize("size", [(2, 2, 2), (1, 3, 2), (3, 1, 1)])
    def test_parity_with_cpu(self, host_backend, rng, data_format, size):
        """Scenario D: both paths produce bit-identical outputs."""
        x = rng.standard_normal((3, 2, 3, 2)).astype(np.float32)
        cpu = UpSampling3D(size=size, data_format=data_format).call(Tensor(x.copy()))
        gpu = _gpu_layer(host_backend, size=size, data_format=data_format).call(Tensor(x.copy()))
        assert gpu.shape == cpu.shape
        npt.assert_array_equal(gpu.tensor, cpu.tensor)

    def test_parity_with_cpu_for_float64_ndarray(self, host_backend, rng):
        x = rng.standard_normal((2, 2, 2, 2))
        cpu = UpSampling3D().call(x)
        gpu = _gpu_layer(host_backend).call(x)
        assert cpu.dtype == gpu.dtype == np.float32
        npt.assert_array_equal(gpu.tensor, cpu.tensor)

    def test_axis_order_symmetry(self, host_backend, rng):
        size = (2, 1, 3)
        x_last = rng.standard_normal((2, 3, 2, 4)).astype(np.float32)
        direct = _gpu_layer(host_backend, size=size).call(Tensor(x_last))
        x_first = np.ascontiguousarray(x_last.transpose(3, 0, 1, 2))
        via_first = _gpu_layer(host_backend, size=size, data_format="channels_first").call(Tensor(x_first))
        npt.assert_array_equal(direct.tensor, via_first.tensor.transpose(1, 2, 3, 0))

    def test_index_maps_built_once(self, host_backend, rng):
        layer = _gpu_layer(host_backend)
        x1 = rng.standard_normal((2, 2, 1, 3)).astype(np.float32)
        x2 = rng.standard_normal((2, 2, 1, 3)).astype(np.float32)
        out1 = layer.call(Tensor(x1)).tensor.copy()
        maps = (layer.index_maps.row_index_map, layer.index_maps.col_index_map)
        out2 = layer.call(Tensor(x2)).tensor
        assert layer.index_maps.build_count == 1
        assert (layer.index_maps.row_index_map, layer.index_maps.col_index_map) == maps
        npt.assert_array_equal(out1, repeat_reference(x1, (2, 2, 2)))
        npt.assert_array_equal(out2, repeat_reference(x2, (2, 2, 2)))

    def test_same_input_twice_gives_same_result(self, host_backend, rng):
        layer = _gpu_layer(host_backend)
        x = Tensor(rng.standard_normal((1, 2, 2, 2)))
        first = layer.call(x).tensor.copy()
        second = layer.call(x).tensor
        npt.assert_array_equal(first, second)
        assert layer.index_maps.build_count == 1

    def test_output_allocated_once(self, host_backend, rng):
        layer = _gpu_layer(host_backend)
        out1 = layer.call(Tensor(rng.standard_normal((1, 1, 2, 1))))
        texture = out1.texture
        out2 = layer.call(Tensor(rng.standard_normal((1, 1, 2, 1))))
        assert out2 is out1
        assert out2.texture is texture

    def test_outbound_keeps_output_on_device(self, host_backend, rng):
        x = rng.standard_normal((2, 1, 2, 2)).astype(np.float32)
        out = _gpu_layer(host_backend, outbound=1).call(Tensor(x))
        assert out.is_2d_square_reshaped
        assert out.texture is not None
        assert out.original_shape == (4, 2, 4, 2)
        out.transfer_from_texture()
        out.reshape_from_2d_square()
        npt.assert_array_equal(out.tensor, repeat_reference(x, (2, 2, 2)))

    def test_chained_layers_stay_on_device(self, host_backend, rng):
        x = rng.standard_normal((1, 2, 1, 2)).astype(np.float32)
        first = _gpu_layer(host_backend, size=(2, 1, 1), outbound=1)
        second = _gpu_layer(host_backend, size=(1, 1, 3))
        out = second.call(first.call(Tensor(x)))
        npt.assert_array_equal(out.tensor, repeat_reference(x, (2, 1, 3)))

    def test_rejected_shape_leaves_input_untouched(self, host_backend):
        x = Tensor(np.ones((2, 2, 2)))
        with pytest.raises(ValueError):
            _gpu_layer(host_backend).call(x)
        assert not x.is_2d_square_reshaped
        assert x.texture is None
        assert x.shape == (2, 2, 2)

    def test_texture_without_indices_rejected(self, host_backend):
        x = Tensor([], (1, 1, 1, 1))
        x.texture = host_backend.allocate_zeros((1, 1))
        with pytest.raises(PreconditionError):
            _gpu_layer(host_backend).call(x)

    def test_bookkeeping(self, host_backend):
        layer = _gpu_layer(host_backend, size=(1, 2, 3), data_format="channels_first")
        layer.call(Tensor([], (2, 1, 1, 1)))
        assert layer.input_shape == (2, 1, 1, 1)
        assert layer.output_shape == (2, 1, 2, 3)


class TestProfile:
    def test_profile_runs(self, rng):
        layer = UpSampling3D(mode="gpu", backend=HostBackend())
        result = profile(layer, Tensor(rng.standard_normal((2, 2, 2, 1))), warmup=1, iterations=2)
        assert result.iterations == 2
        assert result.total_ms >= 0
        assert layer.index_maps.build_count == 1
