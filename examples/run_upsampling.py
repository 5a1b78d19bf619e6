"""Example: run UpSampling3D on a texture backend and compare with the CPU path."""

import logging

import numpy as np

from texture_runtime import HostBackend, Tensor
from upsampling3d import UpSampling3D, profile


def _make_backend(name: str):
    if name == "cuda":
        from cuda_runtime import CUDABackend
        return CUDABackend()
    if name == "metal":
        from texture_runtime.metal_backend import MetalBackend
        return MetalBackend()
    return HostBackend()


def run_upsampling(backend_name: str = "host", shape=(8, 8, 8, 4), size=(2, 2, 2), data_format="channels_last"):
    """Upsample a random volume on CPU and GPU paths and compare."""
    backend = _make_backend(backend_name)
    print(f"Backend: {backend.name}")

    rng = np.random.default_rng(42)
    x = rng.standard_normal(shape).astype(np.float32)

    cpu_layer = UpSampling3D(size=size, data_format=data_format)
    gpu_layer = UpSampling3D(size=size, data_format=data_format, mode="gpu", backend=backend)

    cpu_out = cpu_layer.call(Tensor(x.copy())).tensor
    gpu_out = gpu_layer.call(Tensor(x.copy())).tensor

    print(f"\nInput {shape} -> output {gpu_layer.output_shape}")
    print(f"  Bit-identical: {'Yes' if np.array_equal(cpu_out, gpu_out) else 'No'}")

    print("\nProfiling...")
    cpu_result = profile(cpu_layer, Tensor(x.copy()))
    gpu_result = profile(gpu_layer, Tensor(x.copy()))
    print(f"  CPU path: {cpu_result.total_ms:.3f} ms/call")
    print(f"  GPU path ({backend.name}): {gpu_result.total_ms:.3f} ms/call")


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser()
    parser.add_argument("--backend", default="host", choices=["host", "cuda", "metal"])
    parser.add_argument("--shape", type=int, nargs=4, default=[8, 8, 8, 4])
    parser.add_argument("--size", type=int, nargs=3, default=[2, 2, 2])
    parser.add_argument("--data-format", default="channels_last", choices=["channels_last", "channels_first"])
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    run_upsampling(args.backend, tuple(args.shape), tuple(args.size), args.data_format)
