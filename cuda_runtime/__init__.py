"""CUDA runtime: CuPy-based texture backend."""

from cuda_runtime.cuda_backend import CUDABackend as CUDABackend
from cuda_runtime.cuda_backend import CUDATexture as CUDATexture
