"""Gather program mapping an input texture onto the output through index maps.

For every output texel, read ``(rowIndexMap, colIndexMap)`` and copy the input
texel at that coordinate; negative coordinates (square padding) produce 0.
Argument order on every backend: x, rowIndexMap, colIndexMap, out, then the
input texture width and the output extent.
"""

from texture_runtime.backend import KernelSource

_CUDA_SOURCE = r"""
extern "C" __global__ void map_input_kernel(
    const float* x,
    const int* rowIndexMap,
    const int* colIndexMap,
    float* out,
    int x_width,
    int out_size)
{
    int idx = blockIdx.x * blockDim.x + threadIdx.x;
    if (idx >= out_size) return;
    int r = rowIndexMap[idx];
    int c = colIndexMap[idx];
    out[idx] = (r >= 0 && c >= 0) ? x[r * x_width + c] : 0.0f;
}
"""

_METAL_SOURCE = r"""
#include <metal_stdlib>
using namespace metal;

struct MapInputParams {
    uint x_width;
    uint out_width;
    uint out_height;
};

kernel void map_input_kernel(
    device const float* x           [[buffer(0)]],
    device const int* rowIndexMap   [[buffer(1)]],
    device const int* colIndexMap   [[buffer(2)]],
    device float* out               [[buffer(3)]],
    constant MapInputParams& p      [[buffer(4)]],
    uint2 gid                       [[thread_position_in_grid]])
{
    if (gid.x >= p.out_width || gid.y >= p.out_height) return;
    uint idx = gid.y * p.out_width + gid.x;
    int r = rowIndexMap[idx];
    int c = colIndexMap[idx];
    out[idx] = (r >= 0 && c >= 0) ? x[uint(r) * p.x_width + uint(c)] : 0.0f;
}
"""

MAP_INPUT_KERNEL = KernelSource(
    kernel_name="map_input_kernel",
    sources={"cuda": _CUDA_SOURCE, "metal": _METAL_SOURCE},
)
