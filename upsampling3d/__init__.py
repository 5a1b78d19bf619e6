from upsampling3d.broadcast import broadcast_into as broadcast_into
from upsampling3d.broadcast import upsample as upsample
from upsampling3d.config import DataFormat as DataFormat
from upsampling3d.config import ExecutionMode as ExecutionMode
from upsampling3d.config import UpSamplingConfig as UpSamplingConfig
from upsampling3d.errors import ConfigurationError as ConfigurationError
from upsampling3d.errors import PreconditionError as PreconditionError
from upsampling3d.gpu_dispatch import GPUDispatchAdapter as GPUDispatchAdapter
from upsampling3d.index_map import IndexMapBuilder as IndexMapBuilder
from upsampling3d.kernels import MAP_INPUT_KERNEL as MAP_INPUT_KERNEL
from upsampling3d.layer import UpSampling3D as UpSampling3D
from upsampling3d.profiler import ProfileResult as ProfileResult
from upsampling3d.profiler import profile as profile
