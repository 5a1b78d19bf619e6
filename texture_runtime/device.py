"""Metal device management for the texture runtime."""

from __future__ import annotations

import hashlib
import logging

import Metal  # pyobjc-framework-Metal

from texture_runtime.backend import DispatchError, ProgramCompileError

logger = logging.getLogger(__name__)


class Device:
    """Wraps Metal device, command queue, and shader compilation from source text."""

    def __init__(self):
        self._device = Metal.MTLCreateSystemDefaultDevice()
        if self._device is None:
            raise RuntimeError("No Metal device found")
        self._command_queue = self._device.newCommandQueue()
        self._pipeline_cache: dict[str, Metal.MTLComputePipelineState] = {}
        self._library_cache: dict[str, Metal.MTLLibrary] = {}

    @property
    def name(self) -> str:
        return self._device.name()

    @property
    def mtl_device(self):
        return self._device

    @property
    def command_queue(self):
        return self._command_queue

    def compile_source(self, source: str) -> Metal.MTLLibrary:
        """Compile Metal source text, cached by source hash."""
        cache_key = hashlib.md5(source.encode()).hexdigest()
        if cache_key in self._library_cache:
            return self._library_cache[cache_key]

        library, error = self._device.newLibraryWithSource_options_error_(source, None, None)
        if library is None:
            raise ProgramCompileError(f"Metal source compilation failed: {error}")
        self._library_cache[cache_key] = library
        logger.debug("compiled Metal library %s", cache_key)
        return library

    def get_pipeline(self, library: Metal.MTLLibrary, function_name: str):
        """Get a compute pipeline from a library."""
        cache_key = f"{id(library)}:{function_name}"
        if cache_key in self._pipeline_cache:
            return self._pipeline_cache[cache_key]

        function = library.newFunctionWithName_(function_name)
        if function is None:
            raise ProgramCompileError(f"Function '{function_name}' not found")

        pipeline, error = self._device.newComputePipelineStateWithFunction_error_(function, None)
        if pipeline is None:
            raise ProgramCompileError(f"Pipeline creation failed: {error}")

        self._pipeline_cache[cache_key] = pipeline
        return pipeline

    def new_command_buffer(self):
        return self._command_queue.commandBuffer()

    def wait(self, cmd_buf) -> None:
        """Commit, block until completion, and surface command buffer errors."""
        cmd_buf.commit()
        cmd_buf.waitUntilCompleted()
        if cmd_buf.error() is not None:
            raise DispatchError(f"Metal command buffer failed: {cmd_buf.error()}")
