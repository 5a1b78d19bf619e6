"""Error types raised by the upsampling layer.

Device failures are not redefined here: ``ProgramCompileError`` and
``DispatchError`` from ``texture_runtime.backend`` propagate unchanged.
"""


class ConfigurationError(ValueError):
    """Invalid construction-time attribute (size, data format, mode, outbound)."""


class PreconditionError(RuntimeError):
    """GPU path invoked without the texture state it needs."""
