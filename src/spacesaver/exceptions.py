"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

exceptions.py
Exception hierarchy for SpaceSaver.

Operational failures derive from RuntimeError so callers that only know about
the generic contract (``except RuntimeError``) keep working. Invalid parameters
are reported with plain ValueError by the dataclasses that validate them.
"""


class SpaceSaverError(RuntimeError):
    """Base exception for all SpaceSaver failures."""
    pass


class HashError(SpaceSaverError):
    """Raised when a file cannot be read for hashing."""
    pass


class TranscodeError(SpaceSaverError):
    """Raised when a transcoder cannot complete a transform."""
    pass


class NoBenefitError(TranscodeError):
    """Raised when a transform succeeded but did not make the file smaller."""

    def __init__(self, original_size: int, compressed_size: int, message: str = ""):
        self.original_size = original_size
        self.compressed_size = compressed_size
        super().__init__(
            message or
            f"Conversion did not reduce file size ({compressed_size} bytes vs "
            f"{original_size} bytes), keeping original"
        )


class EncoderUnavailableError(TranscodeError):
    """Raised when every external encoder is missing or failed."""
    pass


class OutputExistsError(TranscodeError):
    """Raised when an output or backup path is already taken."""
    pass


class NoSuitableTranscoderError(SpaceSaverError):
    """Raised when no registered transcoder can handle a file."""
    pass


class PluginNotFoundError(SpaceSaverError):
    """Raised when an explicitly requested transcoder is not registered."""
    pass


class PluginRejectedError(SpaceSaverError):
    """Raised when an explicitly requested transcoder declines a file."""
    pass


class RegistryFrozenError(SpaceSaverError):
    """Raised when registering into the frozen process-wide registry."""
    pass


class SchedulerClosedError(SpaceSaverError):
    """Raised when work is submitted after the scheduler has shut down."""
    pass


class OperationCancelledError(SpaceSaverError):
    """Raised when an operation is cancelled before it started running."""
    pass
