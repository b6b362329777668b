"""Typed failures raised by the conversion pipelines."""


class MediaToAsciiError(Exception):
    """Base class for every error the engine raises."""


class Failure(MediaToAsciiError):
    """A run that ended without producing its outputs."""


class InvalidConfig(Failure, ValueError):
    pass


class InvalidDimensions(Failure):
    pass


class DecodeError(Failure):
    pass


class UnsupportedOutputFormat(Failure):
    pass


class UnsupportedFont(Failure):
    pass


class OutputExists(Failure):
    pass


class MuxError(Failure):
    pass


class OutputWriteError(Failure):
    """An output file or its staging directory could not be written."""


class RenderError(Failure):
    """A frame could not be sampled or rasterized."""


class Cancelled(MediaToAsciiError):
    """The run was stopped through its cancellation token."""
