"""Exception types raised by tonewatch."""


class ToneWatchError(Exception):
    """Base class for tonewatch errors."""


class AudioDecodeError(ToneWatchError):
    """Raised when the input audio cannot be loaded or decoded."""


class FFmpegNotFoundError(AudioDecodeError):
    """Raised when FFmpeg is not installed or not found in PATH."""


class ToneSetParseError(ToneWatchError):
    """Raised when a tone set configuration payload cannot be parsed."""


class ToneStripError(ToneWatchError):
    """Raised by the encoder when tone removal fails; the stripper recovers from it."""


class UnknownProfileError(ToneWatchError, KeyError):
    """Raised when a detection profile name is not registered."""
