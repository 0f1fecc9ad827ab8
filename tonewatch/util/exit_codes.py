"""Process exit codes for the tonewatch CLI.

0 is success, 1 an unexpected failure and 2 a usage error (argparse's own
convention). 3 and up name the failures a caller can act on:

    3  DECODE_FAILED      input audio could not be read or decoded
    4  TONE_SET_INVALID   the tone set configuration did not parse
    5  FFMPEG_MISSING     ffmpeg/ffprobe is not on PATH
"""

from __future__ import annotations

from tonewatch.errors import AudioDecodeError, FFmpegNotFoundError, ToneSetParseError


class ExitCode:
    SUCCESS: int = 0
    GENERAL_ERROR: int = 1
    INVALID_ARGS: int = 2
    DECODE_FAILED: int = 3
    TONE_SET_INVALID: int = 4
    FFMPEG_MISSING: int = 5

    @classmethod
    def message(cls, code: int) -> str:
        return _MESSAGES.get(code, f"Unknown exit code {code}")

    @classmethod
    def for_exception(cls, exc: BaseException) -> int:
        """Most specific exit code for an error raised while analysing a call."""
        if isinstance(exc, FFmpegNotFoundError):
            return cls.FFMPEG_MISSING
        if isinstance(exc, (AudioDecodeError, OSError)):
            return cls.DECODE_FAILED
        if isinstance(exc, ToneSetParseError):
            return cls.TONE_SET_INVALID
        return cls.GENERAL_ERROR


_MESSAGES = {
    ExitCode.SUCCESS: "Success",
    ExitCode.GENERAL_ERROR: "General error",
    ExitCode.INVALID_ARGS: "Invalid arguments",
    ExitCode.DECODE_FAILED: "Audio decode failed",
    ExitCode.TONE_SET_INVALID: "Invalid tone set configuration",
    ExitCode.FFMPEG_MISSING: "ffmpeg not available",
}
