"""Decode encoded call recordings to mono float PCM through ffmpeg."""

from __future__ import annotations

import shutil
import subprocess
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from scipy.io import wavfile

from tonewatch import config
from tonewatch.errors import AudioDecodeError, FFmpegNotFoundError
from tonewatch.util.logging import get_logger

logger = get_logger(__name__)


def pcm_to_float(data: np.ndarray) -> np.ndarray:
    """Scale integer PCM to [-1, 1) floats and fold channels to mono."""
    data = np.asarray(data)
    if data.dtype == np.int16:
        out = data.astype(np.float64) / 32768.0
    elif data.dtype == np.uint8:
        out = (data.astype(np.float64) - 128.0) / 128.0
    elif data.dtype == np.int32:
        out = data.astype(np.float64) / 2147483648.0
    elif np.issubdtype(data.dtype, np.floating):
        out = data.astype(np.float64)
    else:
        raise AudioDecodeError(f"Unsupported PCM sample type: {data.dtype}")
    if out.ndim == 2:
        out = out.mean(axis=1)
    return out.reshape(-1)


def read_wav_file(path: Union[str, Path]) -> Tuple[np.ndarray, int]:
    """Load a WAV file as ``(mono float64 samples, sample_rate)``."""
    try:
        sample_rate, data = wavfile.read(str(path))
    except (OSError, ValueError) as exc:
        raise AudioDecodeError(f"Unable to read WAV file {path}: {exc}") from exc
    return pcm_to_float(data), int(sample_rate)


@dataclass(frozen=True)
class FFmpegDecoder:
    sample_rate: int = config.SAMPLE_RATE
    audio_filter: Optional[str] = None
    timeout_s: float = config.DECODE_TIMEOUT_S
    ffmpeg_bin: str = config.FFMPEG_BIN

    def with_filter(self, audio_filter: Optional[str]) -> "FFmpegDecoder":
        return replace(self, audio_filter=audio_filter)

    def command(self, src: Path, dst: Path) -> list:
        cmd = [self.ffmpeg_bin, "-hide_banner", "-loglevel", "error", "-y", "-i", str(src)]
        if self.audio_filter:
            cmd += ["-af", self.audio_filter]
        cmd += ["-ar", str(int(self.sample_rate)), "-ac", "1", "-c:a", "pcm_s16le", "-f", "wav", str(dst)]
        return cmd

    def decode(self, audio: bytes) -> Tuple[np.ndarray, int]:
        """Run ffmpeg over ``audio`` and return ``(samples, sample_rate)``.

        Raises FFmpegNotFoundError when the binary is missing and
        AudioDecodeError for any other failure.
        """
        if not shutil.which(self.ffmpeg_bin):
            raise FFmpegNotFoundError(
                f"{self.ffmpeg_bin} is required to decode audio. Install ffmpeg and try again."
            )
        with tempfile.TemporaryDirectory(prefix="tonewatch-") as tmp:
            src = Path(tmp) / "input"
            dst = Path(tmp) / "decoded.wav"
            src.write_bytes(audio)
            try:
                subprocess.run(
                    self.command(src, dst),
                    capture_output=True,
                    check=True,
                    timeout=self.timeout_s,
                )
            except subprocess.TimeoutExpired as exc:
                raise AudioDecodeError(f"ffmpeg decode timed out after {self.timeout_s:g}s") from exc
            except (OSError, subprocess.CalledProcessError) as exc:
                detail = exc.stderr.decode("utf-8", "ignore").strip() if getattr(exc, "stderr", None) else ""
                raise AudioDecodeError(
                    f"Unable to decode audio with ffmpeg: {exc}" + (f" ({detail})" if detail else "")
                ) from exc
            samples, sample_rate = read_wav_file(dst)
        logger.debug("decoded %d bytes to %d samples at %d Hz", len(audio), samples.size, sample_rate)
        return samples, sample_rate
