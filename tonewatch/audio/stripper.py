"""Cut detected tones out of call audio before speech-to-text."""

from __future__ import annotations

import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from tonewatch import config
from tonewatch.detection.types import Tone
from tonewatch.errors import ToneStripError
from tonewatch.util.logging import get_logger, log_exception

TONE_BUFFER_S = 0.1

Segment = Tuple[float, float]


def compute_keep_segments(
    tones: Sequence[Tone],
    total_duration: float,
    buffer_s: float = TONE_BUFFER_S,
) -> List[Segment]:
    """Spans of ``[0, total_duration]`` left after removing every padded tone."""
    keep: List[Segment] = []
    position = 0.0
    for tone in sorted(tones, key=lambda t: t.start_time):
        cut_start = min(total_duration, max(0.0, tone.start_time - buffer_s))
        cut_end = min(total_duration, tone.end_time + buffer_s)
        if position < cut_start:
            keep.append((position, cut_start))
        # Overlapping cuts must not move the cursor backwards.
        position = max(position, cut_end)
    if position < total_duration:
        keep.append((position, total_duration))
    return keep


def build_filter_complex(segments: Sequence[Segment]) -> str:
    parts = [
        f"[0:a]atrim=start={start:.3f}:end={end:.3f},asetpts=PTS-STARTPTS[a{i}]"
        for i, (start, end) in enumerate(segments)
    ]
    inputs = "".join(f"[a{i}]" for i in range(len(segments)))
    return ";".join(parts) + f";{inputs}concat=n={len(segments)}:v=0:a=1[out]"


@dataclass(frozen=True)
class FFmpegEncoder:
    """ffprobe/ffmpeg wrapper producing 16 kHz mono Opus voice audio."""

    ffmpeg_bin: str = config.FFMPEG_BIN
    ffprobe_bin: str = config.FFPROBE_BIN
    timeout_s: float = config.STRIP_TIMEOUT_S
    sample_rate: int = 16000
    bitrate: str = "16k"

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        if not shutil.which(cmd[0]):
            raise ToneStripError(f"{cmd[0]} not found in PATH")
        try:
            return subprocess.run(cmd, capture_output=True, check=True, timeout=self.timeout_s)
        except subprocess.TimeoutExpired as exc:
            raise ToneStripError(f"{cmd[0]} timed out after {self.timeout_s:g}s") from exc
        except (OSError, subprocess.CalledProcessError) as exc:
            detail = exc.stderr.decode("utf-8", "ignore").strip() if getattr(exc, "stderr", None) else ""
            raise ToneStripError(f"{cmd[0]} failed: {exc}" + (f" ({detail})" if detail else "")) from exc

    def probe_duration(self, path: Path) -> float:
        result = self._run(
            [
                self.ffprobe_bin,
                "-v", "error",
                "-show_entries", "format=duration",
                "-of", "default=noprint_wrappers=1:nokey=1",
                str(path),
            ]
        )
        text = result.stdout.decode("utf-8", "ignore").strip()
        try:
            return float(text)
        except ValueError as exc:
            raise ToneStripError(f"unparseable duration from ffprobe: {text!r}") from exc

    def trim_concat(self, src: Path, dst: Path, segments: Sequence[Segment]) -> bytes:
        self._run(
            [
                self.ffmpeg_bin,
                "-y", "-loglevel", "error",
                "-i", str(src),
                "-filter_complex", build_filter_complex(segments),
                "-map", "[out]",
                "-ar", str(self.sample_rate),
                "-ac", "1",
                "-c:a", "libopus",
                "-b:a", self.bitrate,
                "-application", "voip",
                "-f", "opus",
                str(dst),
            ]
        )
        try:
            return dst.read_bytes()
        except OSError as exc:
            raise ToneStripError(f"unable to read stripped audio: {exc}") from exc


class ToneStripper:
    """Remove tones from encoded audio, falling back to the original on any failure."""

    def __init__(
        self,
        encoder: Optional[FFmpegEncoder] = None,
        min_output_bytes: int = config.MIN_STRIPPED_BYTES,
        buffer_s: float = TONE_BUFFER_S,
    ):
        self.encoder = encoder or FFmpegEncoder()
        self.min_output_bytes = int(min_output_bytes)
        self.buffer_s = float(buffer_s)
        self.logger = get_logger(__name__)

    def strip(self, audio: bytes, tones: Sequence[Tone], total_duration: Optional[float] = None) -> bytes:
        if not tones:
            return audio
        try:
            return self._strip(audio, tones, total_duration)
        except ToneStripError:
            log_exception(self.logger, "tone removal failed, keeping original audio", error_type="strip")
            return audio

    def _strip(self, audio: bytes, tones: Sequence[Tone], total_duration: Optional[float]) -> bytes:
        try:
            workdir = tempfile.TemporaryDirectory(prefix="tonewatch-strip-")
        except OSError as exc:
            raise ToneStripError(f"unable to create temp directory: {exc}") from exc
        with workdir as tmp:
            src = Path(tmp) / "source"
            dst = Path(tmp) / "stripped.opus"
            try:
                src.write_bytes(audio)
            except OSError as exc:
                raise ToneStripError(f"unable to write temp audio: {exc}") from exc
            if total_duration is None:
                total_duration = self.encoder.probe_duration(src)

            segments = compute_keep_segments(tones, total_duration, self.buffer_s)
            if not segments:
                self.logger.info("all audio is tones, keeping original")
                return audio

            tone_seconds = sum(t.duration for t in tones)
            self.logger.info(
                "removing %d tone segment(s) (%.2fs of tones from %.2fs total)",
                len(tones),
                tone_seconds,
                total_duration,
            )
            stripped = self.encoder.trim_concat(src, dst, segments)

        if len(stripped) < self.min_output_bytes:
            self.logger.warning(
                "stripped audio too small (%d bytes), keeping original", len(stripped)
            )
            return audio
        self.logger.info(
            "tone removal complete: %d -> %d bytes", len(audio), len(stripped)
        )
        return stripped
