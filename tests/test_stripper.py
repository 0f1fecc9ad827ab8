import io
import shutil
import subprocess
import tempfile

import numpy as np
import pytest
from scipy.io import wavfile

from tonewatch.audio.stripper import FFmpegEncoder, ToneStripper, build_filter_complex, compute_keep_segments
from tonewatch.detection.types import Tone
from tonewatch.errors import ToneStripError


def _tone(start: float, end: float, freq: float = 1000.0) -> Tone:
    return Tone(frequency=freq, start_time=start, end_time=end, duration=end - start)


def _total(segments) -> float:
    return sum(end - start for start, end in segments)


def test_keep_segments_pad_each_tone_by_a_tenth_of_a_second() -> None:
    segments = compute_keep_segments([_tone(2.0, 3.0)], 10.0)
    assert segments == [(0.0, pytest.approx(1.9)), (pytest.approx(3.1), 10.0)]
    assert _total(segments) == pytest.approx(8.8)


def test_keep_segments_clip_to_audio_bounds_and_sort_tones() -> None:
    segments = compute_keep_segments([_tone(9.5, 10.0), _tone(0.05, 1.0)], 10.0)
    assert segments == [(pytest.approx(1.1), pytest.approx(9.4))]


def test_overlapping_tones_do_not_reopen_removed_audio() -> None:
    segments = compute_keep_segments([_tone(1.0, 4.0), _tone(2.0, 3.0)], 10.0)
    assert segments == [(0.0, pytest.approx(0.9)), (pytest.approx(4.1), 10.0)]


def test_tone_starting_past_the_probed_duration_keeps_everything() -> None:
    segments = compute_keep_segments([_tone(12.0, 13.0)], 10.0)
    assert segments == [(0.0, 10.0)]


def test_filter_complex_trims_and_concatenates_segments() -> None:
    graph = build_filter_complex([(0.0, 1.9), (3.1, 10.0)])
    assert graph == (
        "[0:a]atrim=start=0.000:end=1.900,asetpts=PTS-STARTPTS[a0];"
        "[0:a]atrim=start=3.100:end=10.000,asetpts=PTS-STARTPTS[a1];"
        "[a0][a1]concat=n=2:v=0:a=1[out]"
    )


class _FakeEncoder:
    def __init__(self, output: bytes = b"", error: Exception = None, duration: float = 10.0):
        self.output = output
        self.error = error
        self.duration = duration
        self.segments = None

    def probe_duration(self, path) -> float:
        return self.duration

    def trim_concat(self, src, dst, segments) -> bytes:
        self.segments = list(segments)
        if self.error is not None:
            raise self.error
        return self.output


def test_no_tones_returns_input_untouched() -> None:
    encoder = _FakeEncoder(output=b"x" * 5000)
    audio = b"original" * 200
    assert ToneStripper(encoder).strip(audio, []) is audio
    assert encoder.segments is None


def test_successful_strip_returns_encoder_output() -> None:
    encoder = _FakeEncoder(output=b"x" * 5000)
    stripped = ToneStripper(encoder).strip(b"original" * 200, [_tone(2.0, 3.0)])
    assert stripped == b"x" * 5000
    assert _total(encoder.segments) == pytest.approx(8.8)


def test_encoder_failure_falls_back_to_original() -> None:
    encoder = _FakeEncoder(error=ToneStripError("filter graph rejected"))
    audio = b"original" * 200
    assert ToneStripper(encoder).strip(audio, [_tone(2.0, 3.0)]) is audio


def test_implausibly_small_output_falls_back_to_original() -> None:
    encoder = _FakeEncoder(output=b"x" * 999)
    audio = b"original" * 200
    assert ToneStripper(encoder).strip(audio, [_tone(2.0, 3.0)]) is audio


def test_all_tone_audio_is_returned_unchanged() -> None:
    encoder = _FakeEncoder(output=b"x" * 5000, duration=2.0)
    audio = b"original" * 200
    assert ToneStripper(encoder).strip(audio, [_tone(0.0, 2.0)]) is audio
    assert encoder.segments is None


def test_temp_directory_failure_falls_back_to_original(monkeypatch) -> None:
    def _no_tmp(*args, **kwargs):
        raise PermissionError("read-only tmp")

    monkeypatch.setattr(tempfile, "TemporaryDirectory", _no_tmp)
    encoder = _FakeEncoder(output=b"x" * 5000)
    audio = b"original" * 200
    assert ToneStripper(encoder).strip(audio, [_tone(2.0, 3.0)]) is audio
    assert encoder.segments is None


def test_missing_binary_is_a_strip_error() -> None:
    encoder = FFmpegEncoder(ffmpeg_bin="tonewatch-no-such-ffmpeg", ffprobe_bin="tonewatch-no-such-ffprobe")
    with pytest.raises(ToneStripError):
        encoder.probe_duration("whatever.opus")
    audio = b"original" * 200
    assert ToneStripper(encoder).strip(audio, [_tone(2.0, 3.0)]) is audio


def _has_libopus() -> bool:
    if not shutil.which("ffmpeg") or not shutil.which("ffprobe"):
        return False
    result = subprocess.run(["ffmpeg", "-hide_banner", "-encoders"], capture_output=True, check=False)
    return b"libopus" in result.stdout


@pytest.mark.skipif(not _has_libopus(), reason="ffmpeg with libopus not available")
def test_stripping_a_one_second_tone_from_ten_seconds(tmp_path) -> None:
    sample_rate = 16000
    t = np.arange(10 * sample_rate) / float(sample_rate)
    rng = np.random.default_rng(3)
    signal = 0.05 * rng.normal(size=t.size)
    in_tone = (t >= 2.0) & (t < 3.0)
    signal[in_tone] += 0.8 * np.sin(2.0 * np.pi * 1000.0 * t[in_tone])
    buf = io.BytesIO()
    wavfile.write(buf, sample_rate, (np.clip(signal, -1.0, 1.0) * 32767).astype(np.int16))

    encoder = FFmpegEncoder()
    stripped = ToneStripper(encoder).strip(buf.getvalue(), [_tone(2.0, 3.0)])
    assert stripped != buf.getvalue()

    out_path = tmp_path / "stripped.opus"
    out_path.write_bytes(stripped)
    assert encoder.probe_duration(out_path) == pytest.approx(8.8, abs=0.1)
