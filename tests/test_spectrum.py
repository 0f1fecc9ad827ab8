import numpy as np

from tonewatch.dsp.spectrum import compute_magnitude_frames
from tonewatch.dsp.windowing import frame_signal, hann_window, window_count


def _sine(freq_hz: float, seconds: float, sample_rate: int = 16000, amplitude: float = 1.0) -> np.ndarray:
    t = np.arange(int(seconds * sample_rate)) / float(sample_rate)
    return amplitude * np.sin(2.0 * np.pi * freq_hz * t)


def test_window_count_keeps_every_full_window() -> None:
    assert window_count(4096, 2048, 512) == 5
    assert window_count(4095, 2048, 512) == 4
    assert window_count(2047, 2048, 512) == 0


def test_frame_signal_is_a_strided_view() -> None:
    x = np.arange(10, dtype=np.float64)
    frames = frame_signal(x, 4, 2)
    assert frames.shape == (4, 4)
    assert list(frames[1]) == [2.0, 3.0, 4.0, 5.0]
    assert not frames.flags.writeable


def test_hann_window_is_symmetric_with_zero_endpoints() -> None:
    w = hann_window(2048)
    assert w[0] == 0.0 and w[-1] == 0.0
    assert np.allclose(w, w[::-1])


def test_bin_centered_sine_has_quarter_amplitude_magnitude() -> None:
    # 500 Hz is exactly bin 64 at 16 kHz / 2048
    frames = compute_magnitude_frames(_sine(500.0, 1.0), 16000)
    assert frames.bin_hz == 7.8125
    row = frames.magnitudes[3]
    assert int(np.argmax(row)) == 64
    assert abs(row[64] - 0.25) < 0.0025


def test_max_frequency_truncates_bins_with_guard() -> None:
    frames = compute_magnitude_frames(_sine(500.0, 0.5), 16000, max_freq_hz=1000.0)
    assert frames.magnitudes.shape[1] == 130
    assert frames.frequencies[-1] == 129 * 7.8125


def test_window_times_follow_hop() -> None:
    frames = compute_magnitude_frames(_sine(500.0, 0.5), 16000)
    assert frames.window_times(0) == (0.0, 0.128)
    start, end = frames.window_times(1)
    assert abs(start - 0.032) < 1e-12
    assert abs(end - 0.16) < 1e-12
    assert len(frames) == (8000 - 2048) // 512 + 1


def test_short_input_yields_no_frames() -> None:
    frames = compute_magnitude_frames(np.zeros(1000), 16000)
    assert len(frames) == 0
    assert list(frames) == []
