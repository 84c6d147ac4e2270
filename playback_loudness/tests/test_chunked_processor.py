import math

import numpy as np
import pytest

from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.measurement.chunked_processor import \
    ChunkedLoudnessProcessor
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.source.pcm_source import \
    ArrayPCMSource, iter_windows


def test_partial_last_window_is_measured(logger, make_sine):
    samples = make_sine(seconds=2.5)
    processor = ChunkedLoudnessProcessor(logger)

    measurements = processor.measure(ArrayPCMSource(samples, 48000))

    assert len(measurements) == 3
    for value in measurements:
        assert math.isclose(value, -3.01, abs_tol=0.1)


def test_silent_windows_are_skipped(logger, make_sine):
    samples = np.concatenate([make_sine(seconds=1.0), np.zeros(48000), make_sine(seconds=1.0)])
    processor = ChunkedLoudnessProcessor(logger)

    assert len(processor.measure(ArrayPCMSource(samples, 48000))) == 2
    assert processor.measure(ArrayPCMSource(np.zeros(96000), 48000)) == []


def test_window_is_counted_in_frames(logger, make_sine):
    samples = make_sine(seconds=2.0, sample_rate=44100)
    processor = ChunkedLoudnessProcessor(logger)

    assert len(processor.measure(ArrayPCMSource(samples, 44100))) == 2


def test_channels_are_summed(logger, make_sine):
    processor = ChunkedLoudnessProcessor(logger)
    mono = processor.measure(ArrayPCMSource(make_sine(seconds=1.0), 48000))[0]
    surround = processor.measure(ArrayPCMSource(make_sine(seconds=1.0, channels=3), 48000))[0]

    assert math.isclose(surround - mono, 10 * math.log10(3.41), abs_tol=1e-6)


def test_carried_filter_state_agrees_on_steady_tone(logger, make_sine):
    source = ArrayPCMSource(make_sine(seconds=3.0), 48000)
    reset = ChunkedLoudnessProcessor(logger).measure(source)
    carried = ChunkedLoudnessProcessor(logger, carry_filter_state=True).measure(source)

    assert len(reset) == len(carried)
    for a, b in zip(reset, carried):
        assert math.isclose(a, b, abs_tol=0.05)


def test_iter_windows_rejects_empty_window():
    with pytest.raises(ValueError):
        list(iter_windows(ArrayPCMSource(np.zeros(10), 48000), 0))


def test_iter_windows_covers_source():
    source = ArrayPCMSource(np.arange(10, dtype=np.float64), 48000)
    windows = list(iter_windows(source, 4))

    assert [offset for offset, _ in windows] == [0, 4, 8]
    assert [block.shape for _, block in windows] == [(4, 1), (4, 1), (2, 1)]
