import logging
from typing import Callable

import numpy as np
import pytest

SAMPLE_RATE: int = 48000


@pytest.fixture
def logger() -> logging.Logger:
    test_logger = logging.getLogger("PlaybackLoudnessTest")
    test_logger.setLevel(logging.DEBUG)
    return test_logger


@pytest.fixture
def make_sine() -> Callable[..., np.ndarray]:
    def _make_sine(
            frequency: float = 997.0,
            amplitude: float = 1.0,
            seconds: float = 3.0,
            sample_rate: int = SAMPLE_RATE,
            channels: int = 1
    ) -> np.ndarray:
        t = np.arange(int(round(seconds * sample_rate))) / sample_rate
        mono = amplitude * np.sin(2 * np.pi * frequency * t)
        if channels == 1:
            return mono
        return np.tile(mono[:, np.newaxis], (1, channels))

    return _make_sine
