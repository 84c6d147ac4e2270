import math

import numpy as np
import pytest

from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.normalization.gain_calculator import \
    NormalizationGainCalculator, db_to_linear_gain


@pytest.fixture
def calculator(logger) -> NormalizationGainCalculator:
    return NormalizationGainCalculator(logger)


def test_gain_toward_target(calculator):
    assert math.isclose(calculator.gain_db(-37.0), 10.0)
    assert math.isclose(calculator.lufs_normalization_factor(-37.0), 10 ** 0.5)


def test_gain_is_capped(calculator):
    assert calculator.gain_db(-49.0) == 18.0
    assert math.isclose(calculator.lufs_normalization_factor(-49.0), 10 ** 0.9)


@pytest.mark.parametrize("lufs", [-27.0, -20.0, -3.0, -50.0, -60.0, math.inf, math.nan])
def test_no_gain(calculator, lufs):
    assert calculator.gain_db(lufs) == 0.0
    assert calculator.lufs_normalization_factor(lufs) == 1.0


def test_factor_is_monotonic_between_floor_and_target(calculator):
    factors = [calculator.lufs_normalization_factor(lufs) for lufs in np.linspace(-49.5, -27.5, 200)]

    assert all(a >= b for a, b in zip(factors, factors[1:]))


def test_custom_floor_and_cap(logger):
    calculator = NormalizationGainCalculator(logger, minimum_lufs=-40.0, max_gain_db=6.0)

    assert calculator.gain_db(-30.0) == 3.0
    assert calculator.gain_db(-36.0) == 6.0
    assert calculator.gain_db(-45.0) == 0.0


def test_peak_normalization_factor(calculator):
    assert math.isclose(calculator.peak_normalization_factor(0.4), 2.0)
    assert calculator.peak_normalization_factor(0.1) == 3.0
    assert calculator.peak_normalization_factor(0.0) == 1.0


def test_needs_limiter(calculator):
    assert calculator.needs_limiter(-5.0, 10.0)
    assert not calculator.needs_limiter(-20.0, 10.0)
    assert not calculator.needs_limiter(-1.0, 0.0)
    assert not calculator.needs_limiter(-math.inf, 18.0)


def test_predicted_true_peak(calculator):
    assert calculator.predicted_true_peak(-6.0, 4.5) == -1.5


def test_db_to_linear_gain():
    assert db_to_linear_gain(0.0) == 1.0
    assert math.isclose(db_to_linear_gain(20.0), 10.0)
