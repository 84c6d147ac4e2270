import json
import math
from datetime import datetime, timezone

import pydantic
import pytest

from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.normalization.gain_calculator import \
    NormalizationGainCalculator
from playback_loudness.components.playback_loudness.model.audio_analysis_result import AudioAnalysisResult
from playback_loudness.components.playback_loudness.model.playback_profile import PlaybackProfile


def _analysis(lufs, true_peak) -> AudioAnalysisResult:
    return AudioAnalysisResult(
        lufs=lufs,
        normalization_factor=1.0,
        peak_level=0.5,
        rms_level=0.1,
        true_peak_dbtp=true_peak,
        needs_limiter=False,
    )


@pytest.fixture
def calculator(logger) -> NormalizationGainCalculator:
    return NormalizationGainCalculator(logger)


def test_from_analysis(calculator):
    profile = PlaybackProfile.from_analysis(_analysis(-37.0, -12.0), "song.flac", calculator, file_hash="abc")

    assert profile.id == "song.flac"
    assert profile.filename == "song.flac"
    assert profile.file_hash == "abc"
    assert profile.integrated_lufs == -37.0
    assert profile.gain_db == 10.0
    assert not profile.needs_limiter
    assert profile.analysis_version == "1.0"
    assert profile.analysis_date.tzinfo is not None
    assert profile.target_lufs == -27.0
    assert profile.target_true_peak == -1.0


def test_gain_is_the_capped_gain_used_for_the_limiter_check(calculator):
    profile = PlaybackProfile.from_analysis(_analysis(-48.0, -10.0), "quiet.wav", calculator)

    assert profile.gain_db == 18.0
    assert profile.needs_limiter


def test_loud_asset_has_no_gain(calculator):
    profile = PlaybackProfile.from_analysis(_analysis(-10.0, -0.5), "loud.wav", calculator)

    assert profile.gain_db == 0.0
    assert profile.needs_limiter


@pytest.mark.parametrize("lufs, true_peak", [
    (None, -3.0),
    (-20.0, None),
    (math.nan, -3.0),
    (-20.0, -math.inf),
])
def test_no_profile_without_finite_measurements(calculator, lufs, true_peak):
    assert PlaybackProfile.from_analysis(_analysis(lufs, true_peak), "x.wav", calculator) is None


def test_json_uses_camel_case_keys(calculator):
    profile = PlaybackProfile.from_analysis(_analysis(-30.0, -6.0), "a.wav", calculator, file_hash="h")

    data = profile.to_json_dict()

    assert set(data) == {"id", "filename", "fileHash", "integratedLUFS", "truePeakdBTP", "gainDB",
                         "needsLimiter", "analysisDate", "analysisVersion"}
    assert PlaybackProfile.model_validate_json(json.dumps(data)) == profile


def test_reads_profile_without_hash():
    profile = PlaybackProfile.model_validate({
        "id": "a.wav",
        "filename": "a.wav",
        "integratedLUFS": -20.0,
        "truePeakdBTP": -3.0,
        "gainDB": 0.0,
        "needsLimiter": False,
        "analysisDate": "2024-05-01T10:00:00Z",
        "analysisVersion": "1.0",
    })

    assert profile.file_hash is None
    assert profile.analysis_date == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)


def test_rejects_non_finite_values():
    with pytest.raises(pydantic.ValidationError):
        PlaybackProfile(id="a", filename="a", integrated_lufs=math.inf, true_peak_dbtp=-1.0, gain_db=0.0,
                        needs_limiter=False)


def test_is_immutable(calculator):
    profile = PlaybackProfile.from_analysis(_analysis(-30.0, -6.0), "a.wav", calculator)

    with pytest.raises(pydantic.ValidationError):
        profile.gain_db = 1.0


def test_targets_match_the_gain_calculator(calculator):
    profile = PlaybackProfile.from_analysis(_analysis(-31.0, -6.0), "a.wav", calculator)

    assert profile.target_lufs - profile.integrated_lufs == profile.gain_db
