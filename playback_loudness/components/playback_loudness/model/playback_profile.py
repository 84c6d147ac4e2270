import math
from datetime import datetime, timezone
from typing import Optional, Dict, Any

import pydantic

from playback_loudness.components.playback_loudness.constants import ANALYSIS_VERSION, TARGET_LUFS, \
    TRUE_PEAK_CEILING_DBTP
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.normalization.gain_calculator import \
    NormalizationGainCalculator
from playback_loudness.components.playback_loudness.model.audio_analysis_result import AudioAnalysisResult


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PlaybackProfile(pydantic.BaseModel):
    """
    Pre-computed loudness analysis for one asset.

    `gain_db` is the gain that was checked against the true-peak ceiling when the profile
    was created. It is never recomputed; a changed asset gets a new profile.
    """
    model_config = pydantic.ConfigDict(frozen=True, populate_by_name=True)

    id: str
    filename: str
    file_hash: Optional[str] = pydantic.Field(default=None, alias="fileHash")
    integrated_lufs: float = pydantic.Field(alias="integratedLUFS", allow_inf_nan=False)
    true_peak_dbtp: float = pydantic.Field(alias="truePeakdBTP", allow_inf_nan=False)
    gain_db: float = pydantic.Field(alias="gainDB", allow_inf_nan=False)
    needs_limiter: bool = pydantic.Field(alias="needsLimiter")
    analysis_date: datetime = pydantic.Field(default_factory=_utc_now, alias="analysisDate")
    analysis_version: str = pydantic.Field(default=ANALYSIS_VERSION, alias="analysisVersion")

    @property
    def target_lufs(self) -> float:
        return TARGET_LUFS

    @property
    def target_true_peak(self) -> float:
        return TRUE_PEAK_CEILING_DBTP

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def get_printed(self) -> str:
        return (f"PlaybackProfile(id={self.id}, lufs={self.integrated_lufs:.2f}, tp={self.true_peak_dbtp:.2f} dBTP, "
                f"gain={self.gain_db:.2f} dB, limiter={self.needs_limiter})")

    @classmethod
    def from_analysis(
            cls,
            analysis: AudioAnalysisResult,
            filename: str,
            gain_calculator: NormalizationGainCalculator,
            file_hash: Optional[str] = None
    ) -> Optional["PlaybackProfile"]:
        """Returns None when the analysis has no finite loudness or true peak to build a profile from."""
        lufs = analysis.lufs
        true_peak = analysis.true_peak_dbtp
        if lufs is None or true_peak is None or not math.isfinite(lufs) or not math.isfinite(true_peak):
            return None

        gain_db = gain_calculator.gain_db(lufs)

        return cls(
            id=filename,
            filename=filename,
            file_hash=file_hash,
            integrated_lufs=lufs,
            true_peak_dbtp=true_peak,
            gain_db=gain_db,
            needs_limiter=gain_calculator.needs_limiter(true_peak, gain_db),
        )
