import dataclasses
import math
from typing import Optional


@dataclasses.dataclass(frozen=True)
class AudioAnalysisResult:
    """Holds the results of one comprehensive analysis pass over an asset."""
    lufs: Optional[float]
    normalization_factor: float
    peak_level: Optional[float]
    rms_level: Optional[float]
    true_peak_dbtp: Optional[float]
    needs_limiter: bool

    @property
    def peak_dbfs(self) -> Optional[float]:
        if self.peak_level is None or self.peak_level <= 0:
            return None
        return 20 * math.log10(self.peak_level)

    @property
    def rms_dbfs(self) -> Optional[float]:
        if self.rms_level is None or self.rms_level <= 0:
            return None
        return 20 * math.log10(self.rms_level)
