import logging
import math

from playback_loudness.components.playback_loudness.constants import TARGET_LUFS, MINIMUM_LUFS, MAX_GAIN_DB, \
    TRUE_PEAK_CEILING_DBTP, PEAK_TARGET_LEVEL, PEAK_MAX_FACTOR


def db_to_linear_gain(gain_db: float) -> float:
    return math.pow(10.0, gain_db / 20.0)


class NormalizationGainCalculator:
    """
    Static gain toward the fixed target loudness. Stored profiles report that target, so only the
    floor and the gain cap are adjustable. The gain is never reduced for true-peak safety;
    when the predicted true peak would cross the ceiling the result is flagged for a
    downstream limiter instead.
    """
    def __init__(
            self,
            logger: logging.Logger,
            minimum_lufs: float = MINIMUM_LUFS,
            max_gain_db: float = MAX_GAIN_DB
    ):
        self._separator: str = self.__class__.__name__
        self._logger: logging.Logger = logger.getChild(self._separator)
        self._target_lufs = TARGET_LUFS
        self._minimum_lufs = minimum_lufs
        self._max_gain_db = max_gain_db
        self._true_peak_ceiling_dbtp = TRUE_PEAK_CEILING_DBTP

    def gain_db(self, lufs: float) -> float:
        # Already loud enough, or too quiet to trust.
        if not math.isfinite(lufs) or lufs >= self._target_lufs or lufs <= self._minimum_lufs:
            return 0.0
        return min(self._target_lufs - lufs, self._max_gain_db)

    def lufs_normalization_factor(self, lufs: float) -> float:
        return db_to_linear_gain(self.gain_db(lufs))

    def peak_normalization_factor(self, peak_level: float, target_level: float = PEAK_TARGET_LEVEL) -> float:
        """Fallback when loudness could not be measured."""
        if peak_level <= 0:
            return 1.0

        factor = min(target_level / peak_level, PEAK_MAX_FACTOR)
        self._logger.debug(f"Peak normalization factor: {factor:.4f} (peak: {peak_level:.6f}, target: {target_level})")
        return factor

    def predicted_true_peak(self, true_peak_dbtp: float, gain_db: float) -> float:
        return true_peak_dbtp + gain_db

    def needs_limiter(self, true_peak_dbtp: float, gain_db: float) -> bool:
        if not math.isfinite(true_peak_dbtp):
            return False

        predicted = self.predicted_true_peak(true_peak_dbtp, gain_db)
        if predicted > self._true_peak_ceiling_dbtp:
            self._logger.warning(f"Limiter needed - predicted peak: {predicted:.2f} dBTP")
            return True
        return False
