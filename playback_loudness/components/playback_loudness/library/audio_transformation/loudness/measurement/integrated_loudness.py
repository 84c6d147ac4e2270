import logging
import math
from typing import Sequence, Optional

import numpy as np

from playback_loudness.components.playback_loudness.constants import ABSOLUTE_GATE_LUFS, RELATIVE_GATE_OFFSET_LU, \
    UNGATED_FALLBACK_FLOOR_LUFS


def db_to_power(db: np.ndarray) -> np.ndarray:
    return np.power(10.0, np.asarray(db, dtype=np.float64) / 10.0)


def power_to_db(power: float) -> float:
    return 10.0 * math.log10(power)


def power_mean_db(measurements: Sequence[float]) -> float:
    """Averages loudness values in the power domain."""
    return power_to_db(float(np.mean(db_to_power(measurements))))


class IntegratedLoudnessCalculator:
    """Two-stage (absolute, then relative) gated loudness over per-window measurements."""
    def __init__(self, logger: logging.Logger):
        self._separator: str = self.__class__.__name__
        self._logger: logging.Logger = logger.getChild(self._separator)

    def integrate(self, measurements: Sequence[float]) -> Optional[float]:
        values = np.asarray(measurements, dtype=np.float64)
        if values.size == 0:
            self._logger.debug("No measurements to integrate.")
            return None

        self._logger.debug(
            f"Measurements - Count: {values.size}, Min: {values.min():.3f}, "
            f"Max: {values.max():.3f}, Avg: {values.mean():.3f}"
        )

        absolute_gated = values[values > ABSOLUTE_GATE_LUFS]
        if absolute_gated.size == 0:
            return self._ungated_fallback(values)

        absolute_gated_lufs = power_mean_db(absolute_gated)

        relative_threshold = absolute_gated_lufs + RELATIVE_GATE_OFFSET_LU
        relative_gated = absolute_gated[absolute_gated > relative_threshold]
        if relative_gated.size == 0:
            return absolute_gated_lufs

        return power_mean_db(relative_gated)

    def _ungated_fallback(self, values: np.ndarray) -> Optional[float]:
        # Not part of BS.1770: keeps very quiet ambient material measurable.
        self._logger.info(f"All {values.size} measurements below {ABSOLUTE_GATE_LUFS} LUFS gating threshold.")

        ungated_lufs = power_mean_db(values)
        self._logger.debug(f"Ungated loudness would be: {ungated_lufs:.3f} LUFS")

        if ungated_lufs > UNGATED_FALLBACK_FLOOR_LUFS:
            return ungated_lufs
        return None
