import dataclasses
import logging
import math

import numpy as np

from playback_loudness.components.playback_loudness.constants import ANALYSIS_WINDOW_FRAMES
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.source.pcm_source import \
    PCMSource, iter_windows


@dataclasses.dataclass(frozen=True)
class SampleLevels:
    """Linear sample peak and RMS level, both 0..1 for full-scale material."""
    peak: float
    rms: float


class SampleLevelMeter:
    def __init__(self, logger: logging.Logger, window_frames: int = ANALYSIS_WINDOW_FRAMES):
        self._separator: str = self.__class__.__name__
        self._logger: logging.Logger = logger.getChild(self._separator)
        self._window_frames: int = window_frames

    def measure(self, source: PCMSource) -> SampleLevels:
        """Peak over all channels, RMS averaged over the per-channel RMS values."""
        channels = source.channels
        sum_sq = np.zeros(channels, dtype=np.float64)
        peak = 0.0

        for _, block in iter_windows(source, self._window_frames):
            if block.size == 0:
                continue
            sum_sq += np.einsum("ij,ij->j", block, block)
            peak = max(peak, float(np.max(np.abs(block))))

        frames = source.frames
        if frames == 0 or channels == 0:
            return SampleLevels(peak=0.0, rms=0.0)

        rms = float(np.mean(np.sqrt(sum_sq / frames)))
        self._logger.debug(
            f"Peak level: {peak:.6f} ({self._to_dbfs(peak)} dBFS), RMS level: {rms:.6f} ({self._to_dbfs(rms)} dBFS)"
        )
        return SampleLevels(peak=peak, rms=rms)

    @staticmethod
    def _to_dbfs(level: float) -> str:
        return f"{20 * math.log10(level):.2f}" if level > 0 else "-inf"
