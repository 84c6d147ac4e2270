import logging
import math

import numpy as np

from playback_loudness.components.playback_loudness.constants import ANALYSIS_WINDOW_FRAMES
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.source.pcm_source import \
    PCMSource, iter_windows

OVERSAMPLING_FACTOR: int = 4


def oversample_linear(block: np.ndarray, factor: int = OVERSAMPLING_FACTOR) -> np.ndarray:
    """
    Linear interpolation between consecutive frames. For a pair (s1, s2) this emits
    s1, s1 + d, s1 + 2d, s1 + 3d with d = (s2 - s1) / 4. Works along axis 0.
    """
    block = np.asarray(block, dtype=np.float64)
    if block.shape[0] < 2:
        return block.copy()

    steps = np.arange(factor, dtype=np.float64) / factor
    starts = block[:-1]
    deltas = np.diff(block, axis=0)
    interpolated = starts[..., np.newaxis] + deltas[..., np.newaxis] * steps
    # (frames - 1, ..., factor) -> frames-major sequence
    interpolated = np.moveaxis(interpolated, -1, 1).reshape((-1,) + block.shape[1:])
    return np.concatenate([interpolated, block[-1:]], axis=0)


def linear_to_dbtp(peak: float) -> float:
    return 20.0 * math.log10(peak) if peak > 0 else -math.inf


class TruePeakDetector:
    """Inter-sample peak estimate via 4x linear oversampling. Not a reconstruction filter."""
    def __init__(self, logger: logging.Logger, window_frames: int = ANALYSIS_WINDOW_FRAMES):
        self._separator: str = self.__class__.__name__
        self._logger: logging.Logger = logger.getChild(self._separator)
        self._window_frames: int = window_frames

    def detect_linear(self, source: PCMSource) -> float:
        global_peak = 0.0
        for _, block in iter_windows(source, self._window_frames):
            if block.size == 0:
                continue
            global_peak = max(global_peak, float(np.max(np.abs(oversample_linear(block)))))
        return global_peak

    def detect(self, source: PCMSource) -> float:
        """True peak in dBTP, -inf for digital silence."""
        true_peak = linear_to_dbtp(self.detect_linear(source))
        self._logger.debug(f"True peak: {true_peak:.3f} dBTP")
        return true_peak
