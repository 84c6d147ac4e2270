import dataclasses
import logging
from typing import Tuple, Optional, List

import numpy as np

from playback_loudness.components.playback_loudness.initialize_logger import TRACE
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.filtering.biquad_filter import \
    BiquadFilter, BiquadState

QUIET_POWER_THRESHOLD: float = 1e-10
SURROUND_CHANNEL_WEIGHT: float = 1.41


@dataclasses.dataclass(frozen=True)
class KWeightingCoefficients:
    """ITU-R BS.1770-4 K-weighting: high-shelf pre-filter followed by the RLB high-pass."""
    pre_filter_b: Tuple[float, float, float]
    pre_filter_a: Tuple[float, float, float]
    rlb_filter_b: Tuple[float, float, float]
    rlb_filter_a: Tuple[float, float, float]


K_WEIGHTING: KWeightingCoefficients = KWeightingCoefficients(
    pre_filter_b=(1.53512485958697, -2.69169618940638, 1.19839281085285),
    pre_filter_a=(1.0, -1.69065929318241, 0.73248077421585),
    rlb_filter_b=(1.0, -2.0, 1.0),
    rlb_filter_a=(1.0, -1.99004745483398, 0.99007225036621),
)


def channel_weight(channel_index: int) -> float:
    return 1.0 if channel_index < 2 else SURROUND_CHANNEL_WEIGHT


@dataclasses.dataclass(frozen=True)
class ChannelFilterState:
    """Per-channel biquad state for both K-weighting stages."""
    pre_filter: BiquadState = BiquadState()
    rlb_filter: BiquadState = BiquadState()


class KWeightingFilterBank:
    """Turns one channel window into a weighted mean-square power."""
    def __init__(self, logger: logging.Logger, coefficients: KWeightingCoefficients = K_WEIGHTING):
        self._separator: str = self.__class__.__name__
        self._logger: logging.Logger = logger.getChild(self._separator)
        self._pre_filter = BiquadFilter(coefficients.pre_filter_b, coefficients.pre_filter_a)
        self._rlb_filter = BiquadFilter(coefficients.rlb_filter_b, coefficients.rlb_filter_a)

        self._logger.log(TRACE, "Successfully initialized.")

    def filter(self, samples: np.ndarray) -> np.ndarray:
        return self._rlb_filter.apply(self._pre_filter.apply(samples))

    def channel_power(self, samples: np.ndarray, channel_index: int) -> float:
        """Weighted power of one channel window, filter state reset for this window."""
        filtered = self.filter(samples)
        return self._weighted_power(samples, filtered, channel_index)

    def channel_power_continuous(
            self,
            samples: np.ndarray,
            channel_index: int,
            state: Optional[ChannelFilterState] = None
    ) -> Tuple[float, ChannelFilterState]:
        """Weighted power of one channel window, continuing the filters from the previous window."""
        state = state or ChannelFilterState()
        pre, pre_state = self._pre_filter.process(samples, state.pre_filter)
        filtered, rlb_state = self._rlb_filter.process(pre, state.rlb_filter)
        power = self._weighted_power(samples, filtered, channel_index)
        return power, ChannelFilterState(pre_filter=pre_state, rlb_filter=rlb_state)

    def window_powers(self, block: np.ndarray) -> List[float]:
        """Weighted powers for every channel of a (frames, channels) block."""
        return [self.channel_power(block[:, ch], ch) for ch in range(block.shape[1])]

    def _weighted_power(self, raw: np.ndarray, filtered: np.ndarray, channel_index: int) -> float:
        if filtered.size == 0:
            return 0.0

        power = float(np.dot(filtered, filtered) / filtered.size)

        if power < QUIET_POWER_THRESHOLD:
            raw = np.asarray(raw, dtype=np.float64)
            input_power = float(np.dot(raw, raw) / raw.size)
            self._logger.debug(
                f"Channel {channel_index} is silent or near-silent - input power: {input_power:.3e}, "
                f"filtered power: {power:.3e}"
            )

        return power * channel_weight(channel_index)
