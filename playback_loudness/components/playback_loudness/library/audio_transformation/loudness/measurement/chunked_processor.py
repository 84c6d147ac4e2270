import logging
import math
from typing import List, Optional, Dict

from playback_loudness.components.playback_loudness.constants import ANALYSIS_WINDOW_FRAMES, LOUDNESS_OFFSET, \
    ABSOLUTE_GATE_LUFS
from playback_loudness.components.playback_loudness.initialize_logger import TRACE
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.filtering.k_weighting import \
    KWeightingFilterBank, ChannelFilterState
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.source.pcm_source import \
    PCMSource, iter_windows

_LOGGED_MEASUREMENTS: int = 5


class ChunkedLoudnessProcessor:
    """
    Streams a PCM source in fixed frame-count windows and emits one loudness value per window.

    The window is counted in frames, so at sample rates other than 48 kHz the window covers a
    proportionally different duration. Windows whose summed channel power is zero produce no value.
    """
    def __init__(
            self,
            logger: logging.Logger,
            filter_bank: Optional[KWeightingFilterBank] = None,
            window_frames: int = ANALYSIS_WINDOW_FRAMES,
            carry_filter_state: bool = False
    ):
        self._separator: str = self.__class__.__name__
        self._logger: logging.Logger = logger.getChild(self._separator)
        self._filter_bank: KWeightingFilterBank = filter_bank or KWeightingFilterBank(logger)
        self._window_frames: int = window_frames
        self._carry_filter_state: bool = carry_filter_state

        self._logger.log(TRACE, "Successfully initialized.")

    def measure(self, source: PCMSource) -> List[float]:
        self._logger.debug(
            f"Processing source for loudness - Length: {source.frames} frames, "
            f"Channels: {source.channels}, Sample Rate: {source.sample_rate}"
        )

        measurements: List[float] = []
        states: Dict[int, ChannelFilterState] = {}

        for offset, block in iter_windows(source, self._window_frames):
            if self._carry_filter_state:
                powers = []
                for ch in range(block.shape[1]):
                    power, states[ch] = self._filter_bank.channel_power_continuous(block[:, ch], ch, states.get(ch))
                    powers.append(power)
            else:
                powers = self._filter_bank.window_powers(block)

            loudness = self._window_loudness(sum(powers), offset)
            if loudness is None:
                continue

            measurements.append(loudness)
            if len(measurements) <= _LOGGED_MEASUREMENTS:
                self._logger.debug(f"Window {len(measurements)} loudness: {loudness:.3f} LUFS")

        return measurements

    def _window_loudness(self, total_power: float, offset: int) -> Optional[float]:
        if total_power <= 0:
            self._logger.debug(f"Total power is 0 for window at frame {offset}, skipping.")
            return None

        loudness = LOUDNESS_OFFSET + 10.0 * math.log10(total_power)

        if loudness < ABSOLUTE_GATE_LUFS:
            self._logger.debug(f"Very low loudness: {loudness:.3f} LUFS (power: {total_power:.3e}) at frame {offset}")

        return loudness
