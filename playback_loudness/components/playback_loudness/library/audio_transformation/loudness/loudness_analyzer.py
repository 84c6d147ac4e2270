import logging
import math
from pathlib import Path
from typing import Optional

from playback_loudness.components.playback_loudness.initialize_logger import TRACE
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.measurement.chunked_processor import \
    ChunkedLoudnessProcessor
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.measurement.integrated_loudness import \
    IntegratedLoudnessCalculator
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.measurement.sample_level_meter import \
    SampleLevelMeter
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.measurement.true_peak_detector import \
    TruePeakDetector
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.normalization.gain_calculator import \
    NormalizationGainCalculator
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.source.pcm_source import \
    PCMSource, SoundFilePCMSource
from playback_loudness.components.playback_loudness.library.configuration.model.configuration import AnalysisConfig
from playback_loudness.components.playback_loudness.model.audio_analysis_result import AudioAnalysisResult


class LoudnessAnalyzer:
    """
    Runs the full measurement pass for one asset: sample peak and RMS, true peak, gated
    integrated loudness, and the resulting normalization decision.

    Holds no state between calls, so one instance may serve several threads.
    """
    def __init__(self, logger: logging.Logger, config: Optional[AnalysisConfig] = None):
        self._separator: str = self.__class__.__name__
        self._logger: logging.Logger = logger.getChild(self._separator)
        config = config or AnalysisConfig()

        self._processor = ChunkedLoudnessProcessor(
            logger,
            window_frames=config.window_frames,
            carry_filter_state=config.carry_filter_state
        )
        self._integrator = IntegratedLoudnessCalculator(logger)
        self._true_peak_detector = TruePeakDetector(logger, window_frames=config.window_frames)
        self._level_meter = SampleLevelMeter(logger, window_frames=config.window_frames)
        self._gain_calculator = NormalizationGainCalculator(
            logger,
            minimum_lufs=config.minimum_lufs,
            max_gain_db=config.max_gain_db,
        )

        self._logger.log(TRACE, "Successfully initialized.")

    @property
    def gain_calculator(self) -> NormalizationGainCalculator:
        return self._gain_calculator

    def measure_lufs(self, source: PCMSource) -> Optional[float]:
        return self._integrator.integrate(self._processor.measure(source))

    def analyze(self, source: PCMSource, label: str = "<pcm>") -> AudioAnalysisResult:
        """Decode errors raised by the source propagate, no partial result is produced."""
        self._logger.info(f"Starting comprehensive analysis for {label}")

        levels = self._level_meter.measure(source)
        true_peak = self._true_peak_detector.detect(source)
        lufs = self.measure_lufs(source)

        needs_limiter = False
        if lufs is not None:
            gain_db = self._gain_calculator.gain_db(lufs)
            normalization_factor = self._gain_calculator.lufs_normalization_factor(lufs)
            needs_limiter = self._gain_calculator.needs_limiter(true_peak, gain_db)
            self._logger.info(f"{label} - LUFS: {lufs:.2f}, Factor: {normalization_factor:.4f}")
        elif levels.peak > 0:
            normalization_factor = self._gain_calculator.peak_normalization_factor(levels.peak)
            self._logger.warning(f"No measurements above gating threshold for {label}, using peak-based normalization.")
        else:
            normalization_factor = 1.0
            self._logger.warning(f"No loudness or peak could be measured for {label}, leaving gain unchanged.")

        return AudioAnalysisResult(
            lufs=lufs,
            normalization_factor=normalization_factor,
            peak_level=levels.peak,
            rms_level=levels.rms,
            true_peak_dbtp=true_peak if math.isfinite(true_peak) else None,
            needs_limiter=needs_limiter,
        )

    def analyze_file(self, path: Path) -> AudioAnalysisResult:
        with SoundFilePCMSource(path) as source:
            return self.analyze(source, label=Path(path).name)
