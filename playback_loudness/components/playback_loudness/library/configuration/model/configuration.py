import dataclasses
from pathlib import Path
from typing import List

from playback_loudness.components.playback_loudness.constants import (
    APPLICATION_NAME, get_user_local_appdata_dir, PHYSICAL_CPU_COUNT, MINIMUM_LUFS, MAX_GAIN_DB,
    ANALYSIS_WINDOW_FRAMES,
)


def _default_data_directory() -> Path:
    return get_user_local_appdata_dir() / APPLICATION_NAME


@dataclasses.dataclass(frozen=True)
class PathConfig:
    profile_store_directory: Path = dataclasses.field(default_factory=_default_data_directory)
    log_directory: Path = dataclasses.field(default_factory=lambda: _default_data_directory() / "logs")


@dataclasses.dataclass(frozen=True)
class AnalysisConfig:
    # Target and true-peak ceiling are fixed, see constants.py.
    minimum_lufs: float = MINIMUM_LUFS
    max_gain_db: float = MAX_GAIN_DB
    window_frames: int = ANALYSIS_WINDOW_FRAMES
    # Threads biquad state across window boundaries. Off keeps existing profiles comparable.
    carry_filter_state: bool = False


@dataclasses.dataclass(frozen=True)
class DevelopmentConfig:
    debug: bool = False
    verbose: bool = False


@dataclasses.dataclass(frozen=True)
class AdditionalConfiguration:
    num_workers: int = PHYSICAL_CPU_COUNT
    supported_audio_extensions: List[str] = dataclasses.field(
        default_factory=lambda: [".wav", ".flac", ".aiff", ".aif", ".ogg", ".mp3", ".caf"]
    )


@dataclasses.dataclass(frozen=True)
class PlaybackLoudnessConfigurationModel:
    paths: PathConfig = dataclasses.field(default_factory=PathConfig)
    analysis: AnalysisConfig = dataclasses.field(default_factory=AnalysisConfig)
    development: DevelopmentConfig = dataclasses.field(default_factory=DevelopmentConfig)
    additional_config: AdditionalConfiguration = dataclasses.field(default_factory=AdditionalConfiguration)
