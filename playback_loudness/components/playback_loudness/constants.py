import os
import platform
from pathlib import Path

import psutil

ROOT: Path = Path(os.path.realpath(__file__)).parent.parent.parent.parent

CONFIGURATION_PATH: Path = ROOT / "playback_loudness_configuration.json"
PHYSICAL_CPU_COUNT: int = psutil.cpu_count(logical=False) or 1

APPLICATION_NAME: str = "Playback Loudness"
PROFILE_STORE_FILENAME: str = "playbackProfiles.json"
ANALYSIS_VERSION: str = "1.0"

# ======================================================================================================================
# Loudness normalization. Stored profiles depend on these, leave alone.

TARGET_LUFS: float = -27.0
MINIMUM_LUFS: float = -50.0
MAX_GAIN_DB: float = 18.0
TRUE_PEAK_CEILING_DBTP: float = -1.0

ANALYSIS_WINDOW_FRAMES: int = 48000
ABSOLUTE_GATE_LUFS: float = -70.0
RELATIVE_GATE_OFFSET_LU: float = -10.0
UNGATED_FALLBACK_FLOOR_LUFS: float = -100.0
LOUDNESS_OFFSET: float = -0.691

# Peak-based fallback when no loudness could be measured.
PEAK_TARGET_LEVEL: float = 0.8
PEAK_MAX_FACTOR: float = 3.0

# ======================================================================================================================


def get_user_local_appdata_dir() -> Path:
    system = platform.system()

    if system == "Windows":
        return Path(Path.home()).joinpath("AppData", "Local")
    elif system == "Darwin":
        return Path(Path.home()).joinpath("Library", "Application Support")
    elif system == "Linux":
        return Path(Path.home()).joinpath(".local", "share")

    raise ValueError("Unsupported operating system")


