import logging
from enum import Enum
from pathlib import Path
from typing import List

import pandas as pd

from playback_loudness.components.playback_loudness.model.playback_profile import PlaybackProfile
from playback_loudness.components.playback_loudness.shared.file_utils import FileUtils


class ReportHeader(Enum):
    Asset_ID = "Asset ID"
    Filename = "Filename"
    File_Hash = "File Hash"
    Integrated_LUFS = "Integrated LUFS"
    True_Peak = "True Peak (dBTP)"
    Gain = "Gain (dB)"
    Needs_Limiter = "Needs Limiter"
    Analysis_Date = "Analysis Date"
    Analysis_Version = "Analysis Version"


class ProfileReportExporter:
    def __init__(self, logger: logging.Logger, file_utils: FileUtils):
        self._separator: str = self.__class__.__name__
        self._logger: logging.Logger = logger.getChild(self._separator)
        self._file_utils: FileUtils = file_utils

    @staticmethod
    def build_frame(profiles: List[PlaybackProfile]) -> pd.DataFrame:
        return pd.DataFrame({
            ReportHeader.Asset_ID.value:         [p.id for p in profiles],
            ReportHeader.Filename.value:         [p.filename for p in profiles],
            ReportHeader.File_Hash.value:        [p.file_hash for p in profiles],
            ReportHeader.Integrated_LUFS.value:  [p.integrated_lufs for p in profiles],
            ReportHeader.True_Peak.value:        [p.true_peak_dbtp for p in profiles],
            ReportHeader.Gain.value:             [p.gain_db for p in profiles],
            ReportHeader.Needs_Limiter.value:    [p.needs_limiter for p in profiles],
            ReportHeader.Analysis_Date.value:    [p.analysis_date.isoformat() for p in profiles],
            ReportHeader.Analysis_Version.value: [p.analysis_version for p in profiles],
        }, columns=[h.value for h in ReportHeader])

    def export(self, profiles: List[PlaybackProfile], path: Path) -> None:
        self._file_utils.write_csv(self.build_frame(profiles), path)
        self._logger.info(f"Exported {len(profiles)} profiles to '{path}'")
