import argparse
import logging
from pathlib import Path
from typing import List

from playback_loudness.components.playback_loudness.features.analysis.profile_analysis_service import \
    ProfileAnalysisService
from playback_loudness.components.playback_loudness.features.reporting.profile_report_exporter import \
    ProfileReportExporter
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.loudness_analyzer import \
    LoudnessAnalyzer
from playback_loudness.components.playback_loudness.library.configuration.model.configuration import \
    PlaybackLoudnessConfigurationModel
from playback_loudness.components.playback_loudness.shared.caching.playback_profile_store import PlaybackProfileStore
from playback_loudness.components.playback_loudness.shared.file_utils import FileUtils


class App:
    def __init__(self, logger: logging.Logger, configuration: PlaybackLoudnessConfigurationModel):
        self._separator: str = self.__class__.__name__
        self._logger: logging.Logger = logger.getChild(self._separator)
        self._configuration: PlaybackLoudnessConfigurationModel = configuration

        self._file_utils: FileUtils = FileUtils()
        self._store: PlaybackProfileStore = PlaybackProfileStore(logger, configuration.paths.profile_store_directory)
        self._analyzer: LoudnessAnalyzer = LoudnessAnalyzer(logger, configuration.analysis)
        self._analysis_service: ProfileAnalysisService = ProfileAnalysisService(
            logger,
            self._analyzer,
            self._store,
            self._file_utils,
            num_workers=configuration.additional_config.num_workers,
        )
        self._exporter: ProfileReportExporter = ProfileReportExporter(logger, self._file_utils)

    def run(self, args: argparse.Namespace) -> int:
        self._store.open()
        try:
            if args.command == "analyze":
                return self._analyze(args.paths, args.force)
            if args.command == "show":
                return self._show(args.asset_id)
            if args.command == "remove":
                return self._remove(args.asset_id)
            if args.command == "export":
                self._exporter.export(self._store.all(), args.csv_path)
                return 0
            raise ValueError(f"Unknown command: {args.command}")
        finally:
            self.on_exit()

    def on_exit(self) -> None:
        self._store.close()

    def _collect_audio_files(self, paths: List[Path]) -> List[Path]:
        files: List[Path] = []
        for path in paths:
            if path.is_dir():
                files.extend(sorted(p for p in path.rglob("*")))
            else:
                files.append(path)
        return self._file_utils.filter_audio_files(files, self._configuration.additional_config.supported_audio_extensions)

    def _analyze(self, paths: List[Path], force: bool) -> int:
        files = self._collect_audio_files(paths)
        if not files:
            self._logger.warning("No supported audio files found.")
            return 1

        report = self._analysis_service.analyze_batch(files, force=force)
        for profile in report.analyzed:
            print(profile.get_printed())
        for asset_id in report.unmeasurable:
            print(f"UNMEASURABLE {asset_id}")
        for asset_id, reason in report.failed.items():
            print(f"FAILED {asset_id}: {reason}")
        return 0 if not report.failed else 2

    def _show(self, asset_id: str) -> int:
        profile = self._store.get(asset_id)
        if profile is None:
            self._logger.warning(f"No profile stored for {asset_id}")
            return 1
        print(profile.model_dump_json(by_alias=True, indent=2))
        return 0

    def _remove(self, asset_id: str) -> int:
        if not self._store.remove(asset_id):
            self._logger.warning(f"No profile stored for {asset_id}")
            return 1
        return 0
