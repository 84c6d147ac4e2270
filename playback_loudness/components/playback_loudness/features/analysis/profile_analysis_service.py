import dataclasses
import logging
import traceback
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional, Dict

from playback_loudness.components.playback_loudness.constants import PHYSICAL_CPU_COUNT
from playback_loudness.components.playback_loudness.initialize_logger import TRACE
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.loudness_analyzer import \
    LoudnessAnalyzer
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.source.pcm_source import \
    AudioDecodeError
from playback_loudness.components.playback_loudness.model.playback_profile import PlaybackProfile
from playback_loudness.components.playback_loudness.shared.caching.playback_profile_store import PlaybackProfileStore
from playback_loudness.components.playback_loudness.shared.file_utils import FileUtils


@dataclasses.dataclass(frozen=True)
class BatchAnalysisReport:
    analyzed: List[PlaybackProfile]
    skipped: List[str]
    failed: Dict[str, str]
    unmeasurable: List[str]


class ProfileAnalysisService:
    """Analyzes assets whose profile is missing or stale and writes the results to the store."""
    def __init__(
            self,
            logger: logging.Logger,
            analyzer: LoudnessAnalyzer,
            store: PlaybackProfileStore,
            file_utils: Optional[FileUtils] = None,
            num_workers: int = PHYSICAL_CPU_COUNT
    ):
        self._separator: str = self.__class__.__name__
        self._logger: logging.Logger = logger.getChild(self._separator)
        self._analyzer: LoudnessAnalyzer = analyzer
        self._store: PlaybackProfileStore = store
        self._file_utils: FileUtils = file_utils or FileUtils()
        self._num_workers: int = max(1, num_workers)

        self._logger.log(TRACE, "Successfully initialized.")

    @staticmethod
    def asset_id_for(path: Path) -> str:
        return path.name

    def assets_needing_analysis(self, paths: List[Path]) -> List[Path]:
        return [p for p in paths if self._store.needs_update(self.asset_id_for(p), self._file_utils.compute_content_hash(p))]

    def analyze_and_store(self, path: Path, force: bool = False) -> Optional[PlaybackProfile]:
        """
        Returns the new profile, the current one when it is up to date, or None when the asset
        has no measurable loudness. Decode failures propagate as AudioDecodeError.
        """
        asset_id = self.asset_id_for(path)
        file_hash = self._file_utils.compute_content_hash(path)

        if not force and not self._store.needs_update(asset_id, file_hash):
            self._logger.debug(f"Profile for {asset_id} is up to date, skipping.")
            return self._store.get(asset_id)

        return self._analyze(path, asset_id, file_hash)

    def _analyze(self, path: Path, asset_id: str, file_hash: Optional[str]) -> Optional[PlaybackProfile]:
        analysis = self._analyzer.analyze_file(path)
        profile = PlaybackProfile.from_analysis(
            analysis,
            filename=asset_id,
            gain_calculator=self._analyzer.gain_calculator,
            file_hash=file_hash,
        )
        if profile is None:
            self._logger.warning(f"No profile for {asset_id}: loudness or true peak could not be measured.")
            return None

        self._store.put(profile)
        self._logger.info(f"Analyzed and stored profile: {profile.get_printed()}")
        return profile

    def analyze_batch(self, paths: List[Path], force: bool = False) -> BatchAnalysisReport:
        """Analyzes independent assets in parallel. One failing asset does not stop the others."""
        analyzed: List[PlaybackProfile] = []
        skipped: List[str] = []
        failed: Dict[str, str] = {}
        unmeasurable: List[str] = []

        pending: Dict[Path, str] = {}
        for path in paths:
            asset_id = self.asset_id_for(path)
            try:
                file_hash = self._file_utils.compute_content_hash(path)
            except OSError as e:
                self._logger.error(f"Failed to read {asset_id}: {e}")
                failed[asset_id] = str(e)
                continue

            if force or self._store.needs_update(asset_id, file_hash):
                pending[path] = file_hash
            else:
                skipped.append(asset_id)

        self._logger.info(f"Starting batch analysis: {len(pending)} to analyze, {len(skipped)} up to date.")

        with ThreadPoolExecutor(max_workers=self._num_workers) as executor:
            try:
                futures = {
                    executor.submit(self._analyze, path, self.asset_id_for(path), file_hash): path
                    for path, file_hash in pending.items()
                }
                for future in as_completed(futures):
                    asset_id = self.asset_id_for(futures[future])
                    try:
                        profile = future.result()
                    except (AudioDecodeError, OSError) as e:
                        self._logger.error(f"Failed to analyze {asset_id}: {e}")
                        failed[asset_id] = str(e)
                        continue
                    except Exception as e:
                        tb = traceback.format_exc()
                        self._logger.error(f"Unexpected error analyzing {asset_id}: {e}\n{tb}")
                        failed[asset_id] = str(e)
                        continue

                    if profile is None:
                        unmeasurable.append(asset_id)
                    else:
                        analyzed.append(profile)
            except KeyboardInterrupt:
                # Queued assets are dropped; the ones already running finish and are stored.
                self._logger.warning(
                    f"Batch analysis interrupted after {len(analyzed)} profiles, waiting for running analyses."
                )
                executor.shutdown(wait=True, cancel_futures=True)
                raise

        self._logger.info(
            f"Batch analysis complete. Analyzed {len(analyzed)}, skipped {len(skipped)}, "
            f"failed {len(failed)}, unmeasurable {len(unmeasurable)}."
        )
        return BatchAnalysisReport(analyzed=analyzed, skipped=skipped, failed=failed, unmeasurable=unmeasurable)
