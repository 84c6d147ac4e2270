import json
import logging
import os
import tempfile
import warnings
from datetime import datetime
from pathlib import Path
from threading import Lock
from types import MappingProxyType
from typing import Dict, List, Optional, Iterable, Mapping

import pydantic

from playback_loudness.components.playback_loudness.constants import PROFILE_STORE_FILENAME
from playback_loudness.components.playback_loudness.initialize_logger import TRACE
from playback_loudness.components.playback_loudness.model.playback_profile import PlaybackProfile

_PROFILE_LIST_ADAPTER = pydantic.TypeAdapter(List[PlaybackProfile])


class ProfileStoreCorruptError(Exception):
    """Raised in strict mode when the persisted profile file cannot be parsed."""


class ProfileStoreCorruptionWarning(UserWarning):
    """The persisted profile file could not be parsed and has been moved aside."""


class ProfileStorePersistenceWarning(UserWarning):
    """A change could not be written to disk. It holds for this process only."""


class PlaybackProfileStore:
    """
    Thread-safe, write-through cache of playback profiles backed by one JSON file.

    Writers are serialized by a lock and publish a fresh read-only snapshot once they are done,
    so readers never take the lock and never see a half-applied change.
    """
    def __init__(self, logger: logging.Logger, storage_directory: Path, strict: bool = False):
        self._separator: str = self.__class__.__name__
        self._logger: logging.Logger = logger.getChild(self._separator)
        self._storage_path: Path = Path(storage_directory) / PROFILE_STORE_FILENAME
        self._strict: bool = strict

        self._write_lock = Lock()
        self._profiles: Mapping[str, PlaybackProfile] = MappingProxyType({})
        self._is_open: bool = False

        self._logger.log(TRACE, "Successfully initialized.")

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    # --- Lifecycle ---

    def open(self) -> "PlaybackProfileStore":
        with self._write_lock:
            if self._is_open:
                return self
            self._profiles = MappingProxyType(self._load())
            self._is_open = True
        self._logger.info(f"Loaded {len(self._profiles)} profiles from '{self._storage_path}'")
        return self

    def close(self) -> None:
        with self._write_lock:
            if not self._is_open:
                return
            self._save(self._profiles)
            self._is_open = False
        self._logger.debug(f"Closed profile store '{self._storage_path}'")

    def __enter__(self) -> "PlaybackProfileStore":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # --- Reads ---

    def get(self, asset_id: str) -> Optional[PlaybackProfile]:
        self._ensure_open()
        return self._profiles.get(asset_id)

    def all(self) -> List[PlaybackProfile]:
        self._ensure_open()
        return sorted(self._profiles.values(), key=lambda p: p.id)

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._profiles

    def needs_update(self, asset_id: str, new_hash: Optional[str]) -> bool:
        """
        True when there is no profile yet or the stored hash differs from `new_hash`.
        Without a hash on either side staleness cannot be told and False is returned.
        """
        existing = self.get(asset_id)
        if existing is None:
            return True

        if existing.file_hash is not None and new_hash is not None:
            return existing.file_hash != new_hash

        return False

    # --- Writes ---

    def put(self, profile: PlaybackProfile) -> None:
        self.put_many([profile])

    def put_many(self, profiles: Iterable[PlaybackProfile]) -> None:
        profiles = list(profiles)
        if not profiles:
            return

        self._ensure_open()
        with self._write_lock:
            updated: Dict[str, PlaybackProfile] = dict(self._profiles)
            for profile in profiles:
                updated[profile.id] = profile
            self._publish(updated)

        self._logger.debug(f"Stored {len(profiles)} profile(s): {', '.join(p.id for p in profiles)}")

    def remove(self, asset_id: str) -> bool:
        """Returns whether a profile was removed."""
        self._ensure_open()
        with self._write_lock:
            if asset_id not in self._profiles:
                return False
            updated: Dict[str, PlaybackProfile] = dict(self._profiles)
            del updated[asset_id]
            self._publish(updated)

        self._logger.debug(f"Removed profile: {asset_id}")
        return True

    # --- Private Helper Methods ---

    def _ensure_open(self) -> None:
        if not self._is_open:
            raise RuntimeError(f"Profile store '{self._storage_path}' is not open.")

    def _publish(self, updated: Dict[str, PlaybackProfile]) -> None:
        """Must hold the write lock. Memory stays authoritative even if the disk write fails."""
        self._save(updated)
        self._profiles = MappingProxyType(updated)

    def _load(self) -> Dict[str, PlaybackProfile]:
        if not self._storage_path.exists():
            self._logger.debug(f"No profile file at '{self._storage_path}', starting empty.")
            return {}

        try:
            raw = self._storage_path.read_bytes()
        except OSError as e:
            # Unreadable is not corrupt, the file is left where it is.
            self._logger.error(f"Failed to read profiles from '{self._storage_path}': {e}")
            raise

        try:
            decoded = _PROFILE_LIST_ADAPTER.validate_json(raw)
        except ValueError as e:
            return self._handle_corrupt_file(e)

        return {profile.id: profile for profile in decoded}

    def _handle_corrupt_file(self, error: Exception) -> Dict[str, PlaybackProfile]:
        message = f"Failed to load profiles from '{self._storage_path}': {error}"
        self._logger.error(message)

        if self._strict:
            raise ProfileStoreCorruptError(message) from error

        timestamp = datetime.now().strftime("%Y_%m_%d-%H_%M_%S")
        backup_path = self._storage_path.with_name(f"{self._storage_path.name}.corrupt-{timestamp}")
        try:
            os.replace(self._storage_path, backup_path)
            self._logger.warning(f"Moved unreadable profile file aside to '{backup_path}'")
        except OSError as e:
            self._logger.error(f"Could not move unreadable profile file aside: {e}")

        warnings.warn(f"{message}. Starting with an empty profile store.", ProfileStoreCorruptionWarning, stacklevel=4)
        return {}

    def _save(self, profiles: Mapping[str, PlaybackProfile]) -> bool:
        payload = json.dumps(
            [profiles[key].to_json_dict() for key in sorted(profiles)],
            indent=2,
            sort_keys=True,
        )

        tmp_name: Optional[str] = None
        try:
            self._storage_path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                    'w',
                    encoding="utf-8",
                    dir=self._storage_path.parent,
                    prefix=f".{self._storage_path.name}.",
                    suffix=".tmp",
                    delete=False
            ) as f:
                tmp_name = f.name
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._storage_path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            message = f"Failed to save {len(profiles)} profiles to '{self._storage_path}': {e}"
            self._logger.error(message)
            warnings.warn(message, ProfileStorePersistenceWarning, stacklevel=4)
            return False

        self._logger.log(TRACE, f"Saved {len(profiles)} profiles")
        return True
