from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Tuple

import numpy as np
import soundfile as sf

from playback_loudness.components.playback_loudness.constants import ANALYSIS_WINDOW_FRAMES


class AudioDecodeError(Exception):
    """Raised when an audio asset cannot be opened or read."""


class PCMSource(ABC):
    """Decoded PCM audio with random-access frame reads."""

    @property
    @abstractmethod
    def channels(self) -> int:
        ...

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        ...

    @property
    @abstractmethod
    def frames(self) -> int:
        ...

    @abstractmethod
    def read(self, start: int, count: int) -> np.ndarray:
        """Returns float64 samples shaped (frames, channels) for [start, start + count)."""
        ...

    def close(self) -> None:
        pass

    def __enter__(self) -> "PCMSource":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class ArrayPCMSource(PCMSource):
    """Wraps samples that are already decoded. Mono input may be one-dimensional."""
    def __init__(self, samples: np.ndarray, sample_rate: int):
        data = np.asarray(samples, dtype=np.float64)
        if data.ndim == 1:
            data = data[:, np.newaxis]
        if data.ndim != 2:
            raise ValueError(f"Expected samples shaped (frames,) or (frames, channels), got {data.shape}.")

        self._samples = data
        self._sample_rate = int(sample_rate)

    @property
    def channels(self) -> int:
        return self._samples.shape[1]

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def frames(self) -> int:
        return self._samples.shape[0]

    def read(self, start: int, count: int) -> np.ndarray:
        return self._samples[start : start + count]


class SoundFilePCMSource(PCMSource):
    """Random-access reader over any format libsndfile can decode."""
    def __init__(self, path: Path):
        self._path = Path(path)
        try:
            self._file = sf.SoundFile(str(self._path), mode="r")
        except (RuntimeError, OSError) as e:
            raise AudioDecodeError(f"Failed to open audio file '{self._path}': {e}") from e

    @property
    def channels(self) -> int:
        return self._file.channels

    @property
    def sample_rate(self) -> int:
        return self._file.samplerate

    @property
    def frames(self) -> int:
        return self._file.frames

    def read(self, start: int, count: int) -> np.ndarray:
        try:
            self._file.seek(start)
            block = self._file.read(frames=count, dtype="float64", always_2d=True)
        except (RuntimeError, OSError) as e:
            raise AudioDecodeError(f"Failed to read frames {start}..{start + count} of '{self._path}': {e}") from e

        expected = min(count, max(self.frames - start, 0))
        if block.shape[0] != expected:
            raise AudioDecodeError(
                f"Short read from '{self._path}' at frame {start}: expected {expected} frames, got {block.shape[0]}."
            )
        return block

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()


def iter_windows(source: PCMSource, window_frames: int = ANALYSIS_WINDOW_FRAMES) -> Iterator[Tuple[int, np.ndarray]]:
    """Yields (offset, block) over the whole source, the last block may be shorter."""
    if window_frames <= 0:
        raise ValueError(f"Window size must be positive, got {window_frames}.")

    position = 0
    total = source.frames
    while position < total:
        frames_to_read = min(window_frames, total - position)
        yield position, source.read(position, frames_to_read)
        position += frames_to_read
