import signal
import threading
import time

import numpy as np
import pytest
import soundfile as sf

from playback_loudness.components.playback_loudness.features.analysis.profile_analysis_service import \
    ProfileAnalysisService
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.loudness_analyzer import \
    LoudnessAnalyzer
from playback_loudness.components.playback_loudness.library.audio_transformation.loudness.source.pcm_source import \
    AudioDecodeError
from playback_loudness.components.playback_loudness.model.audio_analysis_result import AudioAnalysisResult
from playback_loudness.components.playback_loudness.shared.caching.playback_profile_store import PlaybackProfileStore
from playback_loudness.components.playback_loudness.shared.file_utils import FileUtils


@pytest.fixture
def store(logger, tmp_path):
    with PlaybackProfileStore(logger, tmp_path / "store") as opened:
        yield opened


@pytest.fixture
def service(logger, store) -> ProfileAnalysisService:
    return ProfileAnalysisService(logger, LoudnessAnalyzer(logger), store, num_workers=2)


@pytest.fixture
def audio_dir(tmp_path, make_sine):
    directory = tmp_path / "audio"
    directory.mkdir()
    sf.write(str(directory / "quiet.wav"), make_sine(amplitude=0.05, seconds=2.0), 48000, subtype="FLOAT")
    sf.write(str(directory / "loud.wav"), make_sine(amplitude=0.9, seconds=2.0), 48000, subtype="FLOAT")
    sf.write(str(directory / "silent.wav"), np.zeros(96000), 48000, subtype="FLOAT")
    (directory / "broken.wav").write_bytes(b"definitely not a wave file")
    return directory


def test_analyze_and_store(service, store, audio_dir):
    path = audio_dir / "quiet.wav"

    profile = service.analyze_and_store(path)

    assert profile is not None
    assert profile.id == "quiet.wav"
    assert profile.file_hash == FileUtils().compute_content_hash(path)
    assert 1.5 < profile.gain_db < 2.5
    assert store.get("quiet.wav") == profile


def test_current_profile_is_reused(service, audio_dir):
    first = service.analyze_and_store(audio_dir / "quiet.wav")
    second = service.analyze_and_store(audio_dir / "quiet.wav")

    assert second is first


def test_force_reanalyzes(service, audio_dir):
    first = service.analyze_and_store(audio_dir / "quiet.wav")
    forced = service.analyze_and_store(audio_dir / "quiet.wav", force=True)

    assert forced is not first
    assert forced.analysis_date >= first.analysis_date


def test_changed_file_is_reanalyzed(service, audio_dir, make_sine):
    path = audio_dir / "quiet.wav"
    first = service.analyze_and_store(path)

    sf.write(str(path), make_sine(amplitude=0.02, seconds=2.0), 48000, subtype="FLOAT")
    assert service.assets_needing_analysis([path]) == [path]

    second = service.analyze_and_store(path)
    assert second.file_hash != first.file_hash
    assert second.integrated_lufs < first.integrated_lufs


def test_silent_file_has_no_profile(service, store, audio_dir):
    assert service.analyze_and_store(audio_dir / "silent.wav") is None
    assert store.get("silent.wav") is None


def test_decode_error_propagates(service, audio_dir):
    with pytest.raises(AudioDecodeError):
        service.analyze_and_store(audio_dir / "broken.wav")


def test_batch_isolates_failures(service, store, audio_dir):
    paths = sorted(audio_dir.iterdir())

    report = service.analyze_batch(paths)

    assert sorted(p.id for p in report.analyzed) == ["loud.wav", "quiet.wav"]
    assert list(report.failed) == ["broken.wav"]
    assert report.unmeasurable == ["silent.wav"]
    assert report.skipped == []
    assert len(store) == 2


def test_batch_skips_current_profiles(service, audio_dir):
    paths = [audio_dir / "quiet.wav", audio_dir / "loud.wav"]
    service.analyze_batch(paths)

    report = service.analyze_batch(paths)
    assert report.analyzed == []
    assert sorted(report.skipped) == ["loud.wav", "quiet.wav"]

    forced = service.analyze_batch(paths, force=True)
    assert len(forced.analyzed) == 2


def test_batch_reports_unreadable_path(service, audio_dir):
    report = service.analyze_batch([audio_dir / "gone.wav"])

    assert "gone.wav" in report.failed


class _InterruptingAnalyzer(LoudnessAnalyzer):
    """Interrupts the main thread from inside the second analysis, which then still completes."""
    def __init__(self, logger):
        super().__init__(logger)
        self.calls = []
        self._lock = threading.Lock()

    def analyze_file(self, path):
        with self._lock:
            self.calls.append(path.name)
            call_number = len(self.calls)

        if call_number == 2:
            signal.pthread_kill(threading.main_thread().ident, signal.SIGINT)
            time.sleep(0.3)

        return AudioAnalysisResult(
            lufs=-30.0,
            normalization_factor=1.4,
            peak_level=0.5,
            rms_level=0.1,
            true_peak_dbtp=-6.0,
            needs_limiter=False,
        )


@pytest.mark.skipif(not hasattr(signal, "pthread_kill"), reason="needs pthread_kill")
def test_interrupted_batch_stops_queued_assets_and_keeps_finished_ones(logger, store, tmp_path):
    paths = []
    for i in range(6):
        path = tmp_path / f"track-{i}.wav"
        path.write_bytes(f"content {i}".encode())
        paths.append(path)

    analyzer = _InterruptingAnalyzer(logger)
    service = ProfileAnalysisService(logger, analyzer, store, num_workers=1)

    previous = signal.signal(signal.SIGINT, signal.default_int_handler)
    try:
        with pytest.raises(KeyboardInterrupt):
            service.analyze_batch(paths)
    finally:
        signal.signal(signal.SIGINT, previous)

    assert len(analyzer.calls) == 2
    assert sorted(p.id for p in store.all()) == sorted(analyzer.calls)
