"""
Tests for recording, archiving and cleanup.

sounddevice is replaced with a fake module so no audio hardware is needed;
files are written for real with soundfile.
"""

import asyncio
import os
import sys
import types
from datetime import datetime

import numpy as np
import pytest
import soundfile as sf
from unittest.mock import AsyncMock, patch


class FakeInputStream:
    """Stands in for sounddevice.InputStream; delivers two blocks on enter."""

    instances = []

    def __init__(self, callback=None, **kwargs):
        self.callback = callback
        self.kwargs = kwargs
        FakeInputStream.instances.append(self)

    def __enter__(self):
        block = np.full((1024, 1), 0.1, dtype=np.float32)
        self.callback(block, 1024, None, None)
        self.callback(block, 1024, None, None)
        return self

    def __exit__(self, *exc):
        return False


DEVICES = [
    {"name": "Built-in Output", "max_input_channels": 0, "default_samplerate": 48000.0},
    {"name": "MacBook Pro Microphone", "max_input_channels": 1, "default_samplerate": 48000.0},
    {"name": "HyperX SoloCast", "max_input_channels": 2, "default_samplerate": 44100.0},
]


@pytest.fixture
def fake_sd():
    FakeInputStream.instances = []
    module = types.SimpleNamespace(
        InputStream=FakeInputStream,
        query_devices=lambda: DEVICES,
        default=types.SimpleNamespace(device=[1, 0]),
    )
    with patch.dict(sys.modules, {"sounddevice": module}):
        yield module


@pytest.fixture
def config(tmp_path):
    from audiotools.config import Config

    config = Config()
    config.output_dir = tmp_path / "output"
    config.preferences_dir = tmp_path / "prefs"
    return config


@pytest.fixture
def no_wait():
    """Stop recording as if ENTER was pressed straight away."""
    with patch("audiotools.recording._wait_for_stop", new=AsyncMock(return_value=False)) as mock:
        yield mock


class TestRecordAudio:
    """Tests for record_audio()."""

    def test_records_to_output_dir(self, fake_sd, config, no_wait):
        from audiotools.recording import record_audio
        from audiotools.types import RecordingOptions

        result = asyncio.run(record_audio(RecordingOptions(countdown_delay=0), config))

        assert result.file_path.startswith(str(config.output_dir))
        assert result.file_path.endswith(".wav")
        assert result.duration >= 0
        assert result.file_size == os.path.getsize(result.file_path)

        audio, sample_rate = sf.read(result.file_path)
        assert sample_rate == 44100
        assert len(audio) == 2048

    def test_explicit_output_path_and_flac(self, fake_sd, config, no_wait, tmp_path):
        from audiotools.recording import record_audio
        from audiotools.types import RecordingOptions

        target = tmp_path / "nested" / "take.flac"
        options = RecordingOptions(output_path=str(target), countdown_delay=0, format="flac", sample_rate=16000)
        result = asyncio.run(record_audio(options, config))

        assert result.file_path == str(target)
        assert sf.info(str(target)).format == "FLAC"
        assert FakeInputStream.instances[0].kwargs["samplerate"] == 16000

    def test_duration_passed_to_wait(self, fake_sd, config, no_wait):
        from audiotools.recording import record_audio
        from audiotools.types import RecordingOptions

        asyncio.run(record_audio(RecordingOptions(countdown_delay=0, duration=45), config))

        no_wait.assert_awaited_once_with(45)

    def test_countdown_before_recording(self, fake_sd, config, no_wait):
        from audiotools.recording import record_audio
        from audiotools.types import RecordingOptions

        with patch("audiotools.recording.start_countdown", new=AsyncMock()) as mock_countdown:
            asyncio.run(record_audio(RecordingOptions(countdown_delay=2), config))

        mock_countdown.assert_awaited_once()
        assert mock_countdown.call_args.kwargs["duration_seconds"] == 2
        assert mock_countdown.call_args.kwargs["clear_on_complete"] is True

    def test_cancelled_recording(self, fake_sd, config):
        from audiotools.exceptions import RecordingCancelledError
        from audiotools.recording import record_audio
        from audiotools.types import RecordingOptions

        with patch("audiotools.recording._wait_for_stop", new=AsyncMock(return_value=True)):
            with pytest.raises(RecordingCancelledError, match="Recording cancelled by user"):
                asyncio.run(record_audio(RecordingOptions(countdown_delay=0), config))

        assert not config.output_dir.exists()

    def test_stream_failure_wrapped(self, fake_sd, config, no_wait):
        from audiotools.exceptions import RecordingError
        from audiotools.recording import record_audio
        from audiotools.types import RecordingOptions

        def broken_stream(**kwargs):
            raise OSError("Hardware error")

        fake_sd.InputStream = broken_stream

        with pytest.raises(RecordingError, match="Recording failed: Hardware error"):
            asyncio.run(record_audio(RecordingOptions(countdown_delay=0), config))

    def test_unsupported_format(self, fake_sd, config):
        from audiotools.exceptions import RecordingError
        from audiotools.recording import record_audio
        from audiotools.types import RecordingOptions

        with pytest.raises(RecordingError, match="Unsupported audio format"):
            asyncio.run(record_audio(RecordingOptions(format="ogg"), config))

    def test_named_device(self, fake_sd, config, no_wait):
        from audiotools.recording import record_audio
        from audiotools.types import RecordingOptions

        asyncio.run(record_audio(RecordingOptions(device="solocast", countdown_delay=0), config))

        assert FakeInputStream.instances[0].kwargs["device"] == 2

    def test_unknown_device(self, fake_sd, config, no_wait):
        from audiotools.exceptions import RecordingError
        from audiotools.recording import record_audio
        from audiotools.types import RecordingOptions

        with pytest.raises(RecordingError, match="Audio device not found"):
            asyncio.run(record_audio(RecordingOptions(device="Nonexistent", countdown_delay=0), config))

    def test_preferred_device_used_by_default(self, fake_sd, config, no_wait):
        from audiotools.devices import select_device_interactive
        from audiotools.recording import record_audio
        from audiotools.types import RecordingOptions

        select_device_interactive(config.preferences_dir, prompt=lambda _: "2")
        asyncio.run(record_audio(RecordingOptions(countdown_delay=0), config))

        assert FakeInputStream.instances[0].kwargs["device"] == 2


class TestWaitForStop:
    """Tests for the ENTER / duration wait, using a pipe as stdin."""

    @pytest.fixture
    def stdin_pipe(self, monkeypatch):
        read_fd, write_fd = os.pipe()
        reader = os.fdopen(read_fd, "r")
        monkeypatch.setattr(sys, "stdin", reader)
        yield write_fd
        os.close(write_fd)
        reader.close()

    def test_enter_stops(self, stdin_pipe):
        from audiotools.recording import _wait_for_stop

        os.write(stdin_pipe, b"\n")
        assert asyncio.run(_wait_for_stop(None)) is False

    def test_q_cancels(self, stdin_pipe):
        from audiotools.recording import _wait_for_stop

        os.write(stdin_pipe, b"q\n")
        assert asyncio.run(_wait_for_stop(None)) is True

    def test_duration_elapses(self, stdin_pipe, fast_ticks):
        from audiotools.recording import _wait_for_stop

        assert asyncio.run(_wait_for_stop(0.5)) is False


class TestArchive:
    """Tests for archive_audio() and archive filenames."""

    def test_timestamped_filenames(self):
        from audiotools.recording import (
            get_timestamped_archived_audio_filename,
            get_timestamped_archived_transcript_filename,
        )

        now = datetime(2025, 1, 14, 9, 30, 15)

        assert get_timestamped_archived_audio_filename(now=now) == "250114-093015-review-audio.wav"
        assert get_timestamped_archived_audio_filename("flac", now) == "250114-093015-review-audio.flac"
        assert get_timestamped_archived_transcript_filename(now) == "250114-093015-review-transcript.md"

    def test_archives_audio_and_transcript(self, tmp_path):
        from audiotools.recording import archive_audio

        audio = tmp_path / "recording.wav"
        audio.write_bytes(b"test audio data")
        archive_dir = tmp_path / "archive" / "nested"

        result = archive_audio(audio, "Test transcription", archive_dir)

        assert result.audio_path.startswith(str(archive_dir))
        assert result.transcript_path.startswith(str(archive_dir))
        assert open(result.audio_path, "rb").read() == b"test audio data"
        transcript = open(result.transcript_path, encoding="utf-8").read()
        assert "## Transcription" in transcript
        assert "Test transcription" in transcript
        # The original is kept
        assert audio.exists()

    def test_missing_source(self, tmp_path):
        from audiotools.exceptions import ArchiveError
        from audiotools.recording import archive_audio

        with pytest.raises(ArchiveError, match="Archive failed"):
            archive_audio(tmp_path / "missing.wav", "text", tmp_path / "archive")


class TestFileHelpers:
    """Tests for delete_audio() and get_audio_duration()."""

    def test_delete_audio(self, tmp_path):
        from audiotools.recording import delete_audio

        audio = tmp_path / "test.wav"
        audio.write_bytes(b"test")
        delete_audio(audio)

        assert not audio.exists()

    def test_delete_missing_file(self):
        from audiotools.recording import delete_audio

        delete_audio("/nonexistent/file.wav")

    def test_audio_duration(self, tmp_path):
        from audiotools.recording import get_audio_duration

        path = tmp_path / "one-second.wav"
        sf.write(str(path), np.zeros(16000, dtype=np.float32), 16000)

        assert get_audio_duration(path) == pytest.approx(1.0)

    def test_audio_duration_unreadable(self, tmp_path):
        from audiotools.recording import get_audio_duration

        path = tmp_path / "garbage.wav"
        path.write_bytes(b"not audio")

        assert get_audio_duration(path) is None
        assert get_audio_duration(tmp_path / "missing.wav") is None
