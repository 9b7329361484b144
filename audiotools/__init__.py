"""
audiotools - Audio recording tools for voice-driven development workflows.

This package provides:
- A live terminal countdown timer with beep/color warnings and
  guaranteed cleanup on exit, signals and uncaught errors
- Input device listing and interactive selection
- Recording to WAV/FLAC, archiving and deletion
- Transcription via Groq Whisper

Command line: python -m audiotools
"""

__version__ = "1.0.0"

from .timer import (
    CountdownOptions,
    CountdownTimer,
    countdown,
    create_audio_recording_countdown,
    start_countdown,
)
from .devices import (
    find_device,
    get_default_device,
    list_audio_devices,
    load_preferred_device,
    select_device_interactive,
)
from .exceptions import (
    ArchiveError,
    AudioToolsError,
    ConfigurationError,
    DeviceSelectionError,
    RecordingCancelledError,
    RecordingError,
    TranscriptionError,
)
from .logger import get_logger, set_logger
from .recording import (
    archive_audio,
    delete_audio,
    get_audio_duration,
    get_timestamped_archived_audio_filename,
    get_timestamped_archived_transcript_filename,
    record_audio,
)
from .transcription import transcribe_audio
from .types import ArchiveResult, AudioDevice, RecordingOptions, RecordingResult
