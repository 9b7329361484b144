"""
Exception hierarchy for audiotools.

The countdown timer raises none of these; they belong to the recording,
device and transcription helpers that wrap third-party libraries.
"""


class AudioToolsError(Exception):
    """Base class for audiotools errors."""


class ConfigurationError(AudioToolsError):
    """Raised when required configuration (e.g. an API key) is missing."""


class DeviceSelectionError(AudioToolsError):
    """Raised when an input device cannot be listed or selected."""


class RecordingError(AudioToolsError):
    """Raised when audio capture or writing the recording fails."""


class RecordingCancelledError(RecordingError):
    """Raised when the user cancels a recording."""


class ArchiveError(AudioToolsError):
    """Raised when copying audio or writing a transcript to the archive fails."""


class TranscriptionError(AudioToolsError):
    """Raised when the transcription API call fails."""
