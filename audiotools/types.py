"""
Shared type definitions for audiotools.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass
class AudioDevice:
    """An audio input device as reported by sounddevice."""
    id: str                         # sounddevice index, as a string
    name: str
    is_default: bool = False
    max_input_channels: int = 1
    default_samplerate: float = 44100.0


@dataclass
class RecordingOptions:
    """Options for record_audio(). Every field is optional."""
    device: Optional[Union[AudioDevice, str]] = None   # None = preferred or default
    duration: Optional[float] = None                    # seconds, None = until ENTER
    output_path: Optional[str] = None                   # None = timestamped file in output_dir
    countdown_delay: int = 3                            # seconds before capture starts
    sample_rate: int = 44100
    format: str = "wav"                                 # "wav" | "flac"


@dataclass
class RecordingResult:
    """Outcome of a finished recording."""
    file_path: str
    duration: float     # seconds of wall time spent recording
    file_size: int      # bytes


@dataclass
class ArchiveResult:
    """Paths written by archive_audio()."""
    audio_path: str
    transcript_path: str
