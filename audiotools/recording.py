"""
Audio recording, archiving and cleanup.

Recording uses a sounddevice input stream and writes the result with
soundfile. A countdown runs before capture starts, and a recording
countdown is shown while capturing when a maximum duration is set.
"""

import asyncio
import math
import shutil
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import soundfile as sf

from .config import Config
from .timer import create_audio_recording_countdown, start_countdown
from .devices import find_device, load_preferred_device
from .exceptions import ArchiveError, RecordingCancelledError, RecordingError
from .logger import get_logger
from .types import ArchiveResult, AudioDevice, RecordingOptions, RecordingResult


# Constants
DEFAULT_BLOCKSIZE = 1024
SUPPORTED_FORMATS = ("wav", "flac")
CANCEL_KEY = "q"


class _Recorder:
    """Collects blocks from the sounddevice callback thread."""

    def __init__(self):
        self.blocks: List[np.ndarray] = []
        self._lock = threading.Lock()

    def callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        if status:
            get_logger().debug(f"Audio callback status: {status}")
        with self._lock:
            self.blocks.append(indata.copy())

    def audio(self) -> np.ndarray:
        with self._lock:
            if not self.blocks:
                return np.array([], dtype=np.float32)
            return np.concatenate(self.blocks)


def _resolve_device(device: Optional[Union[AudioDevice, str]], config: Config) -> Optional[int]:
    """Map the requested device to a sounddevice index (None = system default)."""
    if isinstance(device, AudioDevice):
        return int(device.id)

    if isinstance(device, str):
        found = find_device(device)
        if found is None:
            raise RecordingError(f"Audio device not found: {device}")
        return int(found.id)

    preferred = load_preferred_device(config.preferences_dir)
    return int(preferred.id) if preferred else None


async def _wait_for_stop(duration: Optional[float]) -> bool:
    """
    Wait for ENTER, or for *duration* seconds to pass.

    Returns:
        True if the user cancelled with "q" + ENTER
    """
    loop = asyncio.get_running_loop()
    line: asyncio.Future = loop.create_future()

    def on_stdin() -> None:
        if not line.done():
            line.set_result(sys.stdin.readline())

    stdin_fd = sys.stdin.fileno()
    loop.add_reader(stdin_fd, on_stdin)

    timer = create_audio_recording_countdown(math.ceil(duration)) if duration else None
    waiters = {line}
    if timer is not None:
        waiters.add(asyncio.ensure_future(timer.start()))

    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        loop.remove_reader(stdin_fd)
        if timer is not None:
            timer.destroy()

    if line.done():
        return line.result().strip().lower() == CANCEL_KEY
    line.cancel()
    return False


async def record_audio(
    options: Optional[RecordingOptions] = None,
    config: Optional[Config] = None,
) -> RecordingResult:
    """
    Record from an input device until ENTER is pressed or the duration ends.

    Args:
        options: Device, duration, output path and format
        config: Defaults for output directory and device preferences

    Returns:
        RecordingResult for the written file

    Raises:
        RecordingCancelledError: the user typed "q" + ENTER
        RecordingError: anything else went wrong
    """
    import sounddevice as sd

    logger = get_logger()
    options = options or RecordingOptions()
    config = config or Config.load()

    if options.format not in SUPPORTED_FORMATS:
        raise RecordingError(f"Unsupported audio format: {options.format}")

    if options.output_path:
        output_path = Path(options.output_path)
    else:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        output_path = Path(config.output_dir) / f"recording-{stamp}.{options.format}"

    try:
        device_index = _resolve_device(options.device, config)

        if options.countdown_delay > 0:
            print(f"Recording starts in {options.countdown_delay} seconds...")
            await start_countdown(
                duration_seconds=options.countdown_delay,
                beep_at_30_seconds=False,
                red_at_30_seconds=False,
                clear_on_complete=True,
            )

        logger.info("Starting audio recording...")
        logger.info(f"Press ENTER to stop recording ({CANCEL_KEY} + ENTER to cancel)")

        recorder = _Recorder()
        start_time = time.time()

        with sd.InputStream(
            device=device_index,
            samplerate=options.sample_rate,
            channels=config.channels,
            dtype="float32",
            blocksize=DEFAULT_BLOCKSIZE,
            callback=recorder.callback,
        ):
            cancelled = await _wait_for_stop(options.duration)

        actual_duration = time.time() - start_time

        if cancelled:
            raise RecordingCancelledError("Recording cancelled by user")

        audio = recorder.audio()
        if audio.size == 0:
            raise RecordingError("Recording failed: no audio captured")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        sf.write(str(output_path), audio, options.sample_rate, format=options.format.upper())
        file_size = output_path.stat().st_size

    except RecordingCancelledError:
        logger.warning("Recording cancelled by user")
        raise
    except RecordingError as e:
        logger.error(str(e))
        raise
    except Exception as e:
        logger.error(f"Recording failed: {e}")
        raise RecordingError(f"Recording failed: {e}") from e

    logger.info(f"Recording complete: {output_path}")
    logger.info(f"Duration: {actual_duration:.2f} seconds")
    logger.info(f"File size: {file_size / 1024:.2f} KB")

    return RecordingResult(
        file_path=str(output_path),
        duration=actual_duration,
        file_size=file_size,
    )


def _timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime("%y%m%d-%H%M%S")


def get_timestamped_archived_audio_filename(extension: str = ".wav", now: Optional[datetime] = None) -> str:
    """Archive name for an audio file, e.g. 250114-093015-review-audio.wav."""
    if not extension.startswith("."):
        extension = f".{extension}"
    return f"{_timestamp(now)}-review-audio{extension}"


def get_timestamped_archived_transcript_filename(now: Optional[datetime] = None) -> str:
    """Archive name for a transcript, e.g. 250114-093015-review-transcript.md."""
    return f"{_timestamp(now)}-review-transcript.md"


def archive_audio(
    audio_path: Union[str, Path],
    transcript_text: str,
    archive_dir: Union[str, Path],
) -> ArchiveResult:
    """
    Copy a recording and its transcript into the archive directory.

    The transcript is written as Markdown next to the audio copy.

    Raises:
        ArchiveError: the directory, copy or transcript could not be written
    """
    logger = get_logger()
    audio_path = Path(audio_path)
    archive_dir = Path(archive_dir)

    try:
        archive_dir.mkdir(parents=True, exist_ok=True)
        now = datetime.now()

        extension = audio_path.suffix or ".wav"
        archived_audio = archive_dir / get_timestamped_archived_audio_filename(extension, now)
        shutil.copy2(audio_path, archived_audio)

        archived_transcript = archive_dir / get_timestamped_archived_transcript_filename(now)
        archived_transcript.write_text(
            "# Audio Transcription Archive\n\n"
            f"**Original Audio File:** {audio_path}\n"
            f"**Archived:** {now.isoformat(timespec='seconds')}\n\n"
            "## Transcription\n\n"
            f"{transcript_text}\n",
            encoding="utf-8",
        )
    except OSError as e:
        logger.error(f"Failed to archive audio: {e}")
        raise ArchiveError(f"Archive failed: {e}") from e

    logger.info(f"Audio archived to: {archived_audio}")
    logger.info(f"Transcript archived to: {archived_transcript}")

    return ArchiveResult(
        audio_path=str(archived_audio),
        transcript_path=str(archived_transcript),
    )


def delete_audio(audio_path: Union[str, Path]) -> None:
    """Delete an audio file. A missing file is not an error."""
    try:
        Path(audio_path).unlink()
        get_logger().debug(f"Deleted audio file: {audio_path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        get_logger().warning(f"Failed to delete audio file: {e}")


def get_audio_duration(audio_path: Union[str, Path]) -> Optional[float]:
    """Duration of an audio file in seconds, or None if it can't be read."""
    try:
        return float(sf.info(str(audio_path)).duration)
    except (RuntimeError, OSError) as e:
        get_logger().debug(f"Could not read duration of {audio_path}: {e}")
        return None
