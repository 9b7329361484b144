"""
Audio transcription through Groq's Whisper API.
"""

import time
from pathlib import Path
from typing import Optional, Union

from .config import Config
from .exceptions import ConfigurationError, TranscriptionError
from .logger import get_logger


def _create_client(api_key: str):
    """Create a Groq client."""
    from groq import Groq

    return Groq(api_key=api_key)


def transcribe_audio(audio_path: Union[str, Path], config: Optional[Config] = None) -> str:
    """
    Transcribe an audio file to text.

    Args:
        audio_path: Path to a WAV/FLAC/MP3 file
        config: Supplies the API key and model (defaults to Config.load())

    Returns:
        The transcript text

    Raises:
        ConfigurationError: GROQ_API_KEY is not set
        TranscriptionError: the file could not be read or the API call failed
    """
    logger = get_logger()
    config = config or Config.load()

    if not config.groq_api_key:
        raise ConfigurationError("GROQ_API_KEY is not set")

    audio_path = Path(audio_path)
    start = time.time()

    try:
        logger.info("Transcribing audio...")
        client = _create_client(config.groq_api_key)
        with open(audio_path, "rb") as audio_file:
            response = client.audio.transcriptions.create(
                file=(audio_path.name, audio_file.read()),
                model=config.transcription_model,
                temperature=0.0,
            )
        transcript = response.text
    except Exception as e:
        logger.error(f"Transcription failed: {e}")
        raise TranscriptionError(f"Transcription failed: {e}") from e

    latency_ms = int((time.time() - start) * 1000)
    logger.info(f"Transcription complete ({latency_ms} ms)")
    return transcript
