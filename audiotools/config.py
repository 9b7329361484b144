"""
Configuration for the recording, device and transcription helpers.

Loads from: environment variables > settings.json > defaults
The countdown timer takes its options directly and does not read this.
"""

from pathlib import Path
import json
import os

from .logger import get_logger


# Defaults
DEFAULT_CONFIG = {
    # Audio
    "sample_rate": 44100,
    "channels": 1,
    "countdown_delay": 3,

    # Paths
    "output_dir": "output",
    "archive_dir": "",

    # Transcription
    "transcription_model": "whisper-large-v3",
}

# Environment variables that override settings
ENV_OVERRIDES = {
    "AUDIOTOOLS_OUTPUT_DIR": "output_dir",
    "AUDIOTOOLS_ARCHIVE_DIR": "archive_dir",
    "AUDIOTOOLS_SAMPLE_RATE": "sample_rate",
}


class Config:
    """
    Single source of truth for helper settings.

    Usage:
        config = Config.load()
        print(config.output_dir)
    """

    def __init__(self):
        # Audio
        self.sample_rate: int = 44100
        self.channels: int = 1
        self.countdown_delay: int = 3

        # Transcription
        self.groq_api_key: str = ""
        self.transcription_model: str = "whisper-large-v3"

        # Paths
        self.data_dir: Path = Path.home() / ".audiotools"
        self.settings_file: Path = self.data_dir / "settings.json"
        self.env_file: Path = self.data_dir / ".env"
        self.preferences_dir: Path = self.data_dir
        self.output_dir: Path = Path("output")
        self.archive_dir: Path = self.data_dir / "archive"

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from all sources."""
        config = cls()
        config._load_settings()
        config._load_env()
        return config

    def _load_env(self) -> None:
        """Load API keys from .env files and overrides from the environment."""
        # .env in the current directory first, then ~/.audiotools/.env
        for env_file in (Path(".env"), self.env_file):
            if env_file.exists():
                self._parse_env_file(env_file)

        # Environment variables override file values
        self.groq_api_key = os.getenv("GROQ_API_KEY", self.groq_api_key)

        for env_key, attr in ENV_OVERRIDES.items():
            value = os.getenv(env_key)
            if value:
                self._apply(attr, value)

    def _parse_env_file(self, env_file: Path) -> None:
        """Parse a .env file and extract API keys."""
        try:
            with open(env_file) as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    if key.strip() == "GROQ_API_KEY":
                        self.groq_api_key = value.strip().strip("'\"")
        except OSError as e:
            get_logger().warning(f"Error loading {env_file}: {e}")

    def _load_settings(self) -> None:
        """Apply ~/.audiotools/settings.json if present."""
        if not self.settings_file.exists():
            return

        try:
            with open(self.settings_file) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            get_logger().warning(f"Error loading {self.settings_file}: {e}")
            return

        for key in DEFAULT_CONFIG:
            if key in data:
                self._apply(key, data[key])

    def _apply(self, key: str, value) -> None:
        """Set *key* from a raw settings value, coerced to the default's type."""
        default = DEFAULT_CONFIG[key]
        if key in ("output_dir", "archive_dir"):
            if value:
                setattr(self, key, Path(value).expanduser())
            return
        try:
            setattr(self, key, type(default)(value))
        except (TypeError, ValueError):
            get_logger().warning(f"Ignoring invalid value for {key}: {value!r}")

    def save_settings(self) -> None:
        """Save current settings to settings.json."""
        data = {
            "sample_rate": self.sample_rate,
            "channels": self.channels,
            "countdown_delay": self.countdown_delay,
            "output_dir": str(self.output_dir),
            "archive_dir": str(self.archive_dir),
            "transcription_model": self.transcription_model,
        }

        self.data_dir.mkdir(parents=True, exist_ok=True)
        with open(self.settings_file, "w") as f:
            json.dump(data, f, indent=2)
