"""
Audio input device detection and selection.

Devices come from sounddevice. The interactive selector stores the chosen
device by name, since indices change when hardware is plugged in or out.
"""

import json
from pathlib import Path
from typing import Callable, List, Optional, Union

from .exceptions import DeviceSelectionError
from .logger import get_logger
from .types import AudioDevice


PREFERENCES_FILENAME = "audio-device.json"


def list_audio_devices() -> List[AudioDevice]:
    """List all available audio input devices."""
    import sounddevice as sd

    try:
        devices = sd.query_devices()
    except Exception as e:
        get_logger().warning(f"Could not query audio devices: {e}")
        return []

    if isinstance(devices, dict):
        devices = [devices]

    # Get default input device index
    try:
        default_input_idx = int(sd.default.device[0])
    except (TypeError, ValueError, IndexError):
        default_input_idx = None

    result = []
    for idx, dev in enumerate(devices):
        max_channels = dev.get("max_input_channels", 0)
        if max_channels <= 0:
            continue
        result.append(AudioDevice(
            id=str(idx),
            name=dev.get("name", f"Device {idx}"),
            is_default=(idx == default_input_idx),
            max_input_channels=max_channels,
            default_samplerate=dev.get("default_samplerate", 44100.0),
        ))

    return result


def get_default_device() -> Optional[AudioDevice]:
    """Get the default input device, falling back to the first one."""
    devices = list_audio_devices()
    for device in devices:
        if device.is_default:
            return device
    return devices[0] if devices else None


def find_device(id_or_name: str) -> Optional[AudioDevice]:
    """
    Find a device by id or name.

    Tries the id, then the exact name, then a case-insensitive substring
    of the name.
    """
    devices = list_audio_devices()
    wanted = id_or_name.strip().lower()

    for device in devices:
        if device.id == id_or_name:
            return device

    for device in devices:
        if device.name == id_or_name:
            return device

    for device in devices:
        if wanted and wanted in device.name.lower():
            return device

    return None


def _preferences_file(preferences_dir: Optional[Union[str, Path]]) -> Path:
    if preferences_dir is None:
        from .config import Config
        preferences_dir = Config().preferences_dir
    return Path(preferences_dir).expanduser() / PREFERENCES_FILENAME


def load_preferred_device(preferences_dir: Optional[Union[str, Path]] = None) -> Optional[AudioDevice]:
    """Return the device saved by select_device_interactive(), if still present."""
    prefs_file = _preferences_file(preferences_dir)
    if not prefs_file.exists():
        return None

    try:
        with open(prefs_file) as f:
            name = json.load(f).get("name", "")
    except (OSError, ValueError, AttributeError) as e:
        get_logger().warning(f"Error loading {prefs_file}: {e}")
        return None

    if not name:
        return None

    device = find_device(name)
    if device is None:
        get_logger().warning(f"Preferred device not found: {name}")
    return device


def select_device_interactive(
    preferences_dir: Optional[Union[str, Path]] = None,
    prompt: Callable[[str], str] = input,
) -> str:
    """
    Ask the user to pick an input device and remember the choice.

    Returns:
        A status message naming the selected device

    Raises:
        DeviceSelectionError: no devices, bad choice, or the preference
            could not be saved
    """
    logger = get_logger()

    try:
        devices = list_audio_devices()
        if not devices:
            raise DeviceSelectionError("No audio input devices found")

        print("Available input devices:")
        for i, device in enumerate(devices, start=1):
            marker = " (default)" if device.is_default else ""
            print(f"  {i}. {device.name}{marker}")

        answer = prompt(f"Select device [1-{len(devices)}]: ").strip()
        if not answer.isdigit() or not 1 <= int(answer) <= len(devices):
            raise DeviceSelectionError(f"Invalid choice: {answer!r}")

        device = devices[int(answer) - 1]

        prefs_file = _preferences_file(preferences_dir)
        prefs_file.parent.mkdir(parents=True, exist_ok=True)
        with open(prefs_file, "w") as f:
            json.dump({"name": device.name}, f, indent=2)

    except (DeviceSelectionError, OSError, EOFError) as e:
        logger.error(f"Device selection failed: {e}")
        raise DeviceSelectionError(f"Device selection failed: {e}") from e

    logger.info(f"Selected device: {device.name}")
    return f"Selected device: {device.name}"
