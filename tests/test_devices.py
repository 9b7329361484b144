"""
Tests for device listing and selection with a fake sounddevice module.
"""

import json
import sys
import types

import pytest
from unittest.mock import Mock, patch


DEVICES = [
    {"name": "Built-in Output", "max_input_channels": 0, "default_samplerate": 48000.0},
    {"name": "MacBook Pro Microphone", "max_input_channels": 1, "default_samplerate": 48000.0},
    {"name": "HyperX SoloCast", "max_input_channels": 2, "default_samplerate": 44100.0},
]


def make_sd(devices=DEVICES, default_input=1):
    return types.SimpleNamespace(
        query_devices=lambda: devices,
        default=types.SimpleNamespace(device=[default_input, 0]),
    )


@pytest.fixture
def fake_sd():
    with patch.dict(sys.modules, {"sounddevice": make_sd()}):
        yield


class TestListing:
    """Tests for list_audio_devices(), get_default_device() and find_device()."""

    def test_lists_input_devices_only(self, fake_sd):
        from audiotools.devices import list_audio_devices

        devices = list_audio_devices()

        assert [d.name for d in devices] == ["MacBook Pro Microphone", "HyperX SoloCast"]
        assert [d.id for d in devices] == ["1", "2"]
        assert devices[0].is_default is True
        assert devices[1].is_default is False
        assert devices[1].max_input_channels == 2

    def test_query_failure_returns_empty(self):
        from audiotools.devices import list_audio_devices

        broken = types.SimpleNamespace(query_devices=Mock(side_effect=RuntimeError("PortAudio not initialized")))
        with patch.dict(sys.modules, {"sounddevice": broken}):
            assert list_audio_devices() == []

    def test_default_device(self, fake_sd):
        from audiotools.devices import get_default_device

        assert get_default_device().name == "MacBook Pro Microphone"

    def test_default_device_falls_back_to_first(self):
        from audiotools.devices import get_default_device

        with patch.dict(sys.modules, {"sounddevice": make_sd(default_input=-1)}):
            assert get_default_device().name == "MacBook Pro Microphone"

        with patch.dict(sys.modules, {"sounddevice": make_sd(devices=[])}):
            assert get_default_device() is None

    def test_find_device(self, fake_sd):
        from audiotools.devices import find_device

        assert find_device("2").name == "HyperX SoloCast"
        assert find_device("MacBook Pro Microphone").id == "1"
        assert find_device("solocast").id == "2"
        assert find_device("Nonexistent") is None


class TestSelection:
    """Tests for select_device_interactive() and load_preferred_device()."""

    def test_select_saves_preference(self, fake_sd, tmp_path, capsys):
        from audiotools.devices import load_preferred_device, select_device_interactive

        result = select_device_interactive(tmp_path, prompt=lambda _: "2")

        assert result == "Selected device: HyperX SoloCast"
        assert "1. MacBook Pro Microphone (default)" in capsys.readouterr().out
        saved = json.loads((tmp_path / "audio-device.json").read_text())
        assert saved == {"name": "HyperX SoloCast"}
        assert load_preferred_device(tmp_path).id == "2"

    def test_invalid_choice(self, fake_sd, tmp_path):
        from audiotools.devices import select_device_interactive
        from audiotools.exceptions import DeviceSelectionError

        with pytest.raises(DeviceSelectionError, match="Device selection failed"):
            select_device_interactive(tmp_path, prompt=lambda _: "7")

        assert not (tmp_path / "audio-device.json").exists()

    def test_no_devices(self, tmp_path):
        from audiotools.devices import select_device_interactive
        from audiotools.exceptions import DeviceSelectionError

        with patch.dict(sys.modules, {"sounddevice": make_sd(devices=[])}):
            with pytest.raises(DeviceSelectionError, match="No audio input devices found"):
                select_device_interactive(tmp_path, prompt=lambda _: "1")

    def test_no_preference(self, fake_sd, tmp_path):
        from audiotools.devices import load_preferred_device

        assert load_preferred_device(tmp_path) is None

    def test_preferred_device_unplugged(self, fake_sd, tmp_path):
        from audiotools.devices import load_preferred_device

        (tmp_path / "audio-device.json").write_text(json.dumps({"name": "AirPods"}))

        assert load_preferred_device(tmp_path) is None
