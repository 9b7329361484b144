"""
Command line entry point for audiotools.

Run with: python -m audiotools <command>

Commands:
    countdown SECONDS     Show a live countdown
    devices [--select]    List input devices, or pick one interactively
    record                Record audio (optionally transcribe and archive)
    transcribe PATH       Transcribe an audio file
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import Config
from .timer import start_countdown
from .devices import list_audio_devices, select_device_interactive
from .exceptions import AudioToolsError
from .logger import get_logger
from .recording import archive_audio, delete_audio, record_audio
from .transcription import transcribe_audio
from .types import RecordingOptions


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audiotools",
        description="Audio recording tools for voice-driven workflows",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("countdown", help="Show a live countdown")
    p.add_argument("seconds", type=int, help="Duration in seconds")
    p.add_argument("--no-beep", action="store_true", help="Don't beep at 30 seconds")
    p.add_argument("--no-red", action="store_true", help="Don't turn red at 30 seconds")
    p.add_argument("--clear", action="store_true", help="Clear the countdown line when done")

    p = sub.add_parser("devices", help="List audio input devices")
    p.add_argument("--select", action="store_true", help="Choose and save a preferred device")

    p = sub.add_parser("record", help="Record audio from the preferred device")
    p.add_argument("--duration", type=float, default=None, help="Maximum length in seconds")
    p.add_argument("--output", default=None, help="Output file path")
    p.add_argument("--device", default=None, help="Device id or name")
    p.add_argument("--delay", type=int, default=None, help="Countdown before recording starts")
    p.add_argument("--transcribe", action="store_true", help="Transcribe after recording")
    p.add_argument("--archive", nargs="?", const=True, default=None, metavar="DIR",
                   help="Archive audio and transcript (to DIR, or the configured archive_dir), "
                        "then delete the recording")

    p = sub.add_parser("transcribe", help="Transcribe an audio file")
    p.add_argument("path", help="Audio file")

    return parser


def _cmd_countdown(args: argparse.Namespace) -> None:
    asyncio.run(start_countdown(
        duration_seconds=args.seconds,
        beep_at_30_seconds=not args.no_beep,
        red_at_30_seconds=not args.no_red,
        clear_on_complete=args.clear,
    ))
    print("Time's up!")


def _cmd_devices(args: argparse.Namespace) -> None:
    if args.select:
        print(select_device_interactive(Config.load().preferences_dir))
        return

    devices = list_audio_devices()
    if not devices:
        print("No audio input devices found")
        return
    for device in devices:
        marker = " (default)" if device.is_default else ""
        print(f"  [{device.id}] {device.name}{marker}")


def _cmd_record(args: argparse.Namespace) -> None:
    config = Config.load()
    options = RecordingOptions(
        device=args.device,
        duration=args.duration,
        output_path=args.output,
        countdown_delay=config.countdown_delay if args.delay is None else args.delay,
        sample_rate=config.sample_rate,
    )
    result = asyncio.run(record_audio(options, config))
    print(f"Saved {result.file_path} ({result.duration:.1f}s)")

    if not (args.transcribe or args.archive):
        return

    transcript = transcribe_audio(result.file_path, config)
    print(transcript)

    if args.archive:
        archive_dir = config.archive_dir if args.archive is True else args.archive
        archived = archive_audio(result.file_path, transcript, archive_dir)
        print(f"Archived to {archived.audio_path}")
        delete_audio(result.file_path)


def _cmd_transcribe(args: argparse.Namespace) -> None:
    print(transcribe_audio(args.path))


COMMANDS = {
    "countdown": _cmd_countdown,
    "devices": _cmd_devices,
    "record": _cmd_record,
    "transcribe": _cmd_transcribe,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = _build_parser().parse_args(argv)
    logger = get_logger()
    if args.verbose:
        logger.setLevel(logging.DEBUG)

    try:
        COMMANDS[args.command](args)
    except AudioToolsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
