"""Tambola caller.

Plays a simulated Tambola game through the announcement controller: numbers are called in
random order, each call waits for its announcement to finish before the next interval starts,
prizes are announced at fixed points and the game ends with a game-over announcement.

Usage:
    python tambola_caller.py [--engine gtts|pyttsx3] [--rate 1.2] [--numbers 20] [--interval 2]
"""

from __future__ import annotations

import argparse
import asyncio
import random
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Final, NoReturn

from config.loader import ALLOWED_SPEECH_ENGINES, ConfigLoader, ConfigLoaderError
from core import VERSION
from core.announcer import AnnouncementController, GameAnnouncer
from core.speech import SpeechEngine
from handlers.number_calls import MAX_NUMBER, MIN_NUMBER
from utils.file_utils import FileUtils
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.announcement_models import EngineState
    from models.config_models import Config

CFG_FILE: Final[str] = "tambola_caller.ini"
DEFAULT_INTERVAL: Final[float] = 1.0

# Winner lines the simulated host publishes after the given count of called numbers.
SCRIPTED_PRIZES: Final[dict[int, str]] = {
    10: "Early Five won by Asha (T12)!",
    25: "Top Line won by Ravi (T4), Meera (T17)!",
    40: "Middle Line won by Kiran (T2), Dev (T8), Sana (T21)!",
    60: "Bottom Line won by Priya (T9)!",
}
FULL_HOUSE_TEXT: Final[str] = "Full House won by Arjun (T15)!"

logger: logging.Logger = LoggerUtils.get_logger(__name__)


def check_python_version() -> None:
    """Check if Python version is 3.13 or later.

    Raises:
        RuntimeError: If Python version is below 3.13.
    """
    if sys.version_info < (3, 13):
        msg = "Python 3.13 or later is required"
        raise RuntimeError(msg)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        print(f"\n{message}\n", file=sys.stderr)
        self.print_help(sys.stderr)
        raise SystemExit(2)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = _ArgumentParser(
        description="Call a simulated Tambola game out loud",
        epilog="Example: python tambola_caller.py --engine pyttsx3 --rate 1.2 --numbers 20",
    )
    parser.add_argument("--engine", dest="engine", choices=ALLOWED_SPEECH_ENGINES, help="Override speech engine")
    parser.add_argument("--rate", dest="rate", type=float, metavar="RATE", help="Override speech rate (1.0 = normal)")
    parser.add_argument(
        "--force-enable", dest="force_enable", action="store_true", help="Never block announcements"
    )
    parser.add_argument("--debug", dest="debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument(
        "--numbers",
        dest="numbers",
        type=int,
        default=MAX_NUMBER,
        metavar="N",
        help=f"How many numbers to call ({MIN_NUMBER}-{MAX_NUMBER}, default {MAX_NUMBER})",
    )
    parser.add_argument(
        "--interval",
        dest="interval",
        type=float,
        default=DEFAULT_INTERVAL,
        metavar="SECONDS",
        help=f"Pause between calls after each announcement finished (default {DEFAULT_INTERVAL})",
    )
    parser.add_argument(
        "--config", dest="config_file", default=CFG_FILE, help=f"Configuration file (default {CFG_FILE})"
    )
    args: argparse.Namespace = parser.parse_args(argv)
    if not (MIN_NUMBER <= args.numbers <= MAX_NUMBER):
        parser.error(f"--numbers must be between {MIN_NUMBER} and {MAX_NUMBER}")
    if args.interval < 0:
        parser.error("--interval must not be negative")
    return args


def load_config(args: argparse.Namespace) -> Config:
    """Load the configuration file and apply command-line overrides.

    Raises:
        ConfigLoaderError: If the configuration file cannot be loaded.
    """
    script_name: str = Path(sys.argv[0]).name
    return ConfigLoader(
        config_filename=str(FileUtils.resolve_path(args.config_file)),
        script_name=script_name,
        engine=args.engine,
        rate=args.rate,
        force_enable=args.force_enable,
        debug=args.debug,
    ).config


def _log_state(old: EngineState, new: EngineState) -> None:
    logger.debug("Announcer state %s -> %s", old.value, new.value)


async def play_game(announcer: GameAnnouncer, numbers: list[int], interval: float) -> None:
    """Call `numbers` in order, pacing each call on its announcement's completion."""
    for count, number in enumerate(numbers, start=1):
        done: asyncio.Event = asyncio.Event()
        print(f"[{count:2d}] {number}")
        if announcer.announce_number(number, on_complete=done.set) is None:
            done.set()
        await done.wait()

        if (winner_line := SCRIPTED_PRIZES.get(count)) is not None:
            print(f"     {winner_line}")
            announcer.announce_prizes(winner_line)

        await asyncio.sleep(interval)

    print(f"     {FULL_HOUSE_TEXT}")
    announcer.announce_prizes(FULL_HOUSE_TEXT)

    finished: asyncio.Event = asyncio.Event()
    if await announcer.announce_game_over(on_complete=finished.set) is None:
        finished.set()
    await finished.wait()
    print("Game over")


async def main(argv: list[str] | None = None) -> int:
    check_python_version()
    args: argparse.Namespace = parse_arguments(argv)
    try:
        config: Config = load_config(args)
    except ConfigLoaderError as err:
        print("\nError: Failed to load configuration file.", file=sys.stderr)
        print(f"Details: {err}", file=sys.stderr)
        return 1

    log_path: Path | None = FileUtils.log_file_path(config.GENERAL.LOG_FILE)
    config.GENERAL.LOG_FILE = str(log_path or "")
    LoggerUtils.from_config(config.GENERAL)
    logger.info("Starting %s ver.%s with engine '%s'", config.GENERAL.SCRIPT_NAME, VERSION, config.SPEECH.ENGINE)

    engine: SpeechEngine = SpeechEngine.create(config.SPEECH)
    controller = AnnouncementController(config, engine)
    controller.add_state_listener(_log_state)
    announcer = GameAnnouncer(controller)

    numbers: list[int] = random.sample(range(MIN_NUMBER, MAX_NUMBER + 1), args.numbers)
    await controller.start()
    try:
        await play_game(announcer, numbers, args.interval)
    except asyncio.CancelledError:
        logger.info("Game interrupted")
        announcer.new_game()
        raise
    finally:
        await controller.close()
    return 0


if __name__ == "__main__":
    exit_code: int = 0
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nGame cancelled by user.", file=sys.stderr)
        exit_code = 130
    except (OSError, RuntimeError, ValueError) as err:
        print(f"\nFatal error: {err}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)
