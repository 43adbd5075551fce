"""Configuration file loader and validator.

Reads the INI file into the `Config` dataclasses, applies command-line overrides and validates
the values the announcer depends on. Any problem is raised as a ConfigLoaderError subclass.
"""

from __future__ import annotations

import ast
import configparser
from configparser import ConfigParser
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from models.config_models import Config
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable
    from dataclasses import Field as DataclassField
else:
    from dataclasses import Field as DataclassField

__all__: list[str] = [
    "Config",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

ALLOWED_SPEECH_ENGINES: Final[list[str]] = ["gtts", "pyttsx3"]
DEFAULT_SPEECH_ENGINE: Final[str] = "gtts"

RATE_RANGE: Final[tuple[float, float]] = (0.1, 10.0)
POLL_INTERVAL_RANGE: Final[tuple[float, float]] = (0.1, 0.5)
MAX_TIMEOUT_RANGE: Final[tuple[float, float]] = (1.0, 60.0)


class ConfigLoaderError(Exception):
    """An error occurred while processing the configuration file."""


class ConfigFileNotFoundError(ConfigLoaderError):
    """The specified configuration file does not exist."""


class ConfigFormatError(ConfigLoaderError):
    """The configuration file is not formatted correctly."""


class ConfigValueError(ConfigFormatError):
    """The configuration file contains an invalid value."""


class ConfigTypeError(ConfigFormatError):
    """The configuration file contains an invalid type."""


class ConfigLoader:
    """Loads and validates the announcer configuration.

    Args:
        config_filename (str): INI file name to load.
        script_name (str): Executing script name, used in error messaging.
        **args: Command-line overrides. Recognised keys are `engine`, `rate`,
            `force_enable` and `debug`; None values are ignored.

    Raises:
        ConfigFileNotFoundError: If the configuration file does not exist.
        ConfigFormatError: If the file cannot be parsed or contains invalid values/types.
    """

    def __init__(
        self,
        *,
        config_filename: str,
        script_name: str,
        **args,
    ) -> None:
        config_path = Path(config_filename)
        msg: str
        if not config_path.exists():
            msg = (
                f"Configuration file '{config_filename}' not found. "
                f"Please create '{config_filename}' in the same directory as '{script_name}'."
            )
            raise ConfigFileNotFoundError(msg)

        parser: ConfigParser = ConfigParser()

        try:
            parser.read(config_filename, encoding="utf-8")
        except configparser.Error as err:
            msg = f"Failed to parse configuration file '{config_filename}': {err}"
            raise ConfigFormatError(msg) from None

        self.config = Config()
        self.config.GENERAL.SCRIPT_NAME = script_name
        self._convert_settings(parser)
        self._apply_overrides(args)
        self._validate_settings()

    def _convert_settings(self, parser: ConfigParser) -> None:
        formatter = _ConfigFormatter(self.config, parser)
        for section in fields(self.config):
            if not parser.has_section(section.name):
                logger.debug("Section '%s' not present, using defaults", section.name)
                continue
            self._convert_section_field(parser, formatter, section)

    def _convert_section_field(
        self, parser: ConfigParser, formatter: _ConfigFormatter, section: DataclassField[Any]
    ) -> None:
        """Copy every key of one INI section into its dataclass, converting types.

        Raises:
            ConfigFormatError: If a value fails to format correctly.
        """
        for key in fields(getattr(self.config, section.name)):
            if key.name not in parser[section.name]:
                logger.debug("Skipping undefined setting: '%s.%s'", section.name, key.name)
                continue

            formatted_value = formatter.apply_format(section, key)
            setattr(getattr(self.config, section.name), key.name, formatted_value)

    def _apply_overrides(self, args: dict[str, Any]) -> None:
        if args.get("engine") is not None:
            self.config.SPEECH.ENGINE = str(args["engine"])
        if args.get("rate") is not None:
            self.config.SPEECH.RATE = float(args["rate"])
        if args.get("force_enable"):
            self.config.SPEECH.FORCE_ENABLE = True
        if args.get("debug"):
            self.config.GENERAL.DEBUG = True

    def _validate_settings(self) -> None:
        """Check ranges and names of the settings the announcer relies on.

        Raises:
            ConfigValueError: If a numeric value is outside its allowed range.
            ConfigTypeError: If a voice preference list is not a list of strings.
        """
        self._validate_engine()
        self._validate_range("SPEECH", "RATE", RATE_RANGE)
        self._validate_range("DETECTION", "POLL_INTERVAL", POLL_INTERVAL_RANGE)
        self._validate_range("DETECTION", "MAX_TIMEOUT", MAX_TIMEOUT_RANGE)
        self._validate_non_negative("DETECTION", "MAX_POLLS")
        self._validate_non_negative("DETECTION", "SECONDS_PER_CHARACTER")
        self._validate_non_negative("DETECTION", "TIMEOUT_BUFFER")
        self._validate_non_negative("QUEUE", "COOLDOWN")
        self._validate_non_negative("QUEUE", "MAX_RETRIES")
        self._validate_non_negative("QUEUE", "GAME_OVER_DELAY")
        self._validate_non_negative("QUEUE", "GAME_OVER_MAX_WAIT")
        self._validate_name_list("VOICE", "CALLER_VOICES")
        self._validate_name_list("VOICE", "CELEBRATION_VOICES")
        self.config.SPEECH.LANGUAGE = self.config.SPEECH.LANGUAGE.strip().replace("_", "-").lower()

    def _validate_engine(self) -> None:
        """Unknown engine names are warned about and replaced with the default engine."""
        engine: str = self.config.SPEECH.ENGINE.strip().lower()
        if engine not in ALLOWED_SPEECH_ENGINES:
            logger.warning(
                "Unknown value '%s' is set for 'SPEECH.ENGINE'; using '%s'",
                self.config.SPEECH.ENGINE,
                DEFAULT_SPEECH_ENGINE,
            )
            engine = DEFAULT_SPEECH_ENGINE
        self.config.SPEECH.ENGINE = engine

    def _validate_range(self, section_name: str, key_name: str, allowed: tuple[float, float]) -> None:
        value: float = getattr(getattr(self.config, section_name), key_name)
        if not (allowed[0] <= value <= allowed[1]):
            msg: str = f"'{section_name}.{key_name}' must be between {allowed[0]} and {allowed[1]}, got {value}"
            raise ConfigValueError(msg)

    def _validate_non_negative(self, section_name: str, key_name: str) -> None:
        value: float = getattr(getattr(self.config, section_name), key_name)
        if value < 0:
            msg: str = f"'{section_name}.{key_name}' must not be negative, got {value}"
            raise ConfigValueError(msg)

    def _validate_name_list(self, section_name: str, key_name: str) -> None:
        value: Any = getattr(getattr(self.config, section_name), key_name)
        field_name: str = f"{section_name}.{key_name}"
        if isinstance(value, str):
            setattr(getattr(self.config, section_name), key_name, [value])
            return
        if not isinstance(value, list) or not all(isinstance(name, str) for name in value):
            msg: str = f"Unsupported type used for '{field_name}': {type(value)}"
            raise ConfigTypeError(msg)


class _ConfigFormatter:
    """Converts INI string values to typed Python objects (bool, int, float, str, list)."""

    def __init__(self, config: Config, parser: ConfigParser) -> None:
        self.config: Config = config
        self.parser: ConfigParser = parser

    def apply_format(self, section: DataclassField[Any], key: DataclassField[Any]) -> Any:
        """Convert an INI value to the type of the dataclass default.

        Scalars are parsed directly; everything else goes through `ast.literal_eval`, so strings
        and lists are written as Python literals in the INI file.

        Raises:
            ConfigValueError: If a value cannot be coerced to the expected type.
            ConfigFormatError: If literal evaluation fails due to invalid syntax.
            ConfigTypeError: If an unexpected type is encountered during coercion.
        """
        formatters: dict[
            type[bool | int | float], Callable[[DataclassField[Any], DataclassField[Any]], bool | int | float]
        ] = {
            bool: self.parse_as_boolean,
            int: self.parse_as_integer,
            float: self.parse_as_float,
        }

        formatter: Callable[[DataclassField[Any], DataclassField[Any]], bool | int | float] | None = formatters.get(
            type(getattr(getattr(self.config, section.name), key.name))
        )
        if formatter:
            try:
                return formatter(section, key)
            except ValueError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigValueError(msg) from err
            except TypeError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigTypeError(msg) from err

        value_str: str = self.parser[section.name][key.name]
        try:
            return ast.literal_eval(value_str)
        except ValueError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigValueError(msg) from err
        except SyntaxError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigFormatError(msg) from err

    def _unquoted(self, section: DataclassField[Any], key: DataclassField[Any]) -> str:
        value: str = self.parser.get(section.name, key.name)
        for char in ("'", '"'):
            value = value.removeprefix(char).removesuffix(char)
        return value

    def parse_as_float(self, section: DataclassField[Any], key: DataclassField[Any]) -> float:
        return float(self._unquoted(section, key))

    def parse_as_integer(self, section: DataclassField[Any], key: DataclassField[Any]) -> int:
        return int(float(self._unquoted(section, key)))

    def parse_as_boolean(self, section: DataclassField[Any], key: DataclassField[Any]) -> bool:
        return self.parser.getboolean(section.name, key.name)
