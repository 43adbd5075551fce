"""
Prior to version 2.14.1, the emoji module defined emoji-related data as variables.
From version 2.14.1 onwards, this data is stored in a separate data file and loaded as needed.
When freezing the caller with PyInstaller, include 'emoji.unicode_codes/*.json' as data files.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

import emoji
from packaging.version import Version

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

__all__: list[str] = ["clean_announcement_text"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

if Version(emoji.__version__) < Version("2.14.1"):
    logger.warning(
        "The version of the emoji module currently in use is %s. Version 2.14.1 or later is required.",
        emoji.__version__,
    )

_WHITESPACE: Final[re.Pattern[str]] = re.compile(r"\s+")


def clean_announcement_text(text: str) -> str:
    """Remove emoji and collapse whitespace so engines do not read out symbol names.

    Args:
        text (str): Raw announcement text, e.g. a host-provided winner line.

    Returns:
        str: Text safe to hand to a speech engine. May be empty.
    """
    without_emoji: str = emoji.replace_emoji(text, replace="")
    return _WHITESPACE.sub(" ", without_emoji).strip()
