"""Utility modules for the Tambola caller.

This package provides logging set-up and file path helpers.
"""

from utils.file_utils import FileUtils
from utils.logger_utils import LoggerUtils

__all__: list[str] = ["FileUtils", "LoggerUtils"]
