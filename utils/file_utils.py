from __future__ import annotations

import os
from pathlib import Path

__all__: list[str] = ["FileUtils"]


class FileUtils:
    """Path helpers for user-supplied file names (configuration and log files)."""

    @staticmethod
    def resolve_path(path: str | Path, *, strict: bool = False) -> Path:
        """Convert a user-input path to an absolute path.

        Expands environment variables and `~`, and resolves relative paths against the current
        working directory.

        Args:
            path (str | Path): The input path (e.g., "~/logs/$GAME/caller.log").
            strict (bool): Raise if the path does not exist. Defaults to False.

        Returns:
            Path: The absolute path.
        """
        user_expanded: Path = Path(os.path.expandvars(str(path))).expanduser()
        if user_expanded.is_absolute():
            return user_expanded.resolve(strict=strict)
        return (Path.cwd() / user_expanded).resolve(strict=strict)

    @staticmethod
    def log_file_path(log_file: str) -> Path | None:
        """Absolute log file path, creating its directory. None when logging to file is disabled."""
        if not log_file.strip():
            return None
        path: Path = FileUtils.resolve_path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path
