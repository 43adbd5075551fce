"""Core components of the Tambola caller.

This package contains the announcement controller and the speech engines it drives.
"""

from core.version import VERSION

__all__: list[str] = ["VERSION"]
