"""Platform-aware default locations."""

from __future__ import annotations

import sys
from pathlib import Path


def resolve_platform_path(
    mac_path: str = "",
    win_path: str = "",
    linux_path: str = "",
) -> Path:
    """Select a path for the current platform.

    Falls back to any non-empty path if the current platform has none.
    A leading ``~`` is expanded.

    Raises:
        ValueError: If no path is provided for any platform.
    """
    platform_map = {
        "darwin": mac_path,
        "win32": win_path,
        "linux": linux_path,
    }
    path = platform_map.get(sys.platform, "") or next(
        (p for p in (linux_path, win_path, mac_path) if p), "",
    )
    if not path:
        raise ValueError("No path provided for any platform.")
    return Path(path).expanduser()


def default_output_dir() -> Path:
    """Return the directory that receives capture runs by default."""
    return resolve_platform_path(
        win_path=r"C:\VideoCapture",
        linux_path="~/VideoCapture",
        mac_path="~/VideoCapture",
    )
