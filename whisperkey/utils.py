import os
import subprocess
import sys
from pathlib import Path

from loguru import logger


def get_app_data_dir() -> Path:
    """Get the platform-specific application data directory for whisperkey.

    Returns:
        Path to the whisperkey application data directory:
        - Windows: %APPDATA%/whisperkey
        - macOS: ~/Library/Application Support/whisperkey
        - Linux: $XDG_CONFIG_HOME/whisperkey or ~/.config/whisperkey
    """
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:  # Linux and other Unix-like systems
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))

    return base / "whisperkey"


def open_path(path: Path) -> None:
    """Open a file with the platform's default viewer."""
    if sys.platform.startswith("linux"):
        subprocess.Popen(["xdg-open", str(path)])
    elif sys.platform == "darwin":
        subprocess.Popen(["open", str(path)])
    elif os.name == "nt":
        os.startfile(str(path))  # type: ignore[attr-defined]
    else:
        logger.warning(f"Don't know how to open files on {sys.platform}")
