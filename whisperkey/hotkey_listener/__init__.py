"""Global hotkey listeners.

The listener is the trigger source: each press of the configured combination
produces one trigger for the dispatcher.
"""

import sys
from typing import Callable, Optional

from loguru import logger

from .hotkey_listener import HotkeyListener

__all__ = [
    "HotkeyListener",
    "create_hotkey_listener",
    "default_hotkey",
]


def default_hotkey() -> str:
    """Cmd+Shift+P on macOS, Ctrl+Shift+P elsewhere."""
    if sys.platform == "darwin":
        return "<cmd>+<shift>+p"
    return "<ctrl>+<shift>+p"


def create_hotkey_listener(
    hotkey: str,
    on_hotkey_press: Optional[Callable[[str], None]] = None,
    on_hotkey_release: Optional[Callable[[str], None]] = None,
) -> HotkeyListener:
    """Create the hotkey listener for the current platform.

    Args:
        hotkey: Hotkey string in pynput format (e.g. "<ctrl>+<shift>+p")
        on_hotkey_press: Callback executed when the hotkey is pressed.
        on_hotkey_release: Callback executed when the hotkey is released.

    Returns:
        A configured (not yet started) HotkeyListener.

    Raises:
        RuntimeError: If pynput cannot be initialized on this system.
    """
    try:
        from .pynput_hotkey_listener import PynputHotkeyListener
    except ImportError as e:
        logger.error(f"Failed to initialize pynput listener: {e}")
        raise RuntimeError(
            "Could not initialize hotkey listener. On Linux, an X11 (or "
            "XWayland) session is required."
        ) from e

    logger.info("Using pynput hotkey listener")
    listener = PynputHotkeyListener(
        on_hotkey_press=on_hotkey_press,
        on_hotkey_release=on_hotkey_release,
    )
    listener.set_hotkey(hotkey)
    return listener
