import threading
from typing import Callable, Optional, Set

from loguru import logger
from pynput import keyboard

from .hotkey_listener import HotkeyListener


class PynputHotkeyListener(HotkeyListener):
    """Cross-platform hotkey listener implementation using pynput.

    Detects when the configured key combination is pressed and released.
    Works on Windows, Linux (X11), and macOS.
    """

    def __init__(
        self,
        on_hotkey_press: Optional[Callable[[str], None]] = None,
        on_hotkey_release: Optional[Callable[[str], None]] = None,
    ):
        super().__init__(on_hotkey_press, on_hotkey_release)
        self._hotkey: Optional[str] = None
        self._combo: Set[keyboard.Key | keyboard.KeyCode] = set()
        self._listener: Optional[keyboard.Listener] = None
        self._pressed_keys: Set[keyboard.Key | keyboard.KeyCode] = set()
        self._hotkey_pressed = False
        self._lock = threading.Lock()

    def set_hotkey(self, hotkey: str) -> None:
        try:
            combo = set(keyboard.HotKey.parse(hotkey))
        except ValueError as e:
            logger.error(f"Error parsing hotkey '{hotkey}': {e}")
            raise ValueError(f"Invalid hotkey format: {hotkey}") from e
        with self._lock:
            self._hotkey = hotkey
            self._combo = combo
            self._hotkey_pressed = False
        logger.info(f"Hotkey set: {hotkey} -> {combo}")

    @property
    def is_listening(self) -> bool:
        return self._listener is not None and self._listener.is_alive()

    def _on_key_press(self, key: Optional[keyboard.Key | keyboard.KeyCode]):
        if key is None or not self._combo:
            return
        listener = self._listener
        if listener is None:
            return

        fire = False
        with self._lock:
            canonical_key = listener.canonical(key)
            self._pressed_keys.add(canonical_key)
            if not self._hotkey_pressed and self._combo.issubset(self._pressed_keys):
                logger.debug(f"Hotkey detected: {self._hotkey}")
                self._hotkey_pressed = True
                fire = True

        if fire:
            self._trigger_hotkey_press(self._hotkey)

    def _on_key_release(self, key: Optional[keyboard.Key | keyboard.KeyCode]):
        if key is None or not self._combo:
            return
        listener = self._listener
        if listener is None:
            return

        fire = False
        with self._lock:
            canonical_key = listener.canonical(key)
            self._pressed_keys.discard(canonical_key)
            if self._hotkey_pressed and not any(
                k in self._pressed_keys for k in self._combo
            ):
                self._hotkey_pressed = False
                fire = True

        if fire:
            self._trigger_hotkey_release(self._hotkey)

    def start_listening(self) -> None:
        if self.is_listening:
            logger.info("Listener already running.")
            return

        if not self._combo:
            raise ValueError("No hotkey set before starting listener.")

        self._listener = keyboard.Listener(
            on_press=self._on_key_press,
            on_release=self._on_key_release,
        )
        self._listener.start()
        logger.info(f"Hotkey registered: {self._hotkey}")

    def stop_listening(self) -> None:
        if self.is_listening:
            logger.info("Stopping pynput hotkey listener...")
            self._listener.stop()
            if threading.get_ident() != self._listener.ident:
                self._listener.join()
            logger.info("Hotkey unregistered.")

        self._listener = None
        with self._lock:
            self._pressed_keys.clear()
            self._hotkey_pressed = False
        self.keys_released.set()
