"""Pynput/pyperclip output sink for X11, Windows, and macOS.

Text reaches the focused window in one of two ways:

- type: pynput types the text as keystrokes
- paste: the text is placed on the clipboard and pasted with Ctrl+V
  (Cmd+V on macOS); the previous clipboard contents are saved with
  read_clipboard() and put back after restore_delay seconds, once the
  focused application has had time to read the pasted text

Short progress indicators ("Recording", "Processing", ...) are always typed
as keystrokes and erased with backspaces before any output is delivered.
"""

import sys
import threading
import time
from typing import Literal, Optional

import pyperclip
from loguru import logger

from whisperkey.errors import OutputError

OutputMethod = Literal["paste", "type"]

CLIPBOARD_RESTORE_DELAY = 1.0


class PynputOutputSink:
    """Delivers text to the focused window or the clipboard."""

    def __init__(
        self,
        method: OutputMethod = "type",
        progress_indicators: bool = True,
        char_delay: float = 0.0,
        keys_released: Optional[threading.Event] = None,
        release_timeout: float = 1.0,
        restore_delay: float = CLIPBOARD_RESTORE_DELAY,
        controller=None,
    ):
        """Initialize the output sink.

        Args:
            method: "paste" or "type"
            progress_indicators: Whether to type progress labels into the
                focused window
            char_delay: Delay in seconds between typed characters
            keys_released: Event set by the hotkey listener once every key of
                the hotkey is up; injection waits for it so held modifiers do
                not combine with the injected keys
            release_timeout: Maximum seconds to wait for keys_released
            restore_delay: Seconds after a paste before the previous
                clipboard contents are put back
            controller: Optional pynput keyboard controller (created lazily)
        """
        self.method = method
        self.progress_indicators = progress_indicators
        self.char_delay = char_delay
        self.keys_released = keys_released
        self.release_timeout = release_timeout
        self.restore_delay = restore_delay
        self._controller = controller
        self._previous_clipboard: Optional[str] = None
        self._pasted_text: Optional[str] = None
        self._restore_timer: Optional[threading.Timer] = None
        self._restore_generation = 0
        self._progress: Optional[str] = None
        self._lock = threading.RLock()

    def _get_controller(self):
        """Lazily initialize the pynput keyboard controller."""
        if self._controller is None:
            from pynput import keyboard

            self._controller = keyboard.Controller()
        return self._controller

    def _wait_for_release(self) -> None:
        if self.keys_released is None:
            return
        if not self.keys_released.wait(timeout=self.release_timeout):
            logger.warning(
                f"Hotkey still held after {self.release_timeout}s, injecting anyway"
            )

    def _type_keys(self, text: str) -> None:
        keyboard = self._get_controller()
        if self.char_delay <= 0:
            keyboard.type(text)
            return
        for i, char in enumerate(text):
            keyboard.type(char)
            # Don't sleep after the last character
            if i < len(text) - 1:
                time.sleep(self.char_delay)

    def _send_backspaces(self, count: int) -> None:
        if count <= 0:
            return
        from pynput.keyboard import Key

        keyboard = self._get_controller()
        for _ in range(count):
            keyboard.tap(Key.backspace)
        logger.debug(f"Sent {count} backspaces")

    def _send_paste_chord(self) -> None:
        from pynput.keyboard import Key

        keyboard = self._get_controller()
        modifier = Key.cmd if sys.platform == "darwin" else Key.ctrl
        with keyboard.pressed(modifier):
            keyboard.tap("v")

    def _erase_progress(self) -> None:
        """Remove the current progress indicator, if any."""
        if self._progress is None:
            return
        label = self._progress
        self._progress = None
        try:
            self._send_backspaces(len(label))
        except Exception as e:
            logger.warning(f"Error deleting '{label}' indicator: {e}")

    def show_progress(self, label: str) -> None:
        """Replace the current progress indicator with label."""
        if not self.progress_indicators:
            return
        with self._lock:
            self._wait_for_release()
            self._erase_progress()
            self._type_keys(label)
            self._progress = label

    def clear_progress(self) -> None:
        with self._lock:
            self._erase_progress()

    def read_clipboard(self) -> str:
        """Return the current clipboard text.

        Raises:
            OutputError: If the clipboard cannot be read
        """
        try:
            return pyperclip.paste() or ""
        except pyperclip.PyperclipException as e:
            raise OutputError(f"Could not read clipboard: {e}") from e

    def copy_to_clipboard(self, text: str) -> None:
        """Put text on the clipboard.

        Raises:
            OutputError: If the clipboard cannot be written
        """
        with self._lock:
            self._erase_progress()
            self._cancel_restore()
            self._previous_clipboard = None
            self._pasted_text = None
            try:
                pyperclip.copy(text)
            except pyperclip.PyperclipException as e:
                raise OutputError(f"Failed to copy to clipboard: {e}") from e
        logger.info(f"Copied {len(text)} characters to clipboard")

    def type_text(self, text: str) -> None:
        """Deliver text to the focused window.

        Returns once the keystrokes (or the paste chord) have been sent. In
        paste mode the previous clipboard contents are put back restore_delay
        seconds later, unless something else has been copied in the meantime.

        Raises:
            OutputError: If keystroke injection or the clipboard fails
        """
        with self._lock:
            self._wait_for_release()
            self._erase_progress()
            try:
                if self.method == "type":
                    self._type_keys(text)
                else:
                    self._paste(text)
            except OutputError:
                raise
            except Exception as e:
                raise OutputError(f"Failed to send text: {e}") from e
        logger.info(f"Sent {len(text)} characters to the active window")

    def _save_previous_clipboard(self) -> None:
        # A pending restore already holds the user's contents
        if self._previous_clipboard is not None:
            return
        try:
            self._previous_clipboard = self.read_clipboard()
        except OutputError as e:
            logger.warning(f"{e}; previous clipboard will not be restored")

    def _paste(self, text: str) -> None:
        self._cancel_restore()
        self._save_previous_clipboard()

        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            self._restore_clipboard()
            raise OutputError(f"Failed to write to clipboard: {e}") from e
        self._pasted_text = text

        try:
            self._send_paste_chord()
        except Exception:
            # Nothing was pasted, so the old contents can go back right away
            self._restore_clipboard()
            raise
        self._schedule_restore()

    def _schedule_restore(self) -> None:
        if self._previous_clipboard is None:
            return
        self._restore_timer = threading.Timer(
            self.restore_delay,
            self._restore_clipboard,
            args=(self._restore_generation,),
        )
        self._restore_timer.daemon = True
        self._restore_timer.start()

    def _cancel_restore(self) -> None:
        self._restore_generation += 1
        if self._restore_timer is not None:
            self._restore_timer.cancel()
            self._restore_timer = None

    def _restore_clipboard(self, generation: Optional[int] = None) -> None:
        """Put the saved clipboard back if it still holds the pasted text."""
        with self._lock:
            # A timer cancelled after it fired must not restore a later paste
            if generation is not None and generation != self._restore_generation:
                return
            self._restore_timer = None
            previous, pasted = self._previous_clipboard, self._pasted_text
            self._previous_clipboard = None
            self._pasted_text = None
            if previous is None:
                return
            try:
                if pyperclip.paste() != pasted:
                    logger.debug("Clipboard changed since paste, not restoring")
                    return
                pyperclip.copy(previous)
            except pyperclip.PyperclipException as e:
                logger.warning(f"Could not restore clipboard: {e}")
                return
        logger.debug("Restored previous clipboard contents")

    def close(self) -> None:
        """Apply any pending clipboard restore immediately."""
        with self._lock:
            pending = self._restore_timer is not None
            self._cancel_restore()
        if pending:
            self._restore_clipboard()
