import abc
import threading
from typing import Callable, Optional


class HotkeyListener(abc.ABC):
    """
    Abstract base class for platform-specific hotkey listeners.

    A listener is the trigger source of the application: registering it
    (start_listening) arms the global hotkey, unregistering it
    (stop_listening) disarms it. Subclasses call `_trigger_hotkey_press` when
    the combination goes down and `_trigger_hotkey_release` once every key of
    it is up again.

    `keys_released` is set whenever no key of the hotkey is held, so output
    code can wait for the user's modifiers to come up before injecting
    keystrokes.
    """

    def __init__(
        self,
        on_hotkey_press: Optional[Callable[[str], None]] = None,
        on_hotkey_release: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the listener with optional callbacks.

        Args:
            on_hotkey_press: Callback executed when the hotkey is pressed.
                Receives the hotkey string that was pressed.
            on_hotkey_release: Callback executed when the hotkey is released.
                Receives the hotkey string that was released.
        """
        self.on_hotkey_press = on_hotkey_press
        self.on_hotkey_release = on_hotkey_release
        self.keys_released = threading.Event()
        self.keys_released.set()

    @abc.abstractmethod
    def set_hotkey(self, hotkey: str) -> None:
        """
        Set the hotkey combination to listen for.

        Args:
            hotkey: The hotkey string (e.g. "<ctrl>+<shift>+p").
        """
        raise NotImplementedError

    @abc.abstractmethod
    def start_listening(self) -> None:
        """
        Register the hotkey and start listening for it.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def stop_listening(self) -> None:
        """
        Unregister the hotkey and stop listening.
        """
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def is_listening(self) -> bool:
        raise NotImplementedError

    def _trigger_hotkey_press(self, hotkey: str) -> None:
        """Helper method for subclasses to trigger the press callback."""
        self.keys_released.clear()
        if self.on_hotkey_press:
            self.on_hotkey_press(hotkey)

    def _trigger_hotkey_release(self, hotkey: str) -> None:
        """Helper method for subclasses to trigger the release callback."""
        self.keys_released.set()
        if self.on_hotkey_release:
            self.on_hotkey_release(hotkey)
