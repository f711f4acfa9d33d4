"""Collaborator interfaces consumed by the session controller.

The controller and router only depend on these protocols; the concrete
sounddevice, faster-whisper, pynput and pystray implementations live in
their own modules and can be swapped for test doubles.
"""

from typing import Optional, Protocol, runtime_checkable

from whisperkey.audio.recorder import CapturedAudio


@runtime_checkable
class Recorder(Protocol):
    """Microphone capture.

    start() and stop() raise RecorderError on failure.
    """

    def start(self) -> None: ...

    def stop(self) -> CapturedAudio: ...

    def is_active(self) -> bool: ...


@runtime_checkable
class Transcriber(Protocol):
    """Speech-to-text. Raises TranscriptionError on failure."""

    def transcribe(self, audio: CapturedAudio) -> str: ...


@runtime_checkable
class TextRefiner(Protocol):
    """Rephrases text. Raises RefinementError on failure."""

    def refine(self, text: str) -> str: ...


@runtime_checkable
class OutputSink(Protocol):
    """Delivers text to the focused window or the clipboard.

    type_text() and copy_to_clipboard() return once the output is complete
    and raise OutputError on failure. Both erase any progress indicator
    before delivering.
    """

    def type_text(self, text: str) -> None: ...

    def copy_to_clipboard(self, text: str) -> None: ...

    def read_clipboard(self) -> str: ...

    def show_progress(self, label: str) -> None: ...

    def clear_progress(self) -> None: ...


@runtime_checkable
class NotificationSink(Protocol):
    """Shows user-facing error messages."""

    def show_error(self, title: str, message: str) -> None: ...


@runtime_checkable
class IconController(Protocol):
    """Controls the system tray icon."""

    def set_icon(self, state: str, duration: Optional[float] = None) -> None: ...


@runtime_checkable
class TriggerSource(Protocol):
    """Produces triggers, e.g. a global hotkey.

    start_listening() registers the trigger and raises if that fails;
    stop_listening() unregisters it.
    """

    def start_listening(self) -> None: ...

    def stop_listening(self) -> None: ...
