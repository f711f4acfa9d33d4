"""Pytest configuration and fixtures."""

import threading
from io import StringIO
from typing import List, Optional, Tuple

import numpy as np
import pytest
from loguru import logger

from whisperkey.audio.recorder import SAMPLE_RATE, CapturedAudio
from whisperkey.controller import SessionController
from whisperkey.errors import RecorderError
from whisperkey.state import SessionStateMachine


def make_audio(duration: float) -> CapturedAudio:
    """Silent audio of the given length in seconds."""
    return CapturedAudio(
        samples=np.zeros(int(SAMPLE_RATE * duration), dtype=np.float32),
        sample_rate=SAMPLE_RATE,
    )


class MockRecorder:
    """Recorder that returns a fixed amount of audio."""

    def __init__(self, duration: float = 2.0):
        self.duration = duration
        self.start_error: Optional[Exception] = None
        self.stop_error: Optional[Exception] = None
        self.start_calls = 0
        self.stop_calls = 0
        self._active = False

    def start(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        if self._active:
            raise RecorderError("Already recording")
        self._active = True

    def stop(self) -> CapturedAudio:
        self.stop_calls += 1
        if not self._active:
            raise RecorderError("Not recording")
        self._active = False
        if self.stop_error is not None:
            raise self.stop_error
        return make_audio(self.duration)

    def is_active(self) -> bool:
        return self._active


class MockTranscriber:
    """Transcriber that returns a fixed transcript."""

    def __init__(self, text: str = "hello world"):
        self.text = text
        self.error: Optional[Exception] = None
        self.calls: List[CapturedAudio] = []
        self.started = threading.Event()
        self.release: Optional[threading.Event] = None

    def transcribe(self, audio: CapturedAudio) -> str:
        self.calls.append(audio)
        self.started.set()
        if self.release is not None:
            self.release.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.text


class MockRefiner:
    """Refiner that prefixes the text so tests can tell it ran."""

    def __init__(self):
        self.error: Optional[Exception] = None
        self.calls: List[str] = []

    def refine(self, text: str) -> str:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return f"Refined: {text}"


class MockOutputSink:
    """Records everything that would have been typed or copied."""

    def __init__(self):
        self.typed: List[str] = []
        self.copied: List[str] = []
        self.progress: List[str] = []
        self.cleared = 0
        self.clipboard = ""
        self.type_error: Optional[Exception] = None
        self.copy_error: Optional[Exception] = None
        self.progress_error: Optional[Exception] = None

    def type_text(self, text: str) -> None:
        if self.type_error is not None:
            raise self.type_error
        self.typed.append(text)

    def copy_to_clipboard(self, text: str) -> None:
        if self.copy_error is not None:
            raise self.copy_error
        self.copied.append(text)
        self.clipboard = text

    def read_clipboard(self) -> str:
        return self.clipboard

    def show_progress(self, label: str) -> None:
        if self.progress_error is not None:
            raise self.progress_error
        self.progress.append(label)

    def clear_progress(self) -> None:
        self.cleared += 1


class MockNotifier:
    def __init__(self):
        self.errors: List[Tuple[str, str]] = []

    def show_error(self, title: str, message: str) -> None:
        self.errors.append((title, message))


class MockIconController:
    """Mock icon controller for testing."""

    def __init__(self):
        self.icons: List[Tuple[str, Optional[float]]] = []

    def set_icon(self, state: str, duration: Optional[float] = None) -> None:
        self.icons.append((state, duration))


class MockTriggerSource:
    """Hotkey registration that can be made to fail."""

    def __init__(self):
        self.listening = False
        self.start_error: Optional[Exception] = None
        self.start_calls = 0
        self.stop_calls = 0

    def start_listening(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        self.listening = True

    def stop_listening(self) -> None:
        self.stop_calls += 1
        self.listening = False


@pytest.fixture
def captured_logs():
    """Fixture to capture loguru logs."""
    log_stream = StringIO()
    handler_id = logger.add(log_stream, format="{level} {message}", level="DEBUG")
    yield log_stream
    logger.remove(handler_id)


@pytest.fixture
def state():
    return SessionStateMachine()


@pytest.fixture
def recorder():
    return MockRecorder()


@pytest.fixture
def transcriber():
    return MockTranscriber()


@pytest.fixture
def refiner():
    return MockRefiner()


@pytest.fixture
def output():
    return MockOutputSink()


@pytest.fixture
def notifier():
    return MockNotifier()


@pytest.fixture
def icon_controller():
    return MockIconController()


@pytest.fixture
def trigger_source():
    return MockTriggerSource()


@pytest.fixture
def controller(
    state, recorder, transcriber, output, refiner, notifier, trigger_source, icon_controller
):
    return SessionController(
        state=state,
        recorder=recorder,
        transcriber=transcriber,
        output=output,
        refiner=refiner,
        notifier=notifier,
        trigger_source=trigger_source,
        icon_controller=icon_controller,
    )


@pytest.fixture(name="make_audio")
def make_audio_fixture():
    return make_audio
