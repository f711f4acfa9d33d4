"""Session controller: runs one record -> transcribe -> output cycle per trigger.

The first trigger starts recording, the second stops it and processes the
audio. Every path through handle_trigger() leaves the session back in Idle,
whether the cycle completed, was too short, found no speech or failed.

Trigger admission (enabled check, Idle -> Recording, recorder start) and
enable/disable share a short decision gate. The gate is never held while
audio is stopped, transcribed, refined or output, so disabling the hotkey
never waits on a cycle that is already processing.
"""

import threading
from enum import Enum
from typing import Optional

from loguru import logger
from opentelemetry.trace import Status, StatusCode

from whisperkey.commands import CommandParser
from whisperkey.errors import OutputError, RecoverableError
from whisperkey.protocols import (
    IconController,
    NotificationSink,
    OutputSink,
    Recorder,
    TextRefiner,
    Transcriber,
    TriggerSource,
)
from whisperkey.router import ActionRouter
from whisperkey.state import SessionState, SessionStateMachine
from whisperkey.telemetry import traced_span

MINIMUM_DURATION = 0.5
ERROR_ICON_DURATION = 2.0

OUTPUT_ERROR_TITLE = "Accessibility Permission Required"
OUTPUT_ERROR_MESSAGE = (
    "WhisperKey could not type or copy the transcribed text.\n\n"
    "Make sure it is allowed to control the keyboard (on macOS: System "
    "Settings > Privacy & Security > Accessibility) and that a clipboard "
    "tool is available.\n\nDetails: {error}"
)
HOTKEY_ERROR_TITLE = "Hotkey Registration Failed"


class CycleOutcome(Enum):
    """How a single handle_trigger() call ended."""

    DISABLED = "disabled"
    BUSY = "busy"
    LOST_RACE = "lost_race"
    RECORDING_STARTED = "recording_started"
    TOO_SHORT = "too_short"
    NO_SPEECH = "no_speech"
    COMPLETED = "completed"
    FAILED = "failed"
    OUTPUT_FAILED = "output_failed"
    ABORTED = "aborted"


class SessionController:
    """Orchestrates recording cycles and the hotkey enabled flag."""

    def __init__(
        self,
        state: SessionStateMachine,
        recorder: Recorder,
        transcriber: Transcriber,
        output: OutputSink,
        refiner: TextRefiner,
        notifier: NotificationSink,
        trigger_source: Optional[TriggerSource] = None,
        icon_controller: Optional[IconController] = None,
        parser: Optional[CommandParser] = None,
        minimum_duration: float = MINIMUM_DURATION,
    ):
        """
        Args:
            state: Shared session state machine
            recorder: Microphone capture
            transcriber: Speech-to-text
            output: Typing/clipboard sink, also shows progress indicators
            refiner: Text refiner used by "claude ..." commands
            notifier: Shows user-actionable errors
            trigger_source: Hotkey registration toggled by set_enabled()
            icon_controller: Tray icon, flashed on recoverable errors
            parser: Command parser (default keywords if omitted)
            minimum_duration: Recordings shorter than this (seconds) are
                discarded without transcription
        """
        self.state = state
        self.recorder = recorder
        self.transcriber = transcriber
        self.output = output
        self.refiner = refiner
        self.notifier = notifier
        self.trigger_source = trigger_source
        self.icon_controller = icon_controller
        self.parser = parser or CommandParser()
        self.minimum_duration = minimum_duration
        self.router = ActionRouter(output, refiner)
        self._gate = threading.Lock()
        # Serializes enable/disable with hotkey registration
        self._toggle_lock = threading.Lock()

    # -- triggers --------------------------------------------------------

    def handle_trigger(self) -> CycleOutcome:
        """Advance the session by one trigger.

        Idle starts a recording, Recording stops it and processes the audio
        synchronously, Processing ignores the trigger.

        Returns:
            The outcome of this call
        """
        with self._gate:
            if not self.state.is_enabled():
                logger.debug("Trigger ignored: hotkey is disabled")
                return CycleOutcome.DISABLED

            current = self.state.get_state()
            if current is SessionState.PROCESSING:
                logger.debug("Trigger ignored: still processing the previous recording")
                return CycleOutcome.BUSY

            if current is SessionState.IDLE:
                return self._start_recording()

            if not self.state.try_transition(
                SessionState.RECORDING, SessionState.PROCESSING
            ):
                if self.state.get_state() is SessionState.IDLE:
                    logger.info("Recording was cancelled before it could be stopped")
                    return CycleOutcome.ABORTED
                return CycleOutcome.LOST_RACE

        return self._process_recording()

    def _start_recording(self) -> CycleOutcome:
        if not self.state.try_transition(SessionState.IDLE, SessionState.RECORDING):
            return CycleOutcome.LOST_RACE

        try:
            self.recorder.start()
        except Exception as e:
            self.state.set_state(SessionState.IDLE)
            self._report_error(e)
            return CycleOutcome.FAILED

        logger.info("Recording started")
        self._show_progress("Recording")
        return CycleOutcome.RECORDING_STARTED

    def _process_recording(self) -> CycleOutcome:
        error: Optional[Exception] = None
        outcome = CycleOutcome.FAILED
        with traced_span("cycle") as span:
            try:
                outcome = self._run_stages()
            except Exception as e:
                error = e
                if isinstance(e, OutputError):
                    outcome = CycleOutcome.OUTPUT_FAILED
            finally:
                self._clear_progress()
                self.state.set_state(SessionState.IDLE)
            if span is not None:
                span.set_attribute("cycle.outcome", outcome.value)
                if error is not None:
                    span.set_status(Status(StatusCode.ERROR, str(error)))
                    span.record_exception(error)

        if error is not None:
            self._report_error(error)
        return outcome

    def _run_stages(self) -> CycleOutcome:
        audio = self.recorder.stop()
        logger.info(f"Recording stopped ({audio.duration:.2f}s)")

        if audio.duration < self.minimum_duration:
            logger.info(
                f"Recording too short ({audio.duration:.2f}s < {self.minimum_duration}s), ignoring"
            )
            return CycleOutcome.TOO_SHORT

        self._show_progress("Processing")

        with traced_span("stage.transcribe", audio_duration=audio.duration):
            text = self.transcriber.transcribe(audio)

        if not text or not text.strip():
            logger.info("No speech detected")
            return CycleOutcome.NO_SPEECH
        logger.info(f"Transcription: {text}")

        parsed = self.parser.parse(text)
        if not parsed.text:
            logger.info(f"Nothing left to output after command '{parsed.original}'")
            return CycleOutcome.NO_SPEECH

        self.router.route(parsed)
        return CycleOutcome.COMPLETED

    # -- enable / disable ------------------------------------------------

    def is_enabled(self) -> bool:
        return self.state.is_enabled()

    def set_enabled(self, enabled: bool) -> bool:
        """Enable or disable the hotkey.

        Disabling while recording cancels the recording and discards its
        audio. Disabling while processing lets the cycle finish.

        Returns:
            Whether the hotkey ended up in the requested state
        """
        with self._toggle_lock:
            if enabled:
                return self._enable()
            self._disable()
            return True

    def toggle_enabled(self) -> bool:
        """Flip the enabled flag.

        Returns:
            The enabled flag after the toggle
        """
        with self._toggle_lock:
            if self.state.is_enabled():
                self._disable()
                return False
            return self._enable()

    def _disable(self) -> None:
        with self._gate:
            if self.state.try_transition(SessionState.RECORDING, SessionState.IDLE):
                logger.info("Hotkey disabled during recording, discarding audio")
                self._discard_recording()
            self.state.set_enabled(False)

        if self.trigger_source is not None:
            try:
                self.trigger_source.stop_listening()
            except Exception as e:
                logger.warning(f"Error unregistering hotkey: {e}")
        logger.info("Hotkey disabled")

    def _discard_recording(self) -> None:
        try:
            self.recorder.stop()
        except Exception as e:
            logger.warning(f"Error stopping cancelled recording: {e}")
        self._clear_progress()

    def _enable(self) -> bool:
        if self.trigger_source is not None:
            try:
                self.trigger_source.start_listening()
            except Exception as e:
                logger.error(f"Failed to register hotkey: {e}")
                self._notify(HOTKEY_ERROR_TITLE, f"Could not register the hotkey: {e}")
                return False

        self.state.set_enabled(True)
        logger.info("Hotkey enabled")
        return True

    # -- feedback --------------------------------------------------------

    def _report_error(self, error: Exception) -> None:
        if isinstance(error, OutputError):
            logger.error(f"Output failed: {error}")
            self._notify(OUTPUT_ERROR_TITLE, OUTPUT_ERROR_MESSAGE.format(error=error))
        elif isinstance(error, RecoverableError):
            logger.error(f"{type(error).__name__}: {error}")
        else:
            logger.opt(exception=error).error(f"Unexpected error during cycle: {error}")
        self._flash_error_icon()

    def _notify(self, title: str, message: str) -> None:
        try:
            self.notifier.show_error(title, message)
        except Exception as e:
            logger.warning(f"Could not show error notification: {e}")

    def _flash_error_icon(self) -> None:
        if self.icon_controller is None:
            return
        try:
            self.icon_controller.set_icon("error", duration=ERROR_ICON_DURATION)
        except Exception as e:
            logger.warning(f"Could not update tray icon: {e}")

    def _show_progress(self, label: str) -> None:
        try:
            self.output.show_progress(label)
        except Exception as e:
            logger.warning(f"Could not show '{label}' indicator: {e}")

    def _clear_progress(self) -> None:
        try:
            self.output.clear_progress()
        except Exception as e:
            logger.warning(f"Could not clear progress indicator: {e}")
