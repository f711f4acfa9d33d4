import threading
from enum import Enum
from typing import Callable, List

from loguru import logger


class SessionState(Enum):
    """
    Lifecycle state of the recording session.

    IDLE: Waiting for a trigger
    RECORDING: Microphone is capturing audio until the next trigger
    PROCESSING: Transcribing and routing the captured audio

    Every cycle ends back in IDLE.
    """

    IDLE = "Idle"
    RECORDING = "Recording"
    PROCESSING = "Processing"

    def __str__(self) -> str:
        return self.value


StateListener = Callable[[SessionState, SessionState], None]


class SessionStateMachine:
    """
    Thread-safe session state plus the hotkey enabled flag.

    The session state and the enabled flag are guarded by separate locks so
    that reading one never waits on the other. Forward progress goes through
    try_transition(); set_state() is reserved for resets.
    """

    def __init__(self, enabled: bool = True):
        self._state = SessionState.IDLE
        self._state_lock = threading.Lock()
        self._enabled = enabled
        self._enabled_lock = threading.Lock()
        self._listeners: List[StateListener] = []

    def add_listener(self, listener: StateListener) -> None:
        """Register a callback invoked with (old, new) after every change."""
        self._listeners.append(listener)

    def get_state(self) -> SessionState:
        with self._state_lock:
            return self._state

    def set_state(self, new_state: SessionState) -> None:
        """Unconditionally set the state."""
        with self._state_lock:
            old_state = self._state
            self._state = new_state
        logger.info(f"State transition: {old_state} -> {new_state}")
        self._notify(old_state, new_state)

    def try_transition(self, expected: SessionState, new_state: SessionState) -> bool:
        """Atomically move to new_state if the current state equals expected.

        Any (expected, new_state) pair is accepted; only the equality check
        is enforced.

        Args:
            expected: State the caller believes is current
            new_state: State to move to

        Returns:
            True if the transition happened, False if another caller already
            moved the state (the state is left untouched).
        """
        with self._state_lock:
            current = self._state
            if current != expected:
                rejected = True
            else:
                rejected = False
                self._state = new_state

        if rejected:
            logger.debug(
                f"State transition rejected: expected {expected}, but current is {current}"
            )
            return False

        logger.info(f"State transition: {expected} -> {new_state}")
        self._notify(expected, new_state)
        return True

    def is_enabled(self) -> bool:
        with self._enabled_lock:
            return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        with self._enabled_lock:
            self._enabled = bool(enabled)

    def _notify(self, old_state: SessionState, new_state: SessionState) -> None:
        for listener in list(self._listeners):
            try:
                listener(old_state, new_state)
            except Exception as e:
                logger.opt(exception=True).warning(f"State listener failed: {e}")
