"""Unit tests for TriggerDispatcher."""

import threading
import time

import pytest

from whisperkey.controller import CycleOutcome
from whisperkey.dispatcher import TriggerDispatcher
from whisperkey.state import SessionState


class BlockingController:
    """Controller whose handle_trigger blocks until released."""

    def __init__(self):
        self.enabled = True
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.entered = threading.Event()
        self.release = threading.Event()
        self._lock = threading.Lock()

    def is_enabled(self) -> bool:
        return self.enabled

    def handle_trigger(self) -> CycleOutcome:
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.entered.set()
        self.release.wait(timeout=5)
        with self._lock:
            self.active -= 1
        return CycleOutcome.COMPLETED


def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def blocking():
    return BlockingController()


@pytest.fixture
def dispatcher(blocking):
    d = TriggerDispatcher(blocking)
    yield d
    blocking.release.set()
    d.shutdown(timeout=2.0)


class TestSubmit:
    """Tests for trigger admission."""

    def test_submit_queues_trigger(self, dispatcher):
        """Test that the first trigger is accepted."""
        assert dispatcher.submit() is True

    def test_second_pending_trigger_is_coalesced(self, dispatcher):
        """Test that a full queue drops further triggers without blocking."""
        assert dispatcher.submit() is True

        start = time.time()
        assert dispatcher.submit() is False
        assert time.time() - start < 0.5

    def test_disabled_submit_is_dropped(self, dispatcher, blocking, captured_logs):
        """Test that submit is a silent no-op while disabled."""
        blocking.enabled = False

        assert dispatcher.submit("menu") is False
        assert "dropped: hotkey is disabled" in captured_logs.getvalue()

    def test_submit_after_shutdown_is_dropped(self, dispatcher):
        """Test that a shut down dispatcher accepts nothing."""
        dispatcher.shutdown(timeout=1.0)

        assert dispatcher.submit() is False


class TestWorker:
    """Tests for the worker thread."""

    def test_worker_thread_name(self, dispatcher):
        """Test that the worker is a single named daemon thread."""
        dispatcher.start()

        names = [t.name for t in threading.enumerate()]
        assert names.count("trigger-worker") == 1
        assert dispatcher.is_running

    def test_start_twice_keeps_one_worker(self, dispatcher):
        """Test that start() is idempotent."""
        dispatcher.start()
        dispatcher.start()

        names = [t.name for t in threading.enumerate()]
        assert names.count("trigger-worker") == 1

    def test_triggers_are_handled_one_at_a_time(self, dispatcher, blocking):
        """Test serialization: the next trigger waits for the current one."""
        dispatcher.start()
        assert dispatcher.submit() is True
        assert blocking.entered.wait(timeout=5)

        # Worker is busy: one trigger fits in the queue, the rest coalesce
        assert dispatcher.submit() is True
        assert dispatcher.submit() is False
        assert blocking.calls == 1

        blocking.release.set()
        assert wait_for(lambda: blocking.calls == 2)
        assert blocking.max_active == 1

    def test_handler_exception_keeps_worker_alive(self, captured_logs):
        """Test that an exception in handle_trigger is logged and the loop continues."""

        class FlakyController:
            def __init__(self):
                self.calls = 0

            def is_enabled(self):
                return True

            def handle_trigger(self):
                self.calls += 1
                if self.calls == 1:
                    raise RuntimeError("flaky")
                return CycleOutcome.COMPLETED

        controller = FlakyController()
        dispatcher = TriggerDispatcher(controller)
        dispatcher.start()
        try:
            dispatcher.submit()
            assert wait_for(lambda: controller.calls == 1)
            assert wait_for(lambda: dispatcher.submit())
            assert wait_for(lambda: controller.calls == 2)
            assert dispatcher.is_running
            assert "Unhandled error while handling trigger: flaky" in captured_logs.getvalue()
        finally:
            dispatcher.shutdown(timeout=2.0)

    def test_shutdown_stops_worker(self, dispatcher):
        """Test cooperative shutdown."""
        dispatcher.start()
        dispatcher.shutdown(timeout=2.0)

        assert not dispatcher.is_running
        assert "trigger-worker" not in [t.name for t in threading.enumerate()]

    def test_shutdown_without_start(self, dispatcher):
        """Test that shutdown before start is harmless."""
        dispatcher.shutdown(timeout=0.1)

        assert not dispatcher.is_running


class TestWithController:
    """Tests with a real SessionController."""

    def test_two_triggers_complete_a_cycle(self, controller, state, output):
        """Test hotkey press, press again -> text typed and back to Idle."""
        dispatcher = TriggerDispatcher(controller)
        dispatcher.start()
        try:
            assert dispatcher.submit()
            assert wait_for(lambda: state.get_state() is SessionState.RECORDING)

            assert wait_for(lambda: dispatcher.submit())
            assert wait_for(lambda: output.typed == ["hello world"])
            assert wait_for(lambda: state.get_state() is SessionState.IDLE)
        finally:
            dispatcher.shutdown(timeout=2.0)

    def test_disabled_controller_drops_triggers(self, controller, state, recorder):
        """Test that a disabled hotkey never reaches the recorder."""
        state.set_enabled(False)
        dispatcher = TriggerDispatcher(controller)
        dispatcher.start()
        try:
            assert dispatcher.submit() is False
            time.sleep(0.1)
            assert recorder.start_calls == 0
        finally:
            dispatcher.shutdown(timeout=2.0)
