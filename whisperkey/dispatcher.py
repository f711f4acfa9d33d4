"""Trigger admission and the single worker thread that runs cycles.

Producers (the hotkey listener thread, the tray menu) call submit(), which
never blocks. The admission queue holds at most one trigger; while it is
occupied further triggers are dropped. One worker thread takes triggers off
the queue and runs SessionController.handle_trigger() for each, one at a
time, so cycles never overlap.
"""

import queue
import threading
import time
from typing import Optional

from loguru import logger

from whisperkey.controller import SessionController

POLL_INTERVAL = 0.25


class TriggerDispatcher:
    """Coalesces triggers into a capacity-1 queue drained by one worker."""

    def __init__(self, controller: SessionController):
        self.controller = controller
        self._queue: queue.Queue = queue.Queue(maxsize=1)
        self._stop = threading.Event()
        self._worker: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def submit(self, source: str = "hotkey") -> bool:
        """Offer a trigger to the worker.

        Args:
            source: Where the trigger came from, for logging

        Returns:
            True if the trigger was queued, False if it was dropped because
            the hotkey is disabled, the dispatcher is shutting down, or a
            trigger is already pending
        """
        if self._stop.is_set():
            logger.debug(f"Trigger from {source} dropped: dispatcher is shut down")
            return False

        if not self.controller.is_enabled():
            logger.debug(f"Trigger from {source} dropped: hotkey is disabled")
            return False

        try:
            self._queue.put_nowait((source, time.time()))
        except queue.Full:
            logger.debug(f"Trigger from {source} dropped: previous trigger still pending")
            return False

        logger.debug(f"Trigger from {source} queued")
        return True

    def start(self) -> None:
        """Start the worker thread."""
        if self.is_running:
            logger.debug("Trigger worker already running")
            return

        self._stop.clear()
        self._worker = threading.Thread(
            target=self._worker_loop,
            name="trigger-worker",
            daemon=True,
        )
        self._worker.start()
        logger.info("Trigger worker started")

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            try:
                source, queued_at = self._queue.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue

            try:
                logger.debug(
                    f"Handling trigger from {source} (waited {time.time() - queued_at:.3f}s)"
                )
                outcome = self.controller.handle_trigger()
                logger.debug(f"Trigger from {source} finished: {outcome.value}")
            except Exception as e:
                logger.opt(exception=e).error(f"Unhandled error while handling trigger: {e}")
            finally:
                self._queue.task_done()

        logger.debug("Trigger worker stopped")

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop the worker after the current cycle.

        Args:
            timeout: Seconds to wait for the worker to exit
        """
        self._stop.set()
        worker = self._worker
        if worker is None:
            return

        if worker is not threading.current_thread():
            worker.join(timeout=timeout)
            if worker.is_alive():
                logger.warning(
                    f"Trigger worker did not stop within {timeout}s; abandoning it"
                )
        self._worker = None
        logger.info("Trigger dispatcher shut down")
