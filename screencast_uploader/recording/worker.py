"""Dedicated worker that runs a recording attempt off the caller's thread.

The worker owns its own asyncio event loop. The only state shared with the
caller is the request handed in at construction and the terminal outcome
(or error) read back after completion.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Callable, Optional

from screencast_uploader.core.logging_utils import LoggerLike, ensure_structured_logger
from screencast_uploader.recording.driver import RecordingOutcome, SessionDriver
from screencast_uploader.recording.errors import RecorderError
from screencast_uploader.recording.request import RecordingRequest

CompletionCallback = Callable[[Optional[RecordingOutcome], Optional[BaseException]], None]


class RecordingWorker:
    """Run one :meth:`SessionDriver.execute` call on a background thread."""

    def __init__(
        self,
        driver: SessionDriver,
        request: RecordingRequest,
        *,
        on_complete: Optional[CompletionCallback] = None,
        logger: LoggerLike = None,
    ) -> None:
        self.driver = driver
        self.request = request
        self._on_complete = on_complete
        self._logger = ensure_structured_logger(logger, fallback_name=__name__)
        self._stop_event = threading.Event()
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.outcome: Optional[RecordingOutcome] = None
        self.error: Optional[BaseException] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    @property
    def succeeded(self) -> bool:
        return self._done.is_set() and self.error is None and self.outcome is not None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("recording worker already started")
        self._thread = threading.Thread(
            target=self._run,
            name="recording-worker",
            daemon=True,
        )
        self._thread.start()
        self._logger.debug("Recording worker started (thread %s)", self._thread.ident)

    def stop(self) -> None:
        """Ask the running attempt to finish early; the recording is still finalized."""
        if not self._stop_event.is_set():
            self._logger.info("Stop requested")
        self._stop_event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        try:
            self.outcome = asyncio.run(
                self.driver.execute(self.request, stop_event=self._stop_event)
            )
        except RecorderError as exc:
            self.error = exc
        except Exception as exc:
            self._logger.exception("Recording worker crashed: %s", exc)
            self.error = exc
        finally:
            self._done.set()

        if self._on_complete is not None:
            try:
                self._on_complete(self.outcome, self.error)
            except Exception as exc:
                self._logger.error("Completion callback failed: %s", exc)


__all__ = ["CompletionCallback", "RecordingWorker"]
