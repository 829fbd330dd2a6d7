"""Unit tests for RecordingWorker."""

import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from screencast_uploader.recording.errors import NoStreamAvailableError, RecordingError
from screencast_uploader.recording.worker import RecordingWorker


@pytest.fixture
def driver():
    driver = MagicMock()
    driver.execute = AsyncMock(return_value="outcome")
    return driver


class TestCompletion:

    def test_success_reported(self, driver, recording_request):
        done = []
        worker = RecordingWorker(driver, recording_request, on_complete=lambda outcome, error: done.append((outcome, error)))
        worker.start()
        assert worker.wait(5.0)
        worker.join(5.0)

        assert worker.succeeded
        assert worker.outcome == "outcome"
        assert worker.error is None
        assert done == [("outcome", None)]
        args, kwargs = driver.execute.await_args
        assert args == (recording_request,)
        assert isinstance(kwargs["stop_event"], threading.Event)

    def test_failure_reported(self, driver, recording_request):
        error = RecordingError("negotiate", NoStreamAvailableError("none"))
        driver.execute.side_effect = error
        done = []
        worker = RecordingWorker(driver, recording_request, on_complete=lambda outcome, exc: done.append(exc))
        worker.start()
        worker.wait(5.0)
        worker.join(5.0)

        assert not worker.succeeded
        assert worker.error is error
        assert done == [error]

    def test_unexpected_exception_captured(self, driver, recording_request):
        driver.execute.side_effect = KeyError("bug")
        worker = RecordingWorker(driver, recording_request)
        worker.start()
        worker.wait(5.0)
        assert isinstance(worker.error, KeyError)

    def test_callback_failure_contained(self, driver, recording_request):
        def explode(outcome, error):
            raise RuntimeError("ui gone")

        worker = RecordingWorker(driver, recording_request, on_complete=explode)
        worker.start()
        worker.join(5.0)
        assert worker.succeeded

    def test_runs_off_calling_thread(self, recording_request):
        seen = []

        class ThreadRecordingDriver:
            async def execute(self, request, *, stop_event=None):
                seen.append(threading.current_thread())
                return "ok"

        worker = RecordingWorker(ThreadRecordingDriver(), recording_request)
        worker.start()
        worker.join(5.0)
        assert seen and seen[0] is not threading.current_thread()

    def test_start_twice_rejected(self, driver, recording_request):
        worker = RecordingWorker(driver, recording_request)
        worker.start()
        with pytest.raises(RuntimeError):
            worker.start()
        worker.join(5.0)


class TestStop:

    def test_stop_sets_event_seen_by_driver(self, recording_request):
        class WaitingDriver:
            async def execute(self, request, *, stop_event=None):
                while not stop_event.is_set():
                    await asyncio.sleep(0.01)
                return "stopped"

        worker = RecordingWorker(WaitingDriver(), recording_request)
        worker.start()
        assert not worker.wait(0.05)
        assert worker.running
        worker.stop()
        assert worker.wait(5.0)
        assert worker.stop_requested
        assert worker.outcome == "stopped"
