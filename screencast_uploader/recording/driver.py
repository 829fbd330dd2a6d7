"""Session driver: one recording attempt from negotiation to a committed object.

The driver is the only place that tears down. Whatever stage fails, the
capture session is closed, an uncommitted upload is aborted, and the caller
receives a single :class:`RecordingError` naming the stage.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from screencast_uploader.core.logging_utils import LoggerLike, ensure_structured_logger
from screencast_uploader.recording.capture import CaptureNegotiator, CaptureSession
from screencast_uploader.recording.config import RecorderConfig
from screencast_uploader.recording.errors import RecordingError, RecordingInProgressError
from screencast_uploader.recording.request import RecordingRequest
from screencast_uploader.recording.storage import StreamingSink
from screencast_uploader.recording.storage.oci_uploader import OciMultipartUploader
from screencast_uploader.recording.transcode import TranscodePipeline, TranscodeResult

STAGE_NEGOTIATE = "negotiate"
STAGE_SINK = "sink"
STAGE_TRANSCODE = "transcode"
STAGE_FINALIZE = "finalize"


@dataclass(frozen=True, slots=True)
class RecordingOutcome:
    bucket: str
    object_key: str
    bytes_written: int
    transcode: TranscodeResult


def _default_uploader_factory(config: RecorderConfig, request: RecordingRequest, logger) -> Any:
    return OciMultipartUploader.from_settings(
        config.storage,
        request.destination,
        request.object_key,
        logger=logger,
    )


class SessionDriver:
    """Runs negotiate -> open sink -> transcode -> finalize for one request at a time."""

    def __init__(
        self,
        config: RecorderConfig,
        *,
        negotiator_factory: Optional[Callable[[], Any]] = None,
        pipeline_factory: Optional[Callable[[], Any]] = None,
        uploader_factory: Optional[Callable[[RecordingRequest], Any]] = None,
        logger: LoggerLike = None,
    ) -> None:
        self._config = config
        self._logger = ensure_structured_logger(logger, fallback_name=__name__)
        self._negotiator_factory = negotiator_factory or (
            lambda: CaptureNegotiator(config.capture, logger=self._logger.getChild("capture"))
        )
        self._pipeline_factory = pipeline_factory or (
            lambda: TranscodePipeline(config.transcode, logger=self._logger.getChild("transcode"))
        )
        self._uploader_factory = uploader_factory or (
            lambda request: _default_uploader_factory(config, request, self._logger.getChild("storage"))
        )
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    async def execute(
        self,
        request: RecordingRequest,
        *,
        stop_event: Optional[threading.Event] = None,
    ) -> RecordingOutcome:
        if self._active:
            raise RecordingInProgressError("a recording attempt is already running")
        self._active = True
        try:
            return await self._execute(request, stop_event)
        finally:
            self._active = False

    async def _execute(
        self,
        request: RecordingRequest,
        stop_event: Optional[threading.Event],
    ) -> RecordingOutcome:
        self._logger.info("Recording requested: %s", request.describe())
        if request.audio_device:
            self._logger.debug("Audio device %r noted; output carries video only", request.audio_device)

        session: Optional[CaptureSession] = None
        sink: Optional[StreamingSink] = None
        stage = STAGE_NEGOTIATE
        try:
            session = await self._negotiator_factory().negotiate()

            stage = STAGE_SINK
            uploader = await asyncio.to_thread(self._uploader_factory, request)
            sink = StreamingSink(
                uploader,
                part_size=self._config.storage.part_size,
                logger=self._logger.getChild("sink"),
            )

            stage = STAGE_TRANSCODE
            pipeline = self._pipeline_factory()
            result = await asyncio.to_thread(
                pipeline.run,
                session.fd,
                request,
                sink,
                stop_event=stop_event,
            )

            stage = STAGE_FINALIZE
            await asyncio.to_thread(sink.finalize)
        except Exception as exc:
            self._logger.error("Recording failed during %s: %s", stage, exc)
            raise RecordingError(stage, exc) from exc
        finally:
            await self._teardown(session, sink)

        outcome = RecordingOutcome(
            bucket=request.destination,
            object_key=request.object_key,
            bytes_written=sink.bytes_written,
            transcode=result,
        )
        self._logger.info(
            "Recording stored as %s/%s (%d bytes, %d packets)",
            outcome.bucket,
            outcome.object_key,
            outcome.bytes_written,
            result.packets_written,
        )
        return outcome

    async def _teardown(
        self,
        session: Optional[CaptureSession],
        sink: Optional[StreamingSink],
    ) -> None:
        if sink is not None and not sink.is_finalized:
            try:
                await asyncio.to_thread(sink.abort)
            except Exception as exc:
                self._logger.warning("Aborting upload failed: %s", exc)
        if session is not None:
            try:
                await session.aclose()
            except Exception as exc:
                self._logger.warning("Closing capture session failed: %s", exc)
        self._logger.debug("Teardown complete")


__all__ = [
    "RecordingOutcome",
    "STAGE_FINALIZE",
    "STAGE_NEGOTIATE",
    "STAGE_SINK",
    "STAGE_TRANSCODE",
    "SessionDriver",
]
