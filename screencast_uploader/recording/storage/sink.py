"""Push-based byte sink that streams muxer output to object storage."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol

from screencast_uploader.core.logging_utils import LoggerLike, ensure_structured_logger
from screencast_uploader.recording.errors import (
    SinkClosedError,
    SinkError,
    SinkFinalizeError,
    SinkWriteError,
)

DEFAULT_PART_SIZE = 10 * 1024 * 1024


class ObjectUploader(Protocol):
    """Write side of an object-storage upload."""

    def upload_part(self, data: bytes) -> None: ...

    def complete(self, tail: bytes) -> None: ...

    def abort(self) -> None: ...


class SinkPhase(Enum):
    OPEN = "open"
    FINALIZED = "finalized"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass(slots=True)
class SinkState:
    bytes_written: int = 0
    parts_uploaded: int = 0
    phase: SinkPhase = SinkPhase.OPEN
    trailer_written: bool = False


class StreamingSink:
    """Accepts container bytes from the muxer and forwards them in parts.

    The muxer sees a write-only file object (no ``seek``/``tell``), so
    containers are produced in streaming form. Bytes are buffered until a
    full part is available and handed to the uploader in call order.
    ``finalize`` commits the object and is only allowed once the container
    trailer has been written.
    """

    def __init__(
        self,
        uploader: ObjectUploader,
        *,
        part_size: int = DEFAULT_PART_SIZE,
        logger: LoggerLike = None,
    ) -> None:
        self._uploader = uploader
        self._part_size = max(1, int(part_size))
        self._logger = ensure_structured_logger(logger, fallback_name=__name__)
        self._buffer = bytearray()
        self._state = SinkState()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ properties

    @property
    def state(self) -> SinkState:
        with self._lock:
            return replace(self._state)

    @property
    def bytes_written(self) -> int:
        return self._state.bytes_written

    @property
    def is_finalized(self) -> bool:
        return self._state.phase is SinkPhase.FINALIZED

    # ------------------------------------------------------------------ write side

    def write(self, chunk) -> int:
        """Accept one chunk from the muxer; returns the number of bytes taken."""
        with self._lock:
            if self._state.phase is not SinkPhase.OPEN:
                raise SinkClosedError(f"write after sink {self._state.phase.value}")
            if self._state.trailer_written:
                raise SinkClosedError("write after container trailer")

            size = len(chunk)
            if size == 0:
                return 0
            self._buffer += chunk
            self._state.bytes_written += size

            while len(self._buffer) >= self._part_size:
                part = bytes(self._buffer[: self._part_size])
                del self._buffer[: self._part_size]
                self._upload_part(part)
            return size

    def _upload_part(self, part: bytes) -> None:
        try:
            self._uploader.upload_part(part)
        except Exception as exc:
            self._state.phase = SinkPhase.FAILED
            raise SinkWriteError(f"part {self._state.parts_uploaded + 1} upload failed: {exc}") from exc
        self._state.parts_uploaded += 1
        self._logger.debug(
            "Uploaded part %d (%d bytes, %d total)",
            self._state.parts_uploaded,
            len(part),
            self._state.bytes_written,
        )

    # ------------------------------------------------------------------ lifecycle

    def mark_trailer_written(self) -> None:
        with self._lock:
            self._state.trailer_written = True

    def finalize(self) -> None:
        """Commit everything written so far as a durable object."""
        with self._lock:
            if self._state.phase is not SinkPhase.OPEN:
                raise SinkClosedError(f"finalize on sink that is {self._state.phase.value}")
            if not self._state.trailer_written:
                raise SinkFinalizeError("finalize requested before the container trailer was written")

            tail = bytes(self._buffer)
            self._buffer.clear()
            try:
                self._uploader.complete(tail)
            except Exception as exc:
                self._state.phase = SinkPhase.FAILED
                raise SinkFinalizeError(f"commit failed: {exc}") from exc
            self._state.phase = SinkPhase.FINALIZED

        self._logger.info(
            "Upload committed (%d bytes in %d part(s) + tail of %d bytes)",
            self._state.bytes_written,
            self._state.parts_uploaded,
            len(tail),
        )

    def abort(self) -> None:
        """Discard the upload so no object becomes visible. No-op once finalized."""
        with self._lock:
            if self._state.phase in (SinkPhase.FINALIZED, SinkPhase.ABORTED):
                return
            self._buffer.clear()
            self._state.phase = SinkPhase.ABORTED
            try:
                self._uploader.abort()
            except Exception as exc:
                raise SinkError(f"abort failed: {exc}") from exc
        self._logger.info("Upload aborted after %d bytes", self._state.bytes_written)


__all__ = ["DEFAULT_PART_SIZE", "ObjectUploader", "SinkPhase", "SinkState", "StreamingSink"]
