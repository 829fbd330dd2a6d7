"""Exception hierarchy for a recording attempt.

Every failure is terminal for the attempt. Stage-local errors are raised by
the negotiator, the transcode pipeline and the streaming sink; the session
driver wraps whichever one stopped the attempt in a single
:class:`RecordingError`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .transcode.pipeline import TranscodeState


class RecorderError(Exception):
    """Base class for all recorder failures."""


class RecordingInProgressError(RecorderError):
    pass


# ---------------------------------------------------------------------------
# Capture service


class PortalError(RecorderError):
    """Raw failure talking to the desktop capture portal."""

    def __init__(self, message: str, *, response_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.response_code = response_code


class NegotiationError(RecorderError):
    pass


class SessionCreateError(NegotiationError):
    pass


class SourceSelectionError(NegotiationError):
    pass


class CaptureStartError(NegotiationError):
    pass


class NoStreamAvailableError(NegotiationError):
    pass


class DescriptorDuplicationError(NegotiationError):
    pass


# ---------------------------------------------------------------------------
# Transcode pipeline


class PipelineError(RecorderError):
    """Pipeline failure tagged with the state it happened in."""

    def __init__(self, message: str, *, state: Optional["TranscodeState"] = None) -> None:
        super().__init__(message)
        self.state = state


class InputOpenError(PipelineError):
    pass


class NoVideoStreamError(PipelineError):
    pass


class DecoderOpenError(PipelineError):
    pass


class OutputOpenError(PipelineError):
    pass


class EncoderUnavailableError(PipelineError):
    pass


class EncoderOpenError(PipelineError):
    pass


class MuxHeaderError(PipelineError):
    pass


class DecodeError(PipelineError):
    pass


class EncodeError(PipelineError):
    pass


class MuxWriteError(PipelineError):
    pass


class MuxTrailerError(PipelineError):
    pass


# ---------------------------------------------------------------------------
# Streaming sink


class SinkError(RecorderError):
    pass


class SinkWriteError(SinkError):
    pass


class SinkFinalizeError(SinkError):
    pass


class SinkClosedError(SinkError):
    pass


# ---------------------------------------------------------------------------
# Aggregate


class RecordingError(RecorderError):
    """Single terminal error for a failed attempt.

    ``stage`` is one of ``negotiate``, ``sink``, ``transcode`` or
    ``finalize``; ``cause`` is the stage-local exception.
    """

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"recording failed during {stage}: {cause}")
        self.stage = stage
        self.cause = cause


__all__ = [
    "CaptureStartError",
    "DecodeError",
    "DecoderOpenError",
    "DescriptorDuplicationError",
    "EncodeError",
    "EncoderOpenError",
    "EncoderUnavailableError",
    "InputOpenError",
    "MuxHeaderError",
    "MuxTrailerError",
    "MuxWriteError",
    "NegotiationError",
    "NoStreamAvailableError",
    "NoVideoStreamError",
    "OutputOpenError",
    "PipelineError",
    "PortalError",
    "RecorderError",
    "RecordingError",
    "RecordingInProgressError",
    "SessionCreateError",
    "SinkClosedError",
    "SinkError",
    "SinkFinalizeError",
    "SinkWriteError",
    "SourceSelectionError",
]
