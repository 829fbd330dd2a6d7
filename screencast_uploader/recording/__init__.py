"""Screen recording core: capture negotiation, transcoding and streaming upload."""

from .config import RecorderConfig, load_config
from .driver import RecordingOutcome, SessionDriver
from .errors import RecorderError, RecordingError, RecordingInProgressError
from .request import Container, RateControl, RecordingRequest
from .worker import RecordingWorker

__all__ = [
    "Container",
    "RateControl",
    "RecorderConfig",
    "RecorderError",
    "RecordingError",
    "RecordingInProgressError",
    "RecordingOutcome",
    "RecordingRequest",
    "RecordingWorker",
    "SessionDriver",
    "load_config",
]
