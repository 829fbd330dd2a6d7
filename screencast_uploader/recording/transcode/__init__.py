"""Capture-to-H.264 transcoding."""

from .backend import CONTAINER_FORMATS, PyAVBackend
from .pipeline import PipelineState, TranscodePipeline, TranscodeResult, TranscodeState
from .rate_control import encoder_options
from .timebase import rescale, rescale_packet

__all__ = [
    "CONTAINER_FORMATS",
    "PipelineState",
    "PyAVBackend",
    "TranscodePipeline",
    "TranscodeResult",
    "TranscodeState",
    "encoder_options",
    "rescale",
    "rescale_packet",
]
