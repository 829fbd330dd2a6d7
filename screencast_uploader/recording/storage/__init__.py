"""Streaming upload of container bytes to object storage."""

from .sink import DEFAULT_PART_SIZE, ObjectUploader, SinkPhase, SinkState, StreamingSink

__all__ = ["DEFAULT_PART_SIZE", "ObjectUploader", "SinkPhase", "SinkState", "StreamingSink"]
