"""Decode and encode stages used by the transcode pipeline.

Each stage accepts one unit (a packet for decoding, a frame for encoding)
and returns everything the codec has ready afterwards, which may be
nothing. Passing ``None`` signals end of stream and returns whatever the
codec was still holding. Steady-state draining and end-of-stream draining
therefore go through the same :meth:`CodecStage.feed` call.
"""

from __future__ import annotations

from typing import Any, List, Optional, Type

from screencast_uploader.recording.errors import DecodeError, EncodeError, PipelineError


class CodecStage:
    """One codec context behind a feed-and-drain interface."""

    kind = "codec"
    error_cls: Type[PipelineError] = PipelineError

    def __init__(self, context: Any) -> None:
        self.context = context
        self.units_in = 0
        self.units_out = 0
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def _process(self, unit: Optional[Any]) -> List[Any]:
        raise NotImplementedError

    def feed(self, unit: Optional[Any]) -> List[Any]:
        if self._finished:
            raise self.error_cls(f"{self.kind} stage fed after end of stream")
        if unit is None:
            self._finished = True
        else:
            self.units_in += 1

        try:
            produced = list(self._process(unit))
        except (BlockingIOError, EOFError):
            # "Needs more input" and "fully flushed" end the drain, nothing more.
            produced = []
        except Exception as exc:
            raise self.error_cls(f"{self.kind} failed: {exc}") from exc

        self.units_out += len(produced)
        return produced

    def finish(self) -> List[Any]:
        return self.feed(None)


class DecodeStage(CodecStage):
    kind = "decode"
    error_cls = DecodeError

    def _process(self, unit: Optional[Any]) -> List[Any]:
        return self.context.decode(unit)


class EncodeStage(CodecStage):
    kind = "encode"
    error_cls = EncodeError

    def _process(self, unit: Optional[Any]) -> List[Any]:
        return self.context.encode(unit)


__all__ = ["CodecStage", "DecodeStage", "EncodeStage"]
