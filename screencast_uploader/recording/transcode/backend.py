"""PyAV access for the transcode pipeline.

Kept behind one small class so the pipeline state machine only speaks to
container/codec objects and this seam.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import av

from screencast_uploader.recording.request import Container

# libavformat AVFMT_GLOBALHEADER / libavcodec AV_CODEC_FLAG_GLOBAL_HEADER
FORMAT_FLAG_GLOBAL_HEADER = 0x0040
CODEC_FLAG_GLOBAL_HEADER = 1 << 22

# The sink cannot seek, so MP4 is written fragmented with an empty moov.
CONTAINER_FORMATS: Dict[Container, Tuple[str, Dict[str, str]]] = {
    Container.MP4: ("mp4", {"movflags": "frag_keyframe+empty_moov"}),
    Container.MKV: ("matroska", {}),
}


class PyAVBackend:
    """Demux, mux and codec lookup via PyAV."""

    def open_input(self, url: str, *, format: Optional[str] = None, options: Optional[Dict[str, str]] = None) -> Any:
        return av.open(url, mode="r", format=format, options=options or {})

    def open_output(self, sink: Any, container: Container) -> Any:
        format_name, options = CONTAINER_FORMATS[container]
        return av.open(sink, mode="w", format=format_name, options=dict(options))

    def best_video_stream(self, input_container: Any) -> Any:
        return input_container.streams.best("video")

    def open_decoder(self, codec_context: Any) -> None:
        if not codec_context.is_open:
            codec_context.open()

    def find_encoder(self, name: str) -> Any:
        return av.codec.Codec(name, "w")

    def requires_global_header(self, output_container: Any) -> bool:
        return bool(int(output_container.format.flags) & FORMAT_FLAG_GLOBAL_HEADER)

    def enable_global_header(self, codec_context: Any) -> None:
        flags = int(codec_context.flags)
        if flags & CODEC_FLAG_GLOBAL_HEADER:
            # PyAV sets it in add_stream for formats that need it.
            return
        codec_context.flags = flags | CODEC_FLAG_GLOBAL_HEADER

    def open_encoder(self, codec_context: Any) -> None:
        codec_context.open()

    def convert_frame(self, frame: Any, pixel_format: str) -> Any:
        if frame.format.name == pixel_format:
            return frame
        return frame.reformat(format=pixel_format)

    def write_header(self, output_container: Any) -> None:
        output_container.start_encoding()

    def write_trailer(self, output_container: Any) -> None:
        # PyAV writes the trailer and flushes the I/O context on close.
        output_container.close()

    def close_container(self, container: Any) -> None:
        container.close()

    def release_codec(self, codec_context: Any) -> None:
        # Not every PyAV release exposes CodecContext.close(); the owning
        # container frees the context in that case.
        close = getattr(codec_context, "close", None)
        if callable(close) and getattr(codec_context, "is_open", False):
            close()


__all__ = [
    "CODEC_FLAG_GLOBAL_HEADER",
    "CONTAINER_FORMATS",
    "FORMAT_FLAG_GLOBAL_HEADER",
    "PyAVBackend",
]
