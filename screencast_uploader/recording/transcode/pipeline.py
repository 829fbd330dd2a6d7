"""Capture stream transcoder: demux, decode, re-encode to H.264, mux to the sink.

The pipeline is a blocking, single-threaded pull loop driven through an
explicit state machine::

    OPENING -> STREAM_SELECTED -> ENCODER_CONFIGURED -> HEADER_WRITTEN
            -> STREAMING -> DRAINING -> TRAILER_WRITTEN -> CLOSED

Any error moves it to FAILED. Every context acquired along the way is
registered on an exit stack as soon as it is acquired and released in
reverse order on every exit path.
"""

from __future__ import annotations

import contextlib
import threading
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import Any, Callable, Optional

from screencast_uploader.core.logging_utils import LoggerLike, ensure_structured_logger
from screencast_uploader.recording.config import TranscodeSettings
from screencast_uploader.recording.errors import (
    DecodeError,
    DecoderOpenError,
    EncodeError,
    EncoderOpenError,
    EncoderUnavailableError,
    InputOpenError,
    MuxHeaderError,
    MuxTrailerError,
    MuxWriteError,
    NoVideoStreamError,
    OutputOpenError,
    PipelineError,
)
from screencast_uploader.recording.request import RecordingRequest

from .backend import PyAVBackend
from .rate_control import encoder_options
from .stages import DecodeStage, EncodeStage
from .timebase import as_time_base, rescale_packet


class TranscodeState(Enum):
    OPENING = "opening"
    STREAM_SELECTED = "stream_selected"
    ENCODER_CONFIGURED = "encoder_configured"
    HEADER_WRITTEN = "header_written"
    STREAMING = "streaming"
    DRAINING = "draining"
    TRAILER_WRITTEN = "trailer_written"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class PipelineState:
    """Live demux/decode/encode/mux contexts for one recording."""

    input: Any = None
    input_stream: Any = None
    decoder: Any = None
    output: Any = None
    output_stream: Any = None
    encoder: Any = None
    stream_index: Optional[int] = None
    input_time_base: Optional[Fraction] = None
    decoder_time_base: Optional[Fraction] = None
    output_time_base: Optional[Fraction] = None
    trailer_written: bool = False


@dataclass(frozen=True, slots=True)
class TranscodeResult:
    state: TranscodeState
    frames_decoded: int
    frames_encoded: int
    packets_written: int
    packets_discarded: int
    bytes_written: int
    stopped: bool
    input_time_base: Optional[Fraction]
    output_time_base: Optional[Fraction]


class TranscodePipeline:
    """Single-use transcoder from a capture descriptor into a byte sink."""

    def __init__(
        self,
        settings: TranscodeSettings,
        *,
        backend: Optional[Any] = None,
        logger: LoggerLike = None,
    ) -> None:
        self._settings = settings
        self._backend = backend or PyAVBackend()
        self._logger = ensure_structured_logger(logger, fallback_name=__name__)
        self._state = TranscodeState.OPENING
        self._ps = PipelineState()
        self._used = False
        self._decode: Optional[DecodeStage] = None
        self._encode: Optional[EncodeStage] = None
        self._packets_written = 0
        self._packets_discarded = 0
        self._last_dts: Optional[int] = None
        self._stopped = False
        self._sink: Any = None

    # ------------------------------------------------------------------ properties

    @property
    def state(self) -> TranscodeState:
        return self._state

    def _transition(self, state: TranscodeState) -> None:
        self._logger.debug("Transcode %s -> %s", self._state.value, state.value)
        self._state = state

    # ------------------------------------------------------------------ entry point

    def run(
        self,
        input_descriptor: int,
        request: RecordingRequest,
        sink: Any,
        *,
        stop_event: Optional[threading.Event] = None,
    ) -> TranscodeResult:
        """Transcode everything readable from ``input_descriptor`` into ``sink``.

        Blocks until the input is exhausted (or ``stop_event`` is set), the
        encoder is drained and the container trailer is written.
        """
        if self._used:
            raise PipelineError("transcode pipeline already used", state=self._state)
        self._used = True
        self._sink = sink

        with contextlib.ExitStack() as resources:
            try:
                self._open_input(resources, input_descriptor)
                self._select_stream(resources)
                self._configure_encoder(resources, request, sink)
                self._write_header()
                self._stream(stop_event)
                self._drain()
                self._write_trailer()
            except Exception as exc:
                if isinstance(exc, PipelineError) and exc.state is None:
                    exc.state = self._state
                self._logger.error("Transcode failed in %s: %s", self._state.value, exc)
                self._transition(TranscodeState.FAILED)
                raise

        self._transition(TranscodeState.CLOSED)
        result = self._result()
        self._logger.info(
            "Encoding finished: %d frames decoded, %d packets written%s",
            result.frames_decoded,
            result.packets_written,
            " (stopped early)" if result.stopped else "",
        )
        return result

    def _result(self) -> TranscodeResult:
        return TranscodeResult(
            state=self._state,
            frames_decoded=self._decode.units_out if self._decode else 0,
            frames_encoded=self._encode.units_in if self._encode else 0,
            packets_written=self._packets_written,
            packets_discarded=self._packets_discarded,
            bytes_written=int(getattr(self._sink, "bytes_written", 0)),
            stopped=self._stopped,
            input_time_base=self._ps.input_time_base,
            output_time_base=self._ps.output_time_base,
        )

    # ------------------------------------------------------------------ setup states

    def _open_input(self, resources: contextlib.ExitStack, input_descriptor: int) -> None:
        url = f"/proc/self/fd/{int(input_descriptor)}"
        input_format = self._settings.input_format
        try:
            container = self._backend.open_input(url, format=input_format)
        except Exception as exc:
            raise InputOpenError(f"cannot open {url} as {input_format}: {exc}") from exc
        self._ps.input = container
        resources.callback(self._release, "input", self._close_input)
        self._logger.info("Opened capture input %s (%s)", url, input_format)

    def _select_stream(self, resources: contextlib.ExitStack) -> None:
        self._transition(TranscodeState.STREAM_SELECTED)
        try:
            stream = self._backend.best_video_stream(self._ps.input)
        except Exception as exc:
            raise NoVideoStreamError(f"cannot inspect capture streams: {exc}") from exc
        if stream is None:
            raise NoVideoStreamError("capture input has no video stream")

        decoder = stream.codec_context
        try:
            self._backend.open_decoder(decoder)
        except Exception as exc:
            raise DecoderOpenError(f"cannot open decoder for stream {stream.index}: {exc}") from exc
        self._ps.decoder = decoder
        resources.callback(self._release, "decoder", self._release_decoder)

        self._ps.input_stream = stream
        self._ps.stream_index = stream.index
        try:
            self._ps.input_time_base = as_time_base(stream.time_base)
            self._ps.decoder_time_base = as_time_base(stream.time_base or decoder.time_base)
        except ValueError as exc:
            raise DecoderOpenError(f"stream {stream.index} has no usable time base") from exc
        self._logger.info(
            "Input video stream %d: %s %dx%d, time base %s",
            stream.index,
            getattr(decoder, "name", "?"),
            decoder.width,
            decoder.height,
            self._ps.decoder_time_base,
        )

    def _configure_encoder(
        self,
        resources: contextlib.ExitStack,
        request: RecordingRequest,
        sink: Any,
    ) -> None:
        self._transition(TranscodeState.ENCODER_CONFIGURED)
        try:
            output = self._backend.open_output(sink, request.container)
        except Exception as exc:
            raise OutputOpenError(f"cannot open {request.container.value} output: {exc}") from exc
        self._ps.output = output
        resources.callback(self._release, "output", self._close_output)

        try:
            codec = self._backend.find_encoder(self._settings.encoder)
        except Exception as exc:
            raise EncoderUnavailableError(f"H.264 encoder {self._settings.encoder!r} not available: {exc}") from exc

        decoder = self._ps.decoder
        try:
            options = encoder_options(
                request.rate_control,
                request.bit_rate,
                encoder_name=codec.name,
                preset=self._settings.preset,
            )
            rate = getattr(self._ps.input_stream, "average_rate", None)
            out_stream = output.add_stream(codec.name, rate=rate)
            encoder = out_stream.codec_context
            encoder.width = decoder.width
            encoder.height = decoder.height
            encoder.pix_fmt = self._settings.pixel_format
            encoder.time_base = self._ps.decoder_time_base
            encoder.bit_rate = request.bit_rate
            encoder.options = options
            if self._backend.requires_global_header(output):
                self._backend.enable_global_header(encoder)
            self._backend.open_encoder(encoder)
        except Exception as exc:
            raise EncoderOpenError(f"cannot open {codec.name} encoder: {exc}") from exc

        self._ps.output_stream = out_stream
        self._ps.encoder = encoder
        resources.callback(self._release, "encoder", self._release_encoder)
        self._logger.info(
            "Encoder %s configured: %dx%d %s, %d bit/s (%s), options %s",
            codec.name,
            encoder.width,
            encoder.height,
            self._settings.pixel_format,
            request.bit_rate,
            request.rate_control.value,
            options,
        )

    def _write_header(self) -> None:
        self._transition(TranscodeState.HEADER_WRITTEN)
        try:
            self._backend.write_header(self._ps.output)
            self._ps.output_time_base = as_time_base(self._ps.output_stream.time_base)
        except Exception as exc:
            raise MuxHeaderError(f"cannot write container header: {exc}") from exc
        self._logger.info("Encoding started (output time base %s)", self._ps.output_time_base)

    # ------------------------------------------------------------------ data states

    def _stream(self, stop_event: Optional[threading.Event]) -> None:
        self._transition(TranscodeState.STREAMING)
        self._decode = DecodeStage(self._ps.decoder)
        self._encode = EncodeStage(self._ps.encoder)

        try:
            packets = iter(self._ps.input.demux())
        except Exception as exc:
            raise DecodeError(f"cannot read capture input: {exc}") from exc

        while True:
            if stop_event is not None and stop_event.is_set():
                self._stopped = True
                self._logger.info("Stop requested; draining")
                break
            try:
                packet = next(packets)
            except StopIteration:
                break
            except Exception as exc:
                raise DecodeError(f"reading capture input failed: {exc}") from exc

            if packet.stream_index != self._ps.stream_index:
                self._packets_discarded += 1
                continue
            if packet.size == 0:
                # Demuxer flush marker; end of stream is signalled in DRAINING.
                continue
            self._pump(packet)

    def _drain(self) -> None:
        self._transition(TranscodeState.DRAINING)
        self._pump(None)
        self._encode_and_mux(None)

    def _pump(self, packet: Optional[Any]) -> None:
        """Decode one packet (``None`` = end of input) and encode every frame it releases."""
        for frame in self._decode.feed(packet):
            self._encode_and_mux(frame)

    def _encode_and_mux(self, frame: Optional[Any]) -> None:
        """Encode one frame (``None`` = end of stream) and mux every packet it releases."""
        if frame is not None:
            try:
                frame = self._backend.convert_frame(frame, self._settings.pixel_format)
            except Exception as exc:
                raise EncodeError(f"cannot convert frame to {self._settings.pixel_format}: {exc}") from exc
        for packet in self._encode.feed(frame):
            self._mux(packet)

    def _mux(self, packet: Any) -> None:
        packet.stream = self._ps.output_stream
        rescale_packet(packet, self._ps.decoder_time_base, self._ps.output_time_base)
        if packet.dts is not None and self._last_dts is not None and packet.dts < self._last_dts:
            raise MuxWriteError(f"packet dts {packet.dts} precedes previous dts {self._last_dts}")
        try:
            self._ps.output.mux(packet)
        except Exception as exc:
            raise MuxWriteError(f"writing packet {self._packets_written + 1} failed: {exc}") from exc
        if packet.dts is not None:
            self._last_dts = packet.dts
        self._packets_written += 1

    def _write_trailer(self) -> None:
        self._transition(TranscodeState.TRAILER_WRITTEN)
        try:
            self._backend.write_trailer(self._ps.output)
        except Exception as exc:
            raise MuxTrailerError(f"cannot write container trailer: {exc}") from exc
        self._ps.trailer_written = True
        # StreamingSink only commits once the trailer has been marked.
        mark_trailer_written = getattr(self._sink, "mark_trailer_written", None)
        if mark_trailer_written is not None:
            mark_trailer_written()

    # ------------------------------------------------------------------ release

    def _release(self, name: str, release: Callable[[], None]) -> None:
        try:
            release()
        except Exception as exc:
            self._logger.warning("Releasing %s failed: %s", name, exc)
        else:
            self._logger.debug("Released %s", name)

    def _close_input(self) -> None:
        container, self._ps.input = self._ps.input, None
        if container is not None:
            self._backend.close_container(container)

    def _release_decoder(self) -> None:
        decoder, self._ps.decoder = self._ps.decoder, None
        if decoder is not None:
            self._backend.release_codec(decoder)

    def _close_output(self) -> None:
        container, self._ps.output = self._ps.output, None
        if container is None or self._ps.trailer_written:
            # Writing the trailer already closed the output.
            return
        self._backend.close_container(container)

    def _release_encoder(self) -> None:
        encoder, self._ps.encoder = self._ps.encoder, None
        if encoder is not None:
            self._backend.release_codec(encoder)


__all__ = ["PipelineState", "TranscodePipeline", "TranscodeResult", "TranscodeState"]
