"""Unit tests for StreamingSink."""

import threading

import pytest

from screencast_uploader.recording.errors import (
    SinkClosedError,
    SinkError,
    SinkFinalizeError,
    SinkWriteError,
)
from screencast_uploader.recording.storage.sink import SinkPhase, StreamingSink
from tests.infrastructure.mocks.storage_mocks import InMemoryUploader


@pytest.fixture
def uploader():
    return InMemoryUploader()


@pytest.fixture
def sink(uploader):
    return StreamingSink(uploader, part_size=4)


class TestWrite:

    def test_buffers_until_full_part(self, sink, uploader):
        assert sink.write(b"abc") == 3
        assert uploader.parts == []
        sink.write(b"defghij")
        assert uploader.parts == [b"abcd", b"efgh"]
        assert sink.bytes_written == 10
        assert sink.state.parts_uploaded == 2

    def test_empty_chunk_is_noop(self, sink):
        assert sink.write(b"") == 0
        assert sink.bytes_written == 0

    def test_accepts_memoryview(self, sink, uploader):
        sink.write(memoryview(b"12345678"))
        assert uploader.parts == [b"1234", b"5678"]

    def test_upload_failure_fails_sink(self, uploader):
        uploader.fail_on_part = 1
        sink = StreamingSink(uploader, part_size=2)
        with pytest.raises(SinkWriteError):
            sink.write(b"abc")
        assert sink.state.phase is SinkPhase.FAILED
        with pytest.raises(SinkClosedError):
            sink.write(b"x")

    def test_write_after_trailer_rejected(self, sink):
        sink.write(b"ab")
        sink.mark_trailer_written()
        with pytest.raises(SinkClosedError):
            sink.write(b"cd")

    def test_concurrent_writes_keep_byte_count(self, uploader):
        sink = StreamingSink(uploader, part_size=64)
        threads = [threading.Thread(target=lambda: [sink.write(b"x" * 10) for _ in range(50)]) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert sink.bytes_written == 2000
        assert sum(len(part) for part in uploader.parts) == 64 * (2000 // 64)


class TestFinalize:

    def test_requires_trailer(self, sink, uploader):
        sink.write(b"ab")
        with pytest.raises(SinkFinalizeError):
            sink.finalize()
        assert not uploader.completed
        assert sink.state.phase is SinkPhase.OPEN

    def test_commits_tail(self, sink, uploader):
        sink.write(b"abcdef")
        sink.mark_trailer_written()
        sink.finalize()
        assert uploader.completed
        assert uploader.tail == b"ef"
        assert uploader.data == b"abcdef"
        assert sink.is_finalized

    def test_use_after_finalize(self, sink):
        sink.mark_trailer_written()
        sink.finalize()
        with pytest.raises(SinkClosedError):
            sink.write(b"late")
        with pytest.raises(SinkClosedError):
            sink.finalize()

    def test_commit_failure(self, sink, uploader):
        uploader.fail_on_complete = True
        sink.mark_trailer_written()
        with pytest.raises(SinkFinalizeError):
            sink.finalize()
        assert sink.state.phase is SinkPhase.FAILED


class TestAbort:

    def test_abort_discards(self, sink, uploader):
        sink.write(b"abcdef")
        sink.abort()
        assert uploader.aborted
        assert sink.state.phase is SinkPhase.ABORTED
        with pytest.raises(SinkClosedError):
            sink.write(b"x")

    def test_abort_after_finalize_is_noop(self, sink, uploader):
        sink.mark_trailer_written()
        sink.finalize()
        sink.abort()
        assert uploader.abort_calls == 0

    def test_abort_is_idempotent(self, sink, uploader):
        sink.abort()
        sink.abort()
        assert uploader.abort_calls == 1

    def test_abort_after_failure_still_aborts(self, uploader):
        uploader.fail_on_part = 1
        sink = StreamingSink(uploader, part_size=1)
        with pytest.raises(SinkWriteError):
            sink.write(b"a")
        sink.abort()
        assert uploader.aborted

    def test_abort_failure_raises(self, sink, uploader):
        uploader.fail_on_abort = True
        with pytest.raises(SinkError):
            sink.abort()


class TestState:

    def test_state_is_snapshot(self, sink):
        snapshot = sink.state
        sink.write(b"abc")
        assert snapshot.bytes_written == 0
        assert sink.state.bytes_written == 3
