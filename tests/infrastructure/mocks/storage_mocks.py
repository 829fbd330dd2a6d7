"""In-memory object storage for sink and driver tests.

Objects only appear in :attr:`InMemoryObjectStore.objects` once an upload
completes, mirroring multipart visibility in a real bucket.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass
class InMemoryObjectStore:
    objects: Dict[Tuple[str, str], bytes] = field(default_factory=dict)
    uploaders: List["InMemoryUploader"] = field(default_factory=list)

    def uploader(self, bucket: str, key: str, **failures) -> "InMemoryUploader":
        uploader = InMemoryUploader(store=self, bucket=bucket, key=key, **failures)
        self.uploaders.append(uploader)
        return uploader


@dataclass
class InMemoryUploader:
    """ObjectUploader double with switchable failures."""

    store: Optional[InMemoryObjectStore] = None
    bucket: str = "bucket"
    key: str = "object"
    fail_on_part: Optional[int] = None
    fail_on_complete: bool = False
    fail_on_abort: bool = False

    parts: List[bytes] = field(default_factory=list)
    tail: Optional[bytes] = None
    completed: bool = False
    aborted: bool = False
    abort_calls: int = 0

    def upload_part(self, data: bytes) -> None:
        if self.fail_on_part is not None and len(self.parts) + 1 == self.fail_on_part:
            raise IOError(f"part {self.fail_on_part} rejected")
        self.parts.append(bytes(data))

    def complete(self, tail: bytes) -> None:
        if self.fail_on_complete:
            raise IOError("commit rejected")
        self.tail = bytes(tail)
        self.completed = True
        if self.store is not None:
            self.store.objects[(self.bucket, self.key)] = self.data

    def abort(self) -> None:
        self.abort_calls += 1
        if self.fail_on_abort:
            raise IOError("abort rejected")
        self.aborted = True
        self.parts.clear()

    @property
    def data(self) -> bytes:
        return b"".join(self.parts) + (self.tail or b"")
