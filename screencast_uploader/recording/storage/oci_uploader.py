"""Oracle Cloud Object Storage uploader used behind :class:`StreamingSink`."""

from __future__ import annotations

from typing import Any, List, Optional

import oci
from oci.object_storage.models import (
    CommitMultipartUploadDetails,
    CommitMultipartUploadPartDetails,
    CreateMultipartUploadDetails,
)

from screencast_uploader.core.logging_utils import LoggerLike, ensure_structured_logger
from screencast_uploader.recording.config import StorageSettings

CONTENT_TYPES = {
    "mp4": "video/mp4",
    "mkv": "video/x-matroska",
}


def content_type_for(object_name: str, override: Optional[str] = None) -> Optional[str]:
    if override:
        return override
    suffix = object_name.rsplit(".", 1)[-1].lower() if "." in object_name else ""
    return CONTENT_TYPES.get(suffix)


def build_client(settings: StorageSettings) -> Any:
    """Create an Object Storage client from an OCI config file profile.

    Retries are disabled: a failed call fails the recording attempt.
    """
    config = oci.config.from_file(
        file_location=str(settings.oci_config_file.expanduser()),
        profile_name=settings.oci_profile,
    )
    return oci.object_storage.ObjectStorageClient(
        config,
        retry_strategy=oci.retry.NoneRetryStrategy(),
    )


class OciMultipartUploader:
    """Multipart upload created lazily on the first full part.

    Objects smaller than one part are committed with a single
    ``put_object``. Until ``complete`` succeeds nothing is visible in the
    bucket, and ``abort`` discards uploaded parts.
    """

    def __init__(
        self,
        client: Any,
        namespace: str,
        bucket: str,
        object_name: str,
        *,
        content_type: Optional[str] = None,
        logger: LoggerLike = None,
    ) -> None:
        self._client = client
        self._namespace = namespace
        self._bucket = bucket
        self._object_name = object_name
        self._content_type = content_type
        self._logger = ensure_structured_logger(logger, fallback_name=__name__)
        self._upload_id: Optional[str] = None
        self._parts: List[CommitMultipartUploadPartDetails] = []

    @classmethod
    def from_settings(
        cls,
        settings: StorageSettings,
        bucket: str,
        object_name: str,
        *,
        client: Any = None,
        logger: LoggerLike = None,
    ) -> "OciMultipartUploader":
        client = client if client is not None else build_client(settings)
        namespace = settings.namespace or client.get_namespace().data
        return cls(
            client,
            namespace,
            bucket,
            object_name,
            content_type=content_type_for(object_name, settings.content_type),
            logger=logger,
        )

    @property
    def upload_id(self) -> Optional[str]:
        return self._upload_id

    @property
    def parts_uploaded(self) -> int:
        return len(self._parts)

    def _create(self) -> None:
        details = CreateMultipartUploadDetails(
            object=self._object_name,
            content_type=self._content_type,
        )
        response = self._client.create_multipart_upload(self._namespace, self._bucket, details)
        self._upload_id = response.data.upload_id
        self._logger.info(
            "Started multipart upload %s for %s/%s",
            self._upload_id,
            self._bucket,
            self._object_name,
        )

    def upload_part(self, data: bytes) -> None:
        if self._upload_id is None:
            self._create()
        part_num = len(self._parts) + 1
        response = self._client.upload_part(
            self._namespace,
            self._bucket,
            self._object_name,
            self._upload_id,
            part_num,
            data,
        )
        etag = response.headers["etag"]
        self._parts.append(CommitMultipartUploadPartDetails(part_num=part_num, etag=etag))

    def complete(self, tail: bytes) -> None:
        if self._upload_id is None:
            kwargs = {"content_type": self._content_type} if self._content_type else {}
            self._client.put_object(
                self._namespace,
                self._bucket,
                self._object_name,
                tail,
                **kwargs,
            )
            self._logger.info("Stored %s/%s (%d bytes)", self._bucket, self._object_name, len(tail))
            return

        if tail:
            self.upload_part(tail)
        details = CommitMultipartUploadDetails(parts_to_commit=list(self._parts))
        self._client.commit_multipart_upload(
            self._namespace,
            self._bucket,
            self._object_name,
            self._upload_id,
            details,
        )
        self._logger.info(
            "Committed %s/%s from %d part(s)",
            self._bucket,
            self._object_name,
            len(self._parts),
        )

    def abort(self) -> None:
        if self._upload_id is None:
            return
        self._client.abort_multipart_upload(
            self._namespace,
            self._bucket,
            self._object_name,
            self._upload_id,
        )
        self._logger.info("Aborted multipart upload %s", self._upload_id)
        self._upload_id = None
        self._parts.clear()


__all__ = ["CONTENT_TYPES", "OciMultipartUploader", "build_client", "content_type_for"]
