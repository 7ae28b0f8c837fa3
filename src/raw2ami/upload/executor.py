"""S3 upload of the raw image: single PUT or all-or-nothing multipart."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from raw2ami.errors import PartUploadError, PublishError, UploadError
from raw2ami.upload.planner import PartDescriptor, UploadStrategy, UploadTarget
from raw2ami.utils.deadline import Deadline
from raw2ami.utils.logging import get_logger

logger = get_logger(__name__)

AWS_ERRORS = (BotoCoreError, ClientError)


@dataclass
class MultipartSession:
    """An open multipart upload. ``upload_id`` is required by every later call."""
    upload_id: str
    target: UploadTarget
    completed_parts: dict[int, str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, part_number: int, etag: str) -> None:
        with self._lock:
            self.completed_parts[part_number] = etag

    def completed_part_list(self) -> list[dict[str, Any]]:
        """Parts in ascending part-number order, as CompleteMultipartUpload requires."""
        return [
            {"ETag": etag, "PartNumber": number}
            for number, etag in sorted(self.completed_parts.items())
        ]


class SourceReader:
    """Random-access reads on one read-only handle, safe to share between threads."""

    def __init__(self, path):
        self._f = open(path, "rb")
        self._lock = threading.Lock()

    def read_at(self, offset: int, length: int) -> bytes:
        with self._lock:
            self._f.seek(offset)
            data = self._f.read(length)
        if len(data) != length:
            raise IOError(f"short read at offset {offset}: wanted {length} bytes, got {len(data)}")
        return data

    def close(self) -> None:
        self._f.close()

    def __enter__(self) -> "SourceReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class UploadExecutor:
    """Uploads an image to S3 using the strategy chosen by the part planner.

    The multipart path either completes with every part or aborts the
    session; there is no partially uploaded state to resume from.
    """

    def __init__(
        self,
        client,
        content_type: str = "application/octet-stream",
        max_workers: int = 1,
    ):
        self.client = client
        self.content_type = content_type
        self.max_workers = max(1, max_workers)

    def upload(
        self,
        target: UploadTarget,
        strategy: UploadStrategy,
        parts: list[PartDescriptor],
        deadline: Deadline,
    ) -> str:
        """Upload ``target`` and return its object key.

        Raises:
            UploadError: PUT, session open, or completion failed
            PartUploadError: a multipart part failed (session is aborted)
            PublishTimeoutError: the deadline passed mid-upload
        """
        logger.info(
            f"Uploading {target.source_path.name} ({target.total_size / (1024**3):.2f} GB) "
            f"to {target.url} ({strategy.value} upload)"
        )
        if strategy is UploadStrategy.SIMPLE:
            self._put_object(target, deadline)
        else:
            self._multipart_upload(target, parts, deadline)
        logger.info(f"Upload complete: {target.url}")
        return target.key

    # ── Simple path ──────────────────────────────────────────────

    def _put_object(self, target: UploadTarget, deadline: Deadline) -> None:
        logger.debug(f"Using regular upload for file with size {target.total_size}")
        deadline.check("upload")
        params = {
            "Bucket": target.bucket,
            "Key": target.key,
            "ContentLength": target.total_size,
            "ContentType": self.content_type,
        }
        logger.debug(f"PutObject: {params}")
        try:
            with open(target.source_path, "rb") as body:
                self.client.put_object(Body=body, **params)
        except AWS_ERRORS as e:
            raise UploadError(f"Error uploading to S3: {e}", context={"key": target.key}) from e
        except OSError as e:
            raise UploadError(f"Error opening file: {e}") from e

    # ── Multipart path ───────────────────────────────────────────

    def _multipart_upload(
        self,
        target: UploadTarget,
        parts: list[PartDescriptor],
        deadline: Deadline,
    ) -> None:
        logger.debug(f"Using multipart upload for file with size {target.total_size}")
        session = self._create_session(target, deadline)
        logger.info(f"Will attempt upload in {len(parts)} parts to {target.key}")

        try:
            with SourceReader(target.source_path) as reader:
                if self.max_workers == 1:
                    for part in parts:
                        self._upload_part(session, part, len(parts), reader, deadline)
                else:
                    self._upload_parts_parallel(session, parts, reader, deadline)
        except PublishError:
            self._abort(session)
            raise
        except OSError as e:
            self._abort(session)
            raise UploadError(f"Error opening {target.source_path}: {e}") from e
        except Exception:
            self._abort(session)
            raise

        self._complete(session)

    def _create_session(self, target: UploadTarget, deadline: Deadline) -> MultipartSession:
        deadline.check("upload")
        try:
            resp = self.client.create_multipart_upload(Bucket=target.bucket, Key=target.key)
        except AWS_ERRORS as e:
            raise UploadError(f"Error starting multipart upload: {e}") from e

        upload_id = (resp or {}).get("UploadId")
        if not upload_id:
            raise UploadError("No upload id found in start upload response")
        logger.debug(f"Multipart session {upload_id} opened for {target.url}")
        return MultipartSession(upload_id=upload_id, target=target)

    def _upload_part(
        self,
        session: MultipartSession,
        part: PartDescriptor,
        part_count: int,
        reader: SourceReader,
        deadline: Deadline,
        stop: Optional[threading.Event] = None,
    ) -> None:
        if stop is not None and stop.is_set():
            return
        deadline.check("upload")

        target = session.target
        logger.debug(f"Attempting to upload part {part.index} with range {part.content_range}/{target.total_size}")
        try:
            data = reader.read_at(part.offset, part.length)
            resp = self.client.upload_part(
                Bucket=target.bucket,
                Key=target.key,
                Body=data,
                PartNumber=part.index,
                UploadId=session.upload_id,
            )
        except (OSError, *AWS_ERRORS) as e:
            raise PartUploadError(part.index, part_count, e) from e

        etag = (resp or {}).get("ETag")
        if not etag:
            raise PartUploadError(part.index, part_count, "UploadPart response carried no ETag")
        session.record(part.index, etag)
        pct = part.end / target.total_size * 100
        logger.info(f"Upload progress: part {part.index}/{part_count} ({pct:.0f}%)")

    def _upload_parts_parallel(
        self,
        session: MultipartSession,
        parts: list[PartDescriptor],
        reader: SourceReader,
        deadline: Deadline,
    ) -> None:
        stop = threading.Event()
        failures: list[tuple[int, Exception]] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                pool.submit(self._upload_part, session, part, len(parts), reader, deadline, stop): part
                for part in parts
            }
            for future in as_completed(futures):
                try:
                    future.result()
                except Exception as e:
                    stop.set()
                    failures.append((futures[future].index, e))

        if failures:
            raise min(failures, key=lambda f: f[0])[1]

    def _complete(self, session: MultipartSession) -> None:
        target = session.target
        try:
            self.client.complete_multipart_upload(
                Bucket=target.bucket,
                Key=target.key,
                UploadId=session.upload_id,
                MultipartUpload={"Parts": session.completed_part_list()},
            )
        except AWS_ERRORS as e:
            raise UploadError(f"Error completing upload: {e}") from e
        logger.info(f"Successfully uploaded key {target.key} to bucket {target.bucket}")

    def _abort(self, session: MultipartSession) -> None:
        """Best-effort abort; a failure here is logged, never raised."""
        target = session.target
        logger.error(f"Attempting to abort upload {session.upload_id}")
        try:
            self.client.abort_multipart_upload(
                Bucket=target.bucket,
                Key=target.key,
                UploadId=session.upload_id,
            )
        except AWS_ERRORS as e:
            logger.warning(f"Abort of multipart upload {session.upload_id} failed: {e}")
