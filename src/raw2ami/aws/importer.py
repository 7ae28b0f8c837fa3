"""EC2 snapshot import from S3 and status polling.

Uses ImportSnapshot to turn the staged raw object into an EBS snapshot, then
DescribeImportSnapshotTasks on a fixed interval until the task completes,
fails, or the publish deadline runs out. Import of a multi-GB image usually
takes minutes to tens of minutes, so a fixed 60s interval costs little.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from raw2ami.config import DEFAULT_POLL_INTERVAL
from raw2ami.errors import (
    ImportStatusError,
    ImportSubmitError,
    ImportTaskFailedError,
    PublishTimeoutError,
    RemoteInconsistencyError,
)
from raw2ami.utils.deadline import Deadline
from raw2ami.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_COMPLETED = "completed"
FAILED_STATUSES = ("failed", "error", "deleting", "deleted")


@dataclass
class ImportTask:
    """Observed state of a remote import job. Never written locally."""
    task_id: str
    status: str
    progress: str = "0"
    snapshot_id: Optional[str] = None
    status_message: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ImportTask":
        detail = data.get("SnapshotTaskDetail") or {}
        return cls(
            task_id=data.get("ImportTaskId", ""),
            status=detail.get("Status", "unknown"),
            progress=detail.get("Progress") or "0",
            snapshot_id=detail.get("SnapshotId"),
            status_message=detail.get("StatusMessage"),
        )

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def failed(self) -> bool:
        return self.status in FAILED_STATUSES


class SnapshotImporter:
    """Submit an ImportSnapshot job and wait for its snapshot id."""

    def __init__(
        self,
        client,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.poll_interval = poll_interval
        self._sleep = sleep

    def submit(self, bucket: str, key: str, description: str) -> str:
        """Start the import of s3://bucket/key and return the task id."""
        params = {
            "Description": description,
            "DiskContainer": {
                "Description": f"{description} disk",
                "Format": "raw",
                "UserBucket": {"S3Bucket": bucket, "S3Key": key},
            },
        }
        logger.debug(f"ImportSnapshot: {params}")
        try:
            resp = self.client.import_snapshot(**params)
        except (BotoCoreError, ClientError) as e:
            raise ImportSubmitError(f"Error importing snapshot: {e}") from e

        task_id = resp.get("ImportTaskId")
        if not task_id:
            raise RemoteInconsistencyError("ImportSnapshot returned no import task id")
        logger.info(f"Snapshot import {task_id} submitted from s3://{bucket}/{key}")
        return task_id

    def describe(self, task_id: str) -> ImportTask:
        """Fetch the current state of one import task."""
        logger.debug(f"DescribeImportSnapshotTasks: {task_id}")
        try:
            resp = self.client.describe_import_snapshot_tasks(ImportTaskIds=[task_id])
        except (BotoCoreError, ClientError) as e:
            raise ImportStatusError(f"Error getting import snapshot status: {e}") from e

        tasks = resp.get("ImportSnapshotTasks") or []
        if not tasks:
            raise RemoteInconsistencyError(
                f"Unable to get import snapshot task status for {task_id}",
                context={"task_id": task_id},
            )
        task = ImportTask.from_api(tasks[0])
        task.task_id = task.task_id or task_id
        return task

    def wait(self, task_id: str, deadline: Deadline) -> str:
        """Poll until the task completes and return its snapshot id.

        Raises:
            ImportStatusError: a status query failed
            ImportTaskFailedError: the service reported the job as failed
            RemoteInconsistencyError: no task returned, or completed without a snapshot
            PublishTimeoutError: the deadline passed while the job was still running
        """
        while True:
            task = self.describe(task_id)

            if task.completed:
                if not task.snapshot_id:
                    raise RemoteInconsistencyError(
                        f"SnapshotID unavailable after import {task_id} completed",
                        context={"task_id": task_id},
                    )
                logger.info(f"Snapshot import {task_id} completed: {task.snapshot_id}")
                return task.snapshot_id

            if task.failed:
                raise ImportTaskFailedError(
                    f"Snapshot import {task_id} failed ({task.status}): "
                    f"{task.status_message or 'no status message'}",
                    context={"task_id": task_id, "status": task.status},
                )

            remaining = deadline.remaining()
            if remaining <= 0:
                raise PublishTimeoutError(
                    f"Snapshot import {task_id} still {task.status} ({task.progress}%) "
                    f"after {deadline.timeout:.0f}s",
                    phase="import_snapshot",
                    task_id=task_id,
                )

            logger.info(f"Task {task_id} is {task.status}, {task.progress}% complete. "
                        f"Waiting {self.poll_interval:.0f} seconds...")
            self._sleep(min(self.poll_interval, remaining))

    def convert(self, bucket: str, key: str, description: str, deadline: Deadline) -> str:
        """Submit the import and wait for the resulting snapshot id."""
        deadline.check("import_snapshot")
        task_id = self.submit(bucket, key, description)
        return self.wait(task_id, deadline)
