"""Shared test fixtures."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError


@pytest.fixture(autouse=True)
def _fake_aws_environment(monkeypatch):
    """Keep tests away from real credentials and operator settings."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    for var in ("AWS_PROFILE", "AWS_REGION", "RAW2AMI_BUCKET", "RAW2AMI_IMAGE_NAME", "RAW2AMI_UPLOAD_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def client_error(operation: str, code: str = "InternalError", message: str = "boom") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@pytest.fixture
def s3_client():
    """S3 client double that hands out ETags per part number."""
    client = MagicMock()
    client.create_multipart_upload.return_value = {"UploadId": "upload-1"}
    client.upload_part.side_effect = lambda **kw: {"ETag": f'"etag-{kw["PartNumber"]}"'}
    client.complete_multipart_upload.return_value = {"Location": "somewhere"}
    client.put_object.return_value = {"ETag": '"whole"'}
    return client


@pytest.fixture
def ec2_client():
    client = MagicMock()
    client.import_snapshot.return_value = {"ImportTaskId": "import-snap-1"}
    client.describe_import_snapshot_tasks.return_value = task_response("completed", snapshot_id="snap-1")
    client.register_image.return_value = {"ImageId": "ami-1"}
    return client


def task_response(status: str, progress: str = "50", snapshot_id=None, message=None, task_id="import-snap-1"):
    detail = {"Status": status, "Progress": progress}
    if snapshot_id:
        detail["SnapshotId"] = snapshot_id
    if message:
        detail["StatusMessage"] = message
    return {"ImportSnapshotTasks": [{"ImportTaskId": task_id, "SnapshotTaskDetail": detail}]}


@pytest.fixture
def image_file(tmp_path):
    """Write a file of the requested size filled with a repeating byte pattern."""
    def _make(size: int, name: str = "disk.img"):
        path = tmp_path / name
        pattern = bytes(range(256))
        path.write_bytes((pattern * (size // 256 + 1))[:size])
        return path
    return _make
