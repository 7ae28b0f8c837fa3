"""Exception hierarchy for the publish workflow.

Every terminal failure in the pipeline is a ``PublishError``. The subclasses
map onto the failure classes an operator needs to tell apart:

- configuration problems, caught before any network call
- transport/session failures against S3 or EC2
- remote inconsistencies, where the service broke its own contract
- timeouts, where the remote job may still finish on its own
"""

from __future__ import annotations

from typing import Any, Optional


class PublishError(Exception):
    """Base exception for all publish workflow errors.

    Attributes:
        message: Human-readable error description.
        context: Additional debugging information.
    """

    error_code = "PUBLISH_ERROR"

    def __init__(self, message: str, *, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(PublishError, ValueError):
    """Invalid invocation parameters, detected before any network call."""

    error_code = "CONFIGURATION_ERROR"


# ── Transport / session errors ───────────────────────────────────


class UploadError(PublishError):
    """S3 upload, multipart session open, or completion failed."""

    error_code = "UPLOAD_ERROR"


class PartUploadError(UploadError):
    """A single multipart part could not be read or uploaded."""

    error_code = "PART_UPLOAD_ERROR"

    def __init__(self, part_number: int, part_count: int, cause: Any):
        super().__init__(
            f"Error uploading part {part_number} of {part_count}: {cause}",
            context={"part_number": part_number, "part_count": part_count},
        )
        self.part_number = part_number
        self.part_count = part_count


class ImportSubmitError(PublishError):
    """The snapshot import job could not be submitted."""

    error_code = "IMPORT_SUBMIT_ERROR"


class ImportStatusError(PublishError):
    """A status query for the import job failed."""

    error_code = "IMPORT_STATUS_ERROR"


class ImageRegistrationError(PublishError):
    """RegisterImage was rejected or could not be sent."""

    error_code = "IMAGE_REGISTRATION_ERROR"


# ── Remote-reported outcomes ─────────────────────────────────────


class ImportTaskFailedError(PublishError):
    """The import job reported failure on the remote side."""

    error_code = "IMPORT_TASK_FAILED"


class RemoteInconsistencyError(PublishError):
    """The remote service answered successfully but broke its contract."""

    error_code = "REMOTE_INCONSISTENCY"


class PublishTimeoutError(PublishError, TimeoutError):
    """The workflow deadline elapsed.

    When raised while polling, ``task_id`` names the import job, which may
    still complete outside this process's observation window.
    """

    error_code = "PUBLISH_TIMEOUT"

    def __init__(self, message: str, *, phase: str, task_id: Optional[str] = None):
        context: dict[str, Any] = {"phase": phase}
        if task_id:
            context["task_id"] = task_id
        super().__init__(message, context=context)
        self.phase = phase
        self.task_id = task_id
