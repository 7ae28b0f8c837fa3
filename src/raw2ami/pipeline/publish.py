"""Publish pipeline orchestrator: coordinates upload, import and registration."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from raw2ami.aws.importer import SnapshotImporter
from raw2ami.aws.registrar import ImageRegistrar
from raw2ami.config import AppConfig, PublishRequest
from raw2ami.errors import ConfigurationError, PublishError, PublishTimeoutError
from raw2ami.upload.executor import UploadExecutor
from raw2ami.upload.planner import PartDescriptor, UploadStrategy, UploadTarget, plan_upload
from raw2ami.utils.deadline import Deadline
from raw2ami.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PublishResult:
    """Result of a publish execution."""
    success: bool
    image_name: str
    image_id: Optional[str] = None
    snapshot_id: Optional[str] = None
    object_key: Optional[str] = None
    import_task_id: Optional[str] = None
    duration: str = ""
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    exception: Optional[PublishError] = None
    completed_stages: list[str] = field(default_factory=list)

    @property
    def timed_out(self) -> bool:
        return isinstance(self.exception, PublishTimeoutError)


@dataclass
class _PublishState:
    request: PublishRequest
    deadline: Deadline
    target: Optional[UploadTarget] = None
    strategy: Optional[UploadStrategy] = None
    parts: list[PartDescriptor] = field(default_factory=list)
    object_key: Optional[str] = None
    import_task_id: Optional[str] = None
    snapshot_id: Optional[str] = None
    image_id: Optional[str] = None


class PublishPipeline:
    """Runs the publish workflow for one raw image.

    Stages (executed strictly in order, each feeding the next):
    1. plan             - Choose single PUT or multipart and lay out parts
    2. upload           - Stage the image in S3
    3. import_snapshot  - Convert the object into an EBS snapshot
    4. register_image   - Register a bootable AMI on the snapshot

    All stages share one deadline. Nothing is retried: a failed run must be
    restarted from scratch, and a run that got past registration must not be
    blindly repeated since it would create a second image.
    """

    STAGES = [
        "plan",
        "upload",
        "import_snapshot",
        "register_image",
    ]

    def __init__(
        self,
        config: AppConfig,
        s3_client=None,
        ec2_client=None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self._s3 = s3_client
        self._ec2 = ec2_client
        self._clock = clock
        self._sleep = sleep

    def _clients(self, timeout: float):
        if self._s3 is None or self._ec2 is None:
            from raw2ami.aws.session import build_clients

            s3, ec2 = build_clients(self.config.aws, max(1.0, timeout), self.config.upload.max_workers)
            self._s3 = self._s3 or s3
            self._ec2 = self._ec2 or ec2
        return self._s3, self._ec2

    def run(self, request: PublishRequest) -> PublishResult:
        """Execute the full publish workflow.

        Returns:
            PublishResult with success status and details
        """
        start_time = self._clock()
        state = _PublishState(request=request, deadline=Deadline(request.timeout, clock=self._clock))
        completed: list[str] = []

        logger.info(f"[bold]Publishing {request.path}[/bold] as '{request.image_name}' "
                    f"via s3://{request.bucket} (timeout {request.timeout}s)")

        for stage_name in self.STAGES:
            logger.info(f"[cyan]▶ Stage: {stage_name}[/cyan]")
            try:
                getattr(self, f"_stage_{stage_name}")(state)
                completed.append(stage_name)
                logger.info(f"[green]✓ Stage {stage_name} complete[/green]")

            except PublishError as e:
                elapsed = self._clock() - start_time
                logger.error(f"[red]✗ Stage {stage_name} failed: {e}[/red]")
                return PublishResult(
                    success=False,
                    image_name=request.image_name,
                    object_key=state.object_key,
                    import_task_id=state.import_task_id,
                    snapshot_id=state.snapshot_id,
                    duration=f"{elapsed:.0f}s",
                    failed_stage=stage_name,
                    error=str(e),
                    exception=e,
                    completed_stages=completed,
                )

        elapsed = self._clock() - start_time
        logger.info(f"[bold green]Published {state.image_id} in {elapsed:.0f}s[/bold green]")

        return PublishResult(
            success=True,
            image_name=request.image_name,
            image_id=state.image_id,
            snapshot_id=state.snapshot_id,
            object_key=state.object_key,
            import_task_id=state.import_task_id,
            duration=f"{elapsed:.0f}s",
            completed_stages=completed,
        )

    def plan(self, request: PublishRequest) -> tuple[UploadTarget, UploadStrategy, list[PartDescriptor]]:
        """Resolve the upload target and its part layout without any network call."""
        try:
            target = UploadTarget.from_file(request.path, request.bucket, request.object_key)
        except OSError as e:
            raise ConfigurationError(f"Error reading file information: {e}") from e
        if target.total_size == 0:
            raise ConfigurationError(f"Image file is empty: {request.path}")

        upload = self.config.upload
        strategy, parts = plan_upload(target.total_size, upload.multipart_threshold, upload.part_size)
        return target, strategy, parts

    # ── Stages ───────────────────────────────────────────────────

    def _stage_plan(self, state: _PublishState) -> None:
        state.target, state.strategy, state.parts = self.plan(state.request)
        if state.strategy is UploadStrategy.MULTIPART:
            logger.info(f"Multipart upload: {len(state.parts)} parts of "
                        f"{self.config.upload.part_size / (1024**3):.2f} GB")

    def _stage_upload(self, state: _PublishState) -> None:
        s3, _ = self._clients(state.deadline.remaining())
        executor = UploadExecutor(
            s3,
            content_type=self.config.upload.content_type,
            max_workers=self.config.upload.max_workers,
        )
        state.object_key = executor.upload(state.target, state.strategy, state.parts, state.deadline)

    def _stage_import_snapshot(self, state: _PublishState) -> None:
        _, ec2 = self._clients(state.deadline.remaining())
        importer = SnapshotImporter(ec2, poll_interval=self.config.conversion.poll_interval, sleep=self._sleep)

        name = state.request.image_name
        state.deadline.check("import_snapshot")
        state.import_task_id = importer.submit(state.request.bucket, state.object_key, f"raw2ami: {name}")
        state.snapshot_id = importer.wait(state.import_task_id, state.deadline)

    def _stage_register_image(self, state: _PublishState) -> None:
        _, ec2 = self._clients(state.deadline.remaining())
        registrar = ImageRegistrar(ec2)
        state.image_id = registrar.register(
            state.request.image_name,
            state.snapshot_id,
            state.request.image,
            deadline=state.deadline,
        )
