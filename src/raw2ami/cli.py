"""CLI entry point for raw2ami."""

from __future__ import annotations

import sys

import click
from rich.console import Console
from rich.table import Table

from raw2ami import __version__
from raw2ami.config import DEFAULT_TIMEOUT, AppConfig, PublishRequest
from raw2ami.errors import ConfigurationError
from raw2ami.utils.logging import set_log_level

console = Console()


def load_config(config_path: str | None, **overrides) -> AppConfig:
    """Load configuration from file or environment."""
    try:
        if config_path:
            config = AppConfig.from_yaml(config_path)
            aws = {k: v for k, v in overrides.get("aws", {}).items() if v is not None}
            return config.model_copy(update={"aws": config.aws.model_copy(update=aws)})
        return AppConfig.from_env_and_args(**overrides)
    except Exception as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        sys.exit(1)


def build_request(**kwargs) -> PublishRequest:
    try:
        return PublishRequest.build(**kwargs)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="raw2ami")
@click.option("--log-level", default="INFO",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.option("-v", "--verbose", is_flag=True, default=False, help="Shortcut for --log-level DEBUG")
def main(log_level: str, verbose: bool):
    """Publish a raw disk image to AWS as a bootable AMI.

    The image is staged in S3, imported as an EBS snapshot and registered
    as an AMI.
    """
    set_log_level("DEBUG" if verbose else log_level)


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--bucket", envvar="RAW2AMI_BUCKET", help="S3 bucket to upload to. *Required*")
@click.option("--img-name", "name", envvar="RAW2AMI_IMAGE_NAME",
              help="Name for the S3 object and the AMI. Defaults to the base of PATH without extension.")
@click.option("--timeout", envvar="RAW2AMI_UPLOAD_TIMEOUT", type=int, default=DEFAULT_TIMEOUT,
              show_default=True, help="End-to-end timeout in seconds")
@click.option("--ena", is_flag=True, default=False, help="Enable ENA networking")
@click.option("--sriov", default="", help="SR-IOV network support, set to 'simple' to enable 82599 VF networking")
@click.option("--uefi", is_flag=True, default=False, help="Enable uefi boot mode")
@click.option("--tpm", is_flag=True, default=False, help="Enable tpm device (requires --uefi)")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS shared config profile")
@click.option("--parallel", type=click.IntRange(1, 16), default=None, help="Parallel multipart part uploads")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Configuration file")
def push(path: str, bucket: str | None, name: str | None, timeout: int, ena: bool, sriov: str,
         uefi: bool, tpm: bool, region: str | None, profile: str | None, parallel: int | None,
         config_path: str | None):
    """Upload PATH to S3, import it as a snapshot and register an AMI."""
    request = build_request(
        path=path, bucket=bucket, name=name, timeout=timeout,
        ena=ena, sriov=sriov, uefi=uefi, tpm=tpm,
    )
    config = load_config(config_path, aws={"region": region, "profile": profile})
    if parallel:
        config = config.model_copy(update={"upload": config.upload.model_copy(update={"max_workers": parallel})})

    from raw2ami.pipeline.publish import PublishPipeline

    pipeline = PublishPipeline(config)
    result = pipeline.run(request)

    if result.success:
        console.print(f"\n[bold green]✅ Created AMI: {result.image_id}[/bold green]")
        console.print(f"  Snapshot: {result.snapshot_id}")
        console.print(f"  Duration: {result.duration}")
        return

    console.print(f"\n[bold red]❌ Publish failed at stage '{result.failed_stage}'[/bold red]")
    console.print(f"  Error: {result.error}")
    if result.timed_out and result.import_task_id:
        console.print(f"  Import task {result.import_task_id} may still complete; "
                      f"check it with 'aws ec2 describe-import-snapshot-tasks'")
    sys.exit(1)


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--img-name", "name", envvar="RAW2AMI_IMAGE_NAME", help="Image name override")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Configuration file")
def plan(path: str, name: str | None, config_path: str | None):
    """Show how PATH would be uploaded, without touching AWS."""
    config = load_config(config_path)
    request = build_request(path=path, bucket="(dry-run)", name=name)

    from raw2ami.pipeline.publish import PublishPipeline

    try:
        target, strategy, parts = PublishPipeline(config).plan(request)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.print(f"[bold]Source:[/bold] {target.source_path} ({target.total_size} bytes)")
    console.print(f"[bold]Key:[/bold] {target.key}")
    console.print(f"[bold]Strategy:[/bold] {strategy.value}")
    if not parts:
        return

    table = Table(title=f"{len(parts)} parts")
    table.add_column("Part", justify="right", style="cyan")
    table.add_column("Offset", justify="right")
    table.add_column("Length", justify="right")
    table.add_column("Range")
    for part in parts:
        table.add_row(str(part.index), str(part.offset), str(part.length), part.content_range)
    console.print(table)


if __name__ == "__main__":
    main()
