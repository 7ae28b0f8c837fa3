"""Configuration models for raw2ami using Pydantic v2."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from raw2ami.errors import ConfigurationError

GIB = 1024 * 1024 * 1024
MIB = 1024 * 1024

DEFAULT_MULTIPART_THRESHOLD = 4 * GIB
DEFAULT_PART_SIZE = 1 * GIB
DEFAULT_TIMEOUT = 600
DEFAULT_POLL_INTERVAL = 60


class AwsConfig(BaseModel):
    """AWS session settings. Credentials come from the boto3 default chain."""

    region: Optional[str] = Field(None, description="AWS region (falls back to the boto3 default)")
    profile: Optional[str] = Field(None, description="Named profile from the shared AWS config")
    s3_endpoint_url: Optional[str] = Field(None, description="Override the S3 endpoint (S3-compatible stores)")


class UploadSettings(BaseModel):
    """Upload strategy tuning."""

    multipart_threshold: int = Field(
        DEFAULT_MULTIPART_THRESHOLD, gt=0,
        description="Objects up to this size (inclusive) are sent with a single PUT",
    )
    part_size: int = Field(DEFAULT_PART_SIZE, ge=5 * MIB, description="Multipart part size in bytes")
    max_workers: int = Field(1, ge=1, le=16, description="Parallel part uploads (1 = sequential)")
    content_type: str = Field("application/octet-stream", description="Content type of the uploaded object")


class ConversionSettings(BaseModel):
    """Snapshot import polling settings."""

    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, gt=0, description="Seconds between status checks")


class AppConfig(BaseModel):
    """Root application configuration."""

    aws: AwsConfig = AwsConfig()
    upload: UploadSettings = UploadSettings()
    conversion: ConversionSettings = ConversionSettings()

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppConfig":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_env_and_args(cls, **overrides) -> "AppConfig":
        """Build config from environment variables with CLI overrides."""
        base: dict = {
            "aws": {
                "region": os.environ.get("AWS_REGION") or None,
                "profile": os.environ.get("AWS_PROFILE") or None,
            },
        }
        for key, value in overrides.items():
            if isinstance(value, dict) and key in base:
                base[key].update({k: v for k, v in value.items() if v is not None})
            else:
                base[key] = value
        return cls(**base)


# --- Per-invocation request ---

class ImageOptions(BaseModel):
    """Firmware and networking options for the registered image."""

    model_config = ConfigDict(frozen=True)

    ena: bool = Field(False, description="Enable ENA networking")
    sriov: Optional[str] = Field(None, description="SR-IOV net support, e.g. 'simple'")
    uefi: bool = Field(False, description="Register with UEFI boot mode")
    tpm: bool = Field(False, description="Attach a TPM 2.0 device (requires uefi)")

    architecture: str = "x86_64"

    @field_validator("sriov")
    @classmethod
    def empty_sriov_is_disabled(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode="after")
    def tpm_requires_uefi(self) -> "ImageOptions":
        if self.tpm and not self.uefi:
            raise ValueError("Cannot use tpm without uefi mode")
        return self

    @property
    def boot_mode(self) -> str:
        return "uefi" if self.uefi else "legacy-bios"


class PublishRequest(BaseModel):
    """Everything one publish invocation needs to know."""

    model_config = ConfigDict(frozen=True)

    path: Path
    bucket: str = Field(..., min_length=1, description="S3 bucket to stage the image in")
    name: Optional[str] = Field(None, description="Image name; defaults to the file's base name")
    timeout: int = Field(DEFAULT_TIMEOUT, gt=0, description="End-to-end deadline in seconds")
    image: ImageOptions = ImageOptions()

    @field_validator("bucket", mode="before")
    @classmethod
    def bucket_required(cls, v):
        if not v:
            raise ValueError("Please provide the bucket to use")
        return v

    @property
    def image_name(self) -> str:
        return self.name or self.path.stem

    @property
    def object_key(self) -> str:
        return self.image_name + self.path.suffix

    @classmethod
    def build(cls, **kwargs) -> "PublishRequest":
        """Construct a request, turning validation failures into ConfigurationError."""
        image_fields = {k: kwargs.pop(k) for k in ("ena", "sriov", "uefi", "tpm") if k in kwargs}
        try:
            return cls(image=ImageOptions(**image_fields), **kwargs)
        except ValidationError as e:
            messages = "; ".join(err["msg"].removeprefix("Value error, ") for err in e.errors())
            raise ConfigurationError(messages) from e
