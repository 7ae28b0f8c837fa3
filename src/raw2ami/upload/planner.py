"""Upload strategy selection and multipart part layout."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path


class UploadStrategy(str, enum.Enum):
    SIMPLE = "simple"
    MULTIPART = "multipart"


@dataclass(frozen=True)
class UploadTarget:
    """What is being uploaded and where."""
    source_path: Path
    bucket: str
    key: str
    total_size: int

    @classmethod
    def from_file(cls, source_path: str | Path, bucket: str, key: str) -> "UploadTarget":
        source_path = Path(source_path)
        return cls(
            source_path=source_path,
            bucket=bucket,
            key=key,
            total_size=source_path.stat().st_size,
        )

    @property
    def url(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


@dataclass(frozen=True)
class PartDescriptor:
    """One byte range of a multipart upload. ``index`` is the 1-based part number."""
    index: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def content_range(self) -> str:
        return f"bytes {self.offset}-{self.end - 1}"


def plan_upload(
    total_size: int,
    multipart_threshold: int,
    part_size: int,
) -> tuple[UploadStrategy, list[PartDescriptor]]:
    """Choose single PUT or multipart and lay out the parts.

    Objects up to and including ``multipart_threshold`` bytes go in one PUT.
    Larger ones are split into ``ceil(total_size / part_size)`` contiguous
    parts; only the last may be shorter than ``part_size``.
    """
    if total_size <= 0:
        raise ValueError(f"total_size must be positive, got {total_size}")
    if part_size <= 0:
        raise ValueError(f"part_size must be positive, got {part_size}")

    if total_size <= multipart_threshold:
        return UploadStrategy.SIMPLE, []

    part_count = -(-total_size // part_size)
    parts = []
    for i in range(part_count):
        offset = i * part_size
        parts.append(PartDescriptor(
            index=i + 1,
            offset=offset,
            length=min(part_size, total_size - offset),
        ))
    return UploadStrategy.MULTIPART, parts
