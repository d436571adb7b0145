"""Typed records persisted by the derived-info cache."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """Staleness triple for a source file."""

    mtime: int
    size: int
    hash: str


class CacheMetadata(BaseModel):
    """Fingerprint of the source file at the time ``data`` was computed."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source_file_path: str = Field(default="", alias="sourceFilePath")
    mtime: int = 0
    size: int = 0
    hash: str

    @classmethod
    def from_fingerprint(cls, source_file_path: str, fingerprint: Fingerprint) -> "CacheMetadata":
        return cls(
            source_file_path=source_file_path,
            mtime=fingerprint.mtime,
            size=fingerprint.size,
            hash=fingerprint.hash,
        )


class CacheEntry(BaseModel):
    """Single cached value for one ``(context, info_type, relative_path)`` key."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    metadata: CacheMetadata
    data: Any = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class InfoSource(str, Enum):
    """Where a successful lookup obtained its value."""

    CACHE = "cache"
    PROMOTED = "promoted"
    COMPUTED = "computed"


class MissReason(str, Enum):
    """Why a lookup produced no value."""

    PROVIDER_NOT_REGISTERED = "provider-not-registered"
    FILE_ABSENT = "file-absent"
    NO_DATA = "no-data"
    PROVIDER_ERROR = "provider-error"


@dataclass(frozen=True, slots=True)
class InfoResult:
    """Outcome of a derived-info lookup, keeping the reason behind a miss."""

    data: Any = None
    source: InfoSource | None = None
    reason: MissReason | None = None

    @property
    def hit(self) -> bool:
        return self.source is not None

    @classmethod
    def found(cls, data: Any, source: InfoSource) -> "InfoResult":
        return cls(data=data, source=source)

    @classmethod
    def missing(cls, reason: MissReason) -> "InfoResult":
        return cls(reason=reason)
