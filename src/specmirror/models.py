"""Canonical Pydantic models shared across all specmirror modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Spec models** -- decoded from upstream artifacts:
    :class:`SpecRecord` (one ``(name, version, platform)`` entry of a
    source index), :class:`SpecDependency` and :class:`GemSpecification`
    (a full per-spec document).

**Configuration models** -- loaded by :mod:`specmirror.config`:
    :class:`SourceSettings` and :class:`GlobalConfig`.

**Persistence models** -- written to the cache directory:
    :class:`CacheEntry`.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from specmirror.version import Version

RUBY_PLATFORM = "ruby"
"""The generic platform tag; specs for it omit the platform in file names."""

CACHE_FORMAT_VERSION = 1
"""Version of the :class:`CacheEntry` layout, part of every cache file name."""

DEFAULT_COMPARISON_HEADERS = ["etag", "last-modified", "content-length"]

_UNSAFE_NAME_CHARS = ("/", "\\", "\x00")


# --- Spec models ---


class SpecRecord(BaseModel):
    """One entry of a source index: an immutable ``(name, version, platform)``.

    The version string is validated on construction so that an index with a
    malformed version is rejected as a whole.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    version: str
    platform: str = RUBY_PLATFORM

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        Version(value)
        return value

    @field_validator("name", "platform")
    @classmethod
    def _check_file_safe(cls, value: str) -> str:
        # Both end up in spec file names under the spec directory.
        if value in (".", "..") or any(c in value for c in _UNSAFE_NAME_CHARS):
            raise ValueError(f"{value!r} cannot be used in a spec file name")
        return value

    @property
    def version_key(self) -> Version:
        """The parsed version, used for ordering."""
        return Version(self.version)

    @property
    def key(self) -> tuple[str, str]:
        """The ``(name, platform)`` pair the latest index is keyed by."""
        return (self.name, self.platform)

    @property
    def full_name(self) -> str:
        """``name-version`` with ``-platform`` appended for non-generic platforms."""
        full = f"{self.name}-{self.version}"
        if self.platform != RUBY_PLATFORM:
            full += f"-{self.platform}"
        return full

    @property
    def spec_file_name(self) -> str:
        """File name of the per-spec artifact, e.g. ``rake-0.8.1.gemspec``."""
        return f"{self.full_name}.gemspec"

    def as_tuple(self) -> tuple[str, str, str]:
        return (self.name, self.version, self.platform)

    def __str__(self) -> str:
        return self.full_name


class SpecDependency(BaseModel):
    """A dependency declared inside a :class:`GemSpecification`."""

    name: str
    requirement: str = ">= 0"
    type: str = "runtime"


class GemSpecification(BaseModel):
    """A full per-spec metadata document fetched from ``quick/``.

    Only the identifying fields are required. Everything else the upstream
    publishes is preserved in ``model_extra``.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    version: str
    platform: str = RUBY_PLATFORM
    summary: Optional[str] = None
    authors: list[str] = Field(default_factory=list)
    dependencies: list[SpecDependency] = Field(default_factory=list)

    @property
    def record(self) -> SpecRecord:
        return SpecRecord(name=self.name, version=self.version, platform=self.platform)

    def runtime_dependencies(self) -> list[SpecDependency]:
        return [d for d in self.dependencies if d.type == "runtime"]


# --- Configuration models ---


class SourceSettings(BaseModel):
    """Freshness and transport settings shared by every source of a group.

    Replaces what would otherwise be class-level constants, so that tests
    and hosts can pass their own values.
    """

    comparison_headers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COMPARISON_HEADERS),
        description="Response headers compared to detect upstream changes",
    )
    ttl_seconds: int = Field(
        default=300,
        ge=0,
        description="Seconds during which a check is trusted without contacting upstream",
    )
    redirect_budget: int = Field(
        default=10, ge=1, description="Maximum redirect hops followed per request"
    )
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")

    @field_validator("comparison_headers")
    @classmethod
    def _lower_headers(cls, value: list[str]) -> list[str]:
        return [h.lower() for h in value]

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_seconds)


class GlobalConfig(BaseModel):
    """Configuration loaded by :func:`~specmirror.config.load_config`.

    ``cache_dir`` and ``spec_dir`` default to directories under the XDG
    cache directory when unset. See :func:`~specmirror.config.resolve_config`
    for the precedence chain.
    """

    cache_dir: Optional[str] = None
    spec_dir: Optional[str] = None
    sources: list[str] = Field(default_factory=list)
    settings: SourceSettings = Field(default_factory=SourceSettings)


# --- Persistence models ---


class CacheEntry(BaseModel):
    """Serialised snapshot of a source: exactly its owned state.

    Holds the origin, the validation metadata and the spec records. Nothing
    that links a source to its group (directories, transport, settings) is
    part of the entry; the group re-attaches those after loading.
    """

    format_version: int = CACHE_FORMAT_VERSION
    origin: str
    validation_metadata: dict[str, str] = Field(default_factory=dict)
    specs: list[SpecRecord] = Field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        return {
            "origin": self.origin,
            "format_version": self.format_version,
            "specs": len(self.specs),
            "validation_metadata": dict(self.validation_metadata),
        }
