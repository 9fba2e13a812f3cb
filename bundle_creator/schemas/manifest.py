"""Pydantic models describing bundle manifest metadata."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_RUNLEVEL = "999"

_VERSION_RE = re.compile(r"^(\d+)(?:\.(\d+)(?:\.(\d+))?)?(?:-([0-9A-Za-z][0-9A-Za-z._-]*))?$")


@dataclass(frozen=True, order=True, slots=True)
class Version:
    """Bundle version ``major.minor.revision[-label]``; missing parts default to zero."""

    major: int
    minor: int = 0
    revision: int = 0
    label: str = ""

    @classmethod
    def parse(cls, text: str) -> "Version":
        match = _VERSION_RE.match(text.strip())
        if not match:
            raise ValueError(f"Invalid version string: '{text}'")
        major, minor, revision, label = match.groups()
        return cls(int(major), int(minor or 0), int(revision or 0), label or "")

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.revision}"
        return f"{base}-{self.label}" if self.label else base


class Dependency(BaseModel):
    symbolic_name: str = Field(..., min_length=1)
    version_range: Optional[str] = Field(default=None, description="Version range, e.g. [1.0, 2.0).")

    model_config = ConfigDict(frozen=True, extra="forbid")


class ManifestInfo(BaseModel):
    name: str = Field(..., min_length=1)
    symbolic_name: str = Field(..., min_length=1)
    version: Version
    vendor: str = ""
    copyright: str = ""
    activator_class: str = ""
    activator_library: str = ""
    lazy_start: bool = False
    run_level: str = DEFAULT_RUNLEVEL
    extends_bundle: str = ""
    dependencies: List[Dependency] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: object) -> object:
        if isinstance(value, str):
            return Version.parse(value)
        return value

    @property
    def bundle_name(self) -> str:
        """Base name shared by the staging directory and the archive."""

        return f"{self.symbolic_name}_{self.version}"

    @property
    def has_activator(self) -> bool:
        return bool(self.activator_class and self.activator_library)
