"""Pydantic v2 models for the QAStarter generation engine.

Defines the user-facing project configuration, the template pack manifest
format, and the lifecycle record of a generated project.  Wire-format
fields (configuration, manifests) use camelCase aliases; Python code uses
the snake_case attribute names.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class TestingType(str, Enum):
    """Kind of application under test."""
    WEB = "Web"
    API = "API"
    MOBILE = "Mobile"


class Methodology(str, Enum):
    """Test-authoring methodology."""
    TDD = "TDD"
    BDD = "BDD"
    HYBRID = "Hybrid"


class ProjectStatus(str, Enum):
    """Lifecycle states of a generated project."""
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class FileType(str, Enum):
    """Entry kind in a generated file listing."""
    FILE = "file"
    DIRECTORY = "directory"


def _match_enum(enum_cls: type[Enum], value: Any) -> Any:
    """Case-insensitive lookup of an enum member by value."""
    if isinstance(value, str):
        for member in enum_cls:
            if member.value.lower() == value.strip().lower():
                return member
    return value


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

_FROZEN = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)


class ProjectSettings(BaseModel):
    """Naming of the generated project."""

    model_config = _FROZEN

    project_name: str = Field(
        default="my-qa-project",
        alias="projectName",
        min_length=1,
        max_length=100,
        pattern=r"^[A-Za-z0-9_-]+$",
    )
    group_id: Optional[str] = Field(default=None, alias="groupId", pattern=r"^[A-Za-z0-9._-]+$")
    artifact_id: Optional[str] = Field(default=None, alias="artifactId", pattern=r"^[A-Za-z0-9_-]+$")
    package_name: Optional[str] = Field(default=None, alias="packageName", pattern=r"^[A-Za-z0-9._]+$")

    @field_validator("group_id", "artifact_id", "package_name", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Integrations(BaseModel):
    """CI/CD, reporting and other integration choices."""

    model_config = _FROZEN

    cicd: Optional[str] = None
    reporting: Optional[str] = None
    others: tuple[str, ...] = ()

    @field_validator("cicd", "reporting", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Configuration(BaseModel):
    """Declarative description of the project to generate.

    Immutable once constructed; the engine never modifies it.
    """

    model_config = _FROZEN

    testing_type: TestingType = Field(..., alias="testingType")
    methodology: Methodology = Field(default=Methodology.TDD)
    tool: str = Field(..., min_length=1, description="Automation tool, e.g. 'Selenium'")
    language: str = Field(..., min_length=1)
    build_tool: str = Field(..., alias="buildTool", min_length=1)
    test_runner: str = Field(..., alias="testRunner", min_length=1)
    scenarios: tuple[str, ...] = Field(default=())
    config: ProjectSettings = Field(default_factory=ProjectSettings)
    integrations: Integrations = Field(default_factory=Integrations)
    dependencies: tuple[str, ...] = Field(default=())
    utilities: frozenset[str] = Field(default_factory=frozenset)
    include_sample_tests: bool = Field(default=True, alias="includeSampleTests")

    @field_validator("testing_type", mode="before")
    @classmethod
    def _testing_type(cls, value: Any) -> Any:
        return _match_enum(TestingType, value)

    @field_validator("methodology", mode="before")
    @classmethod
    def _methodology(cls, value: Any) -> Any:
        return _match_enum(Methodology, value)

    @field_validator("utilities", mode="before")
    @classmethod
    def _utilities(cls, value: Any) -> Any:
        # {"logger": true, "configReader": false} -> {"logger"}
        if isinstance(value, dict):
            return frozenset(name for name, enabled in value.items() if enabled)
        return value

    @field_validator("scenarios")
    @classmethod
    def _scenario_names(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for name in value:
            if not re.fullmatch(r"[A-Za-z0-9 _-]+", name):
                raise ValueError(f"Invalid scenario name: {name!r}")
        return value

    @property
    def project_name(self) -> str:
        return self.config.project_name


# ---------------------------------------------------------------------------
# Pack manifest
# ---------------------------------------------------------------------------

ConditionValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr, None]


class FileEntry(BaseModel):
    """One file of a template pack and its inclusion rule."""

    model_config = _FROZEN

    path: str = Field(..., min_length=1, description="Output path, may contain expressions")
    is_template: StrictBool = Field(..., alias="isTemplate")
    conditional: Optional[dict[str, ConditionValue]] = Field(
        default=None,
        description="Dotted context key -> expected value; all pairs must match",
    )
    mode: Optional[str] = Field(default=None, pattern=r"^0?[0-7]{3}$")
    description: str = Field(default="")


class Manifest(BaseModel):
    """Metadata describing a pack's files and their inclusion conditions."""

    model_config = _FROZEN

    id: str = Field(..., min_length=1)
    version: str = Field(..., pattern=r"^\d+\.\d+\.\d+$")
    name: str = Field(default="")
    description: str = Field(default="")
    files: tuple[FileEntry, ...] = Field(...)
    tool_versions: dict[str, str] = Field(default_factory=dict, alias="toolVersions")
    directories: tuple[str, ...] = Field(default=())


# ---------------------------------------------------------------------------
# Generated project
# ---------------------------------------------------------------------------

class FileMetadata(BaseModel):
    """A single entry of a generated project's file listing."""

    path: str = Field(..., description="Path relative to the project root, '/'-separated")
    name: str
    size: int = Field(default=0, ge=0, description="Byte size; 0 for directories")
    type: FileType


class GeneratedProject(BaseModel):
    """Lifecycle record of one generation.

    Owned by ``ProjectLifecycleManager``; callers receive deep copies.
    """

    id: str
    configuration: Configuration
    pack_id: Optional[str] = None
    status: ProjectStatus = ProjectStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    files: list[FileMetadata] = Field(default_factory=list)
    archive_path: Optional[Path] = None
    download_count: int = Field(default=0, ge=0)
    created_at: datetime
    expires_at: datetime
    error: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "GeneratedProject":
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be later than created_at")
        completed = self.status is ProjectStatus.COMPLETED
        has_output = bool(self.files) and self.archive_path is not None
        if completed and not has_output:
            raise ValueError("a completed project needs files and an archive")
        if not completed and (self.files or self.archive_path is not None):
            raise ValueError("files and archive are only set on completed projects")
        return self

    @property
    def file_count(self) -> int:
        """Number of regular files (directories excluded)."""
        return sum(1 for f in self.files if f.type is FileType.FILE)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
