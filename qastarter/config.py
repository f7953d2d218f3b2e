"""QAStarter engine configuration.

Centralised, typed configuration for the generation engine. Settings use a
Pydantic v2 model so they are validated at construction time and can be
serialised to/from JSON or built from environment variables.
"""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

_BUNDLED_PACKS_DIR = Path(__file__).parent / "packs"

ARCHIVE_EXTENSION = "zip"


class EngineConfig(BaseModel):
    """Global engine configuration.

    Instances are typically created once by the CLI entry point or the host
    application and then passed to ``ProjectLifecycleManager``.
    """

    packs_dir: Path = Field(
        default=_BUNDLED_PACKS_DIR,
        description="Directory holding one sub-directory per template pack",
    )
    output_dir: Path = Field(
        default=Path("./generated"),
        description="Staging directories and archives are written here",
    )
    project_expiry_hours: int = Field(
        default=24, ge=1, description="Time-to-live of a generated project"
    )
    sweep_interval_seconds: float = Field(
        default=3600.0, gt=0, description="Interval of the expiry sweep"
    )
    compression_level: int = Field(
        default=9, ge=0, le=9, description="DEFLATE level used for archives"
    )
    strict_pack_resolution: bool = Field(
        default=False,
        description="Raise instead of using the fallback pack for unmapped combinations",
    )
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def project_ttl(self) -> timedelta:
        """Lifetime of a generated project before the sweep purges it."""
        return timedelta(hours=self.project_expiry_hours)

    def staging_dir(self, project_id: str) -> Path:
        """Directory that holds the rendered tree for *project_id*."""
        return self.output_dir / project_id

    def archive_path(self, project_id: str) -> Path:
        """Archive sitting next to the staging directory of *project_id*."""
        return self.output_dir / f"{project_id}.{ARCHIVE_EXTENSION}"

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: Path) -> "EngineConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build an ``EngineConfig`` from environment variables.

        Recognised variables (all optional):
            QAS_PACKS_DIR, QAS_OUTPUT_DIR, QAS_PROJECT_EXPIRY_HOURS,
            QAS_SWEEP_INTERVAL_SECONDS, QAS_COMPRESSION_LEVEL,
            QAS_STRICT_PACKS, QAS_LOG_LEVEL.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("QAS_PACKS_DIR"):
            kwargs["packs_dir"] = Path(os.environ["QAS_PACKS_DIR"])
        if os.environ.get("QAS_OUTPUT_DIR"):
            kwargs["output_dir"] = Path(os.environ["QAS_OUTPUT_DIR"])
        if os.environ.get("QAS_PROJECT_EXPIRY_HOURS"):
            kwargs["project_expiry_hours"] = int(os.environ["QAS_PROJECT_EXPIRY_HOURS"])
        if os.environ.get("QAS_SWEEP_INTERVAL_SECONDS"):
            kwargs["sweep_interval_seconds"] = float(os.environ["QAS_SWEEP_INTERVAL_SECONDS"])
        if os.environ.get("QAS_COMPRESSION_LEVEL"):
            kwargs["compression_level"] = int(os.environ["QAS_COMPRESSION_LEVEL"])
        if os.environ.get("QAS_STRICT_PACKS"):
            kwargs["strict_pack_resolution"] = os.environ["QAS_STRICT_PACKS"].strip().lower() in {
                "1",
                "true",
                "yes",
                "on",
            }
        if os.environ.get("QAS_LOG_LEVEL"):
            kwargs["log_level"] = os.environ["QAS_LOG_LEVEL"]
        return cls(**kwargs)

    def ensure_directories(self) -> None:
        """Create the output directory if it does not exist yet."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
