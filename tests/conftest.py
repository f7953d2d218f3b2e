"""Shared pytest fixtures for the QAStarter test suite.

Provides reusable fixtures for:
- Engine configuration pointing at a temporary output directory
- Sample project configurations
- Temporary template packs built on the fly
- A controllable clock for expiry tests
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from qastarter.config import EngineConfig
from qastarter.models import Configuration


# ---------------------------------------------------------------------------
# Engine configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Temporary directory receiving staging trees and archives."""
    path = tmp_path / "generated"
    path.mkdir()
    yield path


@pytest.fixture
def engine_config(output_dir: Path) -> EngineConfig:
    """Engine configuration using the bundled packs and a temp output dir."""
    return EngineConfig(output_dir=output_dir, sweep_interval_seconds=0.05)


# ---------------------------------------------------------------------------
# Project configurations
# ---------------------------------------------------------------------------

def _base_configuration() -> dict[str, Any]:
    return {
        "testingType": "Web",
        "methodology": "TDD",
        "tool": "Selenium",
        "language": "Java",
        "testRunner": "JUnit",
        "buildTool": "Maven",
        "scenarios": ["Login"],
        "config": {"projectName": "shop-tests", "groupId": "com.acme"},
    }


@pytest.fixture
def make_configuration() -> Callable[..., Configuration]:
    """Factory: ``make_configuration(scenarios=[...], integrations={...})``."""

    def _make(**overrides: Any) -> Configuration:
        data = _base_configuration()
        data.update(overrides)
        return Configuration.model_validate(data)

    return _make


@pytest.fixture
def web_configuration(make_configuration) -> Configuration:
    """Selenium + Java + JUnit + Maven with the Login scenario."""
    return make_configuration()


# ---------------------------------------------------------------------------
# Temporary packs
# ---------------------------------------------------------------------------

@pytest.fixture
def packs_dir(tmp_path: Path) -> Path:
    path = tmp_path / "packs"
    path.mkdir()
    return path


@pytest.fixture
def make_pack(packs_dir: Path) -> Callable[..., Path]:
    """Factory that writes a pack to ``packs_dir`` and returns ``packs_dir``.

    Each file dict takes the manifest keys plus an optional ``body``
    (str or bytes).  Bodies are written to ``files/<path>`` (``.j2`` appended
    for templates) unless ``body`` is ``None``.
    """

    def _make(
        pack_id: str = "test-pack",
        files: list[dict[str, Any]] | None = None,
        *,
        manifest_format: str = "json",
        **manifest_extra: Any,
    ) -> Path:
        root = packs_dir / pack_id
        files_root = root / "files"
        files_root.mkdir(parents=True, exist_ok=True)
        files = files if files is not None else [
            {"path": "README.md", "isTemplate": True, "body": "# {{ projectName }}\n"},
        ]

        entries = []
        for item in files:
            item = dict(item)
            body = item.pop("body", "")
            entries.append(item)
            if body is None:
                continue
            name = item["path"] + (".j2" if item.get("isTemplate") else "")
            target = files_root / name
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(body, bytes):
                target.write_bytes(body)
            else:
                target.write_text(body, encoding="utf-8")

        manifest = {"id": pack_id, "version": "1.0.0", "files": entries, **manifest_extra}
        if manifest_format == "json":
            (root / "manifest.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        else:
            import yaml

            (root / "manifest.yaml").write_text(yaml.safe_dump(manifest), encoding="utf-8")
        return packs_dir

    return _make


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
