"""Template pack discovery, loading and caching.

A pack is a directory ``<packs_dir>/<pack_id>/`` containing a manifest
(``manifest.json``, ``manifest.yaml`` or ``manifest.yml``) and a ``files/``
tree with one body per manifest entry (``<path>.j2`` for templates).  Packs
are loaded eagerly and validated in full the first time they are requested,
then served from an in-memory cache.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

import yaml
from pydantic import ValidationError

from qastarter.engine.assembler import normalize_relative_path
from qastarter.engine.conditions import compile_conditions
from qastarter.engine.renderer import TEMPLATE_SUFFIX
from qastarter.engine.versions import merge_versions
from qastarter.errors import ManifestInvalid, PathTraversalRejected, TemplateNotFound, UnsupportedCombination
from qastarter.models import FileEntry, Manifest
from qastarter.utils import get_logger

logger = get_logger(__name__)

MANIFEST_NAMES = ("manifest.json", "manifest.yaml", "manifest.yml")
FILES_DIR = "files"


# ---------------------------------------------------------------------------
# Pack identifier resolution
# ---------------------------------------------------------------------------

class Tool(str, Enum):
    SELENIUM = "selenium"
    PLAYWRIGHT = "playwright"
    CYPRESS = "cypress"
    RESTASSURED = "restassured"
    REQUESTS = "requests"
    APPIUM = "appium"
    XCUITEST = "xcuitest"
    ESPRESSO = "espresso"


class Language(str, Enum):
    JAVA = "java"
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    SWIFT = "swift"
    KOTLIN = "kotlin"


class Runner(str, Enum):
    JUNIT = "junit"
    TESTNG = "testng"
    PYTEST = "pytest"
    JEST = "jest"
    CYPRESS = "cypress"
    XCTEST = "xctest"
    ESPRESSO = "espresso"


class PackId(str, Enum):
    JAVA_SELENIUM_JUNIT = "java-selenium-junit"
    JAVA_SELENIUM_TESTNG = "java-selenium-testng"
    PYTHON_SELENIUM_PYTEST = "python-selenium-pytest"
    JAVASCRIPT_PLAYWRIGHT_JEST = "javascript-playwright-jest"
    TYPESCRIPT_PLAYWRIGHT_JEST = "typescript-playwright-jest"
    JAVASCRIPT_CYPRESS = "javascript-cypress"
    TYPESCRIPT_CYPRESS = "typescript-cypress"
    JAVA_RESTASSURED_JUNIT = "java-restassured-junit"
    JAVA_RESTASSURED_TESTNG = "java-restassured-testng"
    PYTHON_REQUESTS_PYTEST = "python-requests-pytest"
    JAVA_APPIUM_JUNIT = "java-appium-junit"
    JAVA_APPIUM_TESTNG = "java-appium-testng"
    SWIFT_XCUITEST = "swift-xcuitest"
    JAVA_ESPRESSO = "java-espresso"
    KOTLIN_ESPRESSO = "kotlin-espresso"


_PACK_TABLE: Mapping[tuple[Tool, Language, Runner], PackId] = MappingProxyType({
    (Tool.SELENIUM, Language.JAVA, Runner.JUNIT): PackId.JAVA_SELENIUM_JUNIT,
    (Tool.SELENIUM, Language.JAVA, Runner.TESTNG): PackId.JAVA_SELENIUM_TESTNG,
    (Tool.SELENIUM, Language.PYTHON, Runner.PYTEST): PackId.PYTHON_SELENIUM_PYTEST,
    (Tool.PLAYWRIGHT, Language.JAVASCRIPT, Runner.JEST): PackId.JAVASCRIPT_PLAYWRIGHT_JEST,
    (Tool.PLAYWRIGHT, Language.TYPESCRIPT, Runner.JEST): PackId.TYPESCRIPT_PLAYWRIGHT_JEST,
    (Tool.CYPRESS, Language.JAVASCRIPT, Runner.CYPRESS): PackId.JAVASCRIPT_CYPRESS,
    (Tool.CYPRESS, Language.TYPESCRIPT, Runner.CYPRESS): PackId.TYPESCRIPT_CYPRESS,
    (Tool.RESTASSURED, Language.JAVA, Runner.JUNIT): PackId.JAVA_RESTASSURED_JUNIT,
    (Tool.RESTASSURED, Language.JAVA, Runner.TESTNG): PackId.JAVA_RESTASSURED_TESTNG,
    (Tool.REQUESTS, Language.PYTHON, Runner.PYTEST): PackId.PYTHON_REQUESTS_PYTEST,
    (Tool.APPIUM, Language.JAVA, Runner.JUNIT): PackId.JAVA_APPIUM_JUNIT,
    (Tool.APPIUM, Language.JAVA, Runner.TESTNG): PackId.JAVA_APPIUM_TESTNG,
    (Tool.XCUITEST, Language.SWIFT, Runner.XCTEST): PackId.SWIFT_XCUITEST,
    (Tool.ESPRESSO, Language.JAVA, Runner.ESPRESSO): PackId.JAVA_ESPRESSO,
    (Tool.ESPRESSO, Language.KOTLIN, Runner.ESPRESSO): PackId.KOTLIN_ESPRESSO,
})

FALLBACK_PACK = PackId.JAVA_SELENIUM_JUNIT


def _member(enum_cls, value: str):
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        return None


def resolve_pack_id(tool: str, language: str, test_runner: str, *, strict: bool = False) -> str:
    """Map a tool/language/runner selection to a pack identifier.

    Matching is case-insensitive.  An unmapped combination falls back to
    ``FALLBACK_PACK`` with a warning, or raises ``UnsupportedCombination``
    when *strict* is set.
    """
    key = (_member(Tool, tool), _member(Language, language), _member(Runner, test_runner))
    pack = _PACK_TABLE.get(key)  # type: ignore[arg-type]
    if pack is not None:
        return pack.value
    if strict:
        raise UnsupportedCombination(tool, language, test_runner)
    logger.warning(
        "No pack mapped for %s-%s-%s; falling back to %s",
        tool,
        language,
        test_runner,
        FALLBACK_PACK.value,
    )
    return FALLBACK_PACK.value


# ---------------------------------------------------------------------------
# Pack loading
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Pack:
    """A validated pack with every file body held in memory."""

    manifest: Manifest
    root: Path
    contents: Mapping[str, bytes] = field(repr=False)
    tool_versions: Mapping[str, str] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.manifest.id

    def body(self, entry: FileEntry) -> bytes:
        return self.contents[entry.path]


class PackRegistry:
    """Loads packs from *packs_dir* at most once per pack id.

    Concurrent first requests for the same pack (from worker threads) are
    serialised by a per-pack lock; different packs load in parallel.
    """

    def __init__(self, packs_dir: Path) -> None:
        self.packs_dir = Path(packs_dir)
        self._cache: dict[str, Pack] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def load_pack(self, pack_id: str) -> Pack:
        """Return the cached pack, loading and validating it on first use.

        Raises:
            TemplateNotFound: No directory exists for *pack_id*.
            ManifestInvalid: The manifest or a referenced body is invalid.
        """
        cached = self._cache.get(pack_id)
        if cached is not None:
            return cached

        with self._guard:
            lock = self._locks.setdefault(pack_id, threading.Lock())
        with lock:
            cached = self._cache.get(pack_id)
            if cached is None:
                cached = self._read_pack(pack_id)
                self._cache[pack_id] = cached
                logger.info(
                    "Loaded pack %s v%s (%d files)",
                    pack_id,
                    cached.manifest.version,
                    len(cached.manifest.files),
                )
            return cached

    def reload(self) -> None:
        """Drop every cached pack; the next request re-reads from disk."""
        with self._guard:
            self._cache.clear()
            self._locks.clear()

    def available_packs(self) -> list[str]:
        """Pack ids under ``packs_dir`` that carry a manifest file."""
        if not self.packs_dir.is_dir():
            return []
        return sorted(
            child.name
            for child in self.packs_dir.iterdir()
            if child.is_dir() and any((child / name).is_file() for name in MANIFEST_NAMES)
        )

    # -- Internals ---------------------------------------------------------

    def _pack_root(self, pack_id: str) -> Path:
        if not pack_id or "/" in pack_id or "\\" in pack_id or pack_id in (".", ".."):
            raise TemplateNotFound(pack_id)
        root = self.packs_dir / pack_id
        if not root.is_dir():
            raise TemplateNotFound(pack_id)
        return root

    def _read_pack(self, pack_id: str) -> Pack:
        root = self._pack_root(pack_id)
        manifest = _parse_manifest(pack_id, _read_manifest_data(pack_id, root))

        files_root = root / FILES_DIR
        contents: dict[str, bytes] = {}
        for entry in manifest.files:
            source_name = entry.path + TEMPLATE_SUFFIX if entry.is_template else entry.path
            source = files_root / source_name
            if not source.is_file():
                raise ManifestInvalid(pack_id, f"missing file body for {entry.path!r}")
            contents[entry.path] = source.read_bytes()

        return Pack(
            manifest=manifest,
            root=root,
            contents=MappingProxyType(contents),
            tool_versions=MappingProxyType(merge_versions(manifest.tool_versions)),
        )


def _read_manifest_data(pack_id: str, root: Path) -> object:
    for name in MANIFEST_NAMES:
        path = root / name
        if not path.is_file():
            continue
        text = path.read_text(encoding="utf-8")
        try:
            if name.endswith(".json"):
                return json.loads(text)
            return yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise ManifestInvalid(pack_id, f"{name} is not parseable: {exc}") from exc
    raise TemplateNotFound(pack_id, f"Template pack {pack_id} has no manifest")


def _parse_manifest(pack_id: str, data: object) -> Manifest:
    if not isinstance(data, dict):
        raise ManifestInvalid(pack_id, "manifest must be a mapping")
    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestInvalid(pack_id, str(exc)) from exc

    seen: set[str] = set()
    for entry in manifest.files:
        try:
            normalize_relative_path(entry.path)
        except PathTraversalRejected as exc:
            raise ManifestInvalid(pack_id, exc.reason + f": {entry.path!r}") from exc
        if entry.path in seen:
            raise ManifestInvalid(pack_id, f"duplicate file entry {entry.path!r}")
        seen.add(entry.path)
        try:
            compile_conditions(entry.conditional)
        except ValueError as exc:
            raise ManifestInvalid(pack_id, str(exc)) from exc
    for directory in manifest.directories:
        try:
            normalize_relative_path(directory)
        except PathTraversalRejected as exc:
            raise ManifestInvalid(pack_id, exc.reason + f": {directory!r}") from exc
    return manifest
