"""Project lifecycle management.

``ProjectLifecycleManager`` owns every generation: it creates the record,
drives the pipeline (pack -> resolve -> render -> assemble -> archive) as an
asyncio task, tracks status and progress, serves downloads and purges
expired projects.

Usage::

    async with ProjectLifecycleManager(EngineConfig()) as manager:
        project = await manager.generate(configuration)
        await manager.drain()
        with await manager.download(project.id) as fh:
            data = fh.read()
"""

from __future__ import annotations

import asyncio
import contextlib
import shutil
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, BinaryIO

from qastarter.config import EngineConfig
from qastarter.engine.archiver import archive
from qastarter.engine.assembler import assemble
from qastarter.engine.conditions import resolve
from qastarter.engine.context import build_context
from qastarter.engine.registry import Pack, PackRegistry, resolve_pack_id
from qastarter.engine.renderer import RenderedFile, TemplateRenderer
from qastarter.engine.versions import select_dependencies
from qastarter.errors import (
    EmptyProject,
    InvalidTransition,
    NotReady,
    ProjectNotFound,
    QAStarterError,
)
from qastarter.models import Configuration, FileMetadata, GeneratedProject, ProjectStatus
from qastarter.utils import get_logger

logger = get_logger(__name__)

_TRANSITIONS: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    ProjectStatus.PENDING: frozenset({ProjectStatus.GENERATING}),
    ProjectStatus.GENERATING: frozenset({ProjectStatus.COMPLETED, ProjectStatus.FAILED}),
    ProjectStatus.COMPLETED: frozenset(),
    ProjectStatus.FAILED: frozenset(),
}

# Progress milestones
PROGRESS_PACK_LOADED = 10
PROGRESS_RESOLVED = 20
PROGRESS_RENDER_START = 30
PROGRESS_RENDER_END = 70
PROGRESS_ASSEMBLED = 80
PROGRESS_DONE = 100

Clock = Callable[[], datetime]
UpdateCallback = Callable[[GeneratedProject], Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProjectLifecycleManager:
    """Creates, tracks, serves and expires generated projects.

    All state lives on the event loop thread; blocking work (pack loading,
    rendering, disk writes, archiving, deletion) runs via
    ``asyncio.to_thread``.  Callers only ever receive deep copies of the
    records.

    Args:
        config: Engine configuration.  Defaults to ``EngineConfig()``.
        registry: Pack registry; one is built from ``config.packs_dir`` if
            omitted.
        renderer: Template renderer to use.
        clock: Returns the current (timezone-aware) time.  Injected by tests.
        on_update: Called with a snapshot on every status or progress change.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        registry: PackRegistry | None = None,
        renderer: TemplateRenderer | None = None,
        clock: Clock | None = None,
        on_update: UpdateCallback | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.registry = registry or PackRegistry(self.config.packs_dir)
        self.renderer = renderer or TemplateRenderer()
        self._clock = clock or _utcnow
        self._on_update = on_update
        self._projects: dict[str, GeneratedProject] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._sweeper: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Context manager / background sweeper
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "ProjectLifecycleManager":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def start(self) -> None:
        """Start the periodic expiry sweep on the running loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="qastarter-sweeper")

    async def aclose(self) -> None:
        """Stop the sweeper and wait for in-flight generations."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        await self.drain()

    async def drain(self) -> None:
        """Wait until every in-flight generation has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def _sweep_loop(self) -> None:
        interval = self.config.sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                removed = await self.sweep_expired()
            except Exception:
                logger.exception("Expiry sweep failed")
                continue
            if removed:
                logger.info("Expiry sweep removed %d project(s)", removed)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def generate(self, configuration: Configuration) -> GeneratedProject:
        """Register a new project and schedule its generation.

        Returns a ``pending`` snapshot immediately; poll :meth:`get` for
        progress.
        """
        now = self._clock()
        project_id = str(uuid.uuid4())
        record = GeneratedProject(
            id=project_id,
            configuration=configuration,
            created_at=now,
            expires_at=now + self.config.project_ttl,
        )
        self._projects[project_id] = record
        self._notify(record)
        self._tasks[project_id] = asyncio.create_task(
            self._run(project_id, configuration), name=f"qastarter-generate-{project_id}"
        )
        logger.info("Scheduled generation %s (%s)", project_id, configuration.project_name)
        return record.model_copy(deep=True)

    def get(self, project_id: str) -> GeneratedProject:
        """Snapshot of the project.

        Raises:
            ProjectNotFound: For unknown and for expired ids alike.
        """
        return self._live(project_id).model_copy(deep=True)

    def list_files(self, project_id: str) -> list[FileMetadata]:
        return [f.model_copy() for f in self._live(project_id).files]

    def list_all(self) -> list[GeneratedProject]:
        """Snapshots of every unexpired project, oldest first."""
        now = self._clock()
        records = [r for r in self._projects.values() if not r.is_expired(now)]
        records.sort(key=lambda r: r.created_at)
        return [r.model_copy(deep=True) for r in records]

    async def download(self, project_id: str) -> BinaryIO:
        """Open the project's archive for reading.

        The caller owns the returned handle and must close it.

        Raises:
            ProjectNotFound: Unknown or expired id, or the archive vanished.
            NotReady: The project has not completed; nothing is changed.
        """
        record = self._live(project_id)
        if record.status is not ProjectStatus.COMPLETED or record.archive_path is None:
            raise NotReady(project_id)

        try:
            handle: BinaryIO = await asyncio.to_thread(open, record.archive_path, "rb")
        except FileNotFoundError as exc:
            logger.warning("Archive for %s disappeared before download", project_id)
            raise ProjectNotFound(project_id) from exc

        # The record may have been swept while the file was being opened.
        current = self._projects.get(project_id)
        if current is None:
            handle.close()
            raise ProjectNotFound(project_id)
        self._projects[project_id] = current.model_copy(
            update={"download_count": current.download_count + 1}
        )
        return handle

    async def delete(self, project_id: str) -> bool:
        """Remove the project and its files.  False if it did not exist."""
        record = self._projects.pop(project_id, None)
        if record is None:
            return False
        await self._discard_output(project_id)
        logger.info("Deleted project %s", project_id)
        return True

    async def sweep_expired(self) -> int:
        """Remove every project past its expiry time; return how many."""
        now = self._clock()
        expired = [pid for pid, r in self._projects.items() if r.is_expired(now)]
        for project_id in expired:
            self._projects.pop(project_id, None)
            await self._discard_output(project_id)
            logger.debug("Expired project %s", project_id)
        return len(expired)

    async def preview(self, configuration: Configuration) -> list[RenderedFile]:
        """Render the project in memory without writing anything."""
        pack = await self._load_pack(configuration)
        context = build_context(configuration, pack.tool_versions)
        entries = resolve(pack.manifest.files, context)
        return [
            await asyncio.to_thread(self.renderer.render, entry, context, pack.body(entry))
            for entry in entries
        ]

    async def dependencies(self, configuration: Configuration) -> dict[str, str]:
        """Tool versions relevant to *configuration*'s selection."""
        pack = await self._load_pack(configuration)
        return select_dependencies(configuration, pack.tool_versions)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _load_pack(self, configuration: Configuration) -> Pack:
        pack_id = resolve_pack_id(
            configuration.tool,
            configuration.language,
            configuration.test_runner,
            strict=self.config.strict_pack_resolution,
        )
        return await asyncio.to_thread(self.registry.load_pack, pack_id)

    async def _run(self, project_id: str, configuration: Configuration) -> None:
        try:
            self._transition(project_id, ProjectStatus.GENERATING)

            pack = await self._load_pack(configuration)
            self._update(project_id, progress=PROGRESS_PACK_LOADED, pack_id=pack.id)

            context = build_context(configuration, pack.tool_versions)
            entries = resolve(pack.manifest.files, context)
            if not entries:
                raise EmptyProject(f"No files of pack {pack.id} matched project {project_id}")
            self._update(project_id, progress=PROGRESS_RESOLVED)

            rendered: list[RenderedFile] = []
            span = PROGRESS_RENDER_END - PROGRESS_RENDER_START
            self._update(project_id, progress=PROGRESS_RENDER_START)
            for index, entry in enumerate(entries, start=1):
                rendered.append(
                    await asyncio.to_thread(self.renderer.render, entry, context, pack.body(entry))
                )
                self._update(
                    project_id,
                    progress=PROGRESS_RENDER_START + span * index // len(entries),
                )

            staging = self.config.staging_dir(project_id)
            files = await asyncio.to_thread(assemble, rendered, staging, pack.manifest.directories)
            self._update(project_id, progress=PROGRESS_ASSEMBLED)

            result = await asyncio.to_thread(
                archive,
                staging,
                files,
                self.config.archive_path(project_id),
                self.config.compression_level,
            )
            self._transition(
                project_id,
                ProjectStatus.COMPLETED,
                progress=PROGRESS_DONE,
                files=files,
                archive_path=result.path,
            )
            logger.info(
                "Generated project %s: %d files, %d bytes",
                project_id,
                result.file_count,
                result.compressed_size,
            )
        except QAStarterError as exc:
            logger.exception("Generation %s failed: %s", project_id, exc)
            await self._fail(project_id, exc.public_message)
        except Exception:
            logger.exception("Unexpected error during generation %s", project_id)
            await self._fail(project_id, QAStarterError.public_message)
        finally:
            self._tasks.pop(project_id, None)
            if project_id not in self._projects:
                # Deleted or swept mid-generation.
                await self._discard_output(project_id)

    async def _fail(self, project_id: str, message: str) -> None:
        record = self._projects.get(project_id)
        if record is not None and record.status is ProjectStatus.GENERATING:
            self._transition(project_id, ProjectStatus.FAILED, error=message)
        await self._discard_output(project_id)

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _live(self, project_id: str) -> GeneratedProject:
        record = self._projects.get(project_id)
        if record is None or record.is_expired(self._clock()):
            raise ProjectNotFound(project_id)
        return record

    def _transition(
        self, project_id: str, target: ProjectStatus, **changes: Any
    ) -> GeneratedProject | None:
        record = self._projects.get(project_id)
        if record is None:
            return None
        if target not in _TRANSITIONS[record.status]:
            raise InvalidTransition(record.status.value, target.value)
        return self._store(record, status=target, **changes)

    def _update(self, project_id: str, **changes: Any) -> GeneratedProject | None:
        record = self._projects.get(project_id)
        if record is None:
            return None
        return self._store(record, **changes)

    def _store(self, record: GeneratedProject, **changes: Any) -> GeneratedProject:
        # Rebuild through the constructor so the model invariants are re-checked.
        updated = GeneratedProject(**{**dict(record), **changes})
        self._projects[record.id] = updated
        self._notify(updated)
        return updated

    def _notify(self, record: GeneratedProject) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(record.model_copy(deep=True))
        except Exception:
            logger.exception("on_update callback failed for %s", record.id)

    def _remove_output(self, project_id: str) -> None:
        staging = self.config.staging_dir(project_id)
        if staging.exists():
            shutil.rmtree(staging)
        self.config.archive_path(project_id).unlink(missing_ok=True)

    async def _discard_output(self, project_id: str) -> None:
        """Remove output files, logging rather than raising on failure."""
        try:
            await asyncio.to_thread(self._remove_output, project_id)
        except OSError:
            logger.exception("Could not remove output of project %s", project_id)
