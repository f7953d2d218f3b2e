"""QAStarter -- generates runnable QA automation projects from template packs.

Quick usage::

    from qastarter import EngineConfig, ProjectLifecycleManager, Configuration

    config = Configuration(
        testingType="Web",
        tool="Selenium",
        language="Java",
        testRunner="JUnit",
        buildTool="Maven",
        scenarios=["Login"],
    )
    async with ProjectLifecycleManager(EngineConfig()) as manager:
        project = await manager.generate(config)
        ...
        project = manager.get(project.id)
"""

from qastarter.config import EngineConfig
from qastarter.errors import (
    ArchiveError,
    ManifestInvalid,
    NotReady,
    PathTraversalRejected,
    ProjectNotFound,
    QAStarterError,
    RenderError,
    TemplateNotFound,
)
from qastarter.lifecycle import ProjectLifecycleManager
from qastarter.models import Configuration, FileMetadata, GeneratedProject, ProjectStatus

__version__ = "0.1.0"

__all__ = [
    "ArchiveError",
    "Configuration",
    "EngineConfig",
    "FileMetadata",
    "GeneratedProject",
    "ManifestInvalid",
    "NotReady",
    "PathTraversalRejected",
    "ProjectLifecycleManager",
    "ProjectNotFound",
    "ProjectStatus",
    "QAStarterError",
    "RenderError",
    "TemplateNotFound",
]
