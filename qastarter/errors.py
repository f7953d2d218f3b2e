"""Error taxonomy for the generation engine.

Every error carries a stable ``code`` and a generic ``public_message`` that
is safe to hand to callers.  The ``str()`` of an error holds the detailed
diagnostic (paths, template names) and is meant for logs only.
"""

from __future__ import annotations


class QAStarterError(Exception):
    """Base class for all engine errors."""

    code = "INTERNAL_ERROR"
    public_message = "An internal error occurred"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)


class TemplateNotFound(QAStarterError):
    """No template pack exists for the requested identifier."""

    code = "TEMPLATE_NOT_FOUND"
    public_message = "Template not found for the specified configuration"

    def __init__(self, pack_id: str, message: str | None = None) -> None:
        self.pack_id = pack_id
        super().__init__(message or f"Template pack not found: {pack_id}")


class UnsupportedCombination(TemplateNotFound):
    """The tool/language/runner combination has no mapped pack (strict mode)."""

    code = "INCOMPATIBLE_COMBINATION"
    public_message = "Invalid combination of tool, language, and test runner"

    def __init__(self, tool: str, language: str, test_runner: str) -> None:
        self.combination = (tool, language, test_runner)
        super().__init__(
            "",
            f"No template pack mapped for {tool}-{language}-{test_runner}",
        )


class ManifestInvalid(QAStarterError):
    """A pack manifest is missing required fields or is malformed."""

    code = "MANIFEST_INVALID"
    public_message = "Template pack manifest is invalid"

    def __init__(self, pack_id: str, reason: str) -> None:
        self.pack_id = pack_id
        self.reason = reason
        super().__init__(f"Invalid manifest for pack {pack_id}: {reason}")


class RenderError(QAStarterError):
    """A template could not be expanded against the context."""

    code = "TEMPLATE_GENERATION_ERROR"
    public_message = "Error generating project template"

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Template processing failed for {path}: {reason}")


class PathTraversalRejected(QAStarterError):
    """A rendered path would escape the output root."""

    code = "PATH_TRAVERSAL_REJECTED"
    public_message = "Generated file path was rejected"

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Rejected path {path!r}: {reason}")


class EmptyProject(QAStarterError):
    """No file of the pack applies to the configuration."""

    code = "EMPTY_PROJECT"
    public_message = "No files matched the selected configuration"


class ArchiveError(QAStarterError):
    """Writing the archive failed (disk or permission problem)."""

    code = "ARCHIVE_ERROR"
    public_message = "Error creating project archive"


class ProjectNotFound(QAStarterError):
    """Unknown or expired project.  Both cases use the same message."""

    code = "RESOURCE_NOT_FOUND"
    public_message = "Project not found or expired"

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(self.public_message)


class NotReady(QAStarterError):
    """Download requested before the project reached ``completed``."""

    code = "NOT_READY"
    public_message = "Project download not ready"

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(self.public_message)


class InvalidTransition(QAStarterError):
    """A lifecycle transition outside the allowed state machine."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Illegal status transition {current} -> {target}")
