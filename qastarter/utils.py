"""Shared utility functions for QAStarter.

Provides the Rich console and logger factory, name/case conversion helpers
used by template contexts, identifier sanitisers for Java-style group and
artifact ids, and Rich-based output helpers for the command line.
"""

from __future__ import annotations

import logging
import re

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

_ROOT_LOGGER = "qastarter"


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``qastarter`` namespace.

    The Rich console handler is attached once, to the package root logger,
    so every module logger shares it through propagation.

    Args:
        name: Logger name (typically ``__name__``).
    """
    root = logging.getLogger(_ROOT_LOGGER)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return logging.getLogger(name)


def set_log_level(level: str) -> None:
    """Change the level of the package root logger (e.g. ``"DEBUG"``)."""
    logging.getLogger(_ROOT_LOGGER).setLevel(level.upper())


# ---------------------------------------------------------------------------
# Case conversion
# ---------------------------------------------------------------------------

_WORD_SPLIT = re.compile(r"[-_\s.]+")


def _words(value: str) -> list[str]:
    """Split ``someThing-else_here`` into ``['some', 'Thing', 'else', 'here']``."""
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", value)
    return [w for w in _WORD_SPLIT.split(spaced) if w]


def to_pascal(value: str) -> str:
    """Convert ``my-qa-project`` or ``my_qa project`` to ``MyQaProject``."""
    return "".join(w[0].upper() + w[1:] for w in _words(value))


def to_camel(value: str) -> str:
    """Convert ``my-qa-project`` to ``myQaProject``."""
    pascal = to_pascal(value)
    return pascal[:1].lower() + pascal[1:]


def to_snake(value: str) -> str:
    """Convert ``MyQaProject`` or ``my-qa-project`` to ``my_qa_project``."""
    return "_".join(w.lower() for w in _words(value))


def to_kebab(value: str) -> str:
    """Convert ``MyQaProject`` or ``my_qa_project`` to ``my-qa-project``."""
    return "-".join(w.lower() for w in _words(value))


def slugify(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


# ---------------------------------------------------------------------------
# Identifier sanitisers
# ---------------------------------------------------------------------------

def sanitize_group_id(group_id: str | None) -> str:
    """Normalise a Java group id: lowercase segments starting with a letter.

    Examples::

        sanitize_group_id("Com.Acme-Corp") -> "com.acmecorp"
        sanitize_group_id("org.1st")       -> "org.x1st"
        sanitize_group_id("")              -> "com.example"
    """
    if not group_id:
        return "com.example"
    segments = []
    for segment in group_id.lower().split("."):
        clean = re.sub(r"[^a-z0-9]", "", segment)
        if clean and not clean[0].isalpha():
            clean = "x" + clean
        if clean:
            segments.append(clean)
    return ".".join(segments) or "com.example"


def sanitize_artifact_id(artifact_id: str | None) -> str:
    """Normalise a Maven artifact id: lowercase letters, digits and hyphens."""
    if not artifact_id:
        return "my-artifact"
    clean = re.sub(r"[^a-z0-9-]", "-", artifact_id.lower())
    clean = re.sub(r"-+", "-", clean).strip("-")[:100]
    if clean and not clean[0].isalpha():
        clean = "x" + clean
    return clean or "my-artifact"


def package_to_path(package: str) -> str:
    """Convert a dotted package name to a directory path (``a.b`` -> ``a/b``)."""
    return "/".join(part for part in package.split(".") if part)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_size(num_bytes: int) -> str:
    """Format a byte count for humans (``2048`` -> ``"2.0 KB"``)."""
    size = float(num_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024 or unit == "MB":
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} MB"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------

def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")


def create_progress() -> Progress:
    """Create a Rich progress bar for a generation run."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
    )
