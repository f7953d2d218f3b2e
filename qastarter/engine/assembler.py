"""Project assembly: write rendered files into an isolated output root.

Every path is normalised and validated before anything touches the disk.
A manifest or rendering bug must never be able to write outside the
designated output directory, so unsafe paths are rejected rather than
repaired.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import unquote

from qastarter.engine.renderer import RenderedFile
from qastarter.errors import PathTraversalRejected, RenderError
from qastarter.models import FileMetadata, FileType
from qastarter.utils import get_logger

logger = get_logger(__name__)

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


# ---------------------------------------------------------------------------
# Path validation
# ---------------------------------------------------------------------------

def _decoded_forms(raw: str) -> list[str]:
    """*raw* plus its repeated URL-decodings, to catch ``%2e%2e`` tricks."""
    forms = [raw]
    for _ in range(5):
        decoded = unquote(forms[-1])
        if decoded == forms[-1]:
            break
        forms.append(decoded)
    return forms


def normalize_relative_path(raw: str) -> str:
    """Validate *raw* and return it as a clean ``/``-separated relative path.

    Raises:
        PathTraversalRejected: On null bytes, absolute paths (POSIX, UNC or
            drive-letter), ``..`` segments in any decoded form, or a path
            that normalises to nothing.
    """
    for form in _decoded_forms(raw):
        if "\x00" in form:
            raise PathTraversalRejected(raw, "null byte in path")
        candidate = form.replace("\\", "/")
        if candidate.startswith("/") or _DRIVE_PREFIX.match(candidate):
            raise PathTraversalRejected(raw, "absolute paths are not allowed")
        if ".." in candidate.split("/"):
            raise PathTraversalRejected(raw, "parent directory traversal")

    parts = [p for p in raw.replace("\\", "/").split("/") if p not in ("", ".")]
    if not parts:
        raise PathTraversalRejected(raw, "empty path")
    return "/".join(parts)


def resolve_inside(root: Path, relative: str) -> Path:
    """Join *relative* onto *root* and confirm it stays strictly inside.

    Symlinks are resolved on both sides, so a link planted inside the root
    cannot redirect a write elsewhere.
    """
    clean = normalize_relative_path(relative)
    base = root.resolve()
    target = (base / clean).resolve()
    if target == base or not target.is_relative_to(base):
        raise PathTraversalRejected(relative, "resolves outside the output root")
    return target


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def assemble(
    rendered: Iterable[RenderedFile],
    output_root: Path,
    directories: Iterable[str] = (),
) -> list[FileMetadata]:
    """Write *rendered* files below *output_root* and return the tree listing.

    Args:
        rendered: Files produced by the renderer, in manifest order.
        output_root: Isolated staging directory for this project.
        directories: Extra (possibly empty) directories to create.

    Returns:
        The result of :func:`scan_tree` on the finished root.

    Raises:
        PathTraversalRejected: If any path is unsafe.  Nothing is written
            for a batch containing an unsafe path.
        RenderError: If two files render to the same output path.
    """
    output_root.mkdir(parents=True, exist_ok=True)

    # Validate the whole batch before the first write.
    planned: dict[str, tuple[Path, RenderedFile]] = {}
    for item in rendered:
        target = resolve_inside(output_root, item.path)
        key = normalize_relative_path(item.path)
        if key in planned:
            raise RenderError(item.path, "two files render to the same output path")
        planned[key] = (target, item)
    extra_dirs = [resolve_inside(output_root, d) for d in directories]

    for target, item in planned.values():
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(item.content)
        if item.mode:
            target.chmod(int(item.mode, 8))
    for directory in extra_dirs:
        directory.mkdir(parents=True, exist_ok=True)

    logger.debug("Wrote %d files under %s", len(planned), output_root)
    return scan_tree(output_root)


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

def scan_tree(root: Path) -> list[FileMetadata]:
    """List every file and directory below *root*, depth-first, sorted by name.

    Directories precede their contents.  The order is stable across runs and
    is also the order in which the archiver writes members.
    """
    entries: list[FileMetadata] = []

    def _walk(directory: Path, prefix: str) -> None:
        with os.scandir(directory) as it:
            children = sorted(it, key=lambda e: e.name)
        for child in children:
            rel = f"{prefix}{child.name}"
            if child.is_symlink():
                continue
            if child.is_dir():
                entries.append(FileMetadata(path=rel, name=child.name, size=0, type=FileType.DIRECTORY))
                _walk(Path(child.path), f"{rel}/")
            elif child.is_file():
                entries.append(
                    FileMetadata(
                        path=rel,
                        name=child.name,
                        size=child.stat().st_size,
                        type=FileType.FILE,
                    )
                )

    _walk(root, "")
    return entries
