"""Tests for project assembly and path safety (qastarter.engine.assembler)."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from qastarter.engine.assembler import assemble, normalize_relative_path, resolve_inside, scan_tree
from qastarter.engine.renderer import RenderedFile
from qastarter.errors import PathTraversalRejected, RenderError
from qastarter.models import FileType

pytestmark = pytest.mark.unit


def _file(path: str, content: bytes = b"x", mode: str | None = None) -> RenderedFile:
    return RenderedFile(path=path, content=content, is_template=True, mode=mode)


# ---------------------------------------------------------------------------
# Path validation
# ---------------------------------------------------------------------------


class TestNormalizeRelativePath:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("a/b.txt", "a/b.txt"),
            ("./a//b.txt", "a/b.txt"),
            ("a\\b.txt", "a/b.txt"),
            (".github/workflows/ci.yml", ".github/workflows/ci.yml"),
            ("a/..b/c", "a/..b/c"),
        ],
    )
    def test_accepted(self, raw: str, expected: str):
        assert normalize_relative_path(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [
            "../../evil.txt",
            "a/../../evil.txt",
            "a/..",
            "/etc/passwd",
            "\\\\server\\share\\x",
            "C:\\Windows\\x",
            "c:/x",
            "%2e%2e/evil.txt",
            "%252e%252e%252fevil.txt",
            "a\x00b",
            "a%00b",
            "",
            "./",
        ],
    )
    def test_rejected(self, raw: str):
        with pytest.raises(PathTraversalRejected):
            normalize_relative_path(raw)

    def test_resolve_inside_rejects_root_itself(self, tmp_path: Path):
        with pytest.raises(PathTraversalRejected):
            resolve_inside(tmp_path, ".")

    def test_resolve_inside_follows_symlinks(self, tmp_path: Path):
        root = tmp_path / "root"
        outside = tmp_path / "outside"
        root.mkdir()
        outside.mkdir()
        os.symlink(outside, root / "link")
        with pytest.raises(PathTraversalRejected):
            resolve_inside(root, "link/evil.txt")


# ---------------------------------------------------------------------------
# assemble()
# ---------------------------------------------------------------------------


class TestAssemble:
    def test_writes_files_and_returns_listing(self, tmp_path: Path):
        root = tmp_path / "out"
        listing = assemble(
            [_file("pom.xml", b"<project/>"), _file("src/test/A.java", b"class A {}")],
            root,
        )
        assert (root / "pom.xml").read_bytes() == b"<project/>"
        assert (root / "src" / "test" / "A.java").read_bytes() == b"class A {}"
        assert [(m.path, m.type) for m in listing] == [
            ("pom.xml", FileType.FILE),
            ("src", FileType.DIRECTORY),
            ("src/test", FileType.DIRECTORY),
            ("src/test/A.java", FileType.FILE),
        ]
        assert listing[0].size == len(b"<project/>")
        assert listing[1].size == 0

    def test_traversal_rejected_before_any_write(self, tmp_path: Path):
        root = tmp_path / "out"
        with pytest.raises(PathTraversalRejected):
            assemble([_file("ok.txt"), _file("../../evil.txt")], root)
        assert not (root / "ok.txt").exists()
        assert not (tmp_path / "evil.txt").exists()
        assert not (tmp_path.parent / "evil.txt").exists()

    def test_duplicate_paths_rejected(self, tmp_path: Path):
        with pytest.raises(RenderError):
            assemble([_file("a/b.txt"), _file("a//b.txt")], tmp_path / "out")

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_mode_applied(self, tmp_path: Path):
        root = tmp_path / "out"
        assemble([_file("mvnw", b"#!/bin/sh\n", mode="755")], root)
        assert stat.S_IMODE((root / "mvnw").stat().st_mode) == 0o755

    def test_extra_directories_created(self, tmp_path: Path):
        root = tmp_path / "out"
        listing = assemble([_file("a.txt")], root, directories=["reports/html"])
        assert (root / "reports" / "html").is_dir()
        assert ("reports/html", FileType.DIRECTORY) in [(m.path, m.type) for m in listing]

    def test_unsafe_directory_rejected(self, tmp_path: Path):
        with pytest.raises(PathTraversalRejected):
            assemble([_file("a.txt")], tmp_path / "out", directories=["../x"])


class TestScanTree:
    def test_sorted_depth_first(self, tmp_path: Path):
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "z.txt").write_text("z")
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "c.txt").write_text("cc")
        assert [m.path for m in scan_tree(tmp_path)] == ["a.txt", "b", "b/z.txt", "c.txt"]

    def test_symlinks_skipped(self, tmp_path: Path):
        (tmp_path / "real.txt").write_text("x")
        os.symlink(tmp_path / "real.txt", tmp_path / "link.txt")
        assert [m.name for m in scan_tree(tmp_path)] == ["real.txt"]
