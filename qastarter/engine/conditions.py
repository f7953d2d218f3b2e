"""Conditional file inclusion.

A manifest entry's ``conditional`` is a mapping of dotted context keys to
expected scalar values.  Each pair is compiled into a typed ``Condition``
and evaluated by walking the frozen context one mapping key at a time; no
attribute access or string evaluation is involved.  A key that cannot be
reached never matches, so a CI/CD-specific file cannot leak into a project
that chose no CI/CD tool.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from qastarter.engine.context import Context
from qastarter.models import FileEntry

_MISSING = object()


@dataclass(frozen=True)
class Condition:
    """``context[path[0]][path[1]]... == expected``."""

    path: tuple[str, ...]
    expected: Any

    @classmethod
    def parse(cls, key: str, expected: Any) -> "Condition":
        parts = tuple(key.split("."))
        if not all(parts):
            raise ValueError(f"Malformed conditional key: {key!r}")
        if isinstance(expected, (dict, list, tuple, set)):
            raise ValueError(f"Conditional value for {key!r} must be a scalar")
        return cls(parts, expected)

    def evaluate(self, context: Context) -> bool:
        actual = lookup(context, self.path)
        if actual is _MISSING:
            return False
        # bool is an int subclass; keep True from matching 1.
        if isinstance(actual, bool) or isinstance(self.expected, bool):
            return actual is self.expected
        return actual == self.expected


def lookup(context: Context, path: tuple[str, ...]) -> Any:
    """Follow *path* through nested mappings; ``_MISSING`` when unreachable."""
    current: Any = context
    for key in path:
        if not isinstance(current, Mapping) or key not in current:
            return _MISSING
        current = current[key]
    return current


def compile_conditions(conditional: Mapping[str, Any] | None) -> tuple[Condition, ...]:
    """Compile a manifest ``conditional`` mapping, sorted for stable evaluation."""
    if not conditional:
        return ()
    return tuple(Condition.parse(k, v) for k, v in sorted(conditional.items()))


def matches(entry: FileEntry, context: Context) -> bool:
    """True when every condition of *entry* holds (vacuously true without any)."""
    return all(c.evaluate(context) for c in compile_conditions(entry.conditional))


def resolve(files: Iterable[FileEntry], context: Context) -> list[FileEntry]:
    """Return the entries of *files* that belong in the output, in manifest order.

    Entries classified as sample tests are dropped when the context's
    ``includeSampleTests`` is false.
    """
    include_samples = context.get("includeSampleTests", True) is not False
    included = []
    for entry in files:
        if not include_samples and is_sample_test(entry.path):
            continue
        if matches(entry, context):
            included.append(entry)
    return included


# ---------------------------------------------------------------------------
# Sample test detection
# ---------------------------------------------------------------------------

_INFRASTRUCTURE_FILES = frozenset({
    "conftest.py",
    "setup.js",
    "setup.ts",
    "basetest.cs",
    "hooks.java",
    "hooks.cs",
    "basescreen.swift",
    "testdata.swift",
})

_TEST_DIRECTORIES = (
    "/tests/",
    "/test/",
    "/androidtest/",
    "/uitests/",
    "/features/",
    "/step_defs/",
    "/step-definitions/",
    "/stepdefinitions/",
    "/steps/",
    "/bdd/",
    "/cypress/e2e/",
    "/cypress/integration/",
)

_SAMPLE_SUFFIXES = (
    # Java
    "tests.java", "test.java", "steps.java", "testrunner.java", "suite.java",
    # Python
    "_test.py",
    # JavaScript / TypeScript
    ".test.js", ".spec.js", ".steps.js", "_steps.js", ".cy.js",
    ".test.ts", ".spec.ts", ".steps.ts", "_steps.ts", ".cy.ts",
    # C# / Swift
    "tests.cs", "test.cs", "test.swift", "tests.swift",
    # Gherkin
    ".feature", ".story",
)


def is_sample_test(path: str) -> bool:
    """True for example test files a user may opt out of.

    A sample test lives under a test directory and follows a test-file naming
    pattern; fixtures, hooks and base classes are infrastructure and never
    count as samples.
    """
    lower = "/" + path.lower().replace("\\", "/")
    name = lower.rsplit("/", 1)[-1]
    if name in _INFRASTRUCTURE_FILES or name.startswith("base") or "testdata." in name:
        return False
    if not any(d in lower for d in _TEST_DIRECTORIES):
        return False
    return name.startswith("test_") or name.endswith(_SAMPLE_SUFFIXES)
