"""Shared tool versions and dependency selection.

Packs may pin their own versions in the manifest's ``toolVersions``; those
override the shared table below.  ``select_dependencies`` narrows the merged
table down to what a given configuration actually uses.
"""

from __future__ import annotations

from collections.abc import Mapping

from qastarter.models import Configuration, Methodology, TestingType

SHARED_TOOL_VERSIONS: dict[str, str] = {
    # Languages & runtimes
    "java": "17",
    "python": "3.12",
    "node": "20",
    "kotlin": "2.0.0",
    "swift": "5.10",
    # Web
    "selenium": "4.18.0",
    "playwright": "1.42.0",
    "cypress": "13.7.0",
    # Mobile
    "appium": "9.1.0",
    "espresso": "3.5.1",
    "xcuitest": "15.2",
    # API
    "restassured": "5.4.0",
    "requests": "2.31.0",
    "jackson": "2.17.0",
    "gson": "2.10.1",
    # Test runners
    "junit5": "5.10.2",
    "testng": "7.9.0",
    "pytest": "8.0.0",
    "jest": "29.7.0",
    "cucumber": "7.16.0",
    # Reporting
    "allure": "2.27.0",
    "extentreports": "5.1.2",
    # Logging
    "log4j": "2.23.0",
    "winston": "3.12.0",
    # Build tools
    "maven": "3.9.6",
    "gradle": "8.6",
    "maven_compiler_plugin": "3.12.1",
    "maven_surefire_plugin": "3.2.5",
}

_LOGGING_KEYS = ("log4j", "logging", "winston")
_BDD_KEYS = ("cucumber", "behave", "gherkin")
_MOBILE_KEYS = ("appium", "espresso", "xcuitest")
_API_KEYS = ("rest", "request", "supertest", "jackson", "gson")

# Runner names as chosen in the wizard do not always match version keys.
_RUNNER_ALIASES: dict[str, str] = {"junit": "junit5"}


def merge_versions(manifest_versions: Mapping[str, str]) -> dict[str, str]:
    """Shared versions overlaid with the pack's own (pack wins)."""
    return {**SHARED_TOOL_VERSIONS, **manifest_versions}


def _normalise(value: str) -> str:
    return value.lower().replace("-", "").replace("_", "").replace(" ", "")


def select_dependencies(
    config: Configuration, versions: Mapping[str, str]
) -> dict[str, str]:
    """Return the subset of *versions* relevant to *config*.

    Always kept: entries naming the language, tool, test runner or build
    tool, and logging libraries.  Added on demand: the chosen reporting
    tool, BDD libraries for BDD projects, mobile drivers for mobile
    projects and HTTP/JSON libraries for API projects.
    """
    runner = _RUNNER_ALIASES.get(config.test_runner.lower(), config.test_runner)
    core = [
        _normalise(v)
        for v in (config.language, config.tool, runner, config.build_tool)
        if v
    ]
    wanted: list[tuple[str, ...]] = [_LOGGING_KEYS]
    if config.integrations.reporting:
        wanted.append((_normalise(config.integrations.reporting).replace("reports", ""),))
    if config.methodology is Methodology.BDD:
        wanted.append(_BDD_KEYS)
    if config.testing_type is TestingType.MOBILE:
        wanted.append(_MOBILE_KEYS)
    if config.testing_type is TestingType.API:
        wanted.append(_API_KEYS)

    selected: dict[str, str] = {}
    for key, version in versions.items():
        norm = _normalise(key)
        if any(c and c in norm for c in core):
            selected[key] = version
        elif any(fragment in norm for group in wanted for fragment in group):
            selected[key] = version
    return selected
