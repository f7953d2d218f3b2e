"""Template context construction.

The context is the read-only set of bindings that conditionals and templates
see.  It is built once per generation from a ``Configuration`` plus a few
computed fields, then deep-frozen so nothing can mutate it while rendering.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from qastarter.models import Configuration, Methodology
from qastarter.utils import (
    package_to_path,
    sanitize_artifact_id,
    sanitize_group_id,
    slugify,
    to_camel,
    to_kebab,
    to_pascal,
    to_snake,
)

Context = Mapping[str, Any]

# Utility flags a pack may test for.  Unselected ones are present and False
# so templates can branch on them without tripping the strict undefined check.
KNOWN_UTILITIES: tuple[str, ...] = (
    "configReader",
    "jsonReader",
    "screenshotUtility",
    "logger",
    "dataProvider",
    "includeDocker",
    "includeDockerCompose",
)

DEFAULT_ENVS: tuple[str, ...] = ("dev", "qa", "prod")


def build_context(
    config: Configuration, tool_versions: Mapping[str, str] | None = None
) -> Context:
    """Build the frozen template context for *config*.

    Optional values that are unset (no CI/CD tool, no group id, ...) are left
    out of the context entirely, so a conditional referencing them never
    matches.

    Args:
        config: The submitted project configuration.
        tool_versions: Merged tool version table for the selected pack.

    Returns:
        A deeply immutable mapping (``MappingProxyType`` / tuples).
    """
    settings = config.config
    name = settings.project_name
    group_id = sanitize_group_id(settings.group_id)
    artifact_id = sanitize_artifact_id(settings.artifact_id or slugify(name))
    package = sanitize_group_id(settings.package_name) if settings.package_name else group_id

    utilities = {u: False for u in KNOWN_UTILITIES}
    utilities.update({u: True for u in sorted(config.utilities)})

    integrations: dict[str, Any] = {"others": tuple(config.integrations.others)}
    if config.integrations.cicd:
        integrations["cicd"] = config.integrations.cicd
    if config.integrations.reporting:
        integrations["reporting"] = config.integrations.reporting

    project: dict[str, Any] = {"projectName": name}
    for key, value in (
        ("groupId", settings.group_id),
        ("artifactId", settings.artifact_id),
        ("packageName", settings.package_name),
    ):
        if value:
            project[key] = value

    ctx: dict[str, Any] = {
        "testingType": config.testing_type.value,
        "methodology": config.methodology.value,
        "tool": config.tool,
        "language": config.language,
        "buildTool": config.build_tool,
        "testRunner": config.test_runner,
        "scenarios": tuple(config.scenarios),
        "config": project,
        "integrations": integrations,
        "dependencies": tuple(config.dependencies),
        "utilities": utilities,
        "includeSampleTests": config.include_sample_tests,
        # Flattened aliases
        "projectName": name,
        "groupId": group_id,
        "artifactId": artifact_id,
        # Computed names
        "javaPackage": package,
        "packageName": package,
        "packagePath": package_to_path(package),
        "safeGroupId": group_id,
        "safeArtifactId": artifact_id,
        "projectNameCamel": to_camel(name),
        "projectNamePascal": to_pascal(name),
        "projectNameKebab": to_kebab(name),
        "projectNameSnake": to_snake(name),
        "envs": DEFAULT_ENVS,
        "toolVersions": dict(sorted((tool_versions or {}).items())),
        # Membership helpers
        "scenarioFlags": {s: True for s in config.scenarios},
        "integrationFlags": {o: True for o in config.integrations.others},
        "dependencyFlags": {d: True for d in config.dependencies},
        "hasCicd": config.integrations.cicd is not None,
        "hasReporting": config.integrations.reporting is not None,
        "isBdd": config.methodology is Methodology.BDD,
    }
    if config.integrations.cicd:
        ctx["cicdTool"] = config.integrations.cicd
    if config.integrations.reporting:
        ctx["reportingTool"] = config.integrations.reporting

    return freeze(ctx)


def freeze(value: Any) -> Any:
    """Recursively convert dicts to ``MappingProxyType`` and lists to tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return tuple(sorted(freeze(v) for v in value))
    return value
