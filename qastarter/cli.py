"""Command line entry point.

Usage::

    python -m qastarter config.json
    python -m qastarter config.json --output ./generated --preview
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from qastarter.config import EngineConfig
from qastarter.errors import QAStarterError
from qastarter.lifecycle import ProjectLifecycleManager
from qastarter.models import Configuration, GeneratedProject, ProjectStatus
from qastarter.utils import (
    console,
    create_progress,
    format_size,
    print_error,
    print_success,
    print_summary_table,
    set_log_level,
)


def _load_configuration(path: Path) -> Configuration:
    raw = json.loads(path.read_text(encoding="utf-8"))
    return Configuration.model_validate(raw)


async def _generate(engine: EngineConfig, configuration: Configuration) -> GeneratedProject:
    with create_progress() as progress:
        task = progress.add_task(f"Generating {configuration.project_name}", total=100)

        def _on_update(snapshot: GeneratedProject) -> None:
            progress.update(task, completed=snapshot.progress)

        async with ProjectLifecycleManager(engine, on_update=_on_update) as manager:
            project = await manager.generate(configuration)
            await manager.drain()
            return manager.get(project.id)


async def _preview(engine: EngineConfig, configuration: Configuration) -> None:
    manager = ProjectLifecycleManager(engine)
    rendered = await manager.preview(configuration)
    deps = await manager.dependencies(configuration)
    print_summary_table(
        {f.path: format_size(f.size) for f in rendered},
        title=f"Preview: {configuration.project_name} ({len(rendered)} files)",
    )
    if deps:
        print_summary_table(deps, title="Dependencies")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``python -m qastarter``."""
    parser = argparse.ArgumentParser(
        description="QAStarter -- generate a QA automation project from a template pack",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m qastarter config.json\n"
            "  python -m qastarter config.json -o ./generated\n"
            "  python -m qastarter config.json --preview\n"
        ),
    )
    parser.add_argument(
        "config",
        help="Path to a JSON project configuration",
    )
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Output directory (default: $QAS_OUTPUT_DIR or ./generated)",
    )
    parser.add_argument(
        "--packs",
        default=None,
        help="Template pack directory (default: bundled packs)",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="List the files that would be generated without writing anything",
    )

    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.exists():
        console.print(f"[bold red]Error:[/bold red] Configuration file not found: {config_path}")
        sys.exit(1)

    try:
        configuration = _load_configuration(config_path)
    except (json.JSONDecodeError, ValidationError) as exc:
        console.print(f"[bold red]Error:[/bold red] Invalid configuration: {exc}")
        sys.exit(1)

    engine = EngineConfig.from_env()
    updates = {}
    if args.output:
        updates["output_dir"] = Path(args.output)
    if args.packs:
        updates["packs_dir"] = Path(args.packs)
    if updates:
        engine = engine.model_copy(update=updates)
    set_log_level(engine.log_level)

    if args.preview:
        try:
            asyncio.run(_preview(engine, configuration))
        except QAStarterError as exc:
            print_error(f"Preview failed: {exc.public_message}")
            sys.exit(1)
        return

    engine.ensure_directories()
    project = asyncio.run(_generate(engine, configuration))
    if project.status is not ProjectStatus.COMPLETED:
        print_error(f"Generation failed: {project.error}")
        sys.exit(1)

    print_summary_table(
        {
            "Project": configuration.project_name,
            "Pack": project.pack_id or "-",
            "Files": str(project.file_count),
            "Archive": str(project.archive_path),
            "Staging directory": str(engine.staging_dir(project.id)),
        },
        title="Generation Results",
    )
    print_success("Project generated successfully!")


if __name__ == "__main__":
    main()
