"""QAStarter generation engine -- the stages behind one generation.

Each stage is usable on its own::

    from qastarter.engine import PackRegistry, TemplateRenderer, build_context, resolve

    registry = PackRegistry(packs_dir)
    pack = registry.load_pack(resolve_pack_id("Selenium", "Java", "JUnit"))
    context = build_context(configuration, pack.tool_versions)
    renderer = TemplateRenderer()
    rendered = [renderer.render(e, context, pack.body(e)) for e in resolve(pack.manifest.files, context)]
"""

from qastarter.engine.archiver import ArchiveResult, archive
from qastarter.engine.assembler import assemble, normalize_relative_path, scan_tree
from qastarter.engine.conditions import Condition, compile_conditions, is_sample_test, resolve
from qastarter.engine.context import build_context
from qastarter.engine.registry import FALLBACK_PACK, Pack, PackRegistry, resolve_pack_id
from qastarter.engine.renderer import RenderedFile, TemplateRenderer
from qastarter.engine.versions import merge_versions, select_dependencies

__all__ = [
    "ArchiveResult",
    "Condition",
    "FALLBACK_PACK",
    "Pack",
    "PackRegistry",
    "RenderedFile",
    "TemplateRenderer",
    "archive",
    "assemble",
    "build_context",
    "compile_conditions",
    "is_sample_test",
    "merge_versions",
    "normalize_relative_path",
    "resolve",
    "resolve_pack_id",
    "scan_tree",
    "select_dependencies",
]
