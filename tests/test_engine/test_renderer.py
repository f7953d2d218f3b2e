"""Tests for the sandboxed template renderer (qastarter.engine.renderer).

Covers:
- Path and content expansion
- Static entries copied byte-for-byte
- Strict undefined handling, syntax errors and sandbox violations
- Helper filters and globals
- CI workflow expression masking
"""

from __future__ import annotations

import json

import pytest

from qastarter.engine.context import build_context, freeze
from qastarter.engine.renderer import RenderedFile, TemplateRenderer
from qastarter.errors import RenderError
from qastarter.models import FileEntry

pytestmark = pytest.mark.unit


@pytest.fixture
def renderer() -> TemplateRenderer:
    return TemplateRenderer()


@pytest.fixture
def context(web_configuration):
    return build_context(web_configuration, {"selenium": "4.18.1"})


def _entry(path: str, is_template: bool = True, mode: str | None = None) -> FileEntry:
    return FileEntry(path=path, is_template=is_template, mode=mode)


class TestRender:
    def test_renders_path_and_content(self, renderer, context):
        result = renderer.render(
            _entry("src/test/java/{{ packagePath }}/tests/LoginTest.java"),
            context,
            b"package {{ javaPackage }}.tests;\n",
        )
        assert isinstance(result, RenderedFile)
        assert result.path == "src/test/java/com/acme/tests/LoginTest.java"
        assert result.content == b"package com.acme.tests;\n"
        assert result.is_template is True

    def test_static_content_is_copied_unchanged(self, renderer, context):
        body = b"{{ not a template }}\x00\xff"
        result = renderer.render(_entry("bin/{{ projectName }}.dat", is_template=False), context, body)
        assert result.content == body
        assert result.path == "bin/shop-tests.dat"

    def test_mode_carried_through(self, renderer, context):
        result = renderer.render(_entry("mvnw", is_template=False, mode="755"), context, b"#!/bin/sh\n")
        assert result.mode == "755"
        assert result.size == len(b"#!/bin/sh\n")

    def test_trailing_newline_kept(self, renderer, context):
        result = renderer.render(_entry("a.txt"), context, b"{{ tool }}\n")
        assert result.content == b"Selenium\n"

    def test_block_tags_trimmed(self, renderer, context):
        source = b"{% for s in scenarios %}\n- {{ s }}\n{% endfor %}\n"
        result = renderer.render(_entry("a.txt"), context, source)
        assert result.content == b"- Login\n"

    def test_output_is_deterministic(self, renderer, context):
        body = b"{{ toolVersions | to_json }} {{ projectNamePascal }}"
        first = renderer.render(_entry("a.txt"), context, body)
        second = renderer.render(_entry("a.txt"), context, body)
        assert first == second


class TestRenderErrors:
    def test_unknown_variable_is_error(self, renderer, context):
        with pytest.raises(RenderError) as exc_info:
            renderer.render(_entry("pom.xml"), context, b"{{ noSuchKey }}")
        assert exc_info.value.path == "pom.xml"

    def test_unknown_variable_in_path_is_error(self, renderer, context):
        with pytest.raises(RenderError):
            renderer.render(_entry("{{ cicdTool }}/file.txt"), context, b"")

    def test_syntax_error(self, renderer, context):
        with pytest.raises(RenderError):
            renderer.render(_entry("a.txt"), context, b"{% if %}")

    def test_sandbox_blocks_dunder_access(self, renderer, context):
        with pytest.raises(RenderError):
            renderer.render(_entry("a.txt"), context, b"{{ tool.__class__.__mro__ }}")

    def test_context_cannot_be_mutated(self, renderer, context):
        with pytest.raises(RenderError):
            renderer.render(_entry("a.txt"), context, b"{{ scenarios.append('x') }}")

    @pytest.mark.parametrize(
        "body",
        [b"{{ 1 // 0 }}", b"{{ scenarios[5] }}", b"{{ '%d' % 'x' }}"],
    )
    def test_runtime_failures_become_render_errors(self, renderer, context, body: bytes):
        with pytest.raises(RenderError) as exc_info:
            renderer.render(_entry("a.txt"), context, body)
        assert exc_info.value.path == "a.txt"

    def test_non_utf8_template_rejected(self, renderer, context):
        with pytest.raises(RenderError):
            renderer.render(_entry("a.txt"), context, b"\xff\xfe")

    def test_empty_rendered_path_rejected(self, renderer):
        ctx = freeze({"name": ""})
        with pytest.raises(RenderError):
            renderer.render_path("{{ name }}", ctx)

    def test_default_filter_allows_optional_keys(self, renderer, context):
        result = renderer.render(_entry("a.txt"), context, b"[{{ cicdTool | default('none') }}]")
        assert result.content == b"[none]"

    def test_is_defined_test(self, renderer, context):
        source = b"{% if reportingTool is defined %}yes{% else %}no{% endif %}"
        assert renderer.render(_entry("a.txt"), context, source).content == b"no"


class TestHelpers:
    @pytest.mark.parametrize(
        "expression, expected",
        [
            ("projectName | pascal_case", "ShopTests"),
            ("projectName | camel_case", "shopTests"),
            ("projectName | snake_case", "shop_tests"),
            ("'ShopTests' | kebab_case", "shop-tests"),
            ("'Shop Tests!' | slugify", "shop-tests"),
            ("'com.acme.qa' | package_to_path", "com/acme/qa"),
            ("'<a & \"b\">' | escape_xml", "&lt;a &amp; &quot;b&quot;&gt;"),
            ("eq(tool, 'Selenium')", "True"),
            ("ne(tool, 'Selenium')", "False"),
            ("includes(scenarios, 'Login')", "True"),
            ("includes(scenarios, 'Search')", "False"),
        ],
    )
    def test_helper(self, renderer, context, expression: str, expected: str):
        assert renderer.render_string("{{ " + expression + " }}", context) == expected

    def test_to_json_serialises_frozen_mappings(self, renderer, context):
        rendered = renderer.render_string("{{ utilities | to_json }}", context)
        assert json.loads(rendered)["logger"] is False

    def test_only_whitelisted_globals(self, renderer, context):
        with pytest.raises(RenderError):
            renderer.render_string("{{ range(3) | list }}", context)


class TestWorkflowMasking:
    def test_github_expressions_survive(self, renderer, context):
        body = b"java: {{ toolVersions.selenium }}\nrun: echo ${{ matrix.env }}\nif: ${{ always() }}\n"
        result = renderer.render(_entry(".github/workflows/tests.yml"), context, body)
        assert result.content == b"java: 4.18.1\nrun: echo ${{ matrix.env }}\nif: ${{ always() }}\n"

    def test_jenkinsfile_is_masked(self, renderer, context):
        result = renderer.render(_entry("Jenkinsfile"), context, b"${{ params.X }} {{ projectName }}")
        assert result.content == b"${{ params.X }} shop-tests"

    def test_other_files_are_not_masked(self, renderer, context):
        with pytest.raises(RenderError):
            renderer.render(_entry("notes.txt"), context, b"${{ matrix.env }}")
