"""
Tests for the preview document compiler.
"""

import json

import pytest
from bs4 import BeautifulSoup

from wireframe_react.models import GeneratedComponent, MountByName, MountFirstUppercase, NoComponent
from wireframe_react.rendering.preview_compiler import (
    BABEL_URL,
    REACT_DOM_URL,
    REACT_URL,
    TAILWIND_URL,
    PreviewCompiler,
    apply_source_edit,
    compile_preview,
)


APP_SOURCE = "function App() {\n  return <div className=\"p-4\">Hi</div>;\n}"


def _bootstrap(document):
    soup = BeautifulSoup(document, "html.parser")
    return soup, soup.find("script", id="preview-bootstrap").string


def _embedded_source(script):
    line = next(line.strip() for line in script.splitlines() if line.strip().startswith("var SOURCE = "))
    return json.loads(line[len("var SOURCE = "):-1])


def test_compile_is_deterministic():
    """Test that identical input yields byte-identical documents."""
    assert PreviewCompiler.compile(APP_SOURCE, ".x { color: red; }") == PreviewCompiler.compile(
        APP_SOURCE, ".x { color: red; }"
    )
    assert compile_preview(APP_SOURCE) == PreviewCompiler.compile(APP_SOURCE)


def test_document_structure():
    """Test the runtime scripts and mount points of the document."""
    soup, script = _bootstrap(PreviewCompiler.compile(APP_SOURCE))

    sources = [tag.get("src") for tag in soup.find_all("script") if tag.get("src")]
    assert sources == [TAILWIND_URL, REACT_URL, REACT_DOM_URL, BABEL_URL]
    assert soup.find(id="root") is not None
    assert soup.find(id="preview-error") is not None
    assert soup.body["data-preview-status"] == "loading"
    assert soup.body["data-mount-strategy"] == "by_name"
    assert soup.body["data-mount-name"] == "App"
    assert _embedded_source(script) == APP_SOURCE
    assert 'var PREFERRED = "App";' in script


def test_extra_css_is_embedded():
    soup, _ = _bootstrap(PreviewCompiler.compile(APP_SOURCE, ":root { --brand: #123456; }"))
    assert soup.find("style", id="preview-css").string == ":root { --brand: #123456; }"


def test_style_end_tag_in_css_is_escaped():
    soup, _ = _bootstrap(PreviewCompiler.compile(APP_SOURCE, "a {}</style><script>alert(1)</script>"))
    assert len(soup.find_all("style")) == 2
    assert "alert(1)" not in "".join(tag.string or "" for tag in soup.find_all("script"))


def test_script_end_tag_in_source_is_escaped():
    """Test that source text cannot close the bootstrap script element."""
    source = 'function App() { return <div>{"</script><script>alert(1)</script>"}</div>; }'
    document = PreviewCompiler.compile(source)
    soup, script = _bootstrap(document)

    assert "<script>alert(1)" not in document
    assert len(soup.find_all("script")) == 5
    assert "\\u003c/script\\u003e" in script


def test_template_tokens_in_source_are_not_expanded():
    source = 'function App() { return <p>__REACT_URL__ __SOURCE_JSON__</p>; }'
    _, script = _bootstrap(PreviewCompiler.compile(source))
    assert "__REACT_URL__ __SOURCE_JSON__" in script


def test_mount_falls_back_to_first_uppercase_function():
    """Test that a source without App still mounts its component."""
    source = "function helper() { return 1; }\nfunction Widget() {\n  return <span>{helper()}</span>;\n}"

    assert PreviewCompiler.mount_strategy(source) == MountFirstUppercase(name="Widget")

    soup, script = _bootstrap(PreviewCompiler.compile(source))
    assert soup.body["data-mount-strategy"] == "first_uppercase_global"
    assert soup.body["data-mount-name"] == "Widget"
    assert 'var CANDIDATES = ["Widget"];' in script


def test_component_candidates_in_source_order():
    source = (
        "const Card = () => <div/>;\n"
        "class Panel extends React.Component { render() { return null; } }\n"
        "function Hero() { return <Card />; }\n"
        "function App() { return <Hero />; }\n"
    )
    assert PreviewCompiler.component_candidates(source) == ["Card", "Panel", "Hero"]
    assert PreviewCompiler.mount_strategy(source) == MountByName(name="App")


def test_no_component():
    source = "const answer = 42;"
    assert PreviewCompiler.mount_strategy(source) == NoComponent()

    soup, _ = _bootstrap(PreviewCompiler.compile(source))
    assert soup.body["data-mount-strategy"] == "none"
    assert soup.body["data-mount-name"] == ""


def test_non_string_source():
    soup, script = _bootstrap(PreviewCompiler.compile(None))
    assert 'var SOURCE = "";' in script
    assert soup.body["data-mount-strategy"] == "none"


def test_mount_strategy_on_single_line_source():
    source = "/* import React from 'react'; */ function App(){ return <div/>; }"
    assert PreviewCompiler.mount_strategy(source) == MountByName(name="App")
    assert PreviewCompiler.component_candidates("const x = 1; const Card = () => null;") == ["Card"]


def test_apply_source_edit():
    """Test that edited code is sanitized and compiled into a new document."""
    generated = GeneratedComponent(
        request_id="r1",
        source=APP_SOURCE,
        raw_content=APP_SOURCE,
        css_content=".brand { color: red; }",
        model_name="model/a",
    )

    updated, document = apply_source_edit(
        generated, "```jsx\nexport default function Pricing() {\n  return <section>Plans</section>;\n}\n```"
    )

    assert updated.source == "function App() {\n  return <section>Plans</section>;\n}"
    assert updated.css_content == generated.css_content
    assert updated.request_id == "r1"
    assert generated.source == APP_SOURCE
    assert document == PreviewCompiler.compile(updated.source, updated.css_content)
    assert 'data-mount-name="App"' in document


def test_apply_source_edit_rejects_empty():
    generated = GeneratedComponent(request_id="r1", source=APP_SOURCE, raw_content="", model_name="model/a")
    with pytest.raises(ValueError):
        apply_source_edit(generated, "```jsx\n```")
