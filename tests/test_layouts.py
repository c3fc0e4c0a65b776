from pathlib import Path

import pytest

from quire.config import SiteConfig
from quire.errors import (
    LayoutCycleError,
    TemplateRenderError,
    UnknownLayoutError,
    UnresolvableConfigurationError,
)
from quire.layouts import (
    Layout,
    LayoutComposer,
    LayoutRegistry,
    layout_name_from,
    resolve_layout_name,
)
from quire.templates import TemplateEngine


def make_composer(tmp_path: Path, *layouts: Layout) -> LayoutComposer:
    engine = TemplateEngine(tmp_path, SiteConfig.from_mapping({}))
    return LayoutComposer(LayoutRegistry(layouts), engine)


def test_composes_innermost_layout_first(tmp_path):
    composer = make_composer(
        tmp_path,
        Layout("default", "<html><body>{{ content }}</body></html>"),
        Layout("post", "<article>{{ content }}</article>", parent="default"),
    )
    html = composer.compose("<p>Hello & bye</p>", "post", {})
    assert html == "<html><body><article><p>Hello & bye</p></article></body></html>"


def test_layouts_see_page_and_their_own_front_matter(tmp_path):
    composer = make_composer(
        tmp_path,
        Layout(
            "default",
            "<title>{{ page.title }}</title><meta name='author' content='{{ layout.author }}'>{{ content }}",
            metadata={"author": "Ada"},
        ),
    )
    html = composer.compose("<p>x</p>", "default", {"page": {"title": "Tom & Jerry"}})
    assert "<title>Tom &amp; Jerry</title>" in html
    assert "content='Ada'" in html
    assert html.endswith("<p>x</p>")


def test_no_layout_returns_body_unchanged(tmp_path):
    composer = make_composer(tmp_path, Layout("default", "<html>{{ content }}</html>"))
    assert composer.compose("<p>raw</p>", None, {}) == "<p>raw</p>"


def test_unknown_layout(tmp_path):
    composer = make_composer(tmp_path, Layout("post", "{{ content }}", parent="base"))
    source = Path("posts/a.md")
    with pytest.raises(UnknownLayoutError) as excinfo:
        composer.compose("x", "post", {}, source)
    assert excinfo.value.layout_name == "base"
    assert excinfo.value.source_path == source

    with pytest.raises(UnknownLayoutError, match="Unknown layout 'missing'"):
        composer.compose("x", "missing", {})


def test_layout_cycle_is_detected(tmp_path):
    composer = make_composer(
        tmp_path,
        Layout("a", "{{ content }}", parent="b"),
        Layout("b", "{{ content }}", parent="a"),
    )
    with pytest.raises(LayoutCycleError) as excinfo:
        composer.compose("x", "a", {})
    assert excinfo.value.chain == ["a", "b", "a"]
    assert "a -> b -> a" in str(excinfo.value)


def test_self_referencing_layout_is_a_cycle():
    registry = LayoutRegistry([Layout("loop", "{{ content }}", parent="loop")])
    with pytest.raises(LayoutCycleError):
        registry.chain("loop")


def test_layout_template_errors_name_the_layout(tmp_path):
    composer = make_composer(tmp_path, Layout("broken", "{% for %}{{ content }}"))
    with pytest.raises(TemplateRenderError, match="Layout 'broken'"):
        composer.compose("x", "broken", {}, Path("about.md"))


def test_load_reads_layout_files(tmp_path):
    layouts_dir = tmp_path / "_layouts"
    layouts_dir.mkdir()
    (layouts_dir / "default.html").write_text("<html>{{ content }}</html>", encoding="utf-8")
    (layouts_dir / "post.html.jinja").write_text(
        "---\nlayout: default\nauthor: Ada\n---\n<article>{{ content }}</article>",
        encoding="utf-8",
    )
    (layouts_dir / "bare.html").write_text(
        "---\nlayout: none\n---\n{{ content }}", encoding="utf-8"
    )
    (layouts_dir / "notes.txt").write_text("ignored", encoding="utf-8")

    registry = LayoutRegistry.load(layouts_dir)
    assert sorted(registry) == ["bare", "default", "post"]
    assert registry["post"].parent == "default"
    assert registry["post"].metadata["author"] == "Ada"
    assert registry["post"].template == "<article>{{ content }}</article>"
    assert registry["bare"].parent is None
    assert [layout.name for layout in registry.chain("post")] == ["post", "default"]


def test_load_missing_directory_is_empty(tmp_path):
    assert len(LayoutRegistry.load(tmp_path / "_layouts")) == 0


def test_load_rejects_malformed_and_duplicate_layouts(tmp_path):
    layouts_dir = tmp_path / "_layouts"
    layouts_dir.mkdir()
    (layouts_dir / "default.html").write_text("---\nlayout: x\n", encoding="utf-8")
    with pytest.raises(UnresolvableConfigurationError):
        LayoutRegistry.load(layouts_dir)

    (layouts_dir / "default.html").write_text("{{ content }}", encoding="utf-8")
    (layouts_dir / "default.jinja").write_text("{{ content }}", encoding="utf-8")
    with pytest.raises(UnresolvableConfigurationError, match="defined twice"):
        LayoutRegistry.load(layouts_dir)


def test_resolve_default_layout():
    registry = LayoutRegistry([Layout("default", "{{ content }}")])
    assert registry.resolve_default(SiteConfig.from_mapping({})) == "default"

    # Implicit default with no such layout: documents are written bare
    assert LayoutRegistry().resolve_default(SiteConfig.from_mapping({})) is None

    declared = SiteConfig.from_mapping({"default_layout": "base"})
    with pytest.raises(UnresolvableConfigurationError, match="base"):
        registry.resolve_default(declared)

    broken = LayoutRegistry([Layout("default", "{{ content }}", parent="gone")])
    with pytest.raises(UnresolvableConfigurationError, match="Unknown layout 'gone'"):
        broken.resolve_default(SiteConfig.from_mapping({}))


def test_layout_name_interpretation():
    assert layout_name_from(None) is None
    assert layout_name_from("none") is None
    assert layout_name_from(False) is None
    assert layout_name_from(" post ") == "post"

    assert resolve_layout_name({}, "default") == "default"
    assert resolve_layout_name({"layout": "post"}, "default") == "post"
    assert resolve_layout_name({"layout": None}, "default") is None
    assert resolve_layout_name({}, None) is None
