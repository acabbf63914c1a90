from __future__ import annotations

import os
from pathlib import Path

import pytest

from config import BuildMode, ModeFlags
from pipeline.entities import Category, EntityRegistry
from pipeline.errors import ResolutionError, TransformError
from pipeline.extractor import extract_html
from pipeline.hashing import content_hash
from pipeline.resolver import PathResolver
from pipeline.transforms import TransformDispatcher, locate_target, safe_relative_path
from services.minifier import Minifier
from helpers import FakeBundler, write

STAGING = ModeFlags(BuildMode.STAGING, minify_css=True, minify_js=True, sourcemaps=True)
PRODUCTION = ModeFlags(BuildMode.PRODUCTION, minify_css=True, minify_js=True, sourcemaps=False)


def setup(tmp_path: Path, html: str, bundler=None):
    page = write(tmp_path / "src" / "index.html", html)
    registry = EntityRegistry()
    resolver = PathResolver.for_document(str(page), cwd=str(tmp_path))
    doc = str(tmp_path / "out")
    extract_html(html, registry, resolver, doc)
    dispatcher = TransformDispatcher(registry, resolver, Minifier(),
                                     bundler or FakeBundler(), output_root=doc)
    return registry, dispatcher, doc


def test_safe_relative_path() -> None:
    assert safe_relative_path("/css/a.css") == "css/a.css"
    assert safe_relative_path("../../a.css") == "a.css"
    assert safe_relative_path("./img/../b.png") == "b.png"


def test_locate_target(tmp_path: Path) -> None:
    out = str(tmp_path / "out")
    css_dir = os.path.join(out, "css")

    assert locate_target(css_dir, "../img/bg.png", out) == os.path.join(out, "img", "bg.png")
    assert locate_target(out, "/img/a.png", out) == os.path.join(out, "img", "a.png")
    assert locate_target(out, "../../etc/x.png", out) == os.path.join(out, "etc", "x.png")


def test_staging_css_names_and_source_map(tmp_path: Path) -> None:
    write(tmp_path / "src" / "a.css", "body {\n  color: red;\n}\n")
    registry, dispatcher, doc = setup(tmp_path, '<link rel="stylesheet" href="./a.css">')
    entity = registry.get_entities(Category.CSS)[0]

    dispatcher.transform(entity, doc, STAGING)

    assert entity.target_path == os.path.join(doc, "a.min.css")
    assert entity.sourcemap_path == os.path.join(doc, "a.css.map")
    assert entity.original_path == os.path.join(doc, "a.css")
    assert entity.original_content == "body {\n  color: red;\n}\n"
    assert entity.code.endswith("/*# sourceMappingURL=a.css.map */")
    assert not entity.deferred


def test_staging_without_source_maps(tmp_path: Path) -> None:
    write(tmp_path / "src" / "b.js", "var x = 1;\n")
    registry, dispatcher, doc = setup(tmp_path, '<script src="b.js"></script>')
    entity = registry.get_entities(Category.SCRIPT)[0]
    flags = ModeFlags(BuildMode.STAGING, True, True, sourcemaps=False)

    dispatcher.transform(entity, doc, flags)

    assert entity.target_path == os.path.join(doc, "b.min.js")
    assert entity.sourcemap_path is None
    assert entity.original_content is None
    assert "sourceMappingURL" not in entity.code


def test_production_defers_with_content_hash(tmp_path: Path) -> None:
    write(tmp_path / "src" / "b.js", "function hello(name) {\n  return name;\n}\n")
    registry, dispatcher, doc = setup(tmp_path, '<script src="b.js"></script>')
    entity = registry.get_entities(Category.SCRIPT)[0]

    dispatcher.transform(entity, doc, PRODUCTION)

    assert entity.deferred
    assert entity.target_name == content_hash(entity.code)
    assert entity.target_path == os.path.join(doc, entity.target_name + ".js")
    assert ".min" not in entity.target_path
    assert entity.sourcemap_content is None


def test_minify_off_copies_verbatim(tmp_path: Path) -> None:
    write(tmp_path / "src" / "css" / "a.css", "a { }")
    registry, dispatcher, doc = setup(tmp_path, '<link rel="stylesheet" href="css/a.css">')
    entity = registry.get_entities(Category.CSS)[0]
    flags = ModeFlags(BuildMode.STAGING, minify_css=False, minify_js=False, sourcemaps=True)

    dispatcher.transform(entity, doc, flags)

    assert entity.target_path == os.path.join(doc, "css", "a.css")
    assert entity.code is None


def test_css_registers_nested_urls_next_to_its_target(tmp_path: Path) -> None:
    write(tmp_path / "src" / "css" / "site.css", "body{background:url(\"../img/bg.png\")}")
    write(tmp_path / "src" / "img" / "bg.png", "png")
    registry, dispatcher, doc = setup(tmp_path, '<link rel="stylesheet" href="css/site.css">')
    css = registry.get_entities(Category.CSS)[0]

    dispatcher.transform(css, doc, STAGING)
    nested = registry.get_entities(Category.GENERIC)[0]
    dispatcher.transform(nested, doc, STAGING)

    assert nested.parent == css.tag_id
    assert nested.base_target_dir == os.path.join(doc, "css")
    assert nested.target_path == os.path.join(doc, "img", "bg.png")
    assert "../img/bg.png" in css.code


def test_production_css_urls_are_rebased_to_the_document(tmp_path: Path) -> None:
    write(tmp_path / "src" / "css" / "site.css", "body{background:url(\"../img/bg.png\")}")
    write(tmp_path / "src" / "img" / "bg.png", "png")
    registry, dispatcher, doc = setup(tmp_path, '<link rel="stylesheet" href="css/site.css">')
    css = registry.get_entities(Category.CSS)[0]

    dispatcher.transform(css, doc, PRODUCTION)

    assert "img/bg.png" in css.code
    assert "../img/bg.png" not in css.code


def test_manifest_registers_extras(tmp_path: Path) -> None:
    write(tmp_path / "src" / "manifest.json",
          '{"icons": [{"src": "icons/192.png"}, {"src": "icons/missing.png"}]}')
    write(tmp_path / "src" / "icons" / "192.png", "png")
    registry, dispatcher, doc = setup(tmp_path, '<link rel="manifest" href="manifest.json">')
    manifest = registry.get_entities(Category.GENERIC)[0]

    dispatcher.transform(manifest, doc, STAGING)

    extras = registry.get_entities(Category.EXTRAS)
    assert [e.uri for e in extras] == ["icons/192.png"]
    assert extras[0].parent == manifest.tag_id
    dispatcher.transform(extras[0], doc, STAGING)
    assert extras[0].target_path == os.path.join(doc, "icons", "192.png")


def test_esm_is_bundled_to_min_js(tmp_path: Path) -> None:
    write(tmp_path / "src" / "app.mjs", "export const x = 1;\n")
    bundler = FakeBundler()
    registry, dispatcher, doc = setup(
        tmp_path, '<script type="module" src="app.mjs"></script>', bundler)
    entity = registry.get_entities(Category.ESM)[0]

    dispatcher.transform(entity, doc, STAGING)

    assert entity.already_generated
    assert entity.target_path == os.path.join(doc, "app.min.js")
    assert os.path.isfile(entity.target_path)
    assert bundler.calls[0]["source_map"] is True
    assert bundler.calls[0]["target"] == "browser"


def test_production_esm_is_renamed_to_its_hash(tmp_path: Path) -> None:
    write(tmp_path / "src" / "app.mjs", "export const x = 1;\n")
    registry, dispatcher, doc = setup(tmp_path, '<script type="module" src="app.mjs"></script>')
    entity = registry.get_entities(Category.ESM)[0]

    dispatcher.transform(entity, doc, PRODUCTION)

    expected = content_hash("/* bundled */export const x = 1;\n")
    assert entity.target_path == os.path.join(doc, f"{expected}.js")
    assert os.path.isfile(entity.target_path)
    assert not os.path.exists(os.path.join(doc, "app.min.js"))


def test_bundler_failure_raises_transform_error(tmp_path: Path) -> None:
    write(tmp_path / "src" / "app.mjs", "import './nope.js';\n")
    registry, dispatcher, doc = setup(
        tmp_path, '<script type="module" src="app.mjs"></script>',
        FakeBundler(success=False, error="Could not resolve ./nope.js"))
    entity = registry.get_entities(Category.ESM)[0]

    with pytest.raises(TransformError) as exc:
        dispatcher.transform(entity, doc, STAGING)

    assert exc.value.lid == 3003
    assert "Could not resolve" in str(exc.value)


def test_vanished_source_raises_resolution_error(tmp_path: Path) -> None:
    source = write(tmp_path / "src" / "a.css", "a{}")
    registry, dispatcher, doc = setup(tmp_path, '<link rel="stylesheet" href="a.css">')
    source.unlink()

    with pytest.raises(ResolutionError):
        dispatcher.transform(registry.get_entities(Category.CSS)[0], doc, STAGING)


def test_nested_url_outside_the_output_root_is_not_relocated(tmp_path: Path) -> None:
    write(tmp_path / "src" / "css" / "a.css", "body{background:url(../../img/x.png)}")
    write(tmp_path / "img" / "x.png", "png")
    registry, dispatcher, doc = setup(tmp_path, '<link rel="stylesheet" href="css/a.css">')
    css = registry.get_entities(Category.CSS)[0]

    dispatcher.transform(css, doc, STAGING)
    nested = registry.get_entities(Category.GENERIC)[0]

    with pytest.raises(ResolutionError) as exc:
        dispatcher.transform(nested, doc, STAGING)

    assert "outside the output directory" in str(exc.value)
    assert nested.target_path is None
    assert "url(../../img/x.png)" in css.code
