from __future__ import annotations

import json

from services.minifier import minify_css, minify_js, rebase_urls


def test_rebase_moves_relative_urls_only() -> None:
    css = (
        "a{background:url(../img/a.png)}"
        "b{background:url('icons/b.svg#x')}"
        "c{background:url(https://cdn.example.com/c.png)}"
        "d{background:url(/abs/d.png)}"
        "e{background:url(data:image/png;base64,AAAA)}"
    )

    rebased = rebase_urls(css, "/out/css", "/out")

    assert "url(img/a.png)" in rebased
    assert "url('css/icons/b.svg#x')" in rebased
    assert "url(https://cdn.example.com/c.png)" in rebased
    assert "url(/abs/d.png)" in rebased
    assert "url(data:image/png;base64,AAAA)" in rebased


def test_rebase_same_directory_is_noop() -> None:
    css = "a{background:url(x.png)}"
    assert rebase_urls(css, "/out/css", "/out/css") == css
    assert rebase_urls(css, None, "/out") == css


def test_minify_css_with_source_map() -> None:
    original = "body {\n  color: red;\n}\n"
    result = minify_css(original, source_map=True, filename="site.css")

    assert result.errors == []
    assert result.styles.startswith("body{color:red")
    source_map = json.loads(result.source_map)
    assert source_map["version"] == 3
    assert source_map["file"] == "site.min.css"
    assert source_map["sources"] == ["site.css"]
    assert source_map["sourcesContent"] == [original]


def test_minify_js_without_source_map() -> None:
    result = minify_js("function f(a) {\n  return a + 1;\n}\n")

    assert result.error is None
    assert result.map is None
    assert "\n  " not in result.code
    assert "return a+1" in result.code
