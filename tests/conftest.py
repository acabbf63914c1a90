from __future__ import annotations

from pathlib import Path

import pytest

from helpers import INDEX_HTML, FakeBundler, FakeServerManager, write


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """src/index.html referencing ./a.css and ./b.js. Returns the HTML path."""
    src = tmp_path / "src"
    write(src / "a.css", "body {\n  color: red;\n}\n")
    write(src / "b.js", "function hello(name) {\n  return 'hi ' + name;\n}\n")
    return write(src / "index.html", INDEX_HTML)


@pytest.fixture
def fake_bundler() -> FakeBundler:
    return FakeBundler()


@pytest.fixture
def fake_servers() -> FakeServerManager:
    return FakeServerManager()
