from __future__ import annotations

from pathlib import Path

import pytest

from services.logger import reset_logging
from to_build import main, parse_options


@pytest.fixture(autouse=True)
def clean_logging():
    yield
    reset_logging()


def test_parse_options_maps_flags(tmp_path: Path) -> None:
    options = parse_options([
        "index.html", "--root", "./a,./b", "--root", "./c",
        "--minifyCss", "false", "--sourcemaps", "none",
        "--mode", "production", "--no-serve", "--log-level", "debug",
    ])

    assert options.roots == ("./a", "./b", "./c")
    assert options.minify_css is False
    assert options.minify_js is True
    assert options.sourcemaps is False
    assert options.modes == ("production",)
    assert options.serve is False
    assert options.log_level == "DEBUG"


def test_main_builds_both_modes(tmp_path: Path, site: Path) -> None:
    out = tmp_path / "target"

    code = main([str(site), "--output", str(out), "--base-dir", str(tmp_path), "--no-serve"])

    assert code == 0
    assert (out / "staging" / "src" / "a.min.css").is_file()
    assert (out / "production" / "src" / "index.html").is_file()


def test_main_rejects_bad_options(tmp_path: Path) -> None:
    assert main(["index.html", "--log-level", "LOUD", "--no-serve"]) == 2


def test_main_reports_failed_documents(tmp_path: Path) -> None:
    page = tmp_path / "broken.html"
    page.write_text("\x1e", encoding="utf-8")

    code = main([str(page), "--output", str(tmp_path / "out"), "--base-dir", str(tmp_path),
                 "--mode", "staging", "--no-serve"])

    assert code == 1
