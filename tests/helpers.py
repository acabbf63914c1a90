from __future__ import annotations

import os
from pathlib import Path

from api.schemas.options_schema import BuildOptions
from services.bundler import BundleResult


class FakeBundler:
    """Writes a predictable bundle instead of running esbuild."""

    def __init__(self, success: bool = True, error: str | None = None) -> None:
        self.success = success
        self.error = error
        self.calls: list[dict] = []

    def bundle(self, input, output_bundle_path, target="browser", source_map=False, minify=True):
        self.calls.append({
            "input": input,
            "output_bundle_path": output_bundle_path,
            "target": target,
            "source_map": source_map,
            "minify": minify,
        })
        if not self.success:
            return BundleResult(False, self.error or "bundle failed")
        os.makedirs(os.path.dirname(output_bundle_path), exist_ok=True)
        source = Path(input).read_text(encoding="utf-8")
        Path(output_bundle_path).write_text(f"/* bundled */{source}", encoding="utf-8")
        return BundleResult(True)


class FakeServerManager:
    """Records start/stop requests; every server it starts is 'up'."""

    def __init__(self, start_ok: bool = True, stop_ok: bool = True) -> None:
        self.start_ok = start_ok
        self.stop_ok = stop_ok
        self.running: dict[tuple[str, str], dict] = {}
        self.calls: list[tuple] = []

    def start(self, namespace, name, port, dirs, dynamic_dirs=None):
        self.calls.append(("start", namespace, name, port, list(dirs), list(dynamic_dirs or [])))
        if self.start_ok:
            self.running[(namespace, name)] = {"port": port, "dirs": list(dirs)}
        return self.start_ok

    def stop(self, namespace, name):
        self.calls.append(("stop", namespace, name))
        if self.stop_ok:
            self.running.pop((namespace, name), None)
        return self.stop_ok

    def is_up(self, namespace, name):
        return (namespace, name) in self.running


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def make_options(tmp_path: Path, inputs, **overrides) -> BuildOptions:
    values = {
        "inputs": tuple(str(i) for i in inputs),
        "output": str(tmp_path / "out"),
        "serve": False,
        "base_dir": str(tmp_path),
    }
    values.update(overrides)
    return BuildOptions(**values)


INDEX_HTML = """<!doctype html>
<html>
  <head>
    <link rel="stylesheet" href="./a.css">
  </head>
  <body>
    <h1>Hello</h1>
    <script src="./b.js"></script>
  </body>
</html>
"""
