"""
bundler.py - ES module bundling through the esbuild executable.

The bundle is written straight to its final location by esbuild; callers
treat the output as finished and skip their own write step.
"""

import os
import logging
import subprocess
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("tobuild")

TARGETS = {
    "browser": ["--platform=browser", "--format=esm"],
    "node": ["--platform=node", "--format=esm"],
}


@dataclass
class BundleResult:
    success: bool
    error: Optional[str] = None


class EsbuildBundler:
    """Runs ``esbuild <input> --bundle --outfile=<output>`` as a subprocess."""

    def __init__(self, binary="esbuild", timeout=120):
        self.binary = binary
        self.timeout = timeout

    def command(self, input, output_bundle_path, target="browser",
                source_map=False, minify=True):
        cmd = [self.binary, input, "--bundle", f"--outfile={output_bundle_path}"]
        cmd.extend(TARGETS.get(target, TARGETS["browser"]))
        if minify:
            cmd.append("--minify")
        if source_map:
            cmd.append("--sourcemap")
        return cmd

    def bundle(self, input, output_bundle_path, target="browser",
               source_map=False, minify=True):
        cmd = self.command(input, output_bundle_path, target, source_map, minify)
        os.makedirs(os.path.dirname(output_bundle_path) or ".", exist_ok=True)
        try:
            process = subprocess.run(cmd, capture_output=True, text=True,
                                     check=True, timeout=self.timeout)
        except FileNotFoundError:
            return BundleResult(False, f"{self.binary} executable not found")
        except subprocess.TimeoutExpired:
            return BundleResult(False, f"{self.binary} timed out after {self.timeout}s")
        except subprocess.CalledProcessError as e:
            return BundleResult(False, (e.stderr or "").strip()[-1000:] or str(e))

        if process.stderr:
            logger.debug(f"esbuild: {process.stderr.strip()[-500:]}")
        return BundleResult(True)
