"""
to_build.py - Build HTML entry documents into staging/production trees and
start the preview servers.

Usage:
    to-build src/index.html
    to-build src/index.html --output target --root ./src,./shared
    to-build src/index.html --sourcemaps false --mode production --no-serve
"""

import sys
import time
import logging
import argparse

from api.schemas.options_schema import load_options
from pipeline.errors import LID, ConfigurationError
from pipeline.orchestrator import BuildOrchestrator
from services.logger import setup_logging

logger = logging.getLogger("tobuild")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="to-build",
        description="Copy, minify, hash and bundle the assets of HTML documents.",
    )
    parser.add_argument("inputs", nargs="+", help="HTML entry documents")
    parser.add_argument("--output", help="Output directory (default ./out)")
    parser.add_argument("--root", dest="roots", action="append",
                        help="Extra lookup directory (repeatable or comma-separated)")
    parser.add_argument("--static", action="append",
                        help="Directory of assets served as-is (repeatable or comma-separated)")
    parser.add_argument("--minify-css", "--minifyCss", dest="minify_css",
                        help="true/false (forced on in production)")
    parser.add_argument("--minify-js", "--minifyJs", dest="minify_js",
                        help="true/false (forced on in production)")
    parser.add_argument("--sourcemaps", help="true/false (forced off in production)")
    parser.add_argument("--mode", dest="modes", action="append",
                        choices=["staging", "production"],
                        help="Build mode (repeatable, default both)")
    parser.add_argument("--base-dir", help="Directory the output tree mirrors (default cwd)")
    parser.add_argument("--no-serve", dest="serve", action="store_false",
                        help="Do not start the preview servers")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--log-dir", help="Write a rotating log file here")
    return parser


def parse_options(argv=None):
    """argparse -> raw dict -> validated BuildOptions."""
    args = build_parser().parse_args(argv)
    raw = {k: v for k, v in vars(args).items() if v is not None}
    if isinstance(raw.get("log_level"), str):
        raw["log_level"] = raw["log_level"].upper()
    return load_options(raw)


def wait_for_interrupt(manager):
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutting down preview servers...")
        manager.stop_all()


def main(argv=None):
    try:
        options = parse_options(argv)
    except ConfigurationError as e:
        setup_logging()
        logger.error(str(e), extra={"lid": LID.INVALID_OPTIONS})
        return 2

    setup_logging(options.log_dir, options.log_level)

    manager = None
    if options.serve:
        from services.server_manager import PreviewServerManager
        manager = PreviewServerManager()

    orchestrator = BuildOrchestrator(options, server_manager=manager)
    results = orchestrator.run()

    failed = [r for r in results if not r.ok]
    for r in results:
        status = "ok" if r.ok else f"failed ({r.error})"
        logger.info(f"{r.mode.value}: {r.html_path} -> {r.target_html or '-'} "
                    f"[{r.entities} asset(s), {r.failures} skipped] {status}")

    if manager is not None and manager.list_servers():
        wait_for_interrupt(manager)

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
