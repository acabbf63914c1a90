"""
orchestrator.py - Drives one build pass per entry document and mode.

    idle -> extracting -> transforming -> rewriting -> (coalescing) -> written

Each pass gets a fresh BuildContext (Root Set, Static Set, registry), so
staging and production never share state. Per-entity failures are logged
and skipped; a filesystem failure ends the current document's pass only.
"""

import os
import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from config import BuildMode, Config, DevelopmentConfig, config_for
from pipeline.directives import strip_directives
from pipeline.entities import DELIMITER, PROCESSING_ORDER, EntityRegistry
from pipeline.errors import (LID, InvalidTransitionError, OutputWriteError,
                             PlaceholderError, ToBuildError)
from pipeline.extractor import extract_html
from pipeline.resolver import PathResolver
from pipeline.rewriter import (apply_changes_from_entity, build_production_targets,
                               ensure_directory, restore_placeholders, write_text)
from pipeline.transforms import TransformDispatcher
from services.bundler import EsbuildBundler
from services.minifier import Minifier

logger = logging.getLogger("tobuild")


class BuildState(enum.Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    TRANSFORMING = "transforming"
    REWRITING = "rewriting"
    COALESCING = "coalescing"
    WRITTEN = "written"
    FAILED = "failed"


TRANSITIONS = {
    BuildState.IDLE: {BuildState.EXTRACTING},
    BuildState.EXTRACTING: {BuildState.TRANSFORMING},
    BuildState.TRANSFORMING: {BuildState.REWRITING},
    BuildState.REWRITING: {BuildState.COALESCING, BuildState.WRITTEN},
    BuildState.COALESCING: {BuildState.WRITTEN},
    BuildState.WRITTEN: set(),
    BuildState.FAILED: set(),
}


@dataclass
class BuildContext:
    """Everything one entry-document pass needs; discarded afterwards."""
    html_path: str
    flags: object
    resolver: PathResolver
    registry: EntityRegistry
    output_root: str
    doc_out_dir: str
    state: BuildState = BuildState.IDLE
    history: List[BuildState] = field(default_factory=list)

    @property
    def mode(self):
        return self.flags.mode

    def advance(self, state):
        if state is BuildState.FAILED:
            allowed = self.state not in (BuildState.WRITTEN, BuildState.FAILED)
        else:
            allowed = state in TRANSITIONS[self.state]
        if state is BuildState.COALESCING and self.mode is not BuildMode.PRODUCTION:
            allowed = False
        if not allowed:
            raise InvalidTransitionError(f"Cannot go from {self.state.value} to {state.value}")
        self.history.append(self.state)
        self.state = state


@dataclass
class DocumentResult:
    html_path: str
    mode: BuildMode
    output_root: str
    target_html: Optional[str]
    state: BuildState
    root_folders: List[str] = field(default_factory=list)
    entities: int = 0
    failures: int = 0
    error: Optional[str] = None

    @property
    def ok(self):
        return self.state is BuildState.WRITTEN


class BuildOrchestrator:
    """Builds every entry document for every requested mode."""

    def __init__(self, options, minifier=None, bundler=None, server_manager=None):
        self.options = options
        self.minifier = minifier or Minifier()
        self.bundler = bundler or EsbuildBundler(Config.ESBUILD_BINARY, Config.ESBUILD_TIMEOUT)
        self.server_manager = server_manager
        self.base_dir = os.path.abspath(options.base_dir or os.getcwd())

    # ── Mode policy and paths ─────────────────────────────────────────────

    def mode_flags(self, mode):
        return config_for(mode).mode_flags(
            minify_css=self.options.minify_css,
            minify_js=self.options.minify_js,
            sourcemaps=self.options.sourcemaps,
        )

    def output_root(self, mode):
        return os.path.abspath(os.path.join(self.options.output, BuildMode(mode).value))

    def document_out_dir(self, html_path, output_root):
        """Mirror the document's directory relative to ``base_dir``."""
        html_dir = os.path.dirname(os.path.abspath(html_path))
        relative = os.path.relpath(html_dir, self.base_dir)
        if relative == "." or relative.startswith(".."):
            return output_root
        return os.path.join(output_root, relative)

    def create_context(self, html_path, mode):
        mode = BuildMode(mode)
        output_root = self.output_root(mode)
        resolver = PathResolver.for_document(
            html_path,
            roots=self.options.roots,
            static_dirs=self.options.static,
            package_dir=Config.LOOKUP_PACKAGE_DIR,
            cwd=self.base_dir,
        )
        return BuildContext(
            html_path=html_path,
            flags=self.mode_flags(mode),
            resolver=resolver,
            registry=EntityRegistry(),
            output_root=output_root,
            doc_out_dir=self.document_out_dir(html_path, output_root),
        )

    # ── Passes ────────────────────────────────────────────────────────────

    def build_document(self, html_path, mode):
        """Run one full pass; never raises for build errors."""
        ctx = self.create_context(html_path, mode)
        logger.info(f"Building {ctx.mode.value} for {html_path}")
        result = DocumentResult(
            html_path=html_path,
            mode=ctx.mode,
            output_root=ctx.output_root,
            target_html=None,
            state=ctx.state,
            root_folders=list(ctx.resolver.root_folders),
        )

        try:
            with open(html_path, "r", encoding="utf-8") as fh:
                text = fh.read()
            if DELIMITER in text:
                raise PlaceholderError(f"{html_path} contains the reserved placeholder delimiter")
            ensure_directory(ctx.doc_out_dir)

            ctx.advance(BuildState.EXTRACTING)
            text = strip_directives(text, ctx.mode)
            text = extract_html(text, ctx.registry, ctx.resolver, ctx.doc_out_dir)

            ctx.advance(BuildState.TRANSFORMING)
            result.failures = self._transform_all(ctx)

            ctx.advance(BuildState.REWRITING)
            text = self._rewrite_all(ctx, text)

            if ctx.mode is BuildMode.PRODUCTION:
                ctx.advance(BuildState.COALESCING)
                text = build_production_targets(text, ctx.registry, ctx.doc_out_dir)

            text = restore_placeholders(text, ctx.registry)
            target_html = os.path.join(ctx.doc_out_dir, os.path.basename(html_path))
            write_text(target_html, text)
            ctx.advance(BuildState.WRITTEN)
            result.target_html = target_html
        except (OutputWriteError, PlaceholderError, OSError, UnicodeDecodeError) as e:
            ctx.advance(BuildState.FAILED)
            result.error = str(e)
            logger.error(f"Failed to build {html_path} ({ctx.mode.value}): {e}",
                         extra={"lid": LID.DOCUMENT})

        result.state = ctx.state
        result.entities = len(ctx.registry)
        return result

    def _transform_all(self, ctx):
        dispatcher = TransformDispatcher(ctx.registry, ctx.resolver, self.minifier,
                                         self.bundler, output_root=ctx.output_root)
        failures = 0
        for category in PROCESSING_ORDER:
            entities = ctx.registry.get_entities(category)
            # Nested discoveries may append while we iterate.
            index = 0
            while index < len(entities):
                entity = entities[index]
                index += 1
                try:
                    dispatcher.transform(entity, ctx.doc_out_dir, ctx.flags)
                except OutputWriteError:
                    raise
                except (ToBuildError, OSError, ValueError) as e:
                    entity.failed = True
                    failures += 1
                    lid = getattr(e, "lid", None) or LID.COPY
                    logger.error(f"Failed to copy {entity.uri} to {ctx.doc_out_dir}: {e}",
                                 extra={"lid": lid})
        return failures

    def _rewrite_all(self, ctx, text):
        for category in PROCESSING_ORDER:
            for entity in ctx.registry.get_entities(category):
                if entity.failed or entity.deferred:
                    continue
                text = apply_changes_from_entity(
                    text, entity, ctx.doc_out_dir,
                    already_generated=entity.already_generated,
                )
        return text

    def build_all(self):
        results = []
        for mode in self.options.modes:
            for html_path in self.options.inputs:
                results.append(self.build_document(html_path, mode))
        return results

    # ── Preview servers ───────────────────────────────────────────────────

    def _static_dirs(self):
        dirs = []
        for d in self.options.static:
            d = os.path.abspath(d)
            if d not in dirs:
                dirs.append(d)
        return dirs

    def _restart_server(self, mode_config, dirs):
        manager = self.server_manager
        namespace = Config.SERVER_NAMESPACE
        name = mode_config.MODE.value

        if manager.is_up(namespace=namespace, name=name):
            if not manager.stop(namespace=namespace, name=name):
                logger.error("Could not stop running server. Re-using the same one",
                             extra={"lid": LID.SERVER_STOP})
                return True

        started = manager.start(namespace=namespace, name=name, port=mode_config.PORT,
                                dirs=dirs, dynamic_dirs=list(Config.DYNAMIC_DIRS))
        if not started:
            logger.error(f"Failed to start the {name} server", extra={"lid": LID.SERVER_START})
        return started

    def start_servers(self, results):
        """One stop-then-start request per mode; returns ``{mode: started}``."""
        if self.server_manager is None:
            return {}

        statuses = {}
        static_dirs = self._static_dirs()

        dev_dirs = []
        for result in results:
            for folder in result.root_folders:
                if folder not in dev_dirs:
                    dev_dirs.append(folder)
        statuses[BuildMode.DEVELOPMENT] = self._restart_server(
            DevelopmentConfig, dev_dirs + [d for d in static_dirs if d not in dev_dirs])

        for mode_name in self.options.modes:
            mode = BuildMode(mode_name)
            if not any(r.ok for r in results if r.mode is mode):
                logger.warning(f"Nothing built for {mode.value}; server not started")
                continue
            dirs = [self.output_root(mode)] + static_dirs
            statuses[mode] = self._restart_server(config_for(mode), dirs)
        return statuses

    def run(self):
        results = self.build_all()
        if self.options.serve:
            self.start_servers(results)
        return results
