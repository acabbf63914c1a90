"""
transforms.py - Per-category transform of registered entities.

Each branch computes where an entity lands in the output tree and what is
written there; the rewriter does the actual writing. Production stylesheets
and scripts are only minified here and left for the coalescing pass.
"""

import os
import logging
import posixpath

from config import BuildMode
from pipeline.entities import Category
from pipeline.errors import LID, ResolutionError, TransformError
from pipeline.extractor import CSS_URL_PATTERN, MANIFEST_SRC_PATTERN, extract_nested
from pipeline.hashing import content_hash, file_hash

logger = logging.getLogger("tobuild")

MANIFEST_NAMES = ("manifest.json",)
MANIFEST_EXTENSIONS = (".webmanifest",)


def safe_relative_path(pathname):
    """
    Normalize a reference path for use under an output directory.

    A leading separator is dropped and ``..`` segments that would climb out
    of the output directory are discarded.
    """
    normalized = posixpath.normpath(pathname.replace("\\", "/").lstrip("/"))
    parts = [p for p in normalized.split("/") if p not in ("", ".", "..")]
    return "/".join(parts)


def is_within(boundary, path):
    boundary = os.path.abspath(boundary)
    return os.path.commonpath([boundary, os.path.abspath(path)]) == boundary


def locate_target(base_dir, pathname, boundary=None):
    """
    Join ``pathname`` onto ``base_dir`` the way a browser resolves it.

    Results that would climb out of ``boundary`` (the mode's output root)
    fall back to the stripped form under ``base_dir``.
    """
    relative = pathname.replace("\\", "/").lstrip("/")
    target = os.path.normpath(os.path.join(base_dir, *relative.split("/")))
    if boundary and not is_within(boundary, target):
        target = os.path.join(base_dir, *safe_relative_path(pathname).split("/"))
    return target


def is_manifest(path):
    base = os.path.basename(path).lower()
    return base in MANIFEST_NAMES or base.endswith(MANIFEST_EXTENSIONS)


def _read_text(path):
    with open(path, "r", encoding="utf-8") as fh:
        return fh.read()


class TransformDispatcher:
    """Minify, bundle or copy entities according to their category."""

    def __init__(self, registry, resolver, minifier, bundler, output_root=None):
        self.registry = registry
        self.resolver = resolver
        self.minifier = minifier
        self.bundler = bundler
        self.output_root = output_root
        self._handlers = {
            Category.CSS: self._transform_css,
            Category.SCRIPT: self._transform_script,
            Category.ESM: self._transform_esm,
        }

    def transform(self, entity, dest_folder, flags):
        """
        Fill the target fields of ``entity``.

        Raises :class:`ResolutionError` when the source file is gone or a nested
        reference points outside the output root, and
        :class:`TransformError` when a service reports a failure.
        """
        if not entity.source_path or not os.path.isfile(entity.source_path):
            raise ResolutionError(entity.uri)

        if entity.base_target_dir is None:
            entity.base_target_dir = dest_folder
        self._locate(entity, self.output_root or dest_folder)

        handler = self._handlers.get(entity.category, self._copy)
        return handler(entity, dest_folder, flags)

    # ── Target location ───────────────────────────────────────────────────

    @staticmethod
    def _locate(entity, boundary):
        if entity.embedded:
            # The container's url()/src text is never rewritten.
            target_path = locate_target(entity.base_target_dir, entity.pathname)
            if not is_within(boundary, target_path):
                raise ResolutionError(
                    entity.uri, f"{entity.uri} points outside the output directory {boundary}")
        target_path = locate_target(entity.base_target_dir, entity.pathname, boundary)
        entity.target_path = target_path
        entity.target_dir = os.path.dirname(target_path)
        entity.target_name = entity.name

    # ── Categories ────────────────────────────────────────────────────────

    def _transform_css(self, entity, dest_folder, flags):
        original = _read_text(entity.source_path)

        # Nested assets are registered before minifying so that their
        # targets line up with the rebased url() references.
        extract_nested(original, CSS_URL_PATTERN, self.registry, self.resolver, entity)

        if not flags.minify_css:
            return self._copy(entity, dest_folder, flags)

        production = flags.mode is BuildMode.PRODUCTION
        result = self.minifier.minify_css(
            original,
            source_map=flags.sourcemaps,
            rebase_from=entity.target_dir,
            rebase_to=dest_folder if production else entity.target_dir,
            filename=entity.base,
        )
        if result.errors:
            raise TransformError(
                f"Failed to minify {entity.uri}: {'; '.join(result.errors)}",
                lid=LID.CSS_MINIFY,
            )

        self._finish_minified(entity, result.styles, result.source_map, original,
                              production, "/*# sourceMappingURL={} */")
        return entity

    def _transform_script(self, entity, dest_folder, flags):
        if not flags.minify_js:
            return self._copy(entity, dest_folder, flags)

        original = _read_text(entity.source_path)
        result = self.minifier.minify_js(original, source_map=flags.sourcemaps,
                                         filename=entity.base)
        if result.error:
            raise TransformError(f"Failed to minify {entity.uri}: {result.error}",
                                 lid=LID.JS_MINIFY)

        production = flags.mode is BuildMode.PRODUCTION
        self._finish_minified(entity, result.code, result.map, original,
                              production, "//# sourceMappingURL={}")
        return entity

    def _finish_minified(self, entity, code, source_map, original, production,
                         map_comment):
        if production:
            # The hash already implies minification: no ".min" suffix.
            entity.target_name = content_hash(code)
            entity.target_path = os.path.join(entity.target_dir,
                                              entity.target_name + entity.ext)
            entity.code = code
            entity.deferred = True
            return

        entity.target_name = f"{entity.name}.min"
        entity.target_path = os.path.join(entity.target_dir,
                                          entity.target_name + entity.ext)
        if source_map:
            map_name = f"{entity.base}.map"
            entity.sourcemap_path = os.path.join(entity.target_dir, map_name)
            entity.sourcemap_content = source_map
            entity.original_path = os.path.join(entity.target_dir, entity.base)
            entity.original_content = original
            code = code + "\n" + map_comment.format(map_name)
        entity.code = code

    def _transform_esm(self, entity, dest_folder, flags):
        if not flags.minify_js:
            return self._copy(entity, dest_folder, flags)

        target_path = os.path.join(entity.target_dir, f"{entity.name}.min.js")
        result = self.bundler.bundle(
            input=entity.source_path,
            output_bundle_path=target_path,
            target="browser",
            source_map=flags.sourcemaps,
            minify=True,
        )
        if not result.success:
            raise TransformError(f"Error during {entity.uri} bundling: {result.error}",
                                 lid=LID.ESM_BUNDLE)

        entity.target_name = f"{entity.name}.min"
        if flags.mode is BuildMode.PRODUCTION:
            digest = file_hash(target_path)
            hashed_path = os.path.join(entity.target_dir, f"{digest}.js")
            os.replace(target_path, hashed_path)
            target_path = hashed_path
            entity.target_name = digest

        entity.target_path = target_path
        entity.already_generated = True
        return entity

    def _copy(self, entity, dest_folder, flags):
        """GENERIC, MEDIA and EXTRAS: verbatim copy, manifests scanned first."""
        if entity.category is not Category.CSS and is_manifest(entity.source_path):
            content = _read_text(entity.source_path)
            found = len(self.registry.get_entities(Category.EXTRAS))
            extract_nested(content, MANIFEST_SRC_PATTERN, self.registry, self.resolver, entity)
            found = len(self.registry.get_entities(Category.EXTRAS)) - found
            logger.debug(f"Manifest {entity.uri} references {found} extra file(s)",
                         extra={"lid": LID.MANIFEST})
        return entity
