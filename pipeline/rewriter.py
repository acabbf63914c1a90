"""
rewriter.py - Write transformed entities and put final URIs back in the text.

Also hosts the production coalescing pass, which merges contiguous
placeholders of the same category into one content-hashed bundle.
"""

import os
import shutil
import logging
from urllib.parse import quote

from pipeline.entities import DELIMITER, Category
from pipeline.errors import LID, OutputWriteError
from pipeline.hashing import content_hash

logger = logging.getLogger("tobuild")

BUNDLE_EXTENSIONS = {
    Category.CSS: ".css",
    Category.SCRIPT: ".js",
}


# ── Path helpers ──────────────────────────────────────────────────────────

def make_path_relative(uri):
    """``/a/b`` -> ``./a/b``, ``a/b`` -> ``./a/b``; ``./`` and ``../`` kept."""
    uri = uri.replace("\\", "/")
    if uri.startswith("/"):
        return "." + uri
    if uri.startswith("./") or uri.startswith("../"):
        return uri
    return "./" + uri


def replace_last(text, search, replace):
    index = text.rfind(search)
    if index < 0:
        return text
    return text[:index] + replace + text[index + len(search):]


def relative_uri(target_path, doc_out_dir):
    """URL-encoded path from the document output dir to ``target_path``."""
    rel = os.path.relpath(target_path, doc_out_dir).replace(os.sep, "/")
    return make_path_relative(quote(rel, safe="/"))


# ── Disk writes ───────────────────────────────────────────────────────────

def ensure_directory(path):
    """Create ``path`` and its parents; safe to call any number of times."""
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise OutputWriteError(f"Cannot create output directory {path}: {e}") from e
    return path


def write_text(path, content):
    try:
        with open(path, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
    except OSError as e:
        raise OutputWriteError(f"Cannot write {path}: {e}") from e


def _copy_file(source, target):
    if os.path.abspath(source) == os.path.abspath(target):
        return
    try:
        shutil.copyfile(source, target)
    except OSError as e:
        raise OutputWriteError(f"Cannot copy {source} to {target}: {e}") from e


def _write_entity(entity):
    if entity.code is not None:
        write_text(entity.target_path, entity.code)
        if entity.sourcemap_content is not None:
            write_text(entity.sourcemap_path, entity.sourcemap_content)
        if entity.original_content is not None:
            write_text(entity.original_path, entity.original_content)
    else:
        _copy_file(entity.source_path, entity.target_path)


def describe(entity):
    properties = []
    if entity.already_generated:
        properties.append("bundled")
    if entity.code is not None or entity.already_generated:
        properties.append("minified")
    if entity.sourcemap_content is not None:
        properties.append("source mapped")
    prefix = ", ".join(properties) + " and " if properties else ""
    sentence = f"{prefix}copied {entity.uri}"
    return sentence[0].upper() + sentence[1:]


# ── Rewrite ───────────────────────────────────────────────────────────────

def rewrite_tag(entity, doc_out_dir):
    """The entity's original tag with its URI pointing at the target file."""
    new_uri = relative_uri(entity.target_path, doc_out_dir) + entity.suffix
    return replace_last(entity.tag, entity.original_uri, new_uri)


def apply_changes_from_entity(text, entity, doc_out_dir, already_generated=False):
    """
    Write ``entity`` to its target and substitute its placeholder in ``text``.

    With ``already_generated`` the file is assumed to exist (bundler output)
    and only the textual substitution happens. Filesystem failures raise
    :class:`OutputWriteError`.
    """
    ensure_directory(entity.target_dir)
    if not already_generated:
        _write_entity(entity)
    logger.info(describe(entity))

    if entity.embedded or entity.replacement not in text:
        return text
    return text.replace(entity.replacement, rewrite_tag(entity, doc_out_dir))


def restore_placeholders(text, registry):
    """Put the original tag back for every placeholder still in ``text``."""
    if DELIMITER not in text:
        return text
    segments = text.split(DELIMITER)
    for i in range(1, len(segments), 2):
        entity = registry.get_entity_from_tag_id(segments[i])
        if entity is None:
            logger.error(f"Unknown placeholder {segments[i]!r}", extra={"lid": LID.PLACEHOLDER})
            segments[i] = ""
        else:
            segments[i] = entity.tag
    return "".join(segments)


# ── Production coalescing ─────────────────────────────────────────────────

def bundle_tag(category, uri):
    if category is Category.CSS:
        return f'<link rel="stylesheet" href="{uri}">'
    return f'<script src="{uri}"></script>'


def write_bundle(entities, doc_out_dir):
    """Concatenate a run of deferred entities into ``<hash><ext>``; return its tag."""
    category = entities[0].category
    parts = []
    for entity in entities:
        parts.append(f"/* {entity.original_uri} */\n{entity.code}\n")
    bundle = "".join(parts)

    filename = content_hash(bundle) + BUNDLE_EXTENSIONS[category]
    ensure_directory(doc_out_dir)
    write_text(os.path.join(doc_out_dir, filename), bundle)
    logger.info(f"Bundled {len(entities)} {category.value} file(s) into {filename}",
                extra={"lid": LID.COALESCE})
    return bundle_tag(category, make_path_relative(filename))


def build_production_targets(text, registry, doc_out_dir):
    """
    Replace deferred placeholders with one bundle per contiguous run.

    Segments are walked strictly in document order. A run holds entities of
    one category and is flushed on a category change, on any text segment
    that is not pure whitespace, on a token that is not deferred and at the
    end. Whitespace between two members of the same run is dropped.
    """
    if DELIMITER not in text:
        return text

    segments = text.split(DELIMITER)
    output = []
    run = []
    pending = []

    def flush():
        if run:
            output.append(write_bundle(run, doc_out_dir))
            run.clear()
        output.extend(pending)
        pending.clear()

    for index, segment in enumerate(segments):
        if index % 2 == 0:
            if not segment:
                continue
            if run and not segment.strip():
                pending.append(segment)
                continue
            flush()
            output.append(segment)
            continue

        entity = registry.get_entity_from_tag_id(segment)
        if entity is None:
            flush()
            logger.error(f"Unknown placeholder {segment!r}", extra={"lid": LID.PLACEHOLDER})
            continue

        if not entity.deferred or entity.failed or entity.code is None:
            flush()
            output.append(entity.tag)
            continue

        if run and run[0].category is not entity.category:
            flush()
        pending.clear()
        run.append(entity)

    flush()
    return "".join(output)
