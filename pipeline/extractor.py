"""
extractor.py - Pattern-based discovery of asset references.

HTML is never parsed into a tree: tags are found with regular expressions
so that everything around a match is preserved byte-for-byte. Scanning is
isolated in :func:`find_references`; :func:`extract` turns the references
into registered entities and swaps each matched tag for its placeholder.
"""

import os
import re
import logging
from collections import namedtuple
from dataclasses import dataclass
from typing import Optional

from pipeline.entities import Category, Entity
from pipeline.errors import LID
from pipeline.resolver import get_pathname, get_suffix, is_external, is_fragment

logger = logging.getLogger("tobuild")

Reference = namedtuple("Reference", ["tag", "uri", "start", "end"])


@dataclass(frozen=True)
class PatternSpec:
    """
    What to look for.

    ``tag_name`` and ``attribute`` build the default tag pattern (``tag_name``
    may be a regex such as ``\\w+``). ``gate`` must match inside the tag for
    it to be kept, ``exclude`` must not. ``search`` replaces the generated
    pattern entirely; its first group is the URI.
    """
    category: Category
    tag_name: str = "link"
    attribute: str = "href"
    gate: Optional[str] = None
    exclude: Optional[str] = None
    search: Optional[str] = None

    def compile(self):
        if self.search:
            return re.compile(self.search, re.IGNORECASE)
        pattern = (
            rf"<(?P<tagname>{self.tag_name})\b[^>]*?\s{self.attribute}\s*=\s*"
            r"(?P<quote>[\"'])(?P<uri>.*?)(?P=quote)[^>]*>"
            r"(?:\s*</(?P=tagname)\s*>)?"
        )
        return re.compile(pattern, re.IGNORECASE | re.DOTALL)


MODULE_TYPE = r"\btype\s*=\s*[\"']\s*module\s*[\"']"

# Applied to HTML in this exact order; each pass only sees what earlier
# passes left, so placeholders are never matched twice.
HTML_PATTERNS = (
    PatternSpec(Category.CSS, "link", "href", gate=r"\bstylesheet\b"),
    PatternSpec(Category.GENERIC, r"\w+", "href"),
    PatternSpec(Category.ESM, "script", "src", gate=MODULE_TYPE),
    PatternSpec(Category.SCRIPT, "script", "src", exclude=MODULE_TYPE),
    PatternSpec(Category.MEDIA, r"\w+", "src"),
)

CSS_URL_PATTERN = PatternSpec(
    Category.GENERIC,
    search=r"url\(\s*[\"']?([^\"')]+?)[\"']?\s*\)",
)

MANIFEST_SRC_PATTERN = PatternSpec(
    Category.EXTRAS,
    search=r"\"src\"\s*:\s*\"([^\"]+)\"",
)


def find_references(text, spec):
    """Return every :class:`Reference` matching ``spec`` in ``text``."""
    regexp = spec.compile()
    gate = re.compile(spec.gate, re.IGNORECASE) if spec.gate else None
    exclude = re.compile(spec.exclude, re.IGNORECASE) if spec.exclude else None

    references = []
    for match in regexp.finditer(text):
        tag = match.group(0)
        if gate and not gate.search(tag):
            continue
        if exclude and exclude.search(tag):
            continue
        uri = match.group("uri") if "uri" in regexp.groupindex else match.group(1)
        references.append(Reference(tag, uri, match.start(), match.end()))
    return references


def _should_skip(uri):
    """Skip references that are not ours to process. Returns a reason or None."""
    stripped = uri.strip()
    if not stripped:
        return "empty"
    if is_fragment(stripped):
        return "fragment"
    if is_external(stripped):
        return "external"
    if not get_pathname(stripped):
        return "empty"
    return None


def extract(text, spec, registry, resolver, reference_dir=None,
            base_target_dir=None, parent=None, substitute=True, rejected=None):
    """
    Register every asset referenced in ``text`` and return the new text.

    With ``substitute`` each matched tag is replaced by its entity's
    placeholder; unresolved, external and static references keep their tag
    verbatim. ``reference_dir`` resolves relative to a containing file
    instead of the Root Set. Unresolved tags are added to ``rejected`` so
    that later passes sharing the set do not report them again.
    """
    references = find_references(text, spec)
    if not references:
        return text

    pieces = []
    cursor = 0
    for ref in references:
        if rejected is not None and ref.tag in rejected:
            continue
        reason = _should_skip(ref.uri)
        if reason:
            logger.debug(f"Skipping {reason} reference {ref.uri!r}")
            continue

        resolution = resolver.resolve(ref.uri, reference_dir=reference_dir)
        if resolution is None:
            if rejected is not None:
                rejected.add(ref.tag)
            if resolver.resolve_static(ref.uri):
                logger.debug(f"Leaving static asset {ref.uri} untouched",
                             extra={"lid": LID.STATIC_ASSET})
                continue
            logger.error(f"Could not find local path for {ref.uri}",
                         extra={"lid": LID.MISSING_ASSET})
            continue

        entity = registry.add(Entity(
            tag=ref.tag,
            uri=ref.uri.strip(),
            category=spec.category,
            pathname=get_pathname(ref.uri),
            source_path=resolution.source_path,
            root_folder=resolution.root_folder,
            base_target_dir=base_target_dir,
            parent=parent,
            suffix=get_suffix(ref.uri),
        ))

        if substitute:
            pieces.append(text[cursor:ref.start])
            pieces.append(entity.replacement)
            cursor = ref.end

    if not substitute:
        return text
    pieces.append(text[cursor:])
    return "".join(pieces)


def extract_html(text, registry, resolver, base_target_dir):
    """Run every HTML pass in order, then register inline ``url()`` assets."""
    rejected = set()
    for spec in HTML_PATTERNS:
        text = extract(text, spec, registry, resolver,
                       base_target_dir=base_target_dir, rejected=rejected)

    # Inline styles keep their url() text; the files are only copied.
    extract(text, CSS_URL_PATTERN, registry, resolver,
            base_target_dir=base_target_dir, substitute=False)
    return text


def extract_nested(content, spec, registry, resolver, container):
    """
    Discover assets referenced from inside another asset.

    Resolution is relative to the containing file on disk and targets are
    relative to the container's output directory.
    """
    return extract(
        content, spec, registry, resolver,
        reference_dir=os.path.dirname(container.source_path),
        base_target_dir=container.target_dir,
        parent=container.tag_id,
        substitute=False,
    )
