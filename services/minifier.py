"""
minifier.py - CSS/JS minification service backed by rcssmin and rjsmin.

Returns result objects instead of raising so the transform step can decide
how a failure is reported. Source maps are coarse: rcssmin and rjsmin keep
no position data, so a map points the whole minified file at the start of
its original and embeds the original text for debuggers.
"""

import os
import re
import json
import logging
import posixpath
from dataclasses import dataclass, field
from typing import List, Optional

import rcssmin
import rjsmin

from pipeline.resolver import is_external, is_fragment

logger = logging.getLogger("tobuild")

URL_RE = re.compile(r"url\(\s*(?P<quote>[\"']?)(?P<uri>[^\"')]+?)(?P=quote)\s*\)", re.IGNORECASE)


@dataclass
class CssResult:
    styles: str = ""
    source_map: Optional[str] = None
    errors: List[str] = field(default_factory=list)


@dataclass
class JsResult:
    code: str = ""
    map: Optional[str] = None
    error: Optional[str] = None


def build_source_map(original, filename, minified_name):
    """Minimal v3 source map: one mapping to the start of ``filename``."""
    return json.dumps({
        "version": 3,
        "file": minified_name,
        "sources": [filename],
        "sourcesContent": [original],
        "names": [],
        "mappings": "AAAA",
    })


def rebase_urls(css_text, rebase_from, rebase_to):
    """
    Rewrite relative ``url()`` references written for ``rebase_from`` so they
    resolve the same way from ``rebase_to``.
    """
    if not rebase_from or not rebase_to:
        return css_text
    offset = os.path.relpath(rebase_from, rebase_to).replace(os.sep, "/")
    if offset == ".":
        return css_text

    def _rebase(match):
        uri = match.group("uri").strip()
        if is_external(uri) or is_fragment(uri) or uri.startswith("/"):
            return match.group(0)
        path, sep, tail = _split_tail(uri)
        if not path:
            return match.group(0)
        rebased = posixpath.normpath(posixpath.join(offset, path))
        quote = match.group("quote")
        return f"url({quote}{rebased}{sep}{tail}{quote})"

    return URL_RE.sub(_rebase, css_text)


def _split_tail(uri):
    for i, ch in enumerate(uri):
        if ch in "?#":
            return uri[:i], ch, uri[i + 1:]
    return uri, "", ""


def minify_css(css_text, source_map=False, rebase_from=None, rebase_to=None,
               filename=None):
    """Minify a stylesheet. ``filename`` names the original in the source map."""
    result = CssResult()
    try:
        styles = rebase_urls(css_text, rebase_from, rebase_to)
        result.styles = rcssmin.cssmin(styles)
    except Exception as e:
        logger.debug(f"rcssmin failed on {filename}: {e}")
        result.errors.append(str(e))
        return result

    if source_map:
        filename = filename or "style.css"
        name, ext = os.path.splitext(filename)
        result.source_map = build_source_map(css_text, filename, f"{name}.min{ext}")
    return result


def minify_js(js_text, source_map=False, filename=None):
    """Minify a classic script."""
    result = JsResult()
    try:
        result.code = rjsmin.jsmin(js_text)
    except Exception as e:
        logger.debug(f"rjsmin failed on {filename}: {e}")
        result.error = str(e)
        return result

    if source_map:
        filename = filename or "script.js"
        name, ext = os.path.splitext(filename)
        result.map = build_source_map(js_text, filename, f"{name}.min{ext}")
    return result


class Minifier:
    """Service object handed to the transform dispatcher."""

    def minify_css(self, css_text, **options):
        return minify_css(css_text, **options)

    def minify_js(self, js_text, **options):
        return minify_js(js_text, **options)
