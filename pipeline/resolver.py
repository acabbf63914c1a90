"""
resolver.py - Multi-root file lookup for asset references.

The Root Set is searched in order and the first existing file wins, so
callers control precedence by ordering the roots: entry-document
directory first, explicit roots next, the lookup package directory last.
The Static Set holds directories whose assets are served from elsewhere;
a match there means "leave the reference alone", not "missing".
"""

import os
import re
import logging
from collections import namedtuple
from urllib.parse import unquote, urlsplit

from pipeline.errors import LID

logger = logging.getLogger("tobuild")

Resolution = namedtuple("Resolution", ["root_folder", "source_path"])

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")


# ── URI helpers ───────────────────────────────────────────────────────────

def is_external(uri):
    """True for fully-qualified URLs (any scheme) and protocol-relative ones."""
    uri = uri.strip()
    # A Windows drive letter is not a scheme.
    if re.match(r"^[a-zA-Z]:[\\/]", uri):
        return False
    return uri.startswith("//") or bool(_SCHEME_RE.match(uri))


def is_fragment(uri):
    return uri.strip().startswith("#")


def get_pathname(uri):
    """URL-decoded path portion of ``uri`` (no query string, no fragment)."""
    return unquote(urlsplit(uri.strip()).path)


def get_suffix(uri):
    """The ``?query#fragment`` tail of ``uri``, kept verbatim on rewrite."""
    parts = urlsplit(uri.strip())
    suffix = ""
    if parts.query:
        suffix += "?" + parts.query
    if parts.fragment:
        suffix += "#" + parts.fragment
    return suffix


def _unique_dirs(dirs):
    seen = set()
    result = []
    for d in dirs:
        if d not in seen:
            seen.add(d)
            result.append(d)
    return result


def split_dir_list(value):
    """Accept a list, a comma-separated string or None and return clean entries."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    items = []
    for v in value:
        items.extend(part.strip() for part in str(v).split(","))
    return [i for i in items if i]


# ── Resolver ──────────────────────────────────────────────────────────────

class PathResolver:
    """Holds the Root Set and Static Set for one entry-document pass."""

    def __init__(self, root_folders=None, static_folders=None):
        self.root_folders = list(root_folders or [])
        self.static_folders = list(static_folders or [])

    @classmethod
    def for_document(cls, html_path, roots=None, static_dirs=None,
                     package_dir="node_modules", cwd=None):
        """
        Build the Root Set for an entry document.

        Priority: the document's own directory, then each user root, then
        ``<cwd>/<package_dir>`` if it exists. Duplicates are dropped.
        """
        cwd = os.path.abspath(cwd or os.getcwd())
        folders = [os.path.dirname(os.path.abspath(html_path))]
        for root in split_dir_list(roots):
            folders.append(os.path.abspath(root))

        if package_dir:
            package_path = os.path.join(cwd, package_dir)
            if os.path.isdir(package_path):
                folders.append(package_path)

        statics = [os.path.abspath(d) for d in split_dir_list(static_dirs)]
        resolver = cls(_unique_dirs(folders), _unique_dirs(statics))
        logger.debug(f"Root set for {html_path}: {resolver.root_folders}",
                     extra={"lid": LID.ROOTS})
        return resolver

    @staticmethod
    def _lookup(folders, pathname):
        relative = pathname.lstrip("/\\")
        if not relative:
            return None
        for folder in folders:
            source_path = os.path.normpath(os.path.join(folder, relative))
            if os.path.isfile(source_path):
                return Resolution(folder, source_path)
        return None

    def resolve(self, uri, reference_dir=None):
        """
        Find ``uri`` on disk.

        Returns a :class:`Resolution` or ``None``. An absolute path that
        already exists is accepted as-is. When ``reference_dir`` is given
        the Root Set is bypassed and only that directory is searched.
        """
        if not uri:
            return None
        pathname = get_pathname(uri)
        if not pathname:
            return None

        if os.path.isabs(pathname) and os.path.isfile(pathname):
            source_path = os.path.normpath(pathname)
            return Resolution(os.path.dirname(source_path), source_path)

        if reference_dir is not None:
            return self._lookup([os.path.abspath(reference_dir)], pathname)
        return self._lookup(self.root_folders, pathname)

    def resolve_static(self, uri):
        """Same lookup restricted to the Static Set."""
        if not uri or not self.static_folders:
            return None
        pathname = get_pathname(uri)
        if not pathname:
            return None
        return self._lookup(self.static_folders, pathname)
