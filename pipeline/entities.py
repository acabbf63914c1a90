"""
entities.py - Asset entities and the per-build registry that stores them.

Every discovered reference becomes an :class:`Entity`. The registry keeps
them per category in discovery order (that order decides production bundle
content and therefore its hash), by URI (last write wins) and by tag id.
"""

import enum
import os
import posixpath
from dataclasses import dataclass, field
from typing import Optional

from pipeline.errors import PlaceholderError

# ASCII record separator: never part of ordinary markup.
DELIMITER = "\x1e"


class Category(enum.Enum):
    CSS = "css"
    SCRIPT = "script"
    ESM = "esm"
    GENERIC = "generic"
    MEDIA = "media"
    EXTRAS = "extras"


# Order in which the orchestrator transforms categories. CSS comes first so
# that url() assets it discovers are copied by the GENERIC pass; manifests
# copied by GENERIC register EXTRAS, which come last.
PROCESSING_ORDER = (
    Category.CSS,
    Category.GENERIC,
    Category.MEDIA,
    Category.ESM,
    Category.SCRIPT,
    Category.EXTRAS,
)


def make_tag_id(category, ordinal):
    return f"{category.value}({ordinal})"


def make_replacement(tag_id):
    return f"{DELIMITER}{tag_id}{DELIMITER}"


@dataclass
class Entity:
    tag: str
    uri: str
    category: Category
    pathname: str
    source_path: str
    root_folder: str
    base_target_dir: Optional[str] = None
    parent: Optional[str] = None
    suffix: str = ""

    # Filled by the registry
    tag_id: Optional[str] = None
    replacement: Optional[str] = None

    # Filled once per build pass by the transform step
    target_path: Optional[str] = None
    target_dir: Optional[str] = None
    target_name: Optional[str] = None
    code: Optional[str] = None
    sourcemap_content: Optional[str] = None
    sourcemap_path: Optional[str] = None
    original_path: Optional[str] = None
    original_content: Optional[str] = None
    deferred: bool = False
    already_generated: bool = False
    failed: bool = False

    original_uri: str = field(init=False)

    def __post_init__(self):
        self.original_uri = self.uri

    def __setattr__(self, key, value):
        # Identity is frozen once the registry has assigned a tag id.
        if key in ("tag_id", "category", "original_uri"):
            if getattr(self, "tag_id", None) is not None:
                raise AttributeError(f"{key} is read-only on a registered entity")
        super().__setattr__(key, value)

    # ── Derived path components ───────────────────────────────────────────

    @property
    def base(self):
        return posixpath.basename(self.pathname)

    @property
    def ext(self):
        return posixpath.splitext(self.base)[1]

    @property
    def name(self):
        return posixpath.splitext(self.base)[0]

    @property
    def dir(self):
        return posixpath.dirname(self.pathname)

    @property
    def fullname(self):
        return posixpath.normpath(self.pathname.lstrip("/")) if self.pathname else ""

    @property
    def source_dir(self):
        return os.path.dirname(self.source_path)

    @property
    def embedded(self):
        """True for assets discovered inside another asset (CSS url(), manifest src)."""
        return self.parent is not None


class EntityRegistry:
    """Entities of one build pass, keyed by category, URI and tag id."""

    def __init__(self):
        self._by_category = {category: [] for category in Category}
        self._by_uri = {}
        self._by_tag_id = {}

    def add(self, entity):
        """Register ``entity``, assigning its ordinal, tag id and placeholder."""
        category = entity.category
        entries = self._by_category[category]
        ordinal = len(entries)

        if DELIMITER in category.value or DELIMITER in str(ordinal):
            raise PlaceholderError(f"Delimiter found in tag id for category {category.value}")

        tag_id = make_tag_id(category, ordinal)
        entity.replacement = make_replacement(tag_id)
        entity.tag_id = tag_id

        entries.append(entity)
        self._by_uri[entity.uri] = entity
        self._by_tag_id[tag_id] = entity
        return entity

    def get_entities(self, category):
        return self._by_category[category]

    def get_entity_from_uri(self, uri):
        return self._by_uri.get(uri)

    def get_entity_from_tag_id(self, tag_id):
        return self._by_tag_id.get(tag_id)

    def __iter__(self):
        for category in Category:
            yield from self._by_category[category]

    def __len__(self):
        return len(self._by_tag_id)
