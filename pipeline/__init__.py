# pipeline/__init__.py
from .entities import DELIMITER, Category, Entity, EntityRegistry
from .resolver import PathResolver, Resolution

__all__ = ["DELIMITER", "Category", "Entity", "EntityRegistry",
           "PathResolver", "Resolution"]
