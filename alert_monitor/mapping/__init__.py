"""Path-based mapping of arbitrary JSON responses into items."""

from .path_resolver import is_valid_path, resolve_path, tokenize_path
from .response_mapper import Item, MappingPaths, extract_item_list, map_items

__all__ = [
    "Item",
    "MappingPaths",
    "extract_item_list",
    "is_valid_path",
    "map_items",
    "resolve_path",
    "tokenize_path",
]
