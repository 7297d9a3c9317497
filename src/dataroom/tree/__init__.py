"""Public tree-model exports for dataroom."""

from __future__ import annotations

from .forest import (
    Forest,
    all_folders_with_paths,
    children_at,
    find_folder,
    find_item,
    flatten,
    is_descendant_of,
    location_label,
    path_of,
    replace_children_at,
    resolve_path,
    update_folder,
)
from .search import SearchFilter, apply_filters_only, apply_search_and_filters
from .validators import is_legal_move, validate_folder_move

__all__ = [
    "Forest",
    "resolve_path",
    "children_at",
    "find_item",
    "find_folder",
    "path_of",
    "is_descendant_of",
    "flatten",
    "all_folders_with_paths",
    "replace_children_at",
    "update_folder",
    "location_label",
    "SearchFilter",
    "apply_filters_only",
    "apply_search_and_filters",
    "is_legal_move",
    "validate_folder_move",
]
