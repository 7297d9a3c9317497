"""Move-legality checks for folder moves."""

from __future__ import annotations

from typing import Optional

from dataroom.errors import InvalidMoveError

from .forest import Forest, is_descendant_of


def is_legal_move(forest: Forest, folder_id: str, target_folder_id: Optional[str]) -> bool:
    """
    Return True if folder_id may be moved under target_folder_id (None = root).

    Rejects a self-move and a move into the folder's own subtree. Passing
    here does not imply the server will accept the move: permissions and
    descendants inside unloaded folders are only checked server-side.
    """
    if target_folder_id is None:
        return True
    if folder_id == target_folder_id:
        return False
    return not is_descendant_of(forest, target_folder_id, folder_id)


def validate_folder_move(
    forest: Forest,
    folder_id: str,
    target_folder_id: Optional[str],
) -> None:
    """Raise InvalidMoveError for an illegal move."""
    if target_folder_id is not None and folder_id == target_folder_id:
        raise InvalidMoveError(
            "Cannot move a folder into itself",
            details={"folder_id": folder_id},
        )
    if not is_legal_move(forest, folder_id, target_folder_id):
        raise InvalidMoveError(
            "Cannot move a folder into one of its own subfolders",
            details={"folder_id": folder_id, "target_folder_id": target_folder_id},
        )
