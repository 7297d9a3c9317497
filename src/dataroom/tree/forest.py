"""Pure queries and copy-on-write transforms over the folder forest (no I/O)."""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Optional, Sequence

from dataroom.models import (
    DataRoomPath,
    File,
    Folder,
    FolderWithPath,
    Item,
    ItemWithPath,
)

Forest = Sequence[Folder]


def _child_folders(folder: Folder) -> list[Folder]:
    return [c for c in folder.children if isinstance(c, Folder)]


def _find_by_slug(folders: Sequence[Item], slug: str) -> Optional[Folder]:
    for f in folders:
        if isinstance(f, Folder) and f.slug == slug:
            return f
    return None


def resolve_path(forest: Forest, path: DataRoomPath) -> Optional[Folder]:
    """
    Walk slugs level by level through loaded children.

    Returns None for the root level ([]) and for any slug that cannot be
    found; an unloaded folder has no children, so a lookup through it fails
    closed instead of triggering a fetch.
    """
    if not path:
        return None
    current: Sequence[Item] = forest
    folder: Optional[Folder] = None
    for slug in path:
        folder = _find_by_slug(current, slug)
        if folder is None:
            return None
        current = folder.children
    return folder


def children_at(forest: Forest, path: DataRoomPath) -> list[Item]:
    if not path:
        return list(forest)
    folder = resolve_path(forest, path)
    return list(folder.children) if folder is not None else []


def find_item(forest: Forest, path: DataRoomPath, item_id: str) -> Optional[Item]:
    for item in children_at(forest, path):
        if item.id == item_id:
            return item
    return None


def find_folder(forest: Forest, folder_id: str) -> Optional[Folder]:
    """Depth-first search for a loaded folder by id."""
    stack: list[Folder] = list(reversed(forest))
    while stack:
        cur = stack.pop()
        if cur.id == folder_id:
            return cur
        stack.extend(reversed(_child_folders(cur)))
    return None


def path_of(forest: Forest, item_id: str) -> Optional[tuple[str, ...]]:
    """
    Return the path of a folder, or of the folder owning a file.

    Only loaded subtrees are searched; None means "not reachable".
    """

    def walk(prefix: tuple[str, ...], folders: Sequence[Folder]) -> Optional[tuple[str, ...]]:
        for f in folders:
            here = prefix + (f.slug,)
            if f.id == item_id:
                return here
            for c in f.children:
                if isinstance(c, File) and c.id == item_id:
                    return here
            found = walk(here, _child_folders(f))
            if found is not None:
                return found
        return None

    return walk((), forest)


def is_descendant_of(forest: Forest, candidate_id: str, ancestor_id: str) -> bool:
    """
    Return True if candidate_id lies strictly beneath ancestor_id.

    Only as strong as what has been fetched: a descendant hidden inside an
    unloaded folder is not seen. The server-side check is authoritative.
    """
    ancestor = find_folder(forest, ancestor_id)
    if ancestor is None:
        return False
    stack: list[Item] = list(ancestor.children)
    while stack:
        cur = stack.pop()
        if cur.id == candidate_id:
            return True
        if isinstance(cur, Folder):
            stack.extend(cur.children)
    return False


def flatten(forest: Forest) -> list[ItemWithPath]:
    """
    Depth-first listing of every loaded folder and file with its path.

    A folder's path includes its own slug; a file's path is its folder's path.
    """
    out: list[ItemWithPath] = []

    def walk(prefix: tuple[str, ...], folders: Sequence[Folder]) -> None:
        for f in folders:
            here = prefix + (f.slug,)
            out.append(ItemWithPath(f, here))
            for c in f.children:
                if isinstance(c, File):
                    out.append(ItemWithPath(c, here))
            walk(here, _child_folders(f))

    walk((), forest)
    return out


def all_folders_with_paths(forest: Forest) -> list[FolderWithPath]:
    return [
        FolderWithPath(entry.path, entry.item)  # type: ignore[arg-type]
        for entry in flatten(forest)
        if isinstance(entry.item, Folder)
    ]


def replace_children_at(
    forest: Forest,
    path: DataRoomPath,
    new_children: Sequence[Item],
) -> list[Folder]:
    """
    Return a new forest with the children at path replaced.

    Only the spine from the root to path is rebuilt; every untouched subtree
    is shared with the input. path=[] replaces the root list itself. An
    unresolvable path leaves the forest unchanged (a new list, same nodes).
    """
    if not path:
        return [c for c in new_children if isinstance(c, Folder)]

    head, rest = path[0], path[1:]
    out: list[Folder] = []
    for f in forest:
        if f.slug != head:
            out.append(f)
            continue
        if not rest:
            out.append(replace(f, children=list(new_children)))
            continue
        rebuilt = replace_children_at(_child_folders(f), rest, new_children)
        by_id = {c.id: c for c in rebuilt}
        out.append(
            replace(
                f,
                children=[by_id.get(c.id, c) if isinstance(c, Folder) else c for c in f.children],
            )
        )
    return out


def update_folder(
    forest: Forest,
    folder_id: str,
    updater: Callable[[Folder], Folder],
) -> list[Folder]:
    """Copy-on-write update of the folder with folder_id, wherever it is loaded."""

    def rebuild(items: Sequence[Item]) -> tuple[list[Item], bool]:
        changed = False
        out: list[Item] = []
        for item in items:
            if isinstance(item, Folder):
                if item.id == folder_id:
                    out.append(updater(item))
                    changed = True
                    continue
                if not changed:
                    sub, sub_changed = rebuild(item.children)
                    if sub_changed:
                        out.append(replace(item, children=sub))
                        changed = True
                        continue
            out.append(item)
        return out, changed

    new_items, _ = rebuild(forest)
    return [f for f in new_items if isinstance(f, Folder)]


def location_label(forest: Forest, path: DataRoomPath, root_label: str = "Data Room") -> str:
    """Build a display label such as "Company Profile / Proposals"."""
    if not path:
        return root_label
    current: Sequence[Item] = forest
    names: list[str] = []
    for slug in path:
        folder = _find_by_slug(current, slug)
        if folder is None:
            names.append(slug)
            break
        names.append(folder.name)
        current = folder.children
    return " / ".join(names)
