"""
Path resolution over the node tree.

Paths are slash separated. A leading slash starts at the tree root,
anything else starts at the context node. Every directory is brought up
to date before it is descended into, so resolving a path can block on
a remote listing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Tuple

from ..errors import NotADirectory, NotFound

if TYPE_CHECKING:
    from .node import Node

MAX_DEPTH = 64


def resolve(context: "Node", path: str, follow: bool = True) -> "Node":
    """Walk ``path`` from ``context`` and return the node it names.

    Links met on the way are always followed; a link in the final
    position is only replaced by its source when ``follow`` is true.

    Args:
        context: Node relative paths start from.
        path: Slash separated path.
        follow: Whether a trailing link resolves to its source.

    Returns:
        Node: The resolved node.

    Raises:
        NotFound: A segment is missing, a link dangles, or the path has
            more than ``MAX_DEPTH`` segments.
        NotADirectory: A non-final segment is a leaf.
    """
    node = context.root if path.startswith("/") else context
    segments = [segment for segment in path.split("/") if segment]
    if len(segments) > MAX_DEPTH:
        raise NotFound("path too deep", path)

    last = len(segments) - 1
    for index, segment in enumerate(segments):
        if not node.is_dir:
            raise NotADirectory(path=path)
        if segment == ".":
            continue
        if segment == "..":
            node = node.parent or node
            continue
        node.ensure_fresh()
        child = node.get_child(segment)
        if child is None:
            raise NotFound(path=path)
        hops = 0
        while child.is_link and (follow or index < last):
            child = child.target()
            hops += 1
            if hops > MAX_DEPTH:
                raise NotFound("too many links", path)
        node = child
    return node


def split_path(path: str) -> Tuple[str, str]:
    """Split ``path`` into its parent directory and leaf name.

    Raises:
        NotFound: The path has no leaf component (``/`` or empty).
    """
    stripped = path.rstrip("/")
    parent, _, name = stripped.rpartition("/")
    if not name or name in (".", ".."):
        raise NotFound(path=path)
    if not parent:
        parent = "/" if stripped.startswith("/") else "."
    return parent, name


def _ancestry(node: "Node") -> List["Node"]:
    chain = []
    current: Optional["Node"] = node
    while current is not None and len(chain) <= MAX_DEPTH:
        chain.append(current)
        current = current.parent
    return chain


def relative_target(directory: "Node", source: "Node") -> str:
    """Path from ``directory`` to ``source`` through their nearest common ancestor.

    A source that shares the directory gives its bare name. Nodes in
    unrelated trees fall back to the source's absolute path.
    """
    if source.parent is directory:
        return source.name
    up = _ancestry(directory)
    down = _ancestry(source)
    down_ids = {id(node): position for position, node in enumerate(down)}
    for climbs, ancestor in enumerate(up):
        position = down_ids.get(id(ancestor))
        if position is None:
            continue
        names = [node.name for node in reversed(down[:position])]
        return "/".join([".."] * climbs + names) or "."
    return source.path
