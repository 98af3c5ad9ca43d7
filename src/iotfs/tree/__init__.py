"""Node tree, path resolution, staleness timers and relationship links."""

from .leaves import DocumentNode, InfoNode
from .links import RelationshipNode
from .node import CacheState, LinkNode, Node, NodeKind
from .resolver import MAX_DEPTH, relative_target, resolve, split_path
from .staleness import StalenessScheduler, default_scheduler

__all__ = [
    "CacheState",
    "DocumentNode",
    "InfoNode",
    "LinkNode",
    "MAX_DEPTH",
    "Node",
    "NodeKind",
    "RelationshipNode",
    "StalenessScheduler",
    "default_scheduler",
    "relative_target",
    "resolve",
    "split_path",
]
