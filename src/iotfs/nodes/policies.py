"""
``/policies``: access policies and their versions.

Writing ``/policies/<p>/document`` stores a new default version. Old
versions stay readable under ``versions/``, where the ``default`` link
shows which one is in force. Moving the link moves the default::

    rm /policies/<p>/versions/default
    ln -s 3 /policies/<p>/versions/default
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..catalog.models import DEFAULT_POLICY_DOCUMENT, PolicySummary
from ..errors import InvalidArgument, PermissionDenied, remote_call
from ..tree import DocumentNode, LinkNode, Node, NodeKind, RelationshipNode
from .base import CollectionNode, ResourceNode

logger = logging.getLogger("iotfs.nodes.policies")

DEFAULT_VERSION_LINK = "default"


class PoliciesNode(CollectionNode):
    """All policies; ``mkdir`` creates one with an allow-all document."""

    def __init__(self, parent: Node, refresh_interval: Optional[float] = None) -> None:
        super().__init__(parent, "policies", refresh_interval)

    def fetch_items(self) -> List[PolicySummary]:
        return self.catalog.list_policies()

    def build(self, item: PolicySummary) -> Node:
        return PolicyNode(self, item)

    def mkdir(self, name: str, mode: int) -> None:
        with self._lock:
            with remote_call("create policy", f"{self.path}/{name}"):
                policy = self.catalog.create_policy(name, DEFAULT_POLICY_DOCUMENT)
            self.add_child(PolicyNode(self, policy))
        logger.info("Created policy %s", name)


class PolicyNode(ResourceNode):
    kind = NodeKind.POLICY

    def __init__(self, parent: Node, policy: PolicySummary) -> None:
        super().__init__(parent, policy.name)
        self.arn = policy.arn
        self.info("arn", policy.arn)
        self.add_child(PolicyDocumentNode(self, policy.name))
        self.add_child(
            PolicyVersionsNode(self, policy.name, refresh_interval=parent.refresh_interval)
        )

    def delete_remote(self) -> None:
        self.catalog.delete_policy(self.name)


class PolicyDocumentNode(DocumentNode):
    """The default version's document; saving it creates a new default version."""

    def __init__(self, parent: Node, policy_name: str) -> None:
        super().__init__(parent, "document")
        self.policy_name = policy_name

    def fetch(self) -> str:
        return self.catalog.get_policy_document(self.policy_name)

    def push(self, data: bytes) -> None:
        try:
            document = data.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidArgument("policy document must be UTF-8", self.path) from None
        version = self.catalog.create_policy_version(
            self.policy_name, document, set_as_default=True
        )
        logger.info("Policy %s now at version %s", self.policy_name, version.version_id)
        versions = self.parent.get_child("versions") if self.parent else None
        if versions is not None:
            versions.mark_stale()


class PolicyVersionNode(DocumentNode):
    """One stored version. Read-only; removing it deletes the version."""

    kind = NodeKind.POLICY_VERSION
    writable = False

    def __init__(self, parent: Node, policy_name: str, version_id: str) -> None:
        super().__init__(parent, version_id)
        self.policy_name = policy_name

    def fetch(self) -> str:
        return self.catalog.get_policy_document(self.policy_name, self.name)

    def open(self, flags: int) -> None:
        self.ensure_fresh()

    def remove(self) -> None:
        parent = self.parent
        if parent is None:
            raise PermissionDenied("the root cannot be removed", self.path)
        path = self.path
        with parent._lock:
            with remote_call("delete policy version", path):
                self.catalog.delete_policy_version(self.policy_name, self.name)
            parent._detach_child(self)
        logger.info("Deleted %s", path)


class PolicyVersionsNode(RelationshipNode):
    """Versions of one policy plus the ``default`` link.

    The only link allowed here is ``default`` and it must point at a
    version of this same policy. Removing the link is local: a policy
    always has a default version, so the next refresh shows it again.
    """

    accepts = NodeKind.POLICY_VERSION

    def __init__(
        self, parent: Node, policy_name: str, refresh_interval: Optional[float] = None
    ) -> None:
        super().__init__(parent, "versions", refresh_interval=refresh_interval)
        self.policy_name = policy_name

    def accepts_source(self, name: str, source: Node) -> bool:
        return (
            name == DEFAULT_VERSION_LINK
            and source.kind is NodeKind.POLICY_VERSION
            and source.parent is self
        )

    def refresh(self) -> None:
        with remote_call("list policy versions", self.path):
            versions = self.catalog.list_policy_versions(self.policy_name)
        with self._lock:
            entries: List[Node] = []
            default: Optional[Node] = None
            for version in versions:
                node = self.children.get(version.version_id)
                if node is None or node.is_link:
                    node = PolicyVersionNode(self, self.policy_name, version.version_id)
                entries.append(node)
                if version.is_default:
                    default = node
            link = self.children.get(DEFAULT_VERSION_LINK)
            if link is not None and (default is None or link.source is not default):
                del self.children[DEFAULT_VERSION_LINK]
                link = None
            if default is not None:
                entries.append(link or LinkNode(self, DEFAULT_VERSION_LINK, default))
            self.reconcile_children(entries)

    def establish(self, name: str, source: Node) -> None:
        self.catalog.set_default_policy_version(self.policy_name, source.name)

    def dissolve(self, name: str, source: Node) -> None:
        logger.debug("%s: default link removed locally", self.path)
