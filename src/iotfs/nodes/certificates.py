"""
``/certificates``: device certificates and the policies attached to them.

``mkdir /certificates/<alias>`` creates a certificate and key pair. The
directory keeps the alias across refreshes; certificates that were not
created here are named by their id. The key material of a certificate
created by this mount is available as three ``.pem`` files until the
mount goes away.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..catalog.models import CertificateSummary, CreatedCertificate
from ..errors import remote_call
from ..tree import Node, NodeKind, RelationshipNode
from .base import CollectionNode, ResourceNode

logger = logging.getLogger("iotfs.nodes.certificates")


class CertificatesNode(CollectionNode):
    def __init__(self, parent: Node, refresh_interval: Optional[float] = None) -> None:
        super().__init__(parent, "certificates", refresh_interval)

    def fetch_items(self) -> List[CertificateSummary]:
        return self.catalog.list_certificates()

    def build(self, item: CertificateSummary) -> Node:
        existing = self._lookup(certificate_id=item.certificate_id)
        name = existing.name if existing is not None else item.certificate_id
        return CertificateNode(self, name, item)

    def _lookup(
        self, certificate_id: Optional[str] = None, arn: Optional[str] = None
    ) -> Optional["CertificateNode"]:
        with self._lock:
            for child in self.children.values():
                if certificate_id is not None and child.certificate_id == certificate_id:
                    return child
                if arn is not None and child.arn == arn:
                    return child
        return None

    def find_certificate(
        self, certificate_id: Optional[str] = None, arn: Optional[str] = None
    ) -> Optional["CertificateNode"]:
        """Look a certificate directory up by id or ARN, whatever it is called."""
        self.ensure_fresh()
        return self._lookup(certificate_id=certificate_id, arn=arn)

    def mkdir(self, name: str, mode: int) -> None:
        with self._lock:
            with remote_call("create certificate", f"{self.path}/{name}"):
                created = self.catalog.create_certificate()
            self.add_child(CertificateNode(self, name, created))
        logger.info("Created certificate %s as %s", created.certificate_id, name)


class CertificateNode(ResourceNode):
    """One certificate. Removing it deactivates and then deletes it."""

    kind = NodeKind.CERTIFICATE
    relationship = "policies"

    def __init__(self, parent: Node, name: str, certificate: CertificateSummary) -> None:
        super().__init__(parent, name)
        self.certificate_id = certificate.certificate_id
        self.arn = certificate.arn
        self.status = certificate.status
        self.info("id", certificate.certificate_id)
        self.info("arn", certificate.arn)
        self.info("status", certificate.status)
        self.add_child(
            CertificatePoliciesNode(self, certificate.arn, refresh_interval=parent.refresh_interval)
        )
        if isinstance(certificate, CreatedCertificate):
            prefix = certificate.certificate_id[:10]
            if certificate.certificate_pem:
                self.info(f"{prefix}-certificate.pem.crt", certificate.certificate_pem)
            if certificate.private_key:
                self.info(f"{prefix}-private.pem.key", certificate.private_key)
            if certificate.public_key:
                self.info(f"{prefix}-public.pem.key", certificate.public_key)

    def delete_remote(self) -> None:
        if self.status == "ACTIVE":
            self.catalog.update_certificate_status(self.certificate_id, "INACTIVE")
            self.status = "INACTIVE"
        self.catalog.delete_certificate(self.certificate_id)


class CertificatePoliciesNode(RelationshipNode):
    """Policies attached to a certificate, as links into ``/policies``."""

    accepts = NodeKind.POLICY

    def __init__(
        self, parent: Node, certificate_arn: str, refresh_interval: Optional[float] = None
    ) -> None:
        super().__init__(parent, "policies", refresh_interval=refresh_interval)
        self.certificate_arn = certificate_arn

    def refresh(self) -> None:
        with remote_call("list attached policies", self.path):
            names = self.catalog.list_attached_policies(self.certificate_arn)
        targets = []
        for name in names:
            policy = self.root.find(f"/policies/{name}")
            if policy is None:
                logger.debug("%s: policy %s not listed", self.path, name)
                continue
            targets.append((name, policy))
        self.reconcile_children(self.links_to(targets))

    def establish(self, name: str, source: Node) -> None:
        self.catalog.attach_policy(source.name, self.certificate_arn)

    def dissolve(self, name: str, source: Node) -> None:
        self.catalog.detach_policy(source.name, self.certificate_arn)
