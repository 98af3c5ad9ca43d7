"""Resource catalog client interface.

The tree never talks to the network directly. Directory nodes ask a
``CatalogClient`` for listings and mutations and build their children
from the returned models.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from .models import (
    CertificateSummary,
    CreatedCertificate,
    PolicySummary,
    PolicyVersion,
    ThingSummary,
    TopicRule,
    TopicRuleSummary,
)


class ErrorKind(str, Enum):
    """Classification of a failed catalog call."""

    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_REQUEST = "invalid_request"
    CONFLICT = "conflict"
    ALREADY_EXISTS = "already_exists"
    LIMIT_EXCEEDED = "limit_exceeded"
    UNAVAILABLE = "unavailable"


class CatalogError(Exception):
    """A remote catalog call failed.

    Args:
        kind: What went wrong, as far as the client can tell.
        message: Human-readable detail from the remote side.
    """

    def __init__(self, kind: ErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class CatalogClient(ABC):
    """Operations the file tree needs from the remote catalog."""

    @abstractmethod
    def describe_endpoint(self) -> str:
        """Return the data-plane endpoint host."""

    # -- things --------------------------------------------------------------

    @abstractmethod
    def list_things(self) -> List[ThingSummary]: ...

    @abstractmethod
    def create_thing(self, name: str) -> ThingSummary: ...

    @abstractmethod
    def delete_thing(self, name: str) -> None: ...

    @abstractmethod
    def list_thing_principals(self, thing_name: str) -> List[str]:
        """Return the principal ARNs attached to a thing."""

    @abstractmethod
    def attach_thing_principal(self, thing_name: str, principal_arn: str) -> None: ...

    @abstractmethod
    def detach_thing_principal(self, thing_name: str, principal_arn: str) -> None: ...

    @abstractmethod
    def get_thing_state(self, thing_name: str) -> bytes:
        """Return the device state document of a thing."""

    @abstractmethod
    def update_thing_state(self, thing_name: str, document: bytes) -> None: ...

    # -- certificates --------------------------------------------------------

    @abstractmethod
    def list_certificates(self) -> List[CertificateSummary]: ...

    @abstractmethod
    def create_certificate(self) -> CreatedCertificate:
        """Create an active certificate together with a fresh key pair."""

    @abstractmethod
    def update_certificate_status(self, certificate_id: str, status: str) -> None: ...

    @abstractmethod
    def delete_certificate(self, certificate_id: str) -> None: ...

    @abstractmethod
    def list_attached_policies(self, principal_arn: str) -> List[str]:
        """Return the names of the policies attached to a principal."""

    @abstractmethod
    def attach_policy(self, policy_name: str, principal_arn: str) -> None: ...

    @abstractmethod
    def detach_policy(self, policy_name: str, principal_arn: str) -> None: ...

    # -- policies ------------------------------------------------------------

    @abstractmethod
    def list_policies(self) -> List[PolicySummary]: ...

    @abstractmethod
    def create_policy(self, name: str, document: str) -> PolicySummary: ...

    @abstractmethod
    def delete_policy(self, name: str) -> None: ...

    @abstractmethod
    def get_policy_document(self, name: str, version_id: Optional[str] = None) -> str:
        """Return a policy document, the default version when none is given."""

    @abstractmethod
    def list_policy_versions(self, name: str) -> List[PolicyVersion]: ...

    @abstractmethod
    def create_policy_version(
        self, name: str, document: str, set_as_default: bool = True
    ) -> PolicyVersion: ...

    @abstractmethod
    def delete_policy_version(self, name: str, version_id: str) -> None: ...

    @abstractmethod
    def set_default_policy_version(self, name: str, version_id: str) -> None: ...

    # -- topic rules ---------------------------------------------------------

    @abstractmethod
    def list_topic_rules(self) -> List[TopicRuleSummary]: ...

    @abstractmethod
    def get_topic_rule(self, name: str) -> TopicRule: ...

    @abstractmethod
    def delete_topic_rule(self, name: str) -> None: ...
