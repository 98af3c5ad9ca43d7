"""
Pydantic models for resources returned by the catalog client.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

DEFAULT_POLICY_DOCUMENT = json.dumps(
    {
        "Version": "2012-10-17",
        "Statement": [{"Action": ["iot:*"], "Resource": ["*"], "Effect": "Allow"}],
    }
)


class ThingSummary(BaseModel):
    """A registered device."""

    name: str
    arn: str = ""
    type_name: Optional[str] = None
    attributes: Dict[str, str] = Field(default_factory=dict)
    version: Optional[int] = None


class CertificateSummary(BaseModel):
    """An X.509 certificate known to the catalog."""

    certificate_id: str
    arn: str = ""
    status: str = "ACTIVE"
    created_at: Optional[datetime] = None


class CreatedCertificate(CertificateSummary):
    """A certificate created by this process, key material included.

    The private key is only ever available at creation time.
    """

    certificate_pem: str = ""
    public_key: str = ""
    private_key: str = ""


class PolicySummary(BaseModel):
    """An access policy."""

    name: str
    arn: str = ""


class PolicyVersion(BaseModel):
    """One immutable version of a policy document."""

    version_id: str
    is_default: bool = False
    created_at: Optional[datetime] = None


class TopicRuleSummary(BaseModel):
    """A message routing rule as returned by the listing call."""

    name: str
    arn: str = ""
    topic_pattern: str = ""
    disabled: bool = False
    created_at: Optional[datetime] = None


class TopicRule(BaseModel):
    """Full rule definition, fetched on demand."""

    name: str
    sql: str = ""
    description: str = ""
    disabled: bool = False
    actions: List[Dict[str, Any]] = Field(default_factory=list)
