"""
AWS IoT catalog client built on boto3.

Control-plane calls go to the ``iot`` client, device state to the
``iot-data`` client at the account's ATS data endpoint. Every botocore
failure is reraised as a ``CatalogError`` with a classified kind.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .base import CatalogClient, CatalogError, ErrorKind
from .models import (
    CertificateSummary,
    CreatedCertificate,
    PolicySummary,
    PolicyVersion,
    ThingSummary,
    TopicRule,
    TopicRuleSummary,
)

logger = logging.getLogger("iotfs.catalog")

PAGE_SIZE = 50

_ERROR_CODES: Dict[str, ErrorKind] = {
    "ResourceNotFoundException": ErrorKind.NOT_FOUND,
    "UnauthorizedException": ErrorKind.UNAUTHORIZED,
    "AccessDeniedException": ErrorKind.UNAUTHORIZED,
    "InvalidRequestException": ErrorKind.INVALID_REQUEST,
    "MalformedPolicyException": ErrorKind.INVALID_REQUEST,
    "DeleteConflictException": ErrorKind.CONFLICT,
    "ConflictingResourceUpdateException": ErrorKind.CONFLICT,
    "CertificateStateException": ErrorKind.CONFLICT,
    "ResourceAlreadyExistsException": ErrorKind.ALREADY_EXISTS,
    "LimitExceededException": ErrorKind.LIMIT_EXCEEDED,
    "VersionsLimitExceededException": ErrorKind.LIMIT_EXCEEDED,
}


def classify(exc: Exception) -> CatalogError:
    """Turn a botocore exception into a ``CatalogError``."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "")
        kind = _ERROR_CODES.get(code, ErrorKind.UNAVAILABLE)
        return CatalogError(kind, f"{code}: {error.get('Message', '')}".strip(": "))
    return CatalogError(ErrorKind.UNAVAILABLE, str(exc))


class AwsIotCatalog(CatalogClient):
    """Catalog backed by the AWS IoT APIs.

    Args:
        region: AWS region; boto3's default resolution applies when omitted.
        access_key_id: Explicit access key; the default credential chain
            is used when omitted.
        secret_access_key: Secret for ``access_key_id``.
        iot_client: Preconfigured ``iot`` client.
        data_client: Preconfigured ``iot-data`` client.
    """

    def __init__(
        self,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        iot_client: Any = None,
        data_client: Any = None,
    ) -> None:
        self._region = region
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._iot = iot_client
        self._data = data_client
        self._endpoint: Optional[str] = None

    # -- clients -------------------------------------------------------------

    def _session(self) -> "boto3.session.Session":
        return boto3.session.Session(
            aws_access_key_id=self._access_key_id,
            aws_secret_access_key=self._secret_access_key,
            region_name=self._region,
        )

    @property
    def iot(self) -> Any:
        if self._iot is None:
            self._iot = self._session().client("iot")
        return self._iot

    @property
    def data(self) -> Any:
        if self._data is None:
            self._data = self._session().client(
                "iot-data", endpoint_url=f"https://{self.describe_endpoint()}"
            )
        return self._data

    def _call(self, method: Callable[..., Dict[str, Any]], **kwargs: Any) -> Dict[str, Any]:
        try:
            return method(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            error = classify(exc)
            logger.debug("%s failed: %s", getattr(method, "__name__", method), error)
            raise error from exc

    def _paginate(
        self,
        method: Callable[..., Dict[str, Any]],
        items_key: str,
        token_in: str = "nextToken",
        token_out: str = "nextToken",
        page_size_key: str = "maxResults",
        **kwargs: Any,
    ) -> List[Any]:
        """Collect a listing page by page.

        Stops when the response carries no continuation token or returns
        fewer than ``PAGE_SIZE`` items.
        """
        items: List[Any] = []
        token: Optional[str] = None
        while True:
            request = dict(kwargs)
            request[page_size_key] = PAGE_SIZE
            if token:
                request[token_in] = token
            response = self._call(method, **request)
            page = response.get(items_key) or []
            items.extend(page)
            token = response.get(token_out)
            if not token or len(page) < PAGE_SIZE:
                return items

    # -- endpoint ------------------------------------------------------------

    def describe_endpoint(self) -> str:
        if self._endpoint is None:
            response = self._call(self.iot.describe_endpoint, endpointType="iot:Data-ATS")
            self._endpoint = response["endpointAddress"]
        return self._endpoint

    # -- things --------------------------------------------------------------

    def list_things(self) -> List[ThingSummary]:
        return [
            ThingSummary(
                name=item["thingName"],
                arn=item.get("thingArn", ""),
                type_name=item.get("thingTypeName"),
                attributes=item.get("attributes") or {},
                version=item.get("version"),
            )
            for item in self._paginate(self.iot.list_things, "things")
        ]

    def create_thing(self, name: str) -> ThingSummary:
        response = self._call(self.iot.create_thing, thingName=name)
        return ThingSummary(name=response["thingName"], arn=response.get("thingArn", ""))

    def delete_thing(self, name: str) -> None:
        self._call(self.iot.delete_thing, thingName=name)

    def list_thing_principals(self, thing_name: str) -> List[str]:
        return self._paginate(self.iot.list_thing_principals, "principals", thingName=thing_name)

    def attach_thing_principal(self, thing_name: str, principal_arn: str) -> None:
        self._call(self.iot.attach_thing_principal, thingName=thing_name, principal=principal_arn)

    def detach_thing_principal(self, thing_name: str, principal_arn: str) -> None:
        self._call(self.iot.detach_thing_principal, thingName=thing_name, principal=principal_arn)

    def get_thing_state(self, thing_name: str) -> bytes:
        response = self._call(self.data.get_thing_shadow, thingName=thing_name)
        return response["payload"].read()

    def update_thing_state(self, thing_name: str, document: bytes) -> None:
        self._call(self.data.update_thing_shadow, thingName=thing_name, payload=document)

    # -- certificates --------------------------------------------------------

    def list_certificates(self) -> List[CertificateSummary]:
        return [
            CertificateSummary(
                certificate_id=item["certificateId"],
                arn=item.get("certificateArn", ""),
                status=item.get("status", ""),
                created_at=item.get("creationDate"),
            )
            for item in self._paginate(
                self.iot.list_certificates,
                "certificates",
                token_in="marker",
                token_out="nextMarker",
                page_size_key="pageSize",
            )
        ]

    def create_certificate(self) -> CreatedCertificate:
        response = self._call(self.iot.create_keys_and_certificate, setAsActive=True)
        keys = response.get("keyPair") or {}
        return CreatedCertificate(
            certificate_id=response["certificateId"],
            arn=response.get("certificateArn", ""),
            status="ACTIVE",
            certificate_pem=response.get("certificatePem", ""),
            public_key=keys.get("PublicKey", ""),
            private_key=keys.get("PrivateKey", ""),
        )

    def update_certificate_status(self, certificate_id: str, status: str) -> None:
        self._call(self.iot.update_certificate, certificateId=certificate_id, newStatus=status)

    def delete_certificate(self, certificate_id: str) -> None:
        self._call(self.iot.delete_certificate, certificateId=certificate_id)

    def list_attached_policies(self, principal_arn: str) -> List[str]:
        policies = self._paginate(
            self.iot.list_attached_policies,
            "policies",
            token_in="marker",
            token_out="nextMarker",
            page_size_key="pageSize",
            target=principal_arn,
        )
        return [item["policyName"] for item in policies]

    def attach_policy(self, policy_name: str, principal_arn: str) -> None:
        self._call(self.iot.attach_policy, policyName=policy_name, target=principal_arn)

    def detach_policy(self, policy_name: str, principal_arn: str) -> None:
        self._call(self.iot.detach_policy, policyName=policy_name, target=principal_arn)

    # -- policies ------------------------------------------------------------

    def list_policies(self) -> List[PolicySummary]:
        return [
            PolicySummary(name=item["policyName"], arn=item.get("policyArn", ""))
            for item in self._paginate(
                self.iot.list_policies,
                "policies",
                token_in="marker",
                token_out="nextMarker",
                page_size_key="pageSize",
            )
        ]

    def create_policy(self, name: str, document: str) -> PolicySummary:
        response = self._call(self.iot.create_policy, policyName=name, policyDocument=document)
        return PolicySummary(name=response["policyName"], arn=response.get("policyArn", ""))

    def delete_policy(self, name: str) -> None:
        self._call(self.iot.delete_policy, policyName=name)

    def get_policy_document(self, name: str, version_id: Optional[str] = None) -> str:
        if version_id is None:
            response = self._call(self.iot.get_policy, policyName=name)
        else:
            response = self._call(
                self.iot.get_policy_version, policyName=name, policyVersionId=version_id
            )
        return response.get("policyDocument", "")

    def list_policy_versions(self, name: str) -> List[PolicyVersion]:
        response = self._call(self.iot.list_policy_versions, policyName=name)
        return [
            PolicyVersion(
                version_id=item["versionId"],
                is_default=bool(item.get("isDefaultVersion")),
                created_at=item.get("createDate"),
            )
            for item in response.get("policyVersions") or []
        ]

    def create_policy_version(
        self, name: str, document: str, set_as_default: bool = True
    ) -> PolicyVersion:
        response = self._call(
            self.iot.create_policy_version,
            policyName=name,
            policyDocument=document,
            setAsDefault=set_as_default,
        )
        return PolicyVersion(
            version_id=response["policyVersionId"],
            is_default=bool(response.get("isDefaultVersion")),
        )

    def delete_policy_version(self, name: str, version_id: str) -> None:
        self._call(self.iot.delete_policy_version, policyName=name, policyVersionId=version_id)

    def set_default_policy_version(self, name: str, version_id: str) -> None:
        self._call(
            self.iot.set_default_policy_version, policyName=name, policyVersionId=version_id
        )

    # -- topic rules ---------------------------------------------------------

    def list_topic_rules(self) -> List[TopicRuleSummary]:
        return [
            TopicRuleSummary(
                name=item["ruleName"],
                arn=item.get("ruleArn", ""),
                topic_pattern=item.get("topicPattern", ""),
                disabled=bool(item.get("ruleDisabled")),
                created_at=item.get("createdAt"),
            )
            for item in self._paginate(self.iot.list_topic_rules, "rules")
        ]

    def get_topic_rule(self, name: str) -> TopicRule:
        rule = self._call(self.iot.get_topic_rule, ruleName=name).get("rule") or {}
        return TopicRule(
            name=rule.get("ruleName", name),
            sql=rule.get("sql", ""),
            description=rule.get("description", ""),
            disabled=bool(rule.get("ruleDisabled")),
            actions=rule.get("actions") or [],
        )

    def delete_topic_rule(self, name: str) -> None:
        self._call(self.iot.delete_topic_rule, ruleName=name)
