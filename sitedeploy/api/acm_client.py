"""
AWS Certificate Manager Client
Requests DNS-validated certificates and reports their validation state
"""

import re
from typing import Dict, FrozenSet, List, Optional

import boto3
from botocore.exceptions import ClientError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from sitedeploy.api.base_provider import CertificateAuthorityProvider
from sitedeploy.api.exceptions import ThrottlingError, from_client_error
from sitedeploy.models import (
    CERTIFICATE_REGION,
    CertificateStatus,
    ValidationRecord,
    ZoneRef,
)
from sitedeploy.utils.config import Settings, get_settings
from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)

_STATUS_MAP = {
    "ISSUED": CertificateStatus.VALIDATED,
    "PENDING_VALIDATION": CertificateStatus.PENDING,
    "FAILED": CertificateStatus.FAILED,
    "VALIDATION_TIMED_OUT": CertificateStatus.FAILED,
    "REVOKED": CertificateStatus.FAILED,
    "EXPIRED": CertificateStatus.FAILED,
    "INACTIVE": CertificateStatus.FAILED,
}


def _region_of(certificate_arn: str) -> str:
    """arn:aws:acm:<region>:<account>:certificate/<id>"""
    parts = certificate_arn.split(":")
    return parts[3] if len(parts) > 3 and parts[3] else CERTIFICATE_REGION


class AcmClient(CertificateAuthorityProvider):
    """
    ACM implementation of the certificate authority.

    Clients are created per region on demand; the region always comes from
    the caller (or the certificate ARN), never from the stack's settings.
    """

    def __init__(self, config: Optional[Settings] = None):
        """
        Initialize the ACM client.

        Args:
            config: Optional Settings object. Defaults to get_settings().
        """
        self.config = config or get_settings()
        self._clients: Dict[str, object] = {}
        logger.info("AcmClient initialized")

    def _client(self, region: str):
        if region not in self._clients:
            self._clients[region] = boto3.client(
                "acm", region_name=region, **self.config.aws_credentials
            )
        return self._clients[region]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def request_certificate(
        self,
        domain: str,
        alternative_names: FrozenSet[str],
        validation_zone: ZoneRef,
        region: str,
    ) -> str:
        logger.info(f"Requesting certificate for {domain} in {region}")

        sans = sorted(name for name in alternative_names if name != domain)
        kwargs = {
            "DomainName": domain,
            "ValidationMethod": "DNS",
            # Repeated requests within an hour return the same certificate
            "IdempotencyToken": re.sub(r"\W", "_", domain)[:32],
        }
        if sans:
            kwargs["SubjectAlternativeNames"] = sans

        try:
            response = self._client(region).request_certificate(**kwargs)
        except ClientError as e:
            logger.error(f"ACM request failed: {e}")
            raise from_client_error(e, "request_certificate")

        certificate_arn = response["CertificateArn"]
        logger.info(f"✅ Certificate requested: {certificate_arn}")
        return certificate_arn

    def _describe(self, handle: str) -> dict:
        try:
            return self._client(_region_of(handle)).describe_certificate(
                CertificateArn=handle
            )["Certificate"]
        except ClientError as e:
            raise from_client_error(e, "describe_certificate")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def certificate_status(self, handle: str) -> CertificateStatus:
        status = self._describe(handle)["Status"]
        logger.debug(f"Certificate {handle} status: {status}")
        return _STATUS_MAP.get(status, CertificateStatus.FAILED)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def validation_records(self, handle: str) -> List[ValidationRecord]:
        records = []
        for option in self._describe(handle).get("DomainValidationOptions", []):
            resource_record = option.get("ResourceRecord")
            if resource_record:
                records.append(
                    ValidationRecord(
                        name=resource_record["Name"],
                        value=resource_record["Value"],
                        type=resource_record.get("Type", "CNAME"),
                    )
                )
        return records

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def find_certificate(
        self, domain: str, alternative_names: FrozenSet[str]
    ) -> Optional[str]:
        client = self._client(CERTIFICATE_REGION)
        wanted = set(alternative_names) | {domain}

        try:
            paginator = client.get_paginator("list_certificates")
            pages = paginator.paginate(
                CertificateStatuses=["ISSUED", "PENDING_VALIDATION"]
            )
            for page in pages:
                for summary in page.get("CertificateSummaryList", []):
                    if summary.get("DomainName") != domain:
                        continue
                    arn = summary["CertificateArn"]
                    names = set(self._describe(arn).get("SubjectAlternativeNames", []))
                    if names == wanted:
                        logger.info(f"Reusing existing certificate {arn}")
                        return arn
        except ClientError as e:
            raise from_client_error(e, "list_certificates")

        return None
