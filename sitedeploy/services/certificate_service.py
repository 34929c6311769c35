"""
Certificate Provisioner
Requests a DNS-validated certificate for the apex domain and its wildcard,
always in the region CloudFront reads certificates from.
"""

import time
from typing import FrozenSet, List

from sitedeploy.api.base_provider import CertificateAuthorityProvider, DNSProvider
from sitedeploy.models import (
    CERTIFICATE_REGION,
    Certificate,
    CertificateStatus,
    DomainSpec,
    ValidationRecord,
    ZoneRef,
)
from sitedeploy.services.errors import (
    CertificateRequestError,
    CertificateValidationFailedError,
    CertificateValidationTimeoutError,
)
from sitedeploy.utils.logger import get_logger
from sitedeploy.utils.validators import DomainValidator, ValidationError

logger = get_logger(__name__)


def certificate_names(apex_domain: str) -> FrozenSet[str]:
    """Names a site certificate covers: the apex and every direct subdomain."""
    return frozenset({apex_domain, DomainValidator.wildcard(apex_domain)})


class CertificateProvisioner:
    """
    Certificate provisioning with DNS validation.

    The provisioner blocks while it polls the certificate authority; no
    other stage can proceed without a validated certificate. A timeout is
    raised to the caller rather than retried here.
    """

    component = "certificate-provisioner"

    def __init__(
        self,
        certificates: CertificateAuthorityProvider,
        dns: DNSProvider,
        timeout_seconds: int = 30 * 60,
        poll_interval: int = 30,
        records_timeout_seconds: int = 60,
    ):
        """
        Args:
            certificates:            Certificate authority
            dns:                     DNS provider used to publish proof records
            timeout_seconds:         Validation window
            poll_interval:           Seconds between status checks
            records_timeout_seconds: How long to wait for the authority to
                                     hand out proof records
        """
        self.certificates = certificates
        self.dns = dns
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval
        self.records_timeout_seconds = records_timeout_seconds

    def provision(self, domain_spec: DomainSpec, zone: ZoneRef) -> Certificate:
        """
        Request (or reuse) and validate the site certificate.

        Raises:
            CertificateRequestError:            Malformed domain
            CertificateValidationFailedError:   Authority reported failure
            CertificateValidationTimeoutError:  Not validated in time
        """
        try:
            domain = DomainValidator.validate(domain_spec.apex_domain)
        except ValidationError as e:
            raise CertificateRequestError(
                f"Cannot request a certificate for {domain_spec.apex_domain!r}: {e}",
                component=self.component,
            ) from e

        names = certificate_names(domain)
        handle = self.certificates.find_certificate(domain, names)

        if handle is None:
            logger.info(f"Requesting certificate for {sorted(names)} in {CERTIFICATE_REGION}")
            handle = self.certificates.request_certificate(
                domain, names, zone, CERTIFICATE_REGION
            )
        else:
            logger.info(f"Found existing certificate for {domain}: {handle}")

        if self.certificates.certificate_status(handle) != CertificateStatus.VALIDATED:
            records = self._wait_for_validation_records(handle)
            self.dns.upsert_validation_records(zone, records)
            self.wait_until_validated(handle)

        logger.info(f"✅ Certificate validated: {handle}")
        return Certificate(
            id=handle,
            domain=domain,
            alternative_names=names,
            validation_zone=zone,
            region=CERTIFICATE_REGION,
            status=CertificateStatus.VALIDATED,
        )

    def _wait_for_validation_records(self, handle: str) -> List[ValidationRecord]:
        # The authority needs a few seconds after the request to generate them
        deadline = time.time() + self.records_timeout_seconds

        while True:
            records = self.certificates.validation_records(handle)
            if records:
                logger.info(f"Got {len(records)} validation record(s)")
                return records
            if time.time() >= deadline:
                break
            logger.debug("Validation records not ready yet, retrying in 5 s…")
            time.sleep(5)

        raise CertificateValidationTimeoutError(
            f"Validation records for {handle} not available after "
            f"{self.records_timeout_seconds}s",
            component=self.component,
        )

    def wait_until_validated(self, handle: str) -> None:
        """
        Poll until the certificate is validated.

        Raises:
            CertificateValidationFailedError:  Terminal failure
            CertificateValidationTimeoutError: Still pending at the deadline
        """
        logger.info(f"⏳ Waiting for certificate validation: {handle}")
        deadline = time.time() + self.timeout_seconds

        while True:
            status = self.certificates.certificate_status(handle)
            logger.info(f"  Certificate status: {status.value}")

            if status == CertificateStatus.VALIDATED:
                return
            if status == CertificateStatus.FAILED:
                logger.error(f"❌ Certificate validation failed: {handle}")
                raise CertificateValidationFailedError(
                    f"Certificate {handle} failed validation",
                    component=self.component,
                )
            if time.time() >= deadline:
                break

            logger.info(f"  Waiting {self.poll_interval}s before next check…")
            time.sleep(self.poll_interval)

        raise CertificateValidationTimeoutError(
            f"Certificate {handle} not validated within {self.timeout_seconds}s; "
            "re-run the deployment once the validation records have propagated",
            component=self.component,
        )
