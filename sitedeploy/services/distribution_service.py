"""
Distribution Provisioner
Creates (or updates in place) the CDN distribution that fronts the site
bucket and the backend API under the custom domain.
"""

import time
from typing import Iterable, Optional, Sequence

from sitedeploy.api.base_provider import (
    CDNProvider,
    CertificateAuthorityProvider,
    DistributionHandle,
)
from sitedeploy.models import (
    Certificate,
    CertificateStatus,
    Distribution,
    DistributionStatus,
    ErrorFallback,
    OriginRule,
)
from sitedeploy.services.errors import (
    CertificateNotReadyError,
    DistributionConfigError,
    DistributionNotReadyError,
)
from sitedeploy.services.origin_builder import validate_origin_rules
from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)


def spa_fallback(index_document: str = "index.html") -> ErrorFallback:
    """
    404s from the origin are answered with the app's entry document and a
    200, so client-side routers get control. Never cached, so a fixed page
    shows up on the next request.
    """
    return ErrorFallback(
        match_status=404,
        cache_ttl=0,
        rewrite_to=f"/{index_document.lstrip('/')}",
        respond_status=200,
    )


SPA_FALLBACK = spa_fallback()


class DistributionProvisioner:
    """
    Distribution lifecycle: provision (create or update) and wait for deploy.

    Re-running with the same input updates the distribution already serving
    the domain instead of creating a second one.
    """

    component = "distribution-provisioner"

    def __init__(
        self,
        cdn: CDNProvider,
        certificates: CertificateAuthorityProvider,
        timeout_seconds: int = 30 * 60,
        poll_interval: int = 60,
    ):
        self.cdn = cdn
        self.certificates = certificates
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval

    def provision(
        self,
        certificate: Certificate,
        origins: Sequence[OriginRule],
        fallback: ErrorFallback = SPA_FALLBACK,
        aliases: Optional[Iterable[str]] = None,
        default_root_object: str = "index.html",
    ) -> Distribution:
        """
        Create or update the distribution.

        Args:
            certificate:          Validated site certificate
            origins:              Ordered origin rules (default rule last)
            fallback:             Error fallback policy
            aliases:              Domain names served; defaults to the
                                  certificate's domain
            default_root_object:  Object served for "/"

        Raises:
            CertificateNotReadyError: Certificate is not validated
            DistributionConfigError:  Structurally invalid origin rules
        """
        status = self.certificates.certificate_status(certificate.id)
        if status != CertificateStatus.VALIDATED:
            logger.error(f"❌ Certificate {certificate.id} is {status.value}, not validated")
            raise CertificateNotReadyError(
                f"Certificate {certificate.id} is {status.value}; "
                "the distribution can only be created with a validated certificate",
                component=self.component,
            )

        try:
            validate_origin_rules(origins)
        except DistributionConfigError as e:
            e.component = self.component
            logger.error(f"❌ Invalid origin configuration: {e.message}")
            raise

        domain_aliases = frozenset(aliases or {certificate.domain})
        rules = tuple(origins)

        existing = self._find_existing(domain_aliases)
        if existing is None:
            logger.info(f"Creating distribution for {sorted(domain_aliases)}")
            handle = self.cdn.create_distribution(
                certificate.id, rules, fallback, domain_aliases, default_root_object
            )
        else:
            logger.info(f"Updating distribution {existing.id} in place")
            handle = self.cdn.update_distribution(
                existing.id, certificate.id, rules, fallback, domain_aliases, default_root_object
            )

        return Distribution(
            id=handle.id,
            domain_name=handle.domain_name,
            certificate_id=certificate.id,
            origins=rules,
            fallback=fallback,
            domain_aliases=domain_aliases,
            status=handle.status,
            default_root_object=default_root_object,
        )

    def _find_existing(self, aliases: Iterable[str]) -> Optional[DistributionHandle]:
        found = {}
        for alias in sorted(aliases):
            handle = self.cdn.find_distribution(alias)
            if handle is not None:
                found[handle.id] = handle
        if len(found) > 1:
            raise DistributionConfigError(
                f"Aliases are split across distributions {sorted(found)}; "
                "consolidate them before deploying",
                component=self.component,
            )
        return next(iter(found.values()), None)

    def wait_until_deployed(self, distribution: Distribution) -> Distribution:
        """
        Poll until the distribution reports deployed.

        Raises:
            DistributionNotReadyError: Still deploying at the deadline
        """
        logger.info(f"⏳ Waiting for distribution {distribution.id} to deploy…")
        deadline = time.time() + self.timeout_seconds

        while True:
            status = self.cdn.distribution_status(distribution.id)
            logger.info(f"  Distribution status: {status.value}")

            if status == DistributionStatus.DEPLOYED:
                logger.info("✅ Distribution is deployed")
                return distribution.model_copy(update={"status": status})
            if time.time() >= deadline:
                break

            logger.info(f"  Waiting {self.poll_interval}s before next check…")
            time.sleep(self.poll_interval)

        raise DistributionNotReadyError(
            f"Distribution {distribution.id} not deployed within {self.timeout_seconds}s",
            component=self.component,
        )
