"""
DNS Alias Binder
Points the domain at the distribution once the distribution is deployed
"""

from typing import Optional

from sitedeploy.api.base_provider import CDNProvider, DNSProvider
from sitedeploy.models import AliasRecord, Distribution, DistributionStatus, ZoneRef
from sitedeploy.services.errors import DistributionNotReadyError
from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)


class AliasBinder:
    """Upserts the alias record; re-binding the same target is a no-op overwrite."""

    component = "alias-binder"

    def __init__(self, dns: DNSProvider, cdn: CDNProvider):
        self.dns = dns
        self.cdn = cdn

    def bind(
        self, zone: ZoneRef, distribution: Distribution, name: Optional[str] = None
    ) -> AliasRecord:
        """
        Create or overwrite the alias record for ``name`` (default: the zone apex).

        Raises:
            DistributionNotReadyError: The distribution is still deploying
        """
        record_name = name or zone.name

        # Live status, not the one captured on the handle
        status = self.cdn.distribution_status(distribution.id)
        if status != DistributionStatus.DEPLOYED:
            logger.error(
                f"❌ Refusing to bind {record_name}: distribution {distribution.id} is {status.value}"
            )
            raise DistributionNotReadyError(
                f"Distribution {distribution.id} is {status.value}; "
                "bind the alias once it is deployed",
                component=self.component,
            )

        self.dns.upsert_alias_record(zone, record_name, distribution.domain_name)
        logger.info(f"✅ Alias bound: {record_name} -> {distribution.domain_name}")

        return AliasRecord(
            name=record_name,
            zone=zone,
            target_distribution_id=distribution.id,
            target_domain_name=distribution.domain_name,
        )
