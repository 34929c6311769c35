"""
Zone Resolver
Finds the existing DNS zone later stages write records into
"""

from sitedeploy.api.base_provider import ZoneLookupProvider
from sitedeploy.models import ZoneRef
from sitedeploy.services.errors import ZoneNotFoundError
from sitedeploy.utils.logger import get_logger
from sitedeploy.utils.validators import ValidationError, validate_domain

logger = get_logger(__name__)


class ZoneResolver:
    """Read-only lookup of the managed zone for the apex domain."""

    component = "zone-resolver"

    def __init__(self, zones: ZoneLookupProvider):
        self.zones = zones

    def resolve(self, apex_domain: str) -> ZoneRef:
        """
        Look up the zone whose name is exactly ``apex_domain``.

        Raises:
            ZoneNotFoundError: No such zone; the operator must create it first
        """
        try:
            domain = validate_domain(apex_domain)
        except ValidationError as e:
            raise ZoneNotFoundError(
                f"Cannot look up a zone for {apex_domain!r}: {e}",
                component=self.component,
            ) from e

        logger.info(f"Resolving hosted zone for {domain}")
        zone = self.zones.find_zone(domain)

        if zone is None:
            logger.error(f"❌ No managed zone found for {domain}")
            raise ZoneNotFoundError(
                f"No managed DNS zone exists for {domain}. "
                "Create the hosted zone before deploying.",
                component=self.component,
            )

        logger.info(f"✅ Zone resolved: {zone.name} ({zone.zone_id})")
        return zone
