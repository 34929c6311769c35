"""
AWS Route53 Client
Zone lookup and record-set changes (alias and certificate validation records)
"""

from typing import Iterable, Optional

import boto3
from botocore.exceptions import ClientError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from sitedeploy.api.base_provider import DNSProvider, ZoneLookupProvider
from sitedeploy.api.exceptions import ThrottlingError, from_client_error
from sitedeploy.models import ValidationRecord, ZoneRef
from sitedeploy.utils.config import Settings, get_settings
from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)

# Hosted zone id shared by every CloudFront distribution, used as the alias target zone.
# Reference: https://docs.aws.amazon.com/Route53/latest/APIReference/API_AliasTarget.html
CLOUDFRONT_HOSTED_ZONE_ID = "Z2FDTNDATAQYW2"


class Route53Client(ZoneLookupProvider, DNSProvider):
    """
    Route53 implementation of zone lookup and DNS record management.

    Zones are never created here: the operator owns the zone and the
    pipeline only reads it and upserts records into it.
    """

    def __init__(self, config: Optional[Settings] = None):
        """
        Initialize the Route53 client.

        Args:
            config: Optional Settings object. Defaults to get_settings().
        """
        self.config = config or get_settings()

        # Route53 is global; its API endpoint lives in us-east-1
        self.route53_client = boto3.client(
            "route53",
            region_name="us-east-1",
            **self.config.aws_credentials
        )

        logger.info("Route53Client initialized")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def find_zone(self, domain: str) -> Optional[ZoneRef]:
        # list_hosted_zones_by_name returns zones sorted from DNSName onwards,
        # so the exact match has to be picked out.
        wanted = domain.rstrip(".").lower()
        logger.debug(f"Looking up hosted zone for {wanted}")

        try:
            response = self.route53_client.list_hosted_zones_by_name(DNSName=wanted)
        except ClientError as e:
            logger.error(f"Hosted zone lookup failed: {e}")
            raise from_client_error(e, "list_hosted_zones_by_name")

        for zone in response.get("HostedZones", []):
            if zone["Name"].rstrip(".").lower() != wanted:
                continue
            if zone.get("Config", {}).get("PrivateZone"):
                logger.debug(f"Skipping private zone {zone['Id']}")
                continue
            zone_id = zone["Id"].split("/")[-1]
            logger.info(f"Found hosted zone for {wanted}: {zone_id}")
            return ZoneRef(zone_id=zone_id, name=wanted)

        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def upsert_alias_record(self, zone: ZoneRef, name: str, target_domain: str) -> str:
        logger.info(f"Upserting alias {name} -> {target_domain} in zone {zone.zone_id}")

        change_batch = {
            "Comment": f"Alias record for {name} pointing to CloudFront distribution",
            "Changes": [
                {
                    "Action": "UPSERT",
                    "ResourceRecordSet": {
                        "Name": name,
                        "Type": "A",
                        "AliasTarget": {
                            "HostedZoneId": CLOUDFRONT_HOSTED_ZONE_ID,
                            "DNSName": target_domain,
                            "EvaluateTargetHealth": False,
                        },
                    },
                }
            ],
        }

        try:
            response = self.route53_client.change_resource_record_sets(
                HostedZoneId=zone.zone_id,
                ChangeBatch=change_batch,
            )
        except ClientError as e:
            logger.error(f"Alias record upsert failed: {e}")
            raise from_client_error(e, "change_resource_record_sets")

        return response["ChangeInfo"]["Id"]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def upsert_validation_records(
        self, zone: ZoneRef, records: Iterable[ValidationRecord]
    ) -> str:
        # The apex and wildcard names share one proof record; dedupe by name.
        unique = {record.name: record for record in records}
        logger.info(f"Writing {len(unique)} certificate validation record(s) to {zone.zone_id}")

        changes = [
            {
                "Action": "UPSERT",
                "ResourceRecordSet": {
                    "Name": record.name,
                    "Type": record.type,
                    "TTL": 300,
                    "ResourceRecords": [{"Value": record.value}],
                },
            }
            for record in unique.values()
        ]

        try:
            response = self.route53_client.change_resource_record_sets(
                HostedZoneId=zone.zone_id,
                ChangeBatch={
                    "Comment": f"Certificate validation records for {zone.name}",
                    "Changes": changes,
                },
            )
        except ClientError as e:
            logger.error(f"Failed to write validation records: {e}")
            raise from_client_error(e, "change_resource_record_sets")

        return response["ChangeInfo"]["Id"]
