"""
AWS CloudFront Client
Translates origin rules into distribution configs, manages distributions
and issues cache invalidations.
"""

import time
import uuid
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

import boto3
from botocore.exceptions import ClientError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from sitedeploy.api.base_provider import CDNProvider, DistributionHandle
from sitedeploy.api.exceptions import ThrottlingError, from_client_error
from sitedeploy.models import (
    ALL_METHODS,
    DistributionStatus,
    ErrorFallback,
    Method,
    OriginRef,
    OriginRule,
)
from sitedeploy.utils.config import Settings, get_settings
from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)

# CloudFront accepts only these three method sets, in this order.
_METHOD_SETS = [
    ["GET", "HEAD"],
    ["GET", "HEAD", "OPTIONS"],
    ["GET", "HEAD", "OPTIONS", "PUT", "PATCH", "POST", "DELETE"],
]


def _allowed_methods(methods: FrozenSet[Method]) -> Dict[str, Any]:
    if methods == ALL_METHODS:
        items = _METHOD_SETS[2]
    elif Method.OPTIONS in methods:
        items = _METHOD_SETS[1]
    else:
        items = _METHOD_SETS[0]
    return {
        "Quantity": len(items),
        "Items": list(items),
        "CachedMethods": {"Quantity": 2, "Items": ["GET", "HEAD"]},
    }


def _origin_config(origin: OriginRef) -> Dict[str, Any]:
    return {
        "Id": origin.origin_id,
        "DomainName": origin.domain_name,
        "OriginPath": "",
        "CustomHeaders": {"Quantity": 0},
        "CustomOriginConfig": {
            "HTTPPort": 80,
            "HTTPSPort": 443,
            "OriginProtocolPolicy": origin.protocol_policy,
            "OriginSslProtocols": {"Quantity": 1, "Items": ["TLSv1.2"]},
            "OriginReadTimeout": 30,
            "OriginKeepaliveTimeout": 5,
        },
    }


def _cache_behavior(rule: OriginRule) -> Dict[str, Any]:
    headers: Dict[str, Any] = {"Quantity": len(rule.forwarded_headers)}
    if rule.forwarded_headers:
        headers["Items"] = list(rule.forwarded_headers)

    behavior: Dict[str, Any] = {
        "TargetOriginId": rule.origin.origin_id,
        "ViewerProtocolPolicy": "redirect-to-https",
        "AllowedMethods": _allowed_methods(rule.allowed_methods),
        "Compress": True,
        "ForwardedValues": {
            "QueryString": rule.forward_query_string,
            "Cookies": {"Forward": "none"},
            "Headers": headers,
        },
        "TrustedSigners": {"Enabled": False, "Quantity": 0},
        "MinTTL": 0,
    }

    # Without explicit TTLs CloudFront applies its own defaults
    if rule.cache_ttl is not None:
        behavior["MinTTL"] = rule.cache_ttl.min
        behavior["DefaultTTL"] = rule.cache_ttl.default
        behavior["MaxTTL"] = rule.cache_ttl.max

    if not rule.is_default:
        behavior["PathPattern"] = rule.path_pattern

    return behavior


def build_distribution_config(
    caller_reference: str,
    certificate_id: str,
    origins: Sequence[OriginRule],
    fallback: ErrorFallback,
    aliases: FrozenSet[str],
    default_root_object: str = "index.html",
) -> Dict[str, Any]:
    """
    Build a CloudFront DistributionConfig from ordered origin rules.

    Non-default rules become CacheBehaviors in the order given (CloudFront
    evaluates them in that order); the default rule becomes the
    DefaultCacheBehavior.
    """
    unique_origins: Dict[str, OriginRef] = {}
    for rule in origins:
        unique_origins.setdefault(rule.origin.origin_id, rule.origin)

    default_rule = next(rule for rule in origins if rule.is_default)
    behaviors = [_cache_behavior(rule) for rule in origins if not rule.is_default]

    cache_behaviors: Dict[str, Any] = {"Quantity": len(behaviors)}
    if behaviors:
        cache_behaviors["Items"] = behaviors

    alias_items = sorted(aliases)

    return {
        "CallerReference": caller_reference,
        "Aliases": {"Quantity": len(alias_items), "Items": alias_items},
        "DefaultRootObject": default_root_object,
        "Origins": {
            "Quantity": len(unique_origins),
            "Items": [_origin_config(origin) for origin in unique_origins.values()],
        },
        "DefaultCacheBehavior": _cache_behavior(default_rule),
        "CacheBehaviors": cache_behaviors,
        "CustomErrorResponses": {
            "Quantity": 1,
            "Items": [
                {
                    "ErrorCode": fallback.match_status,
                    "ResponsePagePath": fallback.rewrite_to,
                    "ResponseCode": str(fallback.respond_status),
                    "ErrorCachingMinTTL": fallback.cache_ttl,
                }
            ],
        },
        "Comment": f"Site distribution for {', '.join(alias_items)}",
        "ViewerCertificate": {
            "ACMCertificateArn": certificate_id,
            "SSLSupportMethod": "sni-only",
            "MinimumProtocolVersion": "TLSv1.2_2021",
        },
        "HttpVersion": "http2",
        "Enabled": True,
    }


def _handle(distribution: Dict[str, Any]) -> DistributionHandle:
    return DistributionHandle(
        id=distribution["Id"],
        domain_name=distribution["DomainName"],
        status=(
            DistributionStatus.DEPLOYED
            if distribution.get("Status") == "Deployed"
            else DistributionStatus.DEPLOYING
        ),
    )


class CloudFrontClient(CDNProvider):
    """
    CloudFront implementation of the CDN provider.
    """

    def __init__(self, config: Optional[Settings] = None):
        """
        Initialize the CloudFront client.

        Args:
            config: Optional Settings object. Defaults to get_settings().
        """
        self.config = config or get_settings()

        # CloudFront is a global service served from us-east-1
        self.cloudfront_client = boto3.client(
            "cloudfront", region_name="us-east-1", **self.config.aws_credentials
        )

        logger.info("CloudFrontClient initialized")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def create_distribution(
        self,
        certificate_id: str,
        origins: Sequence[OriginRule],
        fallback: ErrorFallback,
        aliases: FrozenSet[str],
        default_root_object: str = "index.html",
    ) -> DistributionHandle:
        config = build_distribution_config(
            caller_reference=str(uuid.uuid4()),
            certificate_id=certificate_id,
            origins=origins,
            fallback=fallback,
            aliases=aliases,
            default_root_object=default_root_object,
        )

        try:
            response = self.cloudfront_client.create_distribution(DistributionConfig=config)
        except ClientError as e:
            logger.error(f"CloudFront creation failed: {e}")
            raise from_client_error(e, "create_distribution")

        handle = _handle(response["Distribution"])
        logger.info(f"✅ Distribution created: {handle.id} ({handle.domain_name})")
        return handle

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def update_distribution(
        self,
        distribution_id: str,
        certificate_id: str,
        origins: Sequence[OriginRule],
        fallback: ErrorFallback,
        aliases: FrozenSet[str],
        default_root_object: str = "index.html",
    ) -> DistributionHandle:
        try:
            current = self.cloudfront_client.get_distribution_config(Id=distribution_id)
            config = build_distribution_config(
                caller_reference=current["DistributionConfig"]["CallerReference"],
                certificate_id=certificate_id,
                origins=origins,
                fallback=fallback,
                aliases=aliases,
                default_root_object=default_root_object,
            )
            response = self.cloudfront_client.update_distribution(
                Id=distribution_id,
                IfMatch=current["ETag"],
                DistributionConfig=config,
            )
        except ClientError as e:
            logger.error(f"CloudFront update failed: {e}")
            raise from_client_error(e, "update_distribution")

        handle = _handle(response["Distribution"])
        logger.info(f"✅ Distribution updated: {handle.id}")
        return handle

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def find_distribution(self, alias: str) -> Optional[DistributionHandle]:
        try:
            paginator = self.cloudfront_client.get_paginator("list_distributions")
            for page in paginator.paginate():
                for item in page.get("DistributionList", {}).get("Items", []):
                    if alias in item.get("Aliases", {}).get("Items", []):
                        return _handle(item)
        except ClientError as e:
            raise from_client_error(e, "list_distributions")
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def distribution_status(self, distribution_id: str) -> DistributionStatus:
        try:
            response = self.cloudfront_client.get_distribution(Id=distribution_id)
        except ClientError as e:
            raise from_client_error(e, "get_distribution")

        status = response["Distribution"]["Status"]
        logger.debug(f"Distribution {distribution_id} status: {status}")
        return _handle(response["Distribution"]).status

    def invalidate(self, distribution_id: str, paths: Sequence[str]) -> str:
        # Not retried: a rejected invalidation is surfaced to the operator
        items: List[str] = list(paths)
        logger.info(f"Invalidating {len(items)} path(s) on {distribution_id}: {items}")

        try:
            response = self.cloudfront_client.create_invalidation(
                DistributionId=distribution_id,
                InvalidationBatch={
                    "Paths": {"Quantity": len(items), "Items": items},
                    "CallerReference": str(time.time()),
                },
            )
        except ClientError as e:
            logger.error(f"Invalidation failed: {e}")
            raise from_client_error(e, "create_invalidation")

        return response["Invalidation"]["Id"]
