"""
API Layer - Provider Implementations
Cloud primitives the deployment pipeline orchestrates, behind capability contracts
"""

# Contracts
from sitedeploy.api.base_provider import (
    CDNProvider,
    CertificateAuthorityProvider,
    DistributionHandle,
    DNSProvider,
    ObjectStore,
    ProviderBundle,
    ZoneLookupProvider,
)

# Provider Implementations
from sitedeploy.api.acm_client import AcmClient
from sitedeploy.api.cloudfront_client import CloudFrontClient
from sitedeploy.api.route53_client import Route53Client
from sitedeploy.api.s3_client import S3Client
from sitedeploy.api.memory_provider import InMemoryProvider

# Provider Factory
from sitedeploy.api.provider_factory import get_providers

# Exceptions (shared across providers)
from sitedeploy.api.exceptions import (
    ProviderError,
    ThrottlingError,
    ResourceNotFoundError,
    AccessDeniedError,
    TooManyInvalidationsError,
)

__all__ = [
    # Contracts
    "CDNProvider",
    "CertificateAuthorityProvider",
    "DistributionHandle",
    "DNSProvider",
    "ObjectStore",
    "ProviderBundle",
    "ZoneLookupProvider",

    # Providers
    "AcmClient",
    "CloudFrontClient",
    "Route53Client",
    "S3Client",
    "InMemoryProvider",

    # Factory
    "get_providers",

    # Exceptions
    "ProviderError",
    "ThrottlingError",
    "ResourceNotFoundError",
    "AccessDeniedError",
    "TooManyInvalidationsError",
]
