"""
Provider Factory
Creates the provider bundle based on configuration
"""

from typing import Optional

from sitedeploy.api.acm_client import AcmClient
from sitedeploy.api.base_provider import ProviderBundle
from sitedeploy.api.cloudfront_client import CloudFrontClient
from sitedeploy.api.memory_provider import InMemoryProvider
from sitedeploy.api.route53_client import Route53Client
from sitedeploy.api.s3_client import S3Client
from sitedeploy.utils.config import get_settings, Settings
from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)


def get_providers(
    provider_name: Optional[str] = None,
    config: Optional[Settings] = None
) -> ProviderBundle:
    """
    Factory function to create the provider bundle.

    Args:
        provider_name: Optional provider name ("AWS" or "MEMORY").
                      If None, reads from config.
        config: Optional Settings instance. Uses default if None.

    Returns:
        ProviderBundle with one implementation per capability

    Raises:
        ValueError: If provider_name is invalid

    Example:
        # Use configured provider
        providers = get_providers()

        # Dry run against in-memory providers
        providers = get_providers("MEMORY")
    """
    if config is None:
        config = get_settings()

    if provider_name is None:
        provider_name = config.provider

    provider_name = provider_name.upper()

    logger.info(f"Creating providers: {provider_name}")

    if provider_name == "AWS":
        route53 = Route53Client(config)
        return ProviderBundle(
            zones=route53,
            certificates=AcmClient(config),
            cdn=CloudFrontClient(config),
            dns=route53,
            storage=S3Client(config),
        )

    elif provider_name == "MEMORY":
        memory = InMemoryProvider()
        if config.apex_domain:
            memory.add_zone(config.apex_domain)
        return ProviderBundle(
            zones=memory,
            certificates=memory,
            cdn=memory,
            dns=memory,
            storage=memory,
        )

    else:
        raise ValueError(
            f"Unknown provider: {provider_name}. "
            f"Valid options are: AWS, MEMORY"
        )
