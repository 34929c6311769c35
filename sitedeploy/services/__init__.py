"""
Business logic and service layer
"""

from sitedeploy.services.errors import (
    SiteDeployError,
    ConfigurationError,
    TimingError,
    PartialFailureError,
    PipelineCancelledError,
)
from sitedeploy.services.zone_resolver import ZoneResolver
from sitedeploy.services.certificate_service import CertificateProvisioner
from sitedeploy.services.origin_builder import (
    SiteOrigin,
    build_origin_rules,
    match_rule,
    order_origin_rules,
    validate_origin_rules,
)
from sitedeploy.services.distribution_service import DistributionProvisioner, spa_fallback
from sitedeploy.services.alias_binder import AliasBinder
from sitedeploy.services.content_publisher import ContentPublisher
from sitedeploy.services.output_reporter import OutputReporter
from sitedeploy.services.edge_preview import EdgePreview, EdgeResponse
from sitedeploy.services.site_verifier import SiteVerifier
from sitedeploy.services.deployment_orchestrator import DeploymentOrchestrator, DeploymentResult

__all__ = [
    # Errors
    "SiteDeployError",
    "ConfigurationError",
    "TimingError",
    "PartialFailureError",
    "PipelineCancelledError",
    # Pipeline components
    "ZoneResolver",
    "CertificateProvisioner",
    "SiteOrigin",
    "build_origin_rules",
    "match_rule",
    "order_origin_rules",
    "validate_origin_rules",
    "DistributionProvisioner",
    "spa_fallback",
    "AliasBinder",
    "ContentPublisher",
    "OutputReporter",
    # Checks
    "EdgePreview",
    "EdgeResponse",
    "SiteVerifier",
    # Pipeline orchestrator
    "DeploymentOrchestrator",
    "DeploymentResult",
]
