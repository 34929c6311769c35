"""
Deployment Orchestrator
Runs the pipeline that takes a built single-page app and a backend API
hostname to a live HTTPS site under one custom domain.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from sitedeploy.api.base_provider import ProviderBundle
from sitedeploy.api.provider_factory import get_providers
from sitedeploy.models import (
    AliasRecord,
    Certificate,
    Distribution,
    DomainSpec,
    OriginRule,
    PublishResult,
    ZoneRef,
)
from sitedeploy.services.alias_binder import AliasBinder
from sitedeploy.services.certificate_service import CertificateProvisioner, certificate_names
from sitedeploy.services.content_publisher import ContentPublisher
from sitedeploy.services.distribution_service import DistributionProvisioner, spa_fallback
from sitedeploy.services.errors import PipelineCancelledError, SiteDeployError
from sitedeploy.services.origin_builder import SiteOrigin, build_origin_rules
from sitedeploy.services.output_reporter import (
    BUCKET,
    CERTIFICATE,
    DISTRIBUTION_ID,
    SITE,
    OutputReporter,
)
from sitedeploy.services.zone_resolver import ZoneResolver
from sitedeploy.utils.config import get_settings, Settings
from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)


class DeploymentResult(BaseModel):
    """Handles produced by a completed deployment."""

    model_config = ConfigDict(frozen=True)

    site_url: str
    zone: ZoneRef
    bucket: str
    certificate: Certificate
    distribution: Distribution
    alias: AliasRecord
    publish: PublishResult
    outputs: Dict[str, str]

    @property
    def partial_failures(self) -> List[str]:
        """Follow-up actions that failed without failing the deploy."""
        if self.publish.invalidation_error:
            return [self.publish.invalidation_error]
        return []


class DeploymentOrchestrator:
    """
    End-to-end deployment pipeline.

    Critical path, in order (each step needs the previous step's handle):

    1. Resolve the hosted zone              - ZoneResolver
    2. Ensure the site bucket               - ObjectStore (website hosting)
    3. Certificate (apex + wildcard)        - CertificateProvisioner
    4. Origin rules (backend first)         - build_origin_rules
    5. Create or update the distribution    - DistributionProvisioner

    Then two independent branches run side by side:

    a. Wait for the distribution to deploy, then bind the DNS alias
    b. Upload the content and invalidate the distribution's cache

    The orchestrator holds no resources between runs. Every step is
    idempotent, so a failed run is resumed by running it again.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        providers: Optional[ProviderBundle] = None,
    ):
        """
        Initialize the orchestrator and its components.

        Args:
            config:    Optional Settings object. Defaults to get_settings().
            providers: Optional provider bundle. Defaults to the configured
                       provider from get_providers().
        """
        self.config = config or get_settings()
        self.providers = providers or get_providers(config=self.config)
        self.reporter = OutputReporter()
        self._cancelled = threading.Event()

        self.zone_resolver = ZoneResolver(self.providers.zones)
        self.certificate_provisioner = CertificateProvisioner(
            self.providers.certificates,
            self.providers.dns,
            timeout_seconds=self.config.cert_timeout_minutes * 60,
            poll_interval=self.config.cert_poll_seconds,
        )
        self.distribution_provisioner = DistributionProvisioner(
            self.providers.cdn,
            self.providers.certificates,
            timeout_seconds=self.config.distribution_timeout_minutes * 60,
            poll_interval=self.config.distribution_poll_seconds,
        )
        self.alias_binder = AliasBinder(self.providers.dns, self.providers.cdn)
        self.publisher = ContentPublisher(
            self.providers.storage,
            self.providers.cdn,
            strategy=self.config.invalidation_strategy,
            index_document=self.config.index_document,
        )

    # ------------------------------------------------------------------ #
    #  Cancellation                                                        #
    # ------------------------------------------------------------------ #

    def cancel(self) -> None:
        """
        Stop the running deployment at the next stage boundary.

        Stages already running finish. The alias is never bound after a
        cancel, so a half-deployed distribution does not receive traffic.
        """
        logger.warning("⚠️ Cancellation requested")
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _check_cancelled(self, stage: str) -> None:
        if self._cancelled.is_set():
            raise PipelineCancelledError(
                f"Deployment cancelled before {stage}", component=stage
            )

    def _stage(self, stage: str, func, *args, **kwargs):
        """Run one stage, tagging any escaping error with the stage name."""
        self._check_cancelled(stage)
        try:
            return func(*args, **kwargs)
        except SiteDeployError as e:
            if not e.component:
                e.component = stage
            logger.error(f"❌ {stage} failed: {e}")
            raise
        except Exception as e:
            e.stage = stage
            logger.error(f"❌ {stage} failed: {e}")
            raise

    # ------------------------------------------------------------------ #
    #  Inputs                                                              #
    # ------------------------------------------------------------------ #

    def _inputs(
        self,
        domain_spec: Optional[DomainSpec],
        artifact_dir: Optional[Path],
        bucket_name: Optional[str],
    ) -> Tuple[DomainSpec, Path, str]:
        if domain_spec is None:
            domain_spec = DomainSpec.of(self.config.apex_domain, self.config.backend_hostname)
            default_bucket = self.config.bucket_name
        else:
            # Specs built without DomainSpec.of may carry case or a trailing dot
            domain_spec = DomainSpec.of(domain_spec.apex_domain, domain_spec.backend_hostname)
            default_bucket = self.config.site_bucket or domain_spec.apex_domain
        artifact_dir = Path(artifact_dir or self.config.artifact_dir)
        return domain_spec, artifact_dir, bucket_name or default_bucket

    def _origin_rules(self, domain_spec: DomainSpec, site_endpoint: str) -> List[OriginRule]:
        return build_origin_rules(
            domain_spec.backend_hostname,
            SiteOrigin(hostname=site_endpoint),
            api_prefix=self.config.api_path_prefix,
        )

    # ------------------------------------------------------------------ #
    #  Pipeline                                                            #
    # ------------------------------------------------------------------ #

    def deploy(
        self,
        domain_spec: Optional[DomainSpec] = None,
        artifact_dir: Optional[Path] = None,
        bucket_name: Optional[str] = None,
    ) -> DeploymentResult:
        """
        Run the complete deployment pipeline.

        Args:
            domain_spec:  Apex domain and backend hostname. Defaults to the
                          configured ones.
            artifact_dir: Built site directory. Defaults to config.artifact_dir.
            bucket_name:  Site bucket. Defaults to config.site_bucket, then
                          the apex domain.

        Returns:
            DeploymentResult with every handle and the reported outputs

        Raises:
            SiteDeployError:  Any pipeline stage failure, with ``component``
                              naming the stage
            ProviderError:    Unexpected provider failure, with ``stage`` set
        """
        self._cancelled.clear()
        domain_spec, artifact_dir, bucket = self._inputs(domain_spec, artifact_dir, bucket_name)

        logger.info(f"🚀 Starting deployment for {domain_spec.apex_domain}")
        logger.info(f"   Backend:  {domain_spec.backend_hostname}")
        logger.info(f"   Content:  {artifact_dir}")
        logger.info(f"   Bucket:   {bucket}")

        logger.info("── Step 1/6: Resolving hosted zone")
        zone = self._stage("zone-resolver", self.zone_resolver.resolve, domain_spec.apex_domain)

        logger.info("── Step 2/6: Ensuring site bucket")
        site_endpoint = self._stage(
            "site-bucket",
            self.providers.storage.ensure_website_bucket,
            bucket,
            self.config.index_document,
        )
        self.reporter.report(BUCKET, bucket)

        logger.info("── Step 3/6: Provisioning certificate")
        certificate = self._stage(
            "certificate-provisioner", self.certificate_provisioner.provision, domain_spec, zone
        )
        self.reporter.report(CERTIFICATE, certificate.id)

        logger.info("── Step 4/6: Building origin rules")
        rules = self._stage("origin-builder", self._origin_rules, domain_spec, site_endpoint)

        logger.info("── Step 5/6: Provisioning distribution")
        distribution = self._stage(
            "distribution-provisioner",
            self.distribution_provisioner.provision,
            certificate,
            rules,
            spa_fallback(self.config.index_document),
            {domain_spec.apex_domain},
            self.config.index_document,
        )
        self.reporter.report(DISTRIBUTION_ID, distribution.id)

        logger.info("── Step 6/6: Binding DNS alias and publishing content")
        deployed, alias, publish = self._finish(zone, distribution, artifact_dir, bucket)

        site_url = f"https://{domain_spec.apex_domain}"
        self.reporter.report(SITE, site_url)
        logger.info(f"🎉 Your site is live at {site_url}")

        return DeploymentResult(
            site_url=site_url,
            zone=zone,
            bucket=bucket,
            certificate=certificate,
            distribution=deployed,
            alias=alias,
            publish=publish,
            outputs=self.reporter.as_dict(),
        )

    def _wait_and_bind(
        self, zone: ZoneRef, distribution: Distribution
    ) -> Tuple[Distribution, AliasRecord]:
        deployed = self.distribution_provisioner.wait_until_deployed(distribution)
        # Last chance to stop before the domain starts pointing at the distribution
        self._check_cancelled(AliasBinder.component)
        return deployed, self.alias_binder.bind(zone, deployed)

    def _finish(
        self, zone: ZoneRef, distribution: Distribution, artifact_dir: Path, bucket: str
    ) -> Tuple[Distribution, AliasRecord, PublishResult]:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="sitedeploy") as pool:
            alias_future = pool.submit(
                self._stage, AliasBinder.component, self._wait_and_bind, zone, distribution
            )
            publish_future = pool.submit(
                self._stage,
                ContentPublisher.component,
                self.publisher.publish_artifacts,
                artifact_dir,
                bucket,
                distribution,
            )

        errors = []
        for future in (alias_future, publish_future):
            error = future.exception()
            if error is not None:
                errors.append(error)

        if errors:
            for error in errors[1:]:
                logger.error(f"❌ Additional failure in the same run: {error}")
            raise errors[0]

        deployed, alias = alias_future.result()
        publish = publish_future.result()
        if publish.invalidation_error:
            logger.warning(f"⚠️ Deployed with a partial failure: {publish.invalidation_error}")
        return deployed, alias, publish

    # ------------------------------------------------------------------ #
    #  Read-only views                                                     #
    # ------------------------------------------------------------------ #

    def plan(
        self,
        domain_spec: Optional[DomainSpec] = None,
        bucket_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Describe what ``deploy`` would do without changing anything.

        Returns:
            Dict with the zone, bucket, existing certificate and distribution
            (None when they would be created) and the origin rules.
        """
        domain_spec, _, bucket = self._inputs(domain_spec, None, bucket_name)
        zone = self._stage("zone-resolver", self.zone_resolver.resolve, domain_spec.apex_domain)
        rules = self._stage(
            "origin-builder",
            self._origin_rules,
            domain_spec,
            self.providers.storage.website_endpoint(bucket),
        )
        existing_certificate = self.providers.certificates.find_certificate(
            domain_spec.apex_domain, certificate_names(domain_spec.apex_domain)
        )
        existing_distribution = self.providers.cdn.find_distribution(domain_spec.apex_domain)

        return {
            "zone": zone,
            "bucket": bucket,
            "certificate": existing_certificate,
            "distribution": existing_distribution.id if existing_distribution else None,
            "rules": rules,
            "fallback": spa_fallback(self.config.index_document),
        }
