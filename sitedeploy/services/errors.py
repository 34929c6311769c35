"""
Error taxonomy of the deployment pipeline.

Every component raises its own error kind so callers can branch on
retryability:

- ConfigurationError: fatal, fix the input and re-run
- TimingError: retryable by re-invoking the same (idempotent) step
- PartialFailureError: the deploy went through, one follow-up action did not
"""

from typing import Any, Dict, Optional, Sequence, Tuple


class SiteDeployError(Exception):
    """Base exception for deployment pipeline errors"""

    retryable = False

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.component = component
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.component:
            return f"[{self.component}] {self.message}"
        return self.message


class ConfigurationError(SiteDeployError):
    """Bad domain, missing zone, malformed origin list"""
    retryable = False


class TimingError(SiteDeployError):
    """A resource was not ready yet; re-run the step later"""
    retryable = True


class PartialFailureError(SiteDeployError):
    """Non-fatal follow-up failure, reported separately"""
    retryable = True


class PipelineCancelledError(SiteDeployError):
    """Raised when a deployment is cancelled between stages"""
    retryable = True


# -- Zone Resolver ---------------------------------------------------------

class ZoneNotFoundError(ConfigurationError):
    """No managed zone exists for the domain; the operator must create it"""
    pass


# -- Certificate Provisioner ------------------------------------------------

class CertificateRequestError(ConfigurationError):
    """Malformed domain input for the certificate request"""
    pass


class CertificateValidationFailedError(ConfigurationError):
    """The certificate authority rejected validation"""
    pass


class CertificateValidationTimeoutError(TimingError):
    """Validation did not complete within the allowed window"""
    pass


# -- Origin Configuration Builder --------------------------------------------

class InvalidOriginError(ConfigurationError):
    """Empty or invalid origin hostname"""
    pass


# -- Distribution Provisioner -------------------------------------------------

class CertificateNotReadyError(TimingError):
    """The certificate is not validated yet"""
    pass


class DistributionConfigError(ConfigurationError):
    """Structurally invalid origin rule list"""
    pass


# -- DNS Alias Binder --------------------------------------------------------

class DistributionNotReadyError(TimingError):
    """The distribution is still deploying"""
    pass


# -- Content Publisher -------------------------------------------------------

class PublishError(SiteDeployError):
    """
    One or more files failed to upload.

    Uploads are not rolled back; re-running the publish is safe because
    every upload is an idempotent overwrite. The paths of the files that did
    upload are invalidated before raising, with the outcome recorded in
    ``invalidation_id`` or ``invalidation_error``.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        uploaded: Sequence[str] = (),
        failed: Sequence[str] = (),
        component: Optional[str] = None,
    ):
        self.uploaded = list(uploaded)
        self.failed = list(failed)
        self.invalidation_paths: Tuple[str, ...] = ()
        self.invalidation_id: Optional[str] = None
        self.invalidation_error: Optional[str] = None
        super().__init__(
            message,
            component=component,
            details={"uploaded": self.uploaded, "failed": self.failed},
        )


class InvalidationError(PartialFailureError):
    """The CDN rejected the cache invalidation request"""

    def __init__(
        self,
        message: str,
        distribution_id: str = "",
        paths: Sequence[str] = (),
        component: Optional[str] = None,
    ):
        self.distribution_id = distribution_id
        self.paths = list(paths)
        super().__init__(
            message,
            component=component,
            details={"distribution_id": distribution_id, "paths": self.paths},
        )


# -- Site verification -------------------------------------------------------

class SiteVerificationError(TimingError):
    """The live site did not answer as expected (often DNS still propagating)"""
    pass
