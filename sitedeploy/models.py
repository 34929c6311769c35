"""
Typed handles passed between pipeline stages.

All models are frozen: a Distribution owns its rules and fallback by value,
and nothing downstream can mutate a handle produced by an earlier stage.
"""

from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# CloudFront only looks for viewer certificates in this region.
CERTIFICATE_REGION = "us-east-1"


class Method(str, Enum):
    """HTTP methods a cache behavior may allow."""

    GET = "GET"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    PUT = "PUT"
    PATCH = "PATCH"
    POST = "POST"
    DELETE = "DELETE"


ALL_METHODS: FrozenSet[Method] = frozenset(Method)
READ_METHODS: FrozenSet[Method] = frozenset({Method.GET, Method.HEAD})


class CertificateStatus(str, Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    FAILED = "failed"


class DistributionStatus(str, Enum):
    DEPLOYING = "deploying"
    DEPLOYED = "deployed"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class DomainSpec(_Frozen):
    """The site's public domain and the hostname of its backend API."""

    apex_domain: str
    backend_hostname: str

    @classmethod
    def of(cls, apex_domain: str, backend_hostname: str) -> "DomainSpec":
        return cls(
            apex_domain=(apex_domain or "").strip().lower().rstrip("."),
            backend_hostname=(backend_hostname or "").strip().lower().rstrip("."),
        )


class ZoneRef(_Frozen):
    zone_id: str
    name: str


class ValidationRecord(_Frozen):
    """DNS proof record the certificate authority asks us to publish."""

    name: str
    value: str
    type: str = "CNAME"


class Certificate(_Frozen):
    id: str
    domain: str
    alternative_names: FrozenSet[str]
    validation_zone: ZoneRef
    region: str = CERTIFICATE_REGION
    status: CertificateStatus = CertificateStatus.PENDING


class CacheTtl(_Frozen):
    """Edge cache lifetimes in seconds."""

    min: int = Field(default=0, ge=0)
    max: int = Field(default=0, ge=0)
    default: int = Field(default=0, ge=0)


NO_CACHE = CacheTtl(min=0, max=0, default=0)


class OriginRef(_Frozen):
    """An origin the CDN fetches from."""

    origin_id: str
    domain_name: str
    # http-only | https-only | match-viewer
    protocol_policy: str = "https-only"


class OriginRule(_Frozen):
    """
    One cache behavior: which origin serves a path pattern and how.

    ``cache_ttl`` of None means the provider's default caching; the default
    (catch-all) rule has no path pattern.
    """

    origin: OriginRef
    path_pattern: Optional[str] = None
    is_default: bool = False
    allowed_methods: FrozenSet[Method] = READ_METHODS
    cache_ttl: Optional[CacheTtl] = None
    forwarded_headers: Tuple[str, ...] = ()
    forward_query_string: bool = False


class ErrorFallback(_Frozen):
    match_status: int = 404
    cache_ttl: int = Field(default=0, ge=0)
    rewrite_to: str = "/index.html"
    respond_status: int = 200


class Distribution(_Frozen):
    id: str
    domain_name: str
    certificate_id: str
    origins: Tuple[OriginRule, ...]
    fallback: ErrorFallback
    domain_aliases: FrozenSet[str]
    status: DistributionStatus = DistributionStatus.DEPLOYING
    default_root_object: str = "index.html"


class AliasRecord(_Frozen):
    name: str
    zone: ZoneRef
    target_distribution_id: str
    target_domain_name: str


class PublishJob(_Frozen):
    source_artifact_dir: Path
    destination_bucket: str
    scope_distribution_id: str
    # relative key -> content hash of the local file
    files: Dict[str, str] = Field(default_factory=dict)
    # keys whose content differs from what the bucket holds
    changed_keys: Tuple[str, ...] = ()
    invalidation_paths: FrozenSet[str] = frozenset()


class PublishResult(_Frozen):
    bucket: str
    distribution_id: str
    uploaded_keys: Tuple[str, ...] = ()
    unchanged_keys: Tuple[str, ...] = ()
    invalidation_paths: Tuple[str, ...] = ()
    invalidation_id: Optional[str] = None
    invalidation_error: Optional[str] = None

    @property
    def file_count(self) -> int:
        return len(self.uploaded_keys) + len(self.unchanged_keys)

    @property
    def fully_succeeded(self) -> bool:
        return self.invalidation_error is None
