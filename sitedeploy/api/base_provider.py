"""
Provider Capability Contracts
Abstract base classes for the cloud primitives the pipeline orchestrates
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Sequence

from sitedeploy.models import (
    CertificateStatus,
    DistributionStatus,
    ErrorFallback,
    OriginRule,
    ValidationRecord,
    ZoneRef,
)


@dataclass(frozen=True)
class DistributionHandle:
    """Identity of a distribution as returned by the CDN provider"""
    id: str
    domain_name: str
    status: DistributionStatus


class ZoneLookupProvider(ABC):
    """Looks up existing DNS zones."""

    @abstractmethod
    def find_zone(self, domain: str) -> Optional[ZoneRef]:
        """
        Find the public managed zone whose name is exactly ``domain``.

        Returns:
            ZoneRef, or None when no such zone exists
        """
        pass


class CertificateAuthorityProvider(ABC):
    """Issues DNS-validated certificates."""

    @abstractmethod
    def request_certificate(
        self,
        domain: str,
        alternative_names: FrozenSet[str],
        validation_zone: ZoneRef,
        region: str,
    ) -> str:
        """
        Request a certificate and return its handle.

        Args:
            domain: Primary domain name
            alternative_names: Every name the certificate must cover
            validation_zone: Zone that will hold the DNS proof records
            region: Region the certificate must live in
        """
        pass

    @abstractmethod
    def certificate_status(self, handle: str) -> CertificateStatus:
        """Return pending, validated or failed"""
        pass

    @abstractmethod
    def validation_records(self, handle: str) -> List[ValidationRecord]:
        """
        DNS records proving domain control.

        May be empty right after the request while the authority is still
        generating them.
        """
        pass

    @abstractmethod
    def find_certificate(
        self, domain: str, alternative_names: FrozenSet[str]
    ) -> Optional[str]:
        """Handle of a usable (validated or pending) certificate covering exactly these names"""
        pass


class CDNProvider(ABC):
    """Creates distributions and purges their caches."""

    @abstractmethod
    def create_distribution(
        self,
        certificate_id: str,
        origins: Sequence[OriginRule],
        fallback: ErrorFallback,
        aliases: FrozenSet[str],
        default_root_object: str = "index.html",
    ) -> DistributionHandle:
        pass

    @abstractmethod
    def update_distribution(
        self,
        distribution_id: str,
        certificate_id: str,
        origins: Sequence[OriginRule],
        fallback: ErrorFallback,
        aliases: FrozenSet[str],
        default_root_object: str = "index.html",
    ) -> DistributionHandle:
        pass

    @abstractmethod
    def find_distribution(self, alias: str) -> Optional[DistributionHandle]:
        """Distribution currently serving ``alias``, if any"""
        pass

    @abstractmethod
    def distribution_status(self, distribution_id: str) -> DistributionStatus:
        pass

    @abstractmethod
    def invalidate(self, distribution_id: str, paths: Sequence[str]) -> str:
        """Purge ``paths`` from the edge caches; returns the invalidation id"""
        pass


class DNSProvider(ABC):
    """Mutates record sets of a zone."""

    @abstractmethod
    def upsert_alias_record(self, zone: ZoneRef, name: str, target_domain: str) -> str:
        """Create or overwrite an alias A record pointing at a distribution endpoint"""
        pass

    @abstractmethod
    def upsert_validation_records(
        self, zone: ZoneRef, records: Iterable[ValidationRecord]
    ) -> str:
        """Create or overwrite certificate validation records"""
        pass


class ObjectStore(ABC):
    """Stores site content. ``put`` must be an idempotent overwrite."""

    supports_content_hash = False

    @abstractmethod
    def website_endpoint(self, bucket: str) -> str:
        """Website endpoint hostname of ``bucket``, without touching the store."""
        pass

    @abstractmethod
    def ensure_website_bucket(self, bucket: str, index_document: str = "index.html") -> str:
        """
        Make sure the bucket exists and serves a static website.

        Returns:
            The bucket's website endpoint hostname
        """
        pass

    @abstractmethod
    def put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
    ) -> None:
        pass

    def content_hash(self, bucket: str, key: str) -> Optional[str]:
        """
        MD5 hex digest of the stored object, or None if it does not exist.

        Only meaningful when ``supports_content_hash`` is set; otherwise
        callers treat every file as changed.
        """
        return None


@dataclass(frozen=True)
class ProviderBundle:
    """One implementation of every capability, as wired by the factory"""
    zones: ZoneLookupProvider
    certificates: CertificateAuthorityProvider
    cdn: CDNProvider
    dns: DNSProvider
    storage: ObjectStore
