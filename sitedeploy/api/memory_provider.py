"""
In-Memory Provider
A process-local implementation of every provider contract, used for dry
runs (--dry-run / SITEDEPLOY_PROVIDER=MEMORY) and as the fake collaborator
in tests. It mimics the timing behaviour of the real services: certificates
stay pending until their proof records are written, and distributions
report "deploying" for a configurable number of status polls.
"""

import hashlib
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from sitedeploy.api.base_provider import (
    CDNProvider,
    CertificateAuthorityProvider,
    DistributionHandle,
    DNSProvider,
    ObjectStore,
    ZoneLookupProvider,
)
from sitedeploy.api.exceptions import (
    ProviderError,
    ResourceNotFoundError,
    TooManyInvalidationsError,
)
from sitedeploy.models import (
    CertificateStatus,
    DistributionStatus,
    ErrorFallback,
    OriginRef,
    OriginRule,
    ValidationRecord,
    ZoneRef,
)
from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)

WEBSITE_ENDPOINT_SUFFIX = "s3-website.memory.local"


@dataclass
class StoredObject:
    body: bytes
    content_type: str
    cache_control: Optional[str] = None


@dataclass
class MemoryCertificate:
    arn: str
    domain: str
    names: FrozenSet[str]
    zone: ZoneRef
    region: str
    record: ValidationRecord
    status_polls: int = 0


@dataclass
class MemoryDistribution:
    id: str
    domain_name: str
    certificate_id: str
    origins: Tuple[OriginRule, ...]
    fallback: ErrorFallback
    aliases: FrozenSet[str]
    default_root_object: str
    polls_until_deployed: int
    updates: int = 0


@dataclass
class MemoryZone:
    ref: ZoneRef
    private: bool = False
    # (name, type) -> value
    records: Dict[Tuple[str, str], str] = field(default_factory=dict)


class InMemoryProvider(
    ZoneLookupProvider, CertificateAuthorityProvider, CDNProvider, DNSProvider, ObjectStore
):
    """
    All five provider capabilities backed by dictionaries.

    Args:
        validation_polls: Status polls a certificate stays pending after its
                          proof record exists
        deploy_polls:     Status polls a distribution reports "deploying"
                          after each create or update
        fail_validation:  Certificates end up failed instead of validated
    """

    supports_content_hash = True

    def __init__(
        self,
        validation_polls: int = 0,
        deploy_polls: int = 0,
        fail_validation: bool = False,
    ):
        self.validation_polls = validation_polls
        self.deploy_polls = deploy_polls
        self.fail_validation = fail_validation

        self.zones: Dict[str, MemoryZone] = {}
        self.certificates: Dict[str, MemoryCertificate] = {}
        self.distributions: Dict[str, MemoryDistribution] = {}
        self.buckets: Dict[str, Dict[str, StoredObject]] = {}
        self.invalidations: List[Tuple[str, Tuple[str, ...]]] = []

        # Failure injection
        self.failing_keys: Set[str] = set()
        self.reject_invalidations = False

        self.put_count = 0
        self._lock = threading.RLock()
        self._counter = 0

    def _next_id(self) -> int:
        self._counter += 1
        return self._counter

    # ------------------------------------------------------------------ #
    #  Zones and records                                                   #
    # ------------------------------------------------------------------ #

    def add_zone(self, name: str, private: bool = False) -> ZoneRef:
        with self._lock:
            ref = ZoneRef(zone_id=f"Z{self._next_id():08d}", name=name)
            self.zones[name] = MemoryZone(ref=ref, private=private)
            return ref

    def _zone(self, zone: ZoneRef) -> MemoryZone:
        for memory_zone in self.zones.values():
            if memory_zone.ref.zone_id == zone.zone_id:
                return memory_zone
        raise ResourceNotFoundError(
            f"No such hosted zone: {zone.zone_id}", code="NoSuchHostedZone"
        )

    def find_zone(self, domain: str) -> Optional[ZoneRef]:
        memory_zone = self.zones.get(domain.rstrip(".").lower())
        if memory_zone is None or memory_zone.private:
            return None
        return memory_zone.ref

    def records(self, zone: ZoneRef) -> Dict[Tuple[str, str], str]:
        return dict(self._zone(zone).records)

    def upsert_alias_record(self, zone: ZoneRef, name: str, target_domain: str) -> str:
        with self._lock:
            self._zone(zone).records[(name, "A")] = target_domain
            return f"C{self._next_id()}"

    def upsert_validation_records(
        self, zone: ZoneRef, records: Iterable[ValidationRecord]
    ) -> str:
        with self._lock:
            memory_zone = self._zone(zone)
            for record in records:
                memory_zone.records[(record.name, record.type)] = record.value
            return f"C{self._next_id()}"

    # ------------------------------------------------------------------ #
    #  Certificates                                                        #
    # ------------------------------------------------------------------ #

    def request_certificate(
        self,
        domain: str,
        alternative_names: FrozenSet[str],
        validation_zone: ZoneRef,
        region: str,
    ) -> str:
        with self._lock:
            token = hashlib.md5(domain.encode()).hexdigest()[:12]
            arn = f"arn:memory:acm:{region}:000000000000:certificate/{self._next_id()}"
            self.certificates[arn] = MemoryCertificate(
                arn=arn,
                domain=domain,
                names=frozenset(alternative_names) | {domain},
                zone=validation_zone,
                region=region,
                record=ValidationRecord(
                    name=f"_{token}.{domain}.",
                    value=f"_{token}.acm-validations.memory.local.",
                ),
            )
            return arn

    def _certificate(self, handle: str) -> MemoryCertificate:
        certificate = self.certificates.get(handle)
        if certificate is None:
            raise ResourceNotFoundError(
                f"No such certificate: {handle}", code="ResourceNotFoundException"
            )
        return certificate

    def certificate_status(self, handle: str) -> CertificateStatus:
        with self._lock:
            certificate = self._certificate(handle)
            records = self._zone(certificate.zone).records
            if records.get((certificate.record.name, certificate.record.type)) != certificate.record.value:
                return CertificateStatus.PENDING
            if certificate.status_polls < self.validation_polls:
                certificate.status_polls += 1
                return CertificateStatus.PENDING
            if self.fail_validation:
                return CertificateStatus.FAILED
            return CertificateStatus.VALIDATED

    def validation_records(self, handle: str) -> List[ValidationRecord]:
        return [self._certificate(handle).record]

    def find_certificate(
        self, domain: str, alternative_names: FrozenSet[str]
    ) -> Optional[str]:
        wanted = frozenset(alternative_names) | {domain}
        for certificate in self.certificates.values():
            if certificate.domain == domain and certificate.names == wanted:
                return certificate.arn
        return None

    # ------------------------------------------------------------------ #
    #  Distributions                                                       #
    # ------------------------------------------------------------------ #

    def _handle(self, distribution: MemoryDistribution) -> DistributionHandle:
        status = (
            DistributionStatus.DEPLOYED
            if distribution.polls_until_deployed <= 0
            else DistributionStatus.DEPLOYING
        )
        return DistributionHandle(distribution.id, distribution.domain_name, status)

    def create_distribution(
        self,
        certificate_id: str,
        origins: Sequence[OriginRule],
        fallback: ErrorFallback,
        aliases: FrozenSet[str],
        default_root_object: str = "index.html",
    ) -> DistributionHandle:
        with self._lock:
            for distribution in self.distributions.values():
                if distribution.aliases & aliases:
                    raise ProviderError(
                        "One or more aliases already point at another distribution",
                        code="CNAMEAlreadyExists",
                        operation="create_distribution",
                    )
            number = self._next_id()
            distribution = MemoryDistribution(
                id=f"E{number:06d}MEM",
                domain_name=f"d{number:06d}.cloudfront.memory.local",
                certificate_id=certificate_id,
                origins=tuple(origins),
                fallback=fallback,
                aliases=frozenset(aliases),
                default_root_object=default_root_object,
                polls_until_deployed=self.deploy_polls,
            )
            self.distributions[distribution.id] = distribution
            return self._handle(distribution)

    def _distribution(self, distribution_id: str) -> MemoryDistribution:
        distribution = self.distributions.get(distribution_id)
        if distribution is None:
            raise ResourceNotFoundError(
                f"No such distribution: {distribution_id}", code="NoSuchDistribution"
            )
        return distribution

    def update_distribution(
        self,
        distribution_id: str,
        certificate_id: str,
        origins: Sequence[OriginRule],
        fallback: ErrorFallback,
        aliases: FrozenSet[str],
        default_root_object: str = "index.html",
    ) -> DistributionHandle:
        with self._lock:
            distribution = self._distribution(distribution_id)
            distribution.certificate_id = certificate_id
            distribution.origins = tuple(origins)
            distribution.fallback = fallback
            distribution.aliases = frozenset(aliases)
            distribution.default_root_object = default_root_object
            distribution.polls_until_deployed = self.deploy_polls
            distribution.updates += 1
            return self._handle(distribution)

    def find_distribution(self, alias: str) -> Optional[DistributionHandle]:
        for distribution in self.distributions.values():
            if alias in distribution.aliases:
                return self._handle(distribution)
        return None

    def distribution_status(self, distribution_id: str) -> DistributionStatus:
        with self._lock:
            distribution = self._distribution(distribution_id)
            status = self._handle(distribution).status
            if distribution.polls_until_deployed > 0:
                distribution.polls_until_deployed -= 1
            return status

    def invalidate(self, distribution_id: str, paths: Sequence[str]) -> str:
        with self._lock:
            self._distribution(distribution_id)
            if self.reject_invalidations:
                raise TooManyInvalidationsError(
                    "Too many invalidations in progress",
                    code="TooManyInvalidationsInProgress",
                    operation="create_invalidation",
                )
            self.invalidations.append((distribution_id, tuple(paths)))
            return f"I{self._next_id():06d}"

    # ------------------------------------------------------------------ #
    #  Object store                                                        #
    # ------------------------------------------------------------------ #

    def website_endpoint(self, bucket: str) -> str:
        return f"{bucket}.{WEBSITE_ENDPOINT_SUFFIX}"

    def ensure_website_bucket(self, bucket: str, index_document: str = "index.html") -> str:
        with self._lock:
            self.buckets.setdefault(bucket, {})
        return self.website_endpoint(bucket)

    def _bucket(self, bucket: str) -> Dict[str, StoredObject]:
        if bucket not in self.buckets:
            raise ResourceNotFoundError(f"No such bucket: {bucket}", code="NoSuchBucket")
        return self.buckets[bucket]

    def put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
    ) -> None:
        with self._lock:
            if key in self.failing_keys:
                raise ProviderError(f"Upload of {key} failed", code="InternalError")
            self._bucket(bucket)[key] = StoredObject(body, content_type, cache_control)
            self.put_count += 1

    def content_hash(self, bucket: str, key: str) -> Optional[str]:
        stored = self._bucket(bucket).get(key)
        if stored is None:
            return None
        return hashlib.md5(stored.body).hexdigest()

    # ------------------------------------------------------------------ #
    #  Origin simulation                                                   #
    # ------------------------------------------------------------------ #

    def origin_fetcher(
        self, backend_routes: Optional[Dict[str, Tuple[int, bytes]]] = None
    ) -> Callable[[OriginRef, str], Tuple[int, bytes]]:
        """
        Build a fetch function answering requests the way the origins would.

        Website-endpoint origins serve objects from the matching bucket;
        any other origin answers from ``backend_routes`` (path -> (status,
        body)) and 404s otherwise.
        """
        routes = dict(backend_routes or {})

        def fetch(origin: OriginRef, path: str) -> Tuple[int, bytes]:
            suffix = f".{WEBSITE_ENDPOINT_SUFFIX}"
            if origin.domain_name.endswith(suffix):
                bucket = origin.domain_name[: -len(suffix)]
                stored = self.buckets.get(bucket, {}).get(path.lstrip("/"))
                if stored is None:
                    return 404, b"<Error><Code>NoSuchKey</Code></Error>"
                return 200, stored.body
            return routes.get(path, (404, b'{"message": "Not Found"}'))

        return fetch
