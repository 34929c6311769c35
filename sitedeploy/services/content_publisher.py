"""
Content Publisher
Uploads the built site to the bucket and invalidates the affected paths on
the distribution tied to this deploy.
"""

import hashlib
import os
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple
from urllib.parse import quote

from sitedeploy.api.base_provider import CDNProvider, ObjectStore
from sitedeploy.api.exceptions import ProviderError
from sitedeploy.models import Distribution, PublishJob, PublishResult
from sitedeploy.services.errors import InvalidationError, PublishError
from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)

# Beyond this many changed paths a single wildcard is cheaper and just as correct.
MAX_INVALIDATION_PATHS = 15

INVALIDATE_ALL = "/*"


def file_md5(path: Path) -> str:
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def invalidation_paths_for(
    changed_keys: Iterable[str],
    diff_available: bool = True,
    strategy: str = "ALL",
    index_document: str = "index.html",
) -> FrozenSet[str]:
    """
    Paths to purge after uploading ``changed_keys``.

    Nothing changed means nothing to purge. Without per-file diffing, with
    the ALL strategy, or with many changes, everything is purged.
    """
    keys = set(changed_keys)
    if not keys:
        return frozenset()
    if strategy == "ALL" or not diff_available:
        return frozenset({INVALIDATE_ALL})

    paths = {"/" + quote(key, safe="/-_.~") for key in keys}
    if index_document in keys:
        # "/" is cached separately from "/index.html"
        paths.add("/")

    if len(paths) > MAX_INVALIDATION_PATHS:
        return frozenset({INVALIDATE_ALL})
    return frozenset(paths)


class ContentPublisher:
    """
    Service for publishing site artifacts.

    Every upload is an overwrite, so a failed or interrupted publish can be
    re-run as is. Invalidation failures never unwind uploaded content.
    """

    component = "content-publisher"

    def __init__(
        self,
        storage: ObjectStore,
        cdn: CDNProvider,
        strategy: str = "ALL",
        index_document: str = "index.html",
    ):
        """
        Args:
            storage:        Object store holding the site
            cdn:            CDN provider used for invalidations
            strategy:       "ALL" purges '/*', "CHANGED" purges changed paths
            index_document: SPA entry document
        """
        self.storage = storage
        self.cdn = cdn
        self.strategy = strategy
        self.index_document = index_document

    def _local_files(self, artifact_dir: Path) -> Dict[str, str]:
        files = {}
        for root, _dirs, names in os.walk(artifact_dir):
            for name in sorted(names):
                local_path = Path(root) / name
                key = local_path.relative_to(artifact_dir).as_posix()
                files[key] = file_md5(local_path)
        return files

    def _changed_keys(self, bucket: str, files: Dict[str, str]) -> Tuple[Tuple[str, ...], bool]:
        if not self.storage.supports_content_hash:
            logger.info("Object store cannot report content hashes; uploading everything")
            return tuple(sorted(files)), False

        changed = []
        for key, local_hash in sorted(files.items()):
            if self.storage.content_hash(bucket, key) != local_hash:
                changed.append(key)
        return tuple(changed), True

    def plan(
        self, artifact_dir: Path, bucket: str, distribution: Distribution
    ) -> PublishJob:
        """
        Work out what to upload and which paths to invalidate.

        Raises:
            PublishError: Artifact directory missing or empty
        """
        artifact_dir = Path(artifact_dir).resolve()
        if not artifact_dir.is_dir():
            raise PublishError(
                f"Artifact directory not found: {artifact_dir}", component=self.component
            )

        files = self._local_files(artifact_dir)
        if not files:
            raise PublishError(
                f"Artifact directory is empty: {artifact_dir}", component=self.component
            )

        changed, diff_available = self._changed_keys(bucket, files)
        logger.info(f"{len(changed)} of {len(files)} file(s) changed")

        return PublishJob(
            source_artifact_dir=artifact_dir,
            destination_bucket=bucket,
            scope_distribution_id=distribution.id,
            files=files,
            changed_keys=changed,
            invalidation_paths=invalidation_paths_for(
                changed, diff_available, self.strategy, self.index_document
            ),
        )

    def publish_artifacts(
        self, artifact_dir: Path, bucket: str, distribution: Distribution
    ) -> PublishResult:
        """Plan and publish in one call."""
        return self.publish(self.plan(artifact_dir, bucket, distribution))

    def publish(self, job: PublishJob) -> PublishResult:
        """
        Upload the changed files, then invalidate.

        Raises:
            PublishError: One or more uploads failed (reported, not rolled back).
                          Files that did upload are still invalidated.
        """
        logger.info(
            f"Publishing {len(job.changed_keys)} file(s) to {job.destination_bucket} "
            f"for distribution {job.scope_distribution_id}"
        )

        uploaded, failed = [], []
        for key in job.changed_keys:
            try:
                body = (job.source_artifact_dir / key).read_bytes()
                self.storage.put(
                    job.destination_bucket,
                    key,
                    body,
                    content_type=self._get_content_type(key),
                    cache_control=self._get_cache_control(key),
                )
                uploaded.append(key)
            except (ProviderError, OSError) as e:
                logger.error(f"❌ Upload of {key} failed: {e}")
                failed.append(key)

        if failed:
            error = PublishError(
                f"{len(failed)} of {len(job.changed_keys)} upload(s) failed: {failed}",
                uploaded=uploaded,
                failed=failed,
                component=self.component,
            )
            if uploaded:
                # Uploaded objects are live and a re-run sees them as unchanged
                self._invalidate_uploaded(job, uploaded, error)
            raise error

        logger.info(f"✅ Uploaded {len(uploaded)} file(s)")
        unchanged = tuple(sorted(set(job.files) - set(job.changed_keys)))
        paths = tuple(sorted(job.invalidation_paths))

        invalidation_id: Optional[str] = None
        invalidation_error: Optional[str] = None
        if paths:
            try:
                invalidation_id = self.invalidate(job.scope_distribution_id, paths)
            except InvalidationError as e:
                # Stale-but-uploaded beats no deploy; the operator re-runs the invalidation
                logger.warning(f"⚠️ Content uploaded but cache not invalidated: {e}")
                invalidation_error = str(e)
        else:
            logger.info("Nothing changed; skipping invalidation")

        return PublishResult(
            bucket=job.destination_bucket,
            distribution_id=job.scope_distribution_id,
            uploaded_keys=tuple(uploaded),
            unchanged_keys=unchanged,
            invalidation_paths=paths,
            invalidation_id=invalidation_id,
            invalidation_error=invalidation_error,
        )

    def _invalidate_uploaded(
        self, job: PublishJob, uploaded: Sequence[str], error: PublishError
    ) -> None:
        paths = tuple(sorted(invalidation_paths_for(
            uploaded, True, self.strategy, self.index_document
        )))
        error.invalidation_paths = paths
        try:
            error.invalidation_id = self.invalidate(job.scope_distribution_id, paths)
        except InvalidationError as e:
            logger.warning(f"⚠️ Partial upload not invalidated: {e}")
            error.invalidation_error = str(e)

    def invalidate(self, distribution_id: str, paths: Sequence[str] = (INVALIDATE_ALL,)) -> str:
        """
        Purge ``paths`` on one distribution.

        Raises:
            InvalidationError: The CDN rejected the request
        """
        try:
            invalidation_id = self.cdn.invalidate(distribution_id, list(paths))
        except ProviderError as e:
            raise InvalidationError(
                f"Invalidation of {list(paths)} on {distribution_id} rejected: {e}",
                distribution_id=distribution_id,
                paths=paths,
                component=self.component,
            ) from e

        logger.info(f"✅ Invalidation {invalidation_id} created for {list(paths)}")
        return invalidation_id

    @staticmethod
    def _get_cache_control(key: str) -> Optional[str]:
        if key.endswith(".html"):
            return "no-cache"
        if key.startswith("assets/"):
            # Fingerprinted build output
            return "public, max-age=31536000, immutable"
        return None

    @staticmethod
    def _get_content_type(filename: str) -> str:
        """
        Determine content type based on file extension.

        Args:
            filename: File name

        Returns:
            Content type string
        """
        extension = Path(filename).suffix.lower()

        content_types = {
            '.html': 'text/html',
            '.css': 'text/css',
            '.js': 'application/javascript',
            '.mjs': 'application/javascript',
            '.map': 'application/json',
            '.json': 'application/json',
            '.webmanifest': 'application/manifest+json',
            '.png': 'image/png',
            '.jpg': 'image/jpeg',
            '.jpeg': 'image/jpeg',
            '.gif': 'image/gif',
            '.webp': 'image/webp',
            '.svg': 'image/svg+xml',
            '.ico': 'image/x-icon',
            '.woff': 'font/woff',
            '.woff2': 'font/woff2',
            '.ttf': 'font/ttf',
            '.eot': 'application/vnd.ms-fontobject',
            '.xml': 'application/xml',
            '.txt': 'text/plain',
        }

        return content_types.get(extension, 'application/octet-stream')
