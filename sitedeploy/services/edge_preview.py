"""
Edge Preview
Answers a request path the way the distribution would: pick the cache
behavior, fetch from its origin, apply the error fallback. Used by dry runs
and tests to check routing without a live CDN.
"""

from typing import Callable, Tuple

from pydantic import BaseModel, ConfigDict

from sitedeploy.models import Distribution, OriginRef
from sitedeploy.services.origin_builder import match_rule

Fetch = Callable[[OriginRef, str], Tuple[int, bytes]]


class EdgeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: int
    body: bytes
    origin_id: str
    # True when the error fallback produced the response
    rewritten: bool = False


class EdgePreview:
    """Request routing for one distribution over a pluggable origin fetch."""

    def __init__(self, distribution: Distribution, fetch: Fetch):
        self.distribution = distribution
        self.fetch = fetch

    def _origin_request(self, path: str) -> EdgeResponse:
        rule = match_rule(self.distribution.origins, path)
        status, body = self.fetch(rule.origin, path.split("?", 1)[0])
        return EdgeResponse(status=status, body=body, origin_id=rule.origin.origin_id)

    def get(self, path: str) -> EdgeResponse:
        """
        Resolve ``path`` to the response a viewer would get.

        "/" is served from the default root object. A response matching the
        fallback status is replaced by the fallback document, fetched through
        the normal behavior routing, with the fallback's status. The fallback
        applies to every behavior, API paths included.
        """
        if not path.startswith("/"):
            path = f"/{path}"
        if path.split("?", 1)[0] == "/" and self.distribution.default_root_object:
            path = f"/{self.distribution.default_root_object}"

        response = self._origin_request(path)

        fallback = self.distribution.fallback
        if response.status != fallback.match_status:
            return response

        document = self._origin_request(fallback.rewrite_to)
        if document.status >= 400:
            # Broken fallback document; CloudFront returns the original error
            return response

        return EdgeResponse(
            status=fallback.respond_status,
            body=document.body,
            origin_id=document.origin_id,
            rewritten=True,
        )
