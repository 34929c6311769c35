"""
Site Verifier
Post-deploy smoke check over HTTPS: the site root and an unknown client-side
route must both answer 200 with the same entry document.
"""

import uuid
from typing import Dict, Optional

import requests
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from sitedeploy.services.errors import SiteVerificationError
from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)


class SiteVerifier:
    component = "site-verifier"

    def __init__(self, site_url: str, timeout: int = 30, session: Optional[requests.Session] = None):
        """
        Args:
            site_url: Public URL, e.g. "https://example.com"
            timeout:  Per-request timeout in seconds
            session:  Optional requests session (tests inject one)
        """
        self.site_url = site_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(requests.exceptions.ConnectionError),
        reraise=True
    )
    def _get(self, path: str) -> requests.Response:
        url = f"{self.site_url}{path}"
        logger.debug(f"GET {url}")
        return self.session.get(url, timeout=self.timeout)

    def _fetch(self, path: str) -> requests.Response:
        try:
            response = self._get(path)
        except requests.exceptions.RequestException as e:
            raise SiteVerificationError(
                f"Could not reach {self.site_url}{path}: {e}", component=self.component
            ) from e

        if response.status_code != 200:
            raise SiteVerificationError(
                f"{self.site_url}{path} answered {response.status_code}, expected 200",
                component=self.component,
            )
        return response

    def verify(self, client_route: Optional[str] = None) -> Dict[str, int]:
        """
        Check the root and a client-side route.

        Args:
            client_route: Route unknown to the bucket; a random one by default

        Returns:
            Dict mapping each checked path to its status code

        Raises:
            SiteVerificationError: Unreachable, non-200, or the route did not
                                   fall back to the entry document
        """
        route = client_route or f"/__sitedeploy-check/{uuid.uuid4().hex[:8]}"
        logger.info(f"🔍 Verifying {self.site_url}")

        root = self._fetch("/")
        fallback = self._fetch(route)

        if fallback.content != root.content:
            raise SiteVerificationError(
                f"{route} did not serve the entry document; check the error fallback",
                component=self.component,
            )

        logger.info(f"✅ {self.site_url} serves the app on / and {route}")
        return {"/": root.status_code, route: fallback.status_code}
