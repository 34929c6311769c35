"""
Origin Configuration Builder
Routing and caching rules for the two classes of traffic the distribution
serves: backend API calls and static site assets.

Rule order is the routing precedence. The backend rule must come before the
static catch-all, otherwise API requests are answered with the SPA entry
document instead of reaching the backend.
"""

import re
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from sitedeploy.models import (
    ALL_METHODS,
    NO_CACHE,
    READ_METHODS,
    OriginRef,
    OriginRule,
)
from sitedeploy.services.errors import DistributionConfigError, InvalidOriginError
from sitedeploy.utils.validators import (
    ValidationError,
    validate_hostname,
    validate_path_prefix,
)

DEFAULT_API_PREFIX = "/Prod"

# CloudFront forwards no headers by default; authenticated API calls need these.
BACKEND_FORWARDED_HEADERS = ("Authorization", "Accept", "Referer")

BACKEND_ORIGIN_ID = "backend-api"
SITE_ORIGIN_ID = "site-bucket"


class SiteOrigin(BaseModel):
    """Where the static site is served from."""

    model_config = ConfigDict(frozen=True)

    hostname: str
    http_only: bool = True


def build_origin_rules(
    backend_hostname: str,
    site_origin: SiteOrigin,
    api_prefix: str = DEFAULT_API_PREFIX,
) -> List[OriginRule]:
    """
    Build the ordered rule list: backend API rule first, static default last.

    Args:
        backend_hostname: Hostname of the backend API origin
        site_origin:      Static site origin (bucket website endpoint)
        api_prefix:       Paths under this prefix go to the backend

    Raises:
        InvalidOriginError: Empty or malformed hostname or prefix
    """
    try:
        backend_host = validate_hostname(backend_hostname)
    except ValidationError as e:
        raise InvalidOriginError(f"Invalid backend hostname {backend_hostname!r}: {e}") from e

    try:
        site_host = validate_hostname(site_origin.hostname)
    except ValidationError as e:
        raise InvalidOriginError(f"Invalid site origin {site_origin.hostname!r}: {e}") from e

    try:
        prefix = validate_path_prefix(api_prefix)
    except ValidationError as e:
        raise InvalidOriginError(str(e)) from e

    backend_rule = OriginRule(
        origin=OriginRef(
            origin_id=BACKEND_ORIGIN_ID,
            domain_name=backend_host,
            protocol_policy="https-only",
        ),
        path_pattern=f"{prefix}/*",
        is_default=False,
        allowed_methods=ALL_METHODS,
        # API responses must never be cached at the edge
        cache_ttl=NO_CACHE,
        forwarded_headers=BACKEND_FORWARDED_HEADERS,
        forward_query_string=True,
    )

    site_rule = OriginRule(
        origin=OriginRef(
            origin_id=SITE_ORIGIN_ID,
            domain_name=site_host,
            protocol_policy="http-only" if site_origin.http_only else "https-only",
        ),
        path_pattern=None,
        is_default=True,
        allowed_methods=READ_METHODS,
        cache_ttl=None,
    )

    return order_origin_rules([backend_rule, site_rule])


def _specificity(pattern: str) -> int:
    """Length of the literal part of a pattern before its first wildcard."""
    match = re.search(r"[*?]", pattern)
    return match.start() if match else len(pattern) + 1


def order_origin_rules(rules: Sequence[OriginRule]) -> List[OriginRule]:
    """
    Most specific non-default patterns first, default last.

    The sort is stable, so rules of equal specificity keep their relative
    order.
    """
    non_default = [rule for rule in rules if not rule.is_default]
    defaults = [rule for rule in rules if rule.is_default]
    non_default.sort(key=lambda rule: _specificity(rule.path_pattern or ""), reverse=True)
    return non_default + defaults


def validate_origin_rules(rules: Sequence[OriginRule]) -> None:
    """
    Check the structure a distribution relies on.

    Raises:
        DistributionConfigError: Missing or duplicated default rule, default
                                 not last, empty or duplicate path patterns
    """
    if not rules:
        raise DistributionConfigError("Origin rule list is empty")

    defaults = [index for index, rule in enumerate(rules) if rule.is_default]
    if not defaults:
        raise DistributionConfigError("Origin rules have no default (catch-all) rule")
    if len(defaults) > 1:
        raise DistributionConfigError(
            f"Origin rules have {len(defaults)} default rules; exactly one is allowed"
        )
    if defaults[0] != len(rules) - 1:
        raise DistributionConfigError(
            "The default rule must come last so path-specific rules are evaluated first"
        )

    seen = set()
    for rule in rules[:-1]:
        if not rule.path_pattern:
            raise DistributionConfigError(
                f"Non-default rule for origin {rule.origin.origin_id} has no path pattern"
            )
        if rule.path_pattern in seen:
            raise DistributionConfigError(f"Duplicate path pattern {rule.path_pattern}")
        seen.add(rule.path_pattern)


def _pattern_regex(pattern: str) -> "re.Pattern[str]":
    # CloudFront patterns: '*' is any run of characters, '?' one character,
    # matching is case sensitive and a leading '/' is implied.
    if not pattern.startswith("/"):
        pattern = f"/{pattern}"
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


def path_matches(pattern: str, path: str) -> bool:
    """True if a request path matches a CloudFront path pattern."""
    return bool(_pattern_regex(pattern).match(path))


def match_rule(rules: Sequence[OriginRule], path: str) -> OriginRule:
    """
    Pick the rule serving ``path``: the first matching non-default rule in
    list order, else the default rule.
    """
    path = path.split("?", 1)[0] or "/"
    default: Optional[OriginRule] = None

    for rule in rules:
        if rule.is_default:
            default = rule
            continue
        if rule.path_pattern and path_matches(rule.path_pattern, path):
            return rule

    if default is None:
        raise DistributionConfigError("Origin rules have no default (catch-all) rule")
    return default
