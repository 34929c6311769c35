"""
Tests for origin rule building, validation and path matching.

Run:
    python -m pytest tests/test_origin_builder.py -v
"""

import pytest
from unittest.mock import patch

from sitedeploy.models import ALL_METHODS, NO_CACHE, READ_METHODS, OriginRef, OriginRule
from sitedeploy.services.errors import DistributionConfigError, InvalidOriginError
from sitedeploy.services.origin_builder import (
    BACKEND_FORWARDED_HEADERS,
    SiteOrigin,
    build_origin_rules,
    match_rule,
    order_origin_rules,
    path_matches,
    validate_origin_rules,
)

SITE = SiteOrigin(hostname="example.com.s3-website.memory.local")


def _rule(pattern=None, origin_id="o", default=False):
    return OriginRule(
        origin=OriginRef(origin_id=origin_id, domain_name=f"{origin_id}.example.net"),
        path_pattern=pattern,
        is_default=default,
    )


class TestBuildOriginRules:

    def test_backend_rule_first_default_last(self):
        rules = build_origin_rules("api.internal", SITE)

        assert len(rules) == 2
        backend, site = rules
        assert not backend.is_default
        assert backend.path_pattern == "/Prod/*"
        assert site.is_default
        assert site.path_pattern is None

    def test_backend_rule_never_caches_and_forwards_everything(self):
        backend = build_origin_rules("api.internal", SITE)[0]

        assert backend.origin.domain_name == "api.internal"
        assert backend.cache_ttl == NO_CACHE
        assert backend.allowed_methods == ALL_METHODS
        assert backend.forwarded_headers == BACKEND_FORWARDED_HEADERS
        assert backend.forward_query_string is True

    def test_site_rule_is_read_only_over_http(self):
        site = build_origin_rules("api.internal", SITE)[1]

        assert site.allowed_methods == READ_METHODS
        assert site.origin.protocol_policy == "http-only"
        assert site.cache_ttl is None

    def test_custom_prefix(self):
        rules = build_origin_rules("API.Internal", SITE, api_prefix="api/v1/")

        assert rules[0].path_pattern == "/api/v1/*"
        assert rules[0].origin.domain_name == "api.internal"

    @pytest.mark.parametrize("backend", ["", "   ", "not a host", "http://"])
    def test_invalid_backend_hostname(self, backend):
        with pytest.raises(InvalidOriginError):
            build_origin_rules(backend, SITE)

    def test_invalid_site_origin(self):
        with pytest.raises(InvalidOriginError):
            build_origin_rules("api.internal", SiteOrigin(hostname=""))

    def test_invalid_prefix(self):
        with pytest.raises(InvalidOriginError):
            build_origin_rules("api.internal", SITE, api_prefix="/Prod/*")

    def test_built_rules_pass_validation(self):
        validate_origin_rules(build_origin_rules("api.internal", SITE))

    def test_built_rules_go_through_ordering(self):
        with patch(
            "sitedeploy.services.origin_builder.order_origin_rules", wraps=order_origin_rules
        ) as ordering:
            rules = build_origin_rules("api.internal", SITE)

        ordering.assert_called_once()
        assert rules == order_origin_rules(rules)


class TestValidateOriginRules:

    def test_empty(self):
        with pytest.raises(DistributionConfigError):
            validate_origin_rules([])

    def test_no_default(self):
        with pytest.raises(DistributionConfigError, match="no default"):
            validate_origin_rules([_rule("/a/*")])

    def test_two_defaults(self):
        with pytest.raises(DistributionConfigError, match="exactly one"):
            validate_origin_rules([_rule(default=True), _rule(default=True)])

    def test_default_not_last(self):
        with pytest.raises(DistributionConfigError, match="last"):
            validate_origin_rules([_rule(default=True), _rule("/a/*")])

    def test_missing_pattern(self):
        with pytest.raises(DistributionConfigError, match="no path pattern"):
            validate_origin_rules([_rule(None), _rule(default=True)])

    def test_duplicate_pattern(self):
        with pytest.raises(DistributionConfigError, match="Duplicate"):
            validate_origin_rules([_rule("/a/*"), _rule("/a/*", "p"), _rule(default=True)])


class TestOrdering:

    def test_more_specific_patterns_first(self):
        default = _rule(default=True)
        broad = _rule("/api/*", "broad")
        narrow = _rule("/api/v2/*", "narrow")

        ordered = order_origin_rules([default, broad, narrow])

        assert [r.origin.origin_id for r in ordered] == ["narrow", "broad", "o"]
        assert ordered[-1].is_default

    def test_equal_specificity_keeps_order(self):
        first = _rule("/aa/*", "first")
        second = _rule("/bb/*", "second")

        ordered = order_origin_rules([first, second, _rule(default=True)])
        assert [r.origin.origin_id for r in ordered[:2]] == ["first", "second"]


class TestMatching:

    @pytest.mark.parametrize("pattern, path, expected", [
        ("/Prod/*", "/Prod/users", True),
        ("/Prod/*", "/Prod/", True),
        ("/Prod/*", "/Prod", False),
        ("/Prod/*", "/prod/users", False),
        ("/Prod/*", "/Products", False),
        ("Prod/*", "/Prod/x", True),
        ("/*.js", "/app.js", True),
        ("/file?.txt", "/file1.txt", True),
    ])
    def test_path_matches(self, pattern, path, expected):
        assert path_matches(pattern, path) is expected

    def test_api_paths_go_to_backend(self):
        rules = build_origin_rules("api.internal", SITE)

        assert match_rule(rules, "/Prod/users").origin.origin_id == "backend-api"
        assert match_rule(rules, "/Prod/users?page=2").origin.origin_id == "backend-api"

    def test_everything_else_goes_to_site(self):
        rules = build_origin_rules("api.internal", SITE)

        for path in ["/", "/index.html", "/dashboard/settings", "/Production"]:
            assert match_rule(rules, path).origin.origin_id == "site-bucket"

    def test_first_match_wins(self):
        rules = [_rule("/api/*", "broad"), _rule("/api/v2/*", "narrow"), _rule(default=True)]
        assert match_rule(rules, "/api/v2/x").origin.origin_id == "broad"

    def test_no_default_rule(self):
        with pytest.raises(DistributionConfigError):
            match_rule([_rule("/a/*")], "/b")
