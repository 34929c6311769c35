"""
Tests for the AWS provider implementations.
All AWS API calls are mocked — no real credentials or AWS resources needed.

Run:
    python -m pytest tests/test_aws_providers.py -v
"""

import pytest
from unittest.mock import patch, MagicMock
from botocore.exceptions import ClientError

from sitedeploy.api.exceptions import (
    AccessDeniedError,
    ResourceNotFoundError,
    ThrottlingError,
    TooManyInvalidationsError,
    from_client_error,
)
from sitedeploy.models import (
    CertificateStatus,
    DistributionStatus,
    ValidationRecord,
    ZoneRef,
)
from sitedeploy.services.distribution_service import SPA_FALLBACK
from sitedeploy.services.origin_builder import SiteOrigin, build_origin_rules


# ---------------------------------------------------------------------------
# Helpers / fixtures
# ---------------------------------------------------------------------------

DOMAIN = "example.com"
ZONE = ZoneRef(zone_id="Z123", name=DOMAIN)
CERT_ARN = "arn:aws:acm:us-east-1:123456789012:certificate/abc-123"
DIST_ID = "E1ABCXYZ"
DIST_DOMAIN = "d123.cloudfront.net"
SITE_ENDPOINT = "example.com.s3-website-eu-west-1.amazonaws.com"


def _make_client_error(code: str = "ValidationException") -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": "Mocked AWS error"}},
        "TestOperation",
    )


def _mock_settings(region: str = "us-east-1"):
    """Return a minimal mock Settings object."""
    s = MagicMock()
    s.aws_access_key_id = "AKIATEST"
    s.aws_secret_access_key = "testsecret"
    s.aws_region = region
    s.aws_credentials = {
        "aws_access_key_id": "AKIATEST",
        "aws_secret_access_key": "testsecret",
    }
    return s


def _rules():
    return build_origin_rules("api.internal", SiteOrigin(hostname=SITE_ENDPOINT))


# ===========================================================================
# 1. Error translation
# ===========================================================================

class TestFromClientError:

    @pytest.mark.parametrize("code, error_cls", [
        ("Throttling", ThrottlingError),
        ("NoSuchHostedZone", ResourceNotFoundError),
        ("404", ResourceNotFoundError),
        ("AccessDenied", AccessDeniedError),
        ("TooManyInvalidationsInProgress", TooManyInvalidationsError),
    ])
    def test_maps_known_codes(self, code, error_cls):
        error = from_client_error(_make_client_error(code), "op")
        assert type(error) is error_cls
        assert error.code == code
        assert error.operation == "op"

    def test_unknown_code_is_generic_provider_error(self):
        error = from_client_error(_make_client_error("InvalidArgument"), "op")
        assert type(error).__name__ == "ProviderError"
        assert "InvalidArgument" in str(error)


# ===========================================================================
# 2. Route53Client
# ===========================================================================

class TestRoute53Client:

    @patch("boto3.client")
    def test_find_zone_picks_exact_public_match(self, mock_boto):
        from sitedeploy.api.route53_client import Route53Client

        client = MagicMock()
        mock_boto.return_value = client
        client.list_hosted_zones_by_name.return_value = {
            "HostedZones": [
                {"Id": "/hostedzone/ZPRIVATE", "Name": "example.com.", "Config": {"PrivateZone": True}},
                {"Id": "/hostedzone/Z123", "Name": "example.com.", "Config": {"PrivateZone": False}},
                {"Id": "/hostedzone/Z999", "Name": "example.comics.", "Config": {"PrivateZone": False}},
            ]
        }

        zone = Route53Client(config=_mock_settings()).find_zone("Example.com")

        assert zone == ZoneRef(zone_id="Z123", name="example.com")
        client.list_hosted_zones_by_name.assert_called_once_with(DNSName="example.com")

    @patch("boto3.client")
    def test_find_zone_returns_none_without_match(self, mock_boto):
        from sitedeploy.api.route53_client import Route53Client

        client = MagicMock()
        mock_boto.return_value = client
        client.list_hosted_zones_by_name.return_value = {
            "HostedZones": [{"Id": "/hostedzone/Z9", "Name": "other.com.", "Config": {}}]
        }

        assert Route53Client(config=_mock_settings()).find_zone(DOMAIN) is None

    @patch("boto3.client")
    def test_upsert_alias_uses_cloudfront_hosted_zone_id(self, mock_boto):
        from sitedeploy.api.route53_client import Route53Client, CLOUDFRONT_HOSTED_ZONE_ID

        client = MagicMock()
        mock_boto.return_value = client
        client.change_resource_record_sets.return_value = {"ChangeInfo": {"Id": "/change/C1"}}

        change_id = Route53Client(config=_mock_settings()).upsert_alias_record(
            ZONE, DOMAIN, DIST_DOMAIN
        )

        assert change_id == "/change/C1"
        kwargs = client.change_resource_record_sets.call_args.kwargs
        assert kwargs["HostedZoneId"] == "Z123"
        change = kwargs["ChangeBatch"]["Changes"][0]
        assert change["Action"] == "UPSERT"
        record = change["ResourceRecordSet"]
        assert record["Type"] == "A"
        assert record["Name"] == DOMAIN
        assert record["AliasTarget"]["HostedZoneId"] == CLOUDFRONT_HOSTED_ZONE_ID
        assert record["AliasTarget"]["DNSName"] == DIST_DOMAIN

    @patch("boto3.client")
    def test_validation_records_are_deduplicated(self, mock_boto):
        from sitedeploy.api.route53_client import Route53Client

        client = MagicMock()
        mock_boto.return_value = client
        client.change_resource_record_sets.return_value = {"ChangeInfo": {"Id": "/change/C2"}}

        record = ValidationRecord(name="_abc.example.com.", value="_xyz.acm-validations.aws.")
        Route53Client(config=_mock_settings()).upsert_validation_records(ZONE, [record, record])

        changes = client.change_resource_record_sets.call_args.kwargs["ChangeBatch"]["Changes"]
        assert len(changes) == 1
        assert changes[0]["ResourceRecordSet"]["Type"] == "CNAME"
        assert changes[0]["ResourceRecordSet"]["ResourceRecords"] == [
            {"Value": "_xyz.acm-validations.aws."}
        ]

    @patch("boto3.client")
    def test_access_denied_is_translated(self, mock_boto):
        from sitedeploy.api.route53_client import Route53Client

        client = MagicMock()
        mock_boto.return_value = client
        client.list_hosted_zones_by_name.side_effect = _make_client_error("AccessDenied")

        with pytest.raises(AccessDeniedError):
            Route53Client(config=_mock_settings()).find_zone(DOMAIN)

        # Only throttling is retried
        assert client.list_hosted_zones_by_name.call_count == 1


# ===========================================================================
# 3. AcmClient
# ===========================================================================

class TestAcmClient:

    @patch("boto3.client")
    def test_request_is_pinned_to_the_requested_region(self, mock_boto):
        from sitedeploy.api.acm_client import AcmClient

        client = MagicMock()
        mock_boto.return_value = client
        client.request_certificate.return_value = {"CertificateArn": CERT_ARN}

        arn = AcmClient(config=_mock_settings(region="eu-west-1")).request_certificate(
            DOMAIN, frozenset({DOMAIN, f"*.{DOMAIN}"}), ZONE, "us-east-1"
        )

        assert arn == CERT_ARN
        assert mock_boto.call_args.args == ("acm",)
        assert mock_boto.call_args.kwargs["region_name"] == "us-east-1"
        kwargs = client.request_certificate.call_args.kwargs
        assert kwargs["DomainName"] == DOMAIN
        assert kwargs["ValidationMethod"] == "DNS"
        assert kwargs["SubjectAlternativeNames"] == [f"*.{DOMAIN}"]

    @pytest.mark.parametrize("acm_status, expected", [
        ("ISSUED", CertificateStatus.VALIDATED),
        ("PENDING_VALIDATION", CertificateStatus.PENDING),
        ("FAILED", CertificateStatus.FAILED),
        ("VALIDATION_TIMED_OUT", CertificateStatus.FAILED),
    ])
    @patch("boto3.client")
    def test_certificate_status_mapping(self, mock_boto, acm_status, expected):
        from sitedeploy.api.acm_client import AcmClient

        client = MagicMock()
        mock_boto.return_value = client
        client.describe_certificate.return_value = {"Certificate": {"Status": acm_status}}

        assert AcmClient(config=_mock_settings()).certificate_status(CERT_ARN) == expected

    @patch("boto3.client")
    def test_validation_records(self, mock_boto):
        from sitedeploy.api.acm_client import AcmClient

        client = MagicMock()
        mock_boto.return_value = client
        client.describe_certificate.return_value = {
            "Certificate": {
                "Status": "PENDING_VALIDATION",
                "DomainValidationOptions": [
                    {
                        "DomainName": DOMAIN,
                        "ResourceRecord": {
                            "Name": "_abc.example.com.",
                            "Type": "CNAME",
                            "Value": "_xyz.acm-validations.aws.",
                        },
                    },
                    # Not generated yet
                    {"DomainName": f"*.{DOMAIN}"},
                ],
            }
        }

        records = AcmClient(config=_mock_settings()).validation_records(CERT_ARN)

        assert records == [
            ValidationRecord(name="_abc.example.com.", value="_xyz.acm-validations.aws.")
        ]

    @patch("boto3.client")
    def test_find_certificate_matches_full_name_set(self, mock_boto):
        from sitedeploy.api.acm_client import AcmClient

        client = MagicMock()
        mock_boto.return_value = client
        client.get_paginator.return_value.paginate.return_value = [
            {"CertificateSummaryList": [
                {"DomainName": "other.com", "CertificateArn": "arn:aws:acm:us-east-1:1:certificate/other"},
                {"DomainName": DOMAIN, "CertificateArn": CERT_ARN},
            ]}
        ]
        client.describe_certificate.return_value = {
            "Certificate": {"SubjectAlternativeNames": [DOMAIN, f"*.{DOMAIN}"]}
        }

        acm = AcmClient(config=_mock_settings())
        assert acm.find_certificate(DOMAIN, frozenset({DOMAIN, f"*.{DOMAIN}"})) == CERT_ARN
        assert acm.find_certificate(DOMAIN, frozenset({DOMAIN, f"www.{DOMAIN}"})) is None


# ===========================================================================
# 4. CloudFront distribution config
# ===========================================================================

class TestBuildDistributionConfig:

    def _config(self):
        from sitedeploy.api.cloudfront_client import build_distribution_config

        return build_distribution_config(
            caller_reference="ref-1",
            certificate_id=CERT_ARN,
            origins=_rules(),
            fallback=SPA_FALLBACK,
            aliases=frozenset({DOMAIN}),
        )

    def test_backend_behavior_comes_first_and_is_uncached(self):
        config = self._config()

        behaviors = config["CacheBehaviors"]
        assert behaviors["Quantity"] == 1
        api = behaviors["Items"][0]
        assert api["PathPattern"] == "/Prod/*"
        assert api["TargetOriginId"] == "backend-api"
        assert (api["MinTTL"], api["DefaultTTL"], api["MaxTTL"]) == (0, 0, 0)
        assert api["AllowedMethods"]["Quantity"] == 7
        assert api["ForwardedValues"]["QueryString"] is True
        assert api["ForwardedValues"]["Headers"]["Items"] == ["Authorization", "Accept", "Referer"]

    def test_default_behavior_serves_the_site(self):
        config = self._config()

        default = config["DefaultCacheBehavior"]
        assert default["TargetOriginId"] == "site-bucket"
        assert "PathPattern" not in default
        assert default["AllowedMethods"]["Items"] == ["GET", "HEAD"]
        assert default["ViewerProtocolPolicy"] == "redirect-to-https"
        assert config["DefaultRootObject"] == "index.html"

    def test_origins_and_protocols(self):
        origins = {o["Id"]: o for o in self._config()["Origins"]["Items"]}

        assert origins["backend-api"]["DomainName"] == "api.internal"
        assert origins["backend-api"]["CustomOriginConfig"]["OriginProtocolPolicy"] == "https-only"
        # Website endpoints only speak HTTP
        assert origins["site-bucket"]["DomainName"] == SITE_ENDPOINT
        assert origins["site-bucket"]["CustomOriginConfig"]["OriginProtocolPolicy"] == "http-only"

    def test_error_fallback_and_certificate(self):
        config = self._config()

        assert config["CustomErrorResponses"]["Items"] == [{
            "ErrorCode": 404,
            "ResponsePagePath": "/index.html",
            "ResponseCode": "200",
            "ErrorCachingMinTTL": 0,
        }]
        assert config["ViewerCertificate"]["ACMCertificateArn"] == CERT_ARN
        assert config["ViewerCertificate"]["SSLSupportMethod"] == "sni-only"
        assert config["Aliases"] == {"Quantity": 1, "Items": [DOMAIN]}


# ===========================================================================
# 5. CloudFrontClient
# ===========================================================================

class TestCloudFrontClient:

    @patch("boto3.client")
    def test_create_returns_deploying_handle(self, mock_boto):
        from sitedeploy.api.cloudfront_client import CloudFrontClient

        client = MagicMock()
        mock_boto.return_value = client
        client.create_distribution.return_value = {
            "Distribution": {"Id": DIST_ID, "DomainName": DIST_DOMAIN, "Status": "InProgress"}
        }

        handle = CloudFrontClient(config=_mock_settings()).create_distribution(
            CERT_ARN, _rules(), SPA_FALLBACK, frozenset({DOMAIN})
        )

        assert handle.id == DIST_ID
        assert handle.domain_name == DIST_DOMAIN
        assert handle.status == DistributionStatus.DEPLOYING

    @patch("boto3.client")
    def test_update_keeps_caller_reference_and_uses_etag(self, mock_boto):
        from sitedeploy.api.cloudfront_client import CloudFrontClient

        client = MagicMock()
        mock_boto.return_value = client
        client.get_distribution_config.return_value = {
            "ETag": "ETAG1",
            "DistributionConfig": {"CallerReference": "original-ref"},
        }
        client.update_distribution.return_value = {
            "Distribution": {"Id": DIST_ID, "DomainName": DIST_DOMAIN, "Status": "InProgress"}
        }

        CloudFrontClient(config=_mock_settings()).update_distribution(
            DIST_ID, CERT_ARN, _rules(), SPA_FALLBACK, frozenset({DOMAIN})
        )

        kwargs = client.update_distribution.call_args.kwargs
        assert kwargs["Id"] == DIST_ID
        assert kwargs["IfMatch"] == "ETAG1"
        assert kwargs["DistributionConfig"]["CallerReference"] == "original-ref"

    @patch("boto3.client")
    def test_find_distribution_by_alias(self, mock_boto):
        from sitedeploy.api.cloudfront_client import CloudFrontClient

        client = MagicMock()
        mock_boto.return_value = client
        client.get_paginator.return_value.paginate.return_value = [
            {"DistributionList": {"Items": [
                {"Id": "EOTHER", "DomainName": "d9.cloudfront.net", "Status": "Deployed",
                 "Aliases": {"Quantity": 1, "Items": ["other.com"]}},
                {"Id": DIST_ID, "DomainName": DIST_DOMAIN, "Status": "Deployed",
                 "Aliases": {"Quantity": 1, "Items": [DOMAIN]}},
            ]}}
        ]

        cdn = CloudFrontClient(config=_mock_settings())
        handle = cdn.find_distribution(DOMAIN)

        assert handle.id == DIST_ID
        assert handle.status == DistributionStatus.DEPLOYED
        assert cdn.find_distribution("missing.com") is None

    @patch("boto3.client")
    def test_distribution_status(self, mock_boto):
        from sitedeploy.api.cloudfront_client import CloudFrontClient

        client = MagicMock()
        mock_boto.return_value = client
        client.get_distribution.return_value = {
            "Distribution": {"Id": DIST_ID, "DomainName": DIST_DOMAIN, "Status": "Deployed"}
        }

        status = CloudFrontClient(config=_mock_settings()).distribution_status(DIST_ID)
        assert status == DistributionStatus.DEPLOYED

    @patch("boto3.client")
    def test_invalidate_is_scoped_to_the_distribution(self, mock_boto):
        from sitedeploy.api.cloudfront_client import CloudFrontClient

        client = MagicMock()
        mock_boto.return_value = client
        client.create_invalidation.return_value = {"Invalidation": {"Id": "I1"}}

        invalidation_id = CloudFrontClient(config=_mock_settings()).invalidate(DIST_ID, ["/*"])

        assert invalidation_id == "I1"
        kwargs = client.create_invalidation.call_args.kwargs
        assert kwargs["DistributionId"] == DIST_ID
        assert kwargs["InvalidationBatch"]["Paths"] == {"Quantity": 1, "Items": ["/*"]}

    @patch("boto3.client")
    def test_invalidate_rejection_is_translated(self, mock_boto):
        from sitedeploy.api.cloudfront_client import CloudFrontClient

        client = MagicMock()
        mock_boto.return_value = client
        client.create_invalidation.side_effect = _make_client_error("TooManyInvalidationsInProgress")

        with pytest.raises(TooManyInvalidationsError):
            CloudFrontClient(config=_mock_settings()).invalidate(DIST_ID, ["/*"])


# ===========================================================================
# 6. S3Client
# ===========================================================================

class TestS3Client:

    @patch("boto3.client")
    def test_ensure_bucket_creates_missing_bucket(self, mock_boto):
        from sitedeploy.api.s3_client import S3Client

        client = MagicMock()
        mock_boto.return_value = client
        client.head_bucket.side_effect = _make_client_error("404")

        endpoint = S3Client(config=_mock_settings(region="eu-west-1")).ensure_website_bucket(DOMAIN)

        assert endpoint == SITE_ENDPOINT
        client.create_bucket.assert_called_once_with(
            Bucket=DOMAIN,
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )
        website = client.put_bucket_website.call_args.kwargs["WebsiteConfiguration"]
        assert website["IndexDocument"] == {"Suffix": "index.html"}
        client.put_bucket_policy.assert_called_once()

    @patch("boto3.client")
    def test_ensure_bucket_reuses_existing_bucket(self, mock_boto):
        from sitedeploy.api.s3_client import S3Client

        client = MagicMock()
        mock_boto.return_value = client

        S3Client(config=_mock_settings()).ensure_website_bucket(DOMAIN)

        client.create_bucket.assert_not_called()
        client.put_bucket_website.assert_called_once()

    @patch("boto3.client")
    def test_ensure_bucket_propagates_access_denied(self, mock_boto):
        from sitedeploy.api.s3_client import S3Client

        client = MagicMock()
        mock_boto.return_value = client
        client.head_bucket.side_effect = _make_client_error("AccessDenied")

        with pytest.raises(AccessDeniedError):
            S3Client(config=_mock_settings()).ensure_website_bucket(DOMAIN)
        client.create_bucket.assert_not_called()

    @patch("boto3.client")
    def test_put_sets_content_type_and_cache_control(self, mock_boto):
        from sitedeploy.api.s3_client import S3Client

        client = MagicMock()
        mock_boto.return_value = client

        S3Client(config=_mock_settings()).put(
            DOMAIN, "index.html", b"<html/>", content_type="text/html", cache_control="no-cache"
        )

        client.put_object.assert_called_once_with(
            Bucket=DOMAIN,
            Key="index.html",
            Body=b"<html/>",
            ContentType="text/html",
            CacheControl="no-cache",
        )

    @patch("boto3.client")
    def test_content_hash(self, mock_boto):
        from sitedeploy.api.s3_client import S3Client

        client = MagicMock()
        mock_boto.return_value = client
        store = S3Client(config=_mock_settings())
        assert store.supports_content_hash

        client.head_object.return_value = {"ETag": '"0cc175b9c0f1b6a831c399e269772661"'}
        assert store.content_hash(DOMAIN, "a.txt") == "0cc175b9c0f1b6a831c399e269772661"

        client.head_object.return_value = {"ETag": '"0cc175b9c0f1b6a831c399e269772661-3"'}
        assert store.content_hash(DOMAIN, "big.bin") == ""

        client.head_object.side_effect = _make_client_error("404")
        assert store.content_hash(DOMAIN, "missing.txt") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
