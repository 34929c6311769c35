"""
AWS S3 Client
Site bucket setup (static-website hosting) and idempotent object uploads
"""

import json
from typing import Optional

import boto3
from botocore.exceptions import ClientError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from sitedeploy.api.base_provider import ObjectStore
from sitedeploy.api.exceptions import (
    ResourceNotFoundError,
    ThrottlingError,
    from_client_error,
)
from sitedeploy.utils.config import Settings, get_settings
from sitedeploy.utils.logger import get_logger

logger = get_logger(__name__)


class S3Client(ObjectStore):
    """
    S3 implementation of the object store.

    The bucket is served through its website endpoint, so it is public-read
    and carries a website configuration with the SPA entry document.
    """

    supports_content_hash = True

    def __init__(self, config: Optional[Settings] = None):
        """
        Initialize the S3 client in the stack's own region.

        Args:
            config: Optional Settings object. Defaults to get_settings().
        """
        self.config = config or get_settings()
        self.region = self.config.aws_region

        self.s3_client = boto3.client(
            "s3", region_name=self.region, **self.config.aws_credentials
        )

        logger.info(f"S3Client initialized (Region: {self.region})")

    def website_endpoint(self, bucket: str) -> str:
        return f"{bucket}.s3-website-{self.region}.amazonaws.com"

    def ensure_website_bucket(self, bucket: str, index_document: str = "index.html") -> str:
        logger.info(f"Ensuring website bucket {bucket}")

        try:
            try:
                self.s3_client.head_bucket(Bucket=bucket)
                logger.info(f"Bucket {bucket} already exists")
            except ClientError as e:
                error = from_client_error(e, "head_bucket")
                if not isinstance(error, ResourceNotFoundError):
                    raise error
                params = {"Bucket": bucket}
                if self.region != "us-east-1":
                    params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
                self.s3_client.create_bucket(**params)
                logger.info(f"✅ Bucket {bucket} created")

            self.s3_client.put_public_access_block(
                Bucket=bucket,
                PublicAccessBlockConfiguration={
                    "BlockPublicAcls": True,
                    "IgnorePublicAcls": True,
                    "BlockPublicPolicy": False,
                    "RestrictPublicBuckets": False,
                },
            )

            policy = {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Sid": "PublicReadGetObject",
                        "Effect": "Allow",
                        "Principal": "*",
                        "Action": "s3:GetObject",
                        "Resource": f"arn:aws:s3:::{bucket}/*",
                    }
                ],
            }
            self.s3_client.put_bucket_policy(Bucket=bucket, Policy=json.dumps(policy))

            self.s3_client.put_bucket_website(
                Bucket=bucket,
                WebsiteConfiguration={
                    "IndexDocument": {"Suffix": index_document},
                    "ErrorDocument": {"Key": index_document},
                },
            )
        except ClientError as e:
            logger.error(f"Bucket setup failed: {e}")
            raise from_client_error(e, "ensure_website_bucket")

        return self.website_endpoint(bucket)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
    ) -> None:
        extra_args = {"ContentType": content_type}
        if cache_control:
            extra_args["CacheControl"] = cache_control

        logger.debug(f"Uploading: {key}")
        try:
            self.s3_client.put_object(Bucket=bucket, Key=key, Body=body, **extra_args)
        except ClientError as e:
            raise from_client_error(e, "put_object")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ThrottlingError),
        reraise=True
    )
    def content_hash(self, bucket: str, key: str) -> Optional[str]:
        try:
            response = self.s3_client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            error = from_client_error(e, "head_object")
            if isinstance(error, ResourceNotFoundError):
                return None
            raise error

        # Multipart ETags ("<md5>-<parts>") are not content hashes
        etag = response.get("ETag", "").strip('"')
        return "" if "-" in etag else etag
