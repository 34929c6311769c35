"""
Configuration management using Pydantic Settings
Loads and validates environment variables (and an optional .env file)
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sitedeploy.utils.validators import (
    ValidationError,
    validate_domain,
    validate_path_prefix,
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every component receives its configuration explicitly from one of
    these objects; nothing reads ambient credentials or regions on its own.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SITEDEPLOY_",
        case_sensitive=False,
        extra="ignore"
    )

    # Provider selection
    provider: Literal["AWS", "MEMORY"] = Field(
        default="AWS",
        description="Provider backend: AWS or MEMORY (in-process, for dry runs)"
    )

    # AWS credentials (blank values fall back to the default boto3 chain)
    aws_access_key_id: str = Field(
        default="",
        description="AWS Access Key ID"
    )
    aws_secret_access_key: str = Field(
        default="",
        description="AWS Secret Access Key"
    )
    aws_region: str = Field(
        default="us-east-1",
        description="Region of the stack's own resources (site bucket)"
    )

    # Site
    apex_domain: str = Field(
        default="",
        description="Apex domain served by the distribution, e.g. example.com"
    )
    backend_hostname: str = Field(
        default="",
        description="Hostname of the backend API origin"
    )
    site_bucket: str = Field(
        default="",
        description="Bucket holding the site (defaults to the apex domain)"
    )
    artifact_dir: str = Field(
        default="dist",
        description="Directory containing the built site"
    )
    api_path_prefix: str = Field(
        default="/Prod",
        description="Requests under this prefix are routed to the backend"
    )
    index_document: str = Field(
        default="index.html",
        description="Entry document of the single-page app"
    )

    # Timing
    cert_timeout_minutes: int = Field(default=30, ge=0)
    cert_poll_seconds: int = Field(default=30, ge=0)
    distribution_timeout_minutes: int = Field(default=30, ge=0)
    distribution_poll_seconds: int = Field(default=60, ge=0)

    # Publishing
    invalidation_strategy: Literal["ALL", "CHANGED"] = Field(
        default="ALL",
        description="ALL invalidates '/*'; CHANGED invalidates only changed paths"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @field_validator("apex_domain", "backend_hostname", "site_bucket")
    @classmethod
    def validate_optional_domain(cls, v: str) -> str:
        """Domains may be left blank here and supplied on the command line"""
        if not v:
            return v
        try:
            return validate_domain(v)
        except ValidationError as e:
            raise ValueError(str(e)) from e

    @field_validator("api_path_prefix")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        try:
            return validate_path_prefix(v)
        except ValidationError as e:
            raise ValueError(str(e)) from e

    @property
    def bucket_name(self) -> str:
        """Site bucket, named after the apex domain unless overridden"""
        return self.site_bucket or self.apex_domain

    @property
    def aws_credentials(self) -> dict:
        """Keyword arguments for boto3.client(); empty keys are omitted"""
        credentials = {}
        if self.aws_access_key_id and self.aws_secret_access_key:
            credentials["aws_access_key_id"] = self.aws_access_key_id
            credentials["aws_secret_access_key"] = self.aws_secret_access_key
        return credentials

    def has_site_config(self) -> bool:
        """Check if the domain and backend are configured"""
        return bool(self.apex_domain and self.backend_hostname)


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the settings singleton instance.

    Returns:
        Settings instance

    Raises:
        pydantic.ValidationError: If environment variables are invalid
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reset_settings():
    """
    Reset the settings singleton (useful for testing)
    """
    global _settings
    _settings = None
