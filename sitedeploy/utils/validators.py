"""
Input validation utilities for domains, hostnames and CDN path prefixes
"""

import re


class ValidationError(Exception):
    """Custom exception for validation errors"""
    pass


class DomainValidator:
    """Validator for domain names and origin hostnames"""

    # RFC-compliant domain regex
    DOMAIN_REGEX = re.compile(
        r'^(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}$'
    )

    @classmethod
    def clean(cls, domain: str) -> str:
        """Lowercase, strip scheme, trailing slash and trailing dot."""
        domain = (domain or "").strip().lower()
        domain = re.sub(r'^https?://', '', domain)
        return domain.rstrip('/').rstrip('.')

    @classmethod
    def validate(cls, domain: str) -> str:
        """
        Validate a domain name.

        Args:
            domain: Domain name to validate

        Returns:
            Cleaned domain name (lowercase, stripped)

        Raises:
            ValidationError: If domain is invalid
        """
        if not domain or not domain.strip():
            raise ValidationError("Domain name cannot be empty")

        domain = cls.clean(domain)

        if len(domain) > 253:  # RFC 1035
            raise ValidationError("Domain name too long (max 253 characters)")

        if not cls.DOMAIN_REGEX.match(domain):
            raise ValidationError(
                f"Invalid domain format: {domain}. "
                "Domain must contain only letters, numbers, hyphens and dots."
            )

        return domain

    @classmethod
    def wildcard(cls, domain: str) -> str:
        """Wildcard name covering every direct subdomain, e.g. '*.example.com'"""
        return f"*.{cls.validate(domain)}"


class PathPrefixValidator:
    """Validator for the path prefix that routes requests to the backend"""

    PREFIX_REGEX = re.compile(r'^/[A-Za-z0-9._~-]+(?:/[A-Za-z0-9._~-]+)*$')

    @classmethod
    def validate(cls, prefix: str) -> str:
        """
        Validate an API path prefix such as '/Prod'.

        A trailing slash is dropped; wildcards are not allowed because the
        prefix is expanded into the '<prefix>/*' pattern by the caller.
        """
        if not prefix or not prefix.strip():
            raise ValidationError("API path prefix cannot be empty")

        prefix = prefix.strip()
        if not prefix.startswith('/'):
            prefix = f"/{prefix}"
        prefix = prefix.rstrip('/')

        if not cls.PREFIX_REGEX.match(prefix):
            raise ValidationError(f"Invalid API path prefix: {prefix!r}")

        return prefix


def validate_domain(domain: str) -> str:
    """Convenience function for domain validation"""
    return DomainValidator.validate(domain)


def validate_hostname(hostname: str) -> str:
    """Convenience function for origin hostname validation"""
    return DomainValidator.validate(hostname)


def validate_path_prefix(prefix: str) -> str:
    """Convenience function for API path prefix validation"""
    return PathPrefixValidator.validate(prefix)
