"""
Custom exceptions for cloud provider operations
"""


class ProviderError(Exception):
    """Base exception for all provider API errors"""

    def __init__(self, message: str, code: str = None, operation: str = None):
        self.message = message
        self.code = code
        self.operation = operation
        super().__init__(self.message)

    def __str__(self):
        if self.code:
            return f"ProviderError ({self.code}): {self.message}"
        return f"ProviderError: {self.message}"


class ThrottlingError(ProviderError):
    """Raised when the provider rate-limits a request"""
    pass


class ResourceNotFoundError(ProviderError):
    """Raised when the addressed resource does not exist"""
    pass


class AccessDeniedError(ProviderError):
    """Raised when the credentials lack permission for the call"""
    pass


class TooManyInvalidationsError(ProviderError):
    """Raised when the CDN refuses another in-flight invalidation"""
    pass


_CODE_MAP = {
    "Throttling": ThrottlingError,
    "ThrottlingException": ThrottlingError,
    "TooManyRequestsException": ThrottlingError,
    "RequestLimitExceeded": ThrottlingError,
    "SlowDown": ThrottlingError,
    "PriorRequestNotComplete": ThrottlingError,
    "NoSuchHostedZone": ResourceNotFoundError,
    "NoSuchDistribution": ResourceNotFoundError,
    "ResourceNotFoundException": ResourceNotFoundError,
    "NoSuchBucket": ResourceNotFoundError,
    "NoSuchKey": ResourceNotFoundError,
    "NotFound": ResourceNotFoundError,
    "404": ResourceNotFoundError,
    "AccessDenied": AccessDeniedError,
    "AccessDeniedException": AccessDeniedError,
    "TooManyInvalidationsInProgress": TooManyInvalidationsError,
}


def from_client_error(error, operation: str) -> ProviderError:
    """
    Translate a botocore ClientError into a ProviderError subclass.

    Args:
        error: botocore.exceptions.ClientError
        operation: Name of the provider call that failed

    Returns:
        ProviderError (or subclass) carrying the AWS error code
    """
    details = getattr(error, "response", {}).get("Error", {})
    code = str(details.get("Code", ""))
    message = details.get("Message") or str(error)
    error_cls = _CODE_MAP.get(code, ProviderError)
    return error_cls(f"{operation} failed: {message}", code=code or None, operation=operation)
