"""
Error taxonomy for the tracker integration and context indexing core.

Every failure that leaves a service is one of these, so route handlers can
tell "not configured", "provider rejected the request" and "provider
unreachable" apart without inspecting library exceptions.
"""
from typing import Any, Dict, Optional

# Provider bodies are echoed back to users; keep them short.
BODY_PREVIEW_CHARS = 200


def truncate_body(body: Optional[str], limit: int = BODY_PREVIEW_CHARS) -> str:
    """Shorten a provider response body for messages and logs."""
    if not body:
        return ""
    return body[:limit]


class IntegrationError(Exception):
    """Base exception for all integration-core errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors (400) - user-fixable, never retried
# =============================================================================


class ConfigurationError(IntegrationError):
    """Missing or malformed credentials, metadata or service configuration."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            details=details,
            status_code=400,
        )


# =============================================================================
# Provider Errors (400) - the external system answered, but not usefully
# =============================================================================


class ProviderError(IntegrationError):
    """External API returned a non-success response or an unparseable body."""

    def __init__(
        self,
        provider: str,
        message: str,
        provider_status: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=message,
            code="PROVIDER_ERROR",
            details={
                "provider": provider,
                "provider_status": provider_status,
                "body": truncate_body(body),
            },
            status_code=400,
        )
        self.provider = provider
        self.provider_status = provider_status
        self.body = truncate_body(body)


# =============================================================================
# Transport Errors (500) - potentially transient, caller may retry
# =============================================================================


class TransportError(IntegrationError):
    """Network-level failure reaching the provider."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(
            message=message,
            code="TRANSPORT_ERROR",
            details={"provider": provider},
            status_code=500,
        )
        self.provider = provider


# =============================================================================
# Crypto Errors (500) - need operator intervention
# =============================================================================


class CryptoError(IntegrationError):
    """Stored ciphertext could not be decrypted."""

    def __init__(self, message: str, code: str = "CRYPTO_ERROR") -> None:
        super().__init__(message=message, code=code, status_code=500)


class UnsupportedVersion(CryptoError):
    """Ciphertext token carries a version tag this build cannot read."""

    def __init__(self, version: str) -> None:
        super().__init__(
            message=f"Unsupported cipher version: {version!r}",
            code="UNSUPPORTED_CIPHER_VERSION",
        )
        self.version = version


class AuthenticationFailure(CryptoError):
    """GCM tag check failed: the token was tampered with or the key is wrong."""

    def __init__(self) -> None:
        super().__init__(
            message="Ciphertext authentication failed (tampered token or wrong key)",
            code="CIPHER_AUTHENTICATION_FAILED",
        )


# =============================================================================
# Not Found Errors (404)
# =============================================================================


class NotFoundError(IntegrationError):
    """Referenced integration/secret/context/project row is absent."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        msg = message or f"{resource_type} not found"
        if resource_id and not message:
            msg = f"{resource_type} with ID '{resource_id}' not found"

        super().__init__(
            message=msg,
            code="NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
            status_code=404,
        )


class CredentialsNotFound(NotFoundError):
    """No secret row for (project, provider)."""

    def __init__(self, provider_label: str, project_id: Optional[str] = None) -> None:
        super().__init__(
            resource_type="Secret",
            resource_id=project_id,
            message=f"{provider_label} credentials not found",
        )
        self.code = "CREDENTIALS_NOT_FOUND"
        # A missing secret is a configuration gap, reported like one.
        self.status_code = 400
