"""
Exception hierarchy for provider orchestration.

Every failure raised by an adapter or the orchestrator carries the provider
name (when known), a classified ErrorKind and the provider's original message,
so callers can choose between fixing credentials, adding funds or switching
providers without parsing message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classified failure kinds."""
    CREDENTIAL_MISSING = "credential_missing"
    CREDENTIAL_INVALID = "credential_invalid"
    QUOTA_EXCEEDED = "quota_exceeded"
    BAD_REQUEST = "bad_request"
    EMPTY_RESPONSE = "empty_response"
    TIMEOUT = "timeout"
    NO_PROVIDER_AVAILABLE = "no_provider_available"
    NO_ACTIVE_PROVIDER = "no_active_provider"
    UNSUPPORTED_CAPABILITY = "unsupported_capability"
    VALIDATION = "validation"
    PROVIDER_ERROR = "provider_error"


class ImageRelayError(Exception):
    """Base class for all image-relay errors."""

    kind: ErrorKind = ErrorKind.PROVIDER_ERROR
    remediation: str = "Try again later or switch to a different provider."

    def __init__(self, message: str, provider: Optional[str] = None):
        self.message = message
        self.provider = provider
        super().__init__(message)

    def __str__(self) -> str:
        if self.provider:
            return f"[{self.provider}] {self.message}"
        return self.message

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "provider": self.provider,
            "message": self.message,
            "remediation": self.remediation,
        }


class CredentialMissing(ImageRelayError):
    """No usable credential was found at all."""
    kind = ErrorKind.CREDENTIAL_MISSING
    remediation = (
        "Add at least one API key to your .env file: OPENAI_API_KEY, STABILITY_API_KEY, "
        "REPLICATE_API_TOKEN, HUGGINGFACE_API_KEY or GEMINI_API_KEY."
    )


class CredentialInvalid(ImageRelayError):
    """Provider rejected the credential."""
    kind = ErrorKind.CREDENTIAL_INVALID
    remediation = "Check that the API key is correct and has image generation permissions."


class QuotaExceeded(ImageRelayError):
    """Billing limit or rate limit reached."""
    kind = ErrorKind.QUOTA_EXCEEDED
    remediation = "Add credits to your account, wait for the rate limit to reset, or switch provider."


class BadRequest(ImageRelayError):
    """Provider rejected the request parameters."""
    kind = ErrorKind.BAD_REQUEST
    remediation = "Adjust the prompt, size or quality and try again."


class ProviderEmptyResponse(ImageRelayError):
    """Provider returned no image payload after all internal retries."""
    kind = ErrorKind.EMPTY_RESPONSE


class GenerationTimeout(ImageRelayError):
    """Polling exhausted before the job reached a terminal state."""
    kind = ErrorKind.TIMEOUT


class NoProviderAvailable(ImageRelayError):
    """No adapter could be constructed (or the requested one does not exist)."""
    kind = ErrorKind.NO_PROVIDER_AVAILABLE
    remediation = CredentialMissing.remediation


class NoActiveProvider(ImageRelayError):
    """Generation was requested before a provider was selected."""
    kind = ErrorKind.NO_ACTIVE_PROVIDER
    remediation = "Initialize the orchestrator with at least one valid credential."


class UnsupportedCapability(ImageRelayError):
    """Requested size/quality/image-to-image is not supported by the provider."""
    kind = ErrorKind.UNSUPPORTED_CAPABILITY
    remediation = "Pick a supported option or switch to a provider that supports it."


class ValidationError(ImageRelayError):
    """Malformed generation request."""
    kind = ErrorKind.VALIDATION
    remediation = "Fix the request parameters."


class ProviderError(ImageRelayError):
    """Unclassified provider or transport failure."""
    kind = ErrorKind.PROVIDER_ERROR
