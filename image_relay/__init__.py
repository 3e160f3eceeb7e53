"""Multi-provider image generation with credential discovery and fallback."""

from .core.exceptions import ImageRelayError
from .core.models import GenerationRequest, GenerationResult, ReferenceType
from .services.credentials import CredentialDetector
from .services.orchestrator import Orchestrator

__version__ = "0.1.0"

__all__ = [
    "CredentialDetector",
    "GenerationRequest",
    "GenerationResult",
    "ImageRelayError",
    "Orchestrator",
    "ReferenceType",
    "__version__",
]
