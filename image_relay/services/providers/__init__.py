"""
Provider implementations for multi-provider image generation.

This module contains:
- BaseImageProvider: Abstract base class for all providers
- OpenAIProvider: OpenAI DALL-E implementation
- StabilityProvider: Stability AI (Stable Diffusion) implementation
- ReplicateProvider: Replicate implementation (polled predictions)
- HuggingFaceProvider: Hugging Face Inference API implementation
- GeminiProvider: Google Gemini / Imagen implementation
- ProviderFactory: Factory for creating providers
"""

from .base import BaseImageProvider
from .openai_provider import OpenAIProvider
from .stability_provider import StabilityProvider
from .replicate_provider import ReplicateProvider
from .huggingface_provider import HuggingFaceProvider
from .gemini_provider import GeminiProvider
from .factory import ProviderFactory

__all__ = [
    "BaseImageProvider",
    "OpenAIProvider",
    "StabilityProvider",
    "ReplicateProvider",
    "HuggingFaceProvider",
    "GeminiProvider",
    "ProviderFactory",
]
