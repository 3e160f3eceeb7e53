"""
Adapter factory keyed by service id.

Maps the service a credential was detected for onto the adapter class that
speaks that service's protocol.
"""

import logging
from typing import Dict, List, Type

from ...core.exceptions import CredentialMissing, NoProviderAvailable
from ...core.models import Credential
from .base import BaseImageProvider
from .gemini_provider import GeminiProvider
from .huggingface_provider import HuggingFaceProvider
from .openai_provider import OpenAIProvider
from .replicate_provider import ReplicateProvider
from .stability_provider import StabilityProvider

logger = logging.getLogger(__name__)


class ProviderFactory:
    """
    Build image generation adapters from detected credentials.

    Services without a registered adapter (e.g. pattern-matched "generic"
    keys) are reported by has_provider() so callers can skip them.
    """

    _provider_classes: Dict[str, Type[BaseImageProvider]] = {
        OpenAIProvider.provider_name: OpenAIProvider,
        StabilityProvider.provider_name: StabilityProvider,
        ReplicateProvider.provider_name: ReplicateProvider,
        HuggingFaceProvider.provider_name: HuggingFaceProvider,
        GeminiProvider.provider_name: GeminiProvider,
    }

    @classmethod
    def register_provider(cls, service: str, adapter_class: Type[BaseImageProvider]) -> None:
        """Add or replace the adapter used for a service id."""
        cls._provider_classes[service] = adapter_class
        logger.info(f"Registered adapter for {service}: {adapter_class.__name__}")

    @classmethod
    def has_provider(cls, service: str) -> bool:
        return service in cls._provider_classes

    @classmethod
    def list_providers(cls) -> List[str]:
        """Service ids with an adapter, in registration order."""
        return list(cls._provider_classes)

    @classmethod
    def create_provider(cls, service: str, api_key: str, **options) -> BaseImageProvider:
        """
        Instantiate the adapter for a service.

        Args:
            service: Service id, e.g. 'replicate'
            api_key: Credential value
            **options: Adapter constructor options (config, client, models, ...)

        Raises:
            NoProviderAvailable: If the service has no adapter
            CredentialMissing: If the adapter rejects its configuration
        """
        adapter_class = cls._provider_classes.get(service)
        if adapter_class is None:
            raise NoProviderAvailable(
                f"No adapter for service '{service}'. Supported: {', '.join(cls.list_providers())}",
                provider=service,
            )

        adapter = adapter_class(api_key, **options)
        if not adapter.validate_config():
            raise CredentialMissing(
                f"{service} adapter is missing its API key or endpoint", provider=service
            )

        logger.debug(f"Created {adapter_class.__name__} for {service}")
        return adapter

    @classmethod
    def create_from_credential(cls, credential: Credential, **options) -> BaseImageProvider:
        return cls.create_provider(credential.service, credential.api_key, **options)
