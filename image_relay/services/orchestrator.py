"""
Provider orchestration: selection, dispatch and single-hop fallback.

The orchestrator builds one adapter per usable credential, keeps the
lowest-priority-number adapter active, and on failure retries exactly once
against the next-ranked adapter. Requests with reference images only fall
back to adapters that can honour them.

Concurrency: the state (adapter map + active pointer) is an immutable value
swapped as a whole. generate_image reads it once at call start, so a
concurrent set_active only affects later calls; the last writer wins and no
locking is needed.
"""

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..core.exceptions import (
    NoActiveProvider,
    NoProviderAvailable,
    UnsupportedCapability,
)
from ..core.models import Credential, GenerationRequest, GenerationResult
from .capabilities import ProviderCapability, capabilities_for, ensure_supported
from .providers.base import BaseImageProvider
from .providers.factory import ProviderFactory
from .reference_images import ReferenceImageTranslator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderEntry:
    """A constructed adapter with the credential and capability it was built from."""

    adapter: BaseImageProvider
    credential: Credential
    capability: ProviderCapability

    @property
    def service(self) -> str:
        return self.credential.service

    @property
    def priority(self) -> int:
        return self.credential.priority

    def summary(self) -> Dict[str, Any]:
        return {
            "name": self.service.upper(),
            "service": self.service,
            "priority": self.priority,
            "description": self.credential.description,
            "cost": self.credential.cost,
            "capabilities": self.capability.to_dict(),
        }


@dataclass(frozen=True)
class OrchestratorState:
    """Adapter map plus the active service id."""

    providers: Mapping[str, ProviderEntry] = field(default_factory=lambda: MappingProxyType({}))
    active: Optional[str] = None

    def ranked(self) -> List[ProviderEntry]:
        return sorted(self.providers.values(), key=lambda entry: entry.priority)

    def with_active(self, service: Optional[str]) -> "OrchestratorState":
        return replace(self, active=service)

    def next_best(
        self, exclude: Optional[str], needs_image_to_image: bool = False
    ) -> Optional[ProviderEntry]:
        """
        Lowest-priority-number adapter other than exclude.

        With needs_image_to_image only excellent/good-tier adapters qualify,
        so reference images are never dropped by a fallback.
        """
        for entry in self.ranked():
            if entry.service == exclude:
                continue
            if needs_image_to_image and not entry.capability.image_to_image.compatible:
                continue
            return entry
        return None


class Orchestrator:
    """Select, dispatch to and fall back between image generation providers."""

    def __init__(
        self,
        state: OrchestratorState,
        translator: Optional[ReferenceImageTranslator] = None,
        sticky_fallback: bool = False,
    ):
        """
        Args:
            state: Initial orchestrator state
            translator: Reference image compatibility helper
            sticky_fallback: Make a provider that succeeded as fallback the
                active one for later calls
        """
        self._state = state
        self.translator = translator or ReferenceImageTranslator()
        self.sticky_fallback = sticky_fallback

    @classmethod
    def initialize(
        cls,
        credentials: Iterable[Credential],
        capability_lookup: Callable[[str], ProviderCapability] = capabilities_for,
        factory: type = ProviderFactory,
        provider_options: Optional[Mapping[str, Mapping[str, Any]]] = None,
        **kwargs,
    ) -> "Orchestrator":
        """
        Build adapters for all usable credentials and select the active one.

        Construction failures are logged and the provider is omitted.

        Args:
            credentials: Detected credentials (any order)
            capability_lookup: Service -> capability
            factory: Provider factory
            provider_options: Extra constructor kwargs per service
            **kwargs: Passed to the Orchestrator constructor

        Raises:
            NoProviderAvailable: If no adapter could be constructed
        """
        credentials = sorted(credentials, key=lambda credential: credential.priority)
        if not credentials:
            raise NoProviderAvailable("No image generation API keys found")

        provider_options = provider_options or {}
        providers: Dict[str, ProviderEntry] = {}

        logger.info("Initializing providers...")
        for credential in credentials:
            service = credential.service
            if service in providers:
                logger.info(
                    f"Skipping {credential.key_name}: {service} already configured "
                    f"from {providers[service].credential.key_name}"
                )
                continue
            if not factory.has_provider(service):
                logger.warning(
                    f"⚠ No generator available for {service} yet ({credential.key_name} skipped)"
                )
                continue

            try:
                adapter = factory.create_from_credential(
                    credential, **provider_options.get(service, {})
                )
            except Exception as e:
                logger.warning(f"✗ {service.upper()} initialization failed: {e}")
                continue

            providers[service] = ProviderEntry(
                adapter=adapter,
                credential=credential,
                capability=capability_lookup(service),
            )
            logger.info(f"✓ {service} provider initialized (priority {credential.priority})")

        if not providers:
            raise NoProviderAvailable(
                "No compatible image generation service could be initialized"
            )

        state = OrchestratorState(providers=MappingProxyType(providers))
        active = state.ranked()[0].service
        logger.info(f"Ready to generate images with {active.upper()}")
        return cls(state.with_active(active), **kwargs)

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def active_service(self) -> Optional[str]:
        return self._state.active

    def get_provider(self, service: str) -> Optional[BaseImageProvider]:
        entry = self._state.providers.get(service)
        return entry.adapter if entry else None

    def set_active(self, service: str) -> None:
        """
        Make service the active provider.

        Raises:
            NoProviderAvailable: If no adapter was constructed for service
        """
        self._entry(self._state, service)
        self._state = self._state.with_active(service)
        logger.info(f"Active provider set to {service}")

    def resolve_service(self, service: Optional[str] = None) -> str:
        """
        The service a call should use: service if given, else the active one.

        Raises:
            NoActiveProvider: If service is None and no provider is selected
            NoProviderAvailable: If service has no constructed adapter
        """
        return self._entry(self._state, service).service

    def _entry(self, state: OrchestratorState, service: Optional[str]) -> ProviderEntry:
        if service is None:
            if state.active is None or state.active not in state.providers:
                raise NoActiveProvider("No active image generator available")
            return state.providers[state.active]
        entry = state.providers.get(service)
        if entry is None:
            raise NoProviderAvailable(
                f"Provider '{service}' not available. "
                f"Initialized providers: {', '.join(state.providers) or 'none'}",
                provider=service,
            )
        return entry

    async def generate_image(
        self, request: GenerationRequest, service: Optional[str] = None
    ) -> GenerationResult:
        """
        Generate with one provider, falling back once on failure.

        Args:
            request: Generation request
            service: Provider for this call only (defaults to the active one);
                the active pointer is left unchanged

        Raises:
            NoActiveProvider: If no provider is selected
            NoProviderAvailable: If service has no constructed adapter
            ImageRelayError: The fallback's failure, or the first provider's
                failure when there is nothing to fall back to
        """
        state = self._state
        active = self._entry(state, service)
        logger.info(f"Generating image with {active.service.upper()}...")

        try:
            return await active.adapter.generate_image(request)
        except Exception as e:
            logger.error(f"{active.service.upper()} failed: {e}")

            fallback = state.next_best(
                exclude=active.service, needs_image_to_image=request.wants_image_to_image
            )
            if fallback is None:
                if request.wants_image_to_image:
                    logger.info("No image-to-image capable provider left to fall back to")
                raise

            logger.info(f"Trying fallback: {fallback.service.upper()}...")
            result = await fallback.adapter.generate_image(request)
            if self.sticky_fallback:
                self._state = self._state.with_active(fallback.service)
            return result

    def list_available(self) -> List[Dict[str, Any]]:
        """Provider summaries ordered by priority."""
        return [entry.summary() for entry in self._state.ranked()]

    def active_info(self) -> Optional[Dict[str, Any]]:
        state = self._state
        if state.active is None:
            return None
        return state.providers[state.active].summary()

    def validate_request(self, request: GenerationRequest, service: Optional[str] = None) -> None:
        """
        Pre-flight check of a request against a provider (active by default).

        Raises:
            NoActiveProvider: If no provider is selected
            UnsupportedCapability: If the provider cannot honour the request
        """
        service = service or self._state.active
        if service is None:
            raise NoActiveProvider("No active image generator available")
        entry = self._state.providers.get(service)
        ensure_supported(request, entry.capability if entry else capabilities_for(service))

    def image_to_image_service(self, service: Optional[str] = None) -> str:
        """
        A constructed provider that can honour reference images.

        Returns service (active by default) if it is compatible, otherwise the
        best constructed excellent/good alternate. Does not change the active
        provider.

        Raises:
            NoActiveProvider: If service is None and no provider is selected
            NoProviderAvailable: If service has no constructed adapter
            UnsupportedCapability: If no constructed provider is compatible
        """
        service = self.resolve_service(service)
        if self.translator.is_compatible(service, True):
            return service

        alternate = self.translator.recommend_alternate(
            available=self._state.providers.keys(), exclude=service
        )
        if alternate is None:
            raise UnsupportedCapability(
                f"{service} does not support image-to-image generation and no "
                "compatible provider is configured",
                provider=service,
            )
        return alternate

    def switch_for_image_to_image(self) -> str:
        """
        Make the active provider one that can honour reference images.

        Returns:
            The (possibly new) active service

        Raises:
            NoActiveProvider: If no provider is selected
            UnsupportedCapability: If no constructed provider is compatible
        """
        active = self.resolve_service()
        target = self.image_to_image_service(active)
        if target != active:
            self.set_active(target)
            logger.info(f"Switched to {target.upper()} for image-to-image generation")
        return target

    async def aclose(self) -> None:
        for entry in self._state.providers.values():
            await entry.adapter.aclose()
