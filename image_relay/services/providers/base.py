"""
Abstract base class for image generation providers.

All providers must implement the BaseImageProvider interface to ensure
consistent behavior across different image generation services.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from ...config.settings import ProviderConfig
from ...core.exceptions import (
    BadRequest,
    CredentialInvalid,
    CredentialMissing,
    GenerationTimeout,
    ImageRelayError,
    ProviderEmptyResponse,
    ProviderError,
    QuotaExceeded,
)
from ...core.models import GenerationRequest, GenerationResult
from ..capabilities import capabilities_for
from ..reference_images import InfluenceParams, ReferenceScaling, translate_influence


def classify_http_error(status_code: int, message: str, provider: str) -> ImageRelayError:
    """Map an HTTP failure status to the error taxonomy."""
    if status_code in (401, 403):
        return CredentialInvalid(f"Invalid {provider} API key: {message}", provider=provider)
    if status_code == 402:
        return QuotaExceeded(f"Billing limit reached: {message}", provider=provider)
    if status_code == 429:
        return QuotaExceeded(f"Rate limit exceeded: {message}", provider=provider)
    if status_code in (400, 422):
        return BadRequest(f"{provider} API error: {message}", provider=provider)
    return ProviderError(f"HTTP {status_code}: {message}", provider=provider)


class BaseImageProvider(ABC):
    """
    Abstract base class: Image generation provider unified interface.

    All image generation providers (OpenAI, Stability, etc.) must inherit
    from this class and implement generate_image. Instances hold only
    configuration (API key, endpoint, timeouts), never per-call results,
    so one instance can serve concurrent requests.
    """

    provider_name: str
    """Unique identifier for this provider (e.g., 'openai', 'replicate')"""

    provider_version: str = "1.0.0"
    """Provider implementation version"""

    reference_scaling: Optional[ReferenceScaling] = None
    """Image-to-image influence convention, None if reference images are dropped"""

    def __init__(
        self,
        api_key: str,
        config: Optional[ProviderConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize provider.

        Args:
            api_key: Provider credential
            config: Endpoint and timeout settings (defaults from environment)
            client: Optional pre-built HTTP client (tests inject a mock transport)

        Raises:
            CredentialMissing: If api_key is empty
        """
        if not api_key:
            raise CredentialMissing(
                f"{self.provider_name} API key is required", provider=self.provider_name
            )
        self.api_key = api_key
        self.config = config or ProviderConfig.for_service(self.provider_name)
        self.logger = logging.getLogger(f"{__name__}.{self.provider_name}")
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            timeout = httpx.Timeout(self.config.request_timeout, connect=10.0)
            self._client = httpx.AsyncClient(timeout=timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @abstractmethod
    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate one image for a request.

        Fields the provider does not understand are dropped, never rejected.

        Args:
            request: Provider-agnostic generation request

        Returns:
            GenerationResult tagged with this provider's name

        Raises:
            ImageRelayError: Classified failure (credential, quota, bad request,
                empty response, timeout or unclassified provider error)
        """

    def validate_config(self) -> bool:
        """Validate provider configuration."""
        return bool(self.api_key and self.config.base_url)

    def get_provider_info(self) -> Dict[str, Any]:
        """
        Get provider metadata and capabilities.

        Returns:
            Dict with name, version and capabilities
        """
        return {
            "name": self.provider_name,
            "version": self.provider_version,
            "capabilities": capabilities_for(self.provider_name).to_dict(),
        }

    def translate_reference(self, request: GenerationRequest) -> Optional[InfluenceParams]:
        """Native image-to-image parameters, or None if not applicable."""
        if not request.wants_image_to_image or self.reference_scaling is None:
            return None
        return translate_influence(
            request.strength, request.reference_type, self.reference_scaling
        )

    def _error_message(self, response: httpx.Response) -> str:
        """Extract the provider's error message from a failed response."""
        try:
            body = response.json()
        except ValueError:
            return response.text[:500] or response.reason_phrase
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str):
                return error
            if body.get("message"):
                return str(body["message"])
            if body.get("detail"):
                return str(body["detail"])
        return response.text[:500]

    def _json(self, response: httpx.Response) -> Dict[str, Any]:
        """
        Decode a successful response body as a JSON object.

        Raises:
            ProviderError: If the body is not JSON (e.g. a gateway HTML page)
            ProviderEmptyResponse: If the body is JSON but not an object
        """
        try:
            body = response.json()
        except ValueError as e:
            raise ProviderError(
                f"Invalid JSON response (HTTP {response.status_code}): {response.text[:200]}",
                provider=self.provider_name,
            ) from e
        if not isinstance(body, dict):
            raise ProviderEmptyResponse(
                f"Unexpected {type(body).__name__} response body", provider=self.provider_name
            )
        return body

    @staticmethod
    def _first_item(body: Dict[str, Any], key: str) -> Dict[str, Any]:
        """First object in a list field of a response, or an empty dict."""
        items = body.get(key)
        if isinstance(items, list) and items and isinstance(items[0], dict):
            return items[0]
        return {}

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        raise classify_http_error(
            response.status_code, self._error_message(response), self.provider_name
        )

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send one request, classifying transport failures only.

        Raises:
            GenerationTimeout: If the request timed out
            ProviderError: On transport failure
        """
        try:
            return await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise GenerationTimeout(
                f"Request to {self.provider_name} timed out", provider=self.provider_name
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(
                f"{self.provider_name} request failed: {e}", provider=self.provider_name
            ) from e

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send one request, classifying transport and HTTP failures.

        Raises:
            ImageRelayError: Classified transport failure or non-2xx response
        """
        response = await self._send(method, url, **kwargs)
        self._raise_for_status(response)
        return response

    async def _download(self, url: str) -> bytes:
        """Fetch a generated image from its result URL."""
        response = await self._request("GET", url, timeout=self.config.download_timeout)
        return response.content
