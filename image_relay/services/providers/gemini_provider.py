"""
Google Gemini image generation provider.

Tries the multimodal Gemini model first. When it answers without an image
part, or rejects the request, generation falls back to a chain of Imagen
models served through the same generateContent endpoint.
"""

import random
from typing import Any, Dict, List, Optional, Sequence

from ...core.exceptions import (
    CredentialInvalid,
    ImageRelayError,
    ProviderEmptyResponse,
    QuotaExceeded,
)
from ...core.models import GenerationRequest, GenerationResult, ImageFormat
from .base import BaseImageProvider


def extract_inline_image(body: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """First inline image part of a generateContent response, if any."""
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return None
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    for part in parts if isinstance(parts, list) else []:
        if not isinstance(part, dict):
            continue
        inline = part.get("inlineData") or part.get("inline_data") or {}
        mime_type = inline.get("mimeType") or inline.get("mime_type") or ""
        if mime_type.startswith("image/") and inline.get("data"):
            return {"data": inline["data"], "mime_type": mime_type}
    return None


class GeminiProvider(BaseImageProvider):
    """
    Gemini / Imagen provider.

    Reference images are sent as inline data parts to the primary model;
    there is no strength parameter, so influence settings are dropped.
    """

    provider_name = "gemini"

    PRIMARY_MODEL = "gemini-2.0-flash-exp"
    IMAGEN_MODELS = ("imagen-3.0-generate-001", "imagegeneration@006")

    # Only these errors end the call; anything else advances the chain
    _FATAL_ERRORS = (CredentialInvalid, QuotaExceeded)

    def __init__(
        self,
        api_key: str,
        primary_model: str = PRIMARY_MODEL,
        imagen_models: Optional[Sequence[str]] = None,
        **kwargs,
    ):
        super().__init__(api_key, **kwargs)
        self.primary_model = primary_model
        self.imagen_models: List[str] = list(imagen_models or self.IMAGEN_MODELS)

    @property
    def headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    def _endpoint(self, model: str) -> str:
        return f"{self.config.base_url}/models/{model}:generateContent"

    def build_primary_payload(self, request: GenerationRequest) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = [{"text": request.prompt}]
        for image in request.reference_images:
            parts.append({"inline_data": {"mime_type": image.mime_type, "data": image.encoded}})
        return {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": 0.7,
                "topK": 40,
                "topP": 0.95,
                "responseModalities": ["TEXT", "IMAGE"],
            },
        }

    def build_imagen_payload(self, request: GenerationRequest, seed: int) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "temperature": 0.7,
                "seed": seed,
                "responseModalities": ["IMAGE"],
            },
        }

    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        self.logger.info(f"Generating image with Gemini {self.primary_model}")
        response = await self._send(
            "POST",
            self._endpoint(self.primary_model),
            headers=self.headers,
            json=self.build_primary_payload(request),
        )

        if response.status_code == 400:
            self.logger.info(
                f"{self.primary_model} rejected the request "
                f"({self._error_message(response)}), trying Imagen..."
            )
        else:
            self._raise_for_status(response)
            image = extract_inline_image(self._json(response))
            if image:
                return GenerationResult(
                    data=image["data"],
                    format=ImageFormat.BASE64,
                    service=self.provider_name,
                    model=self.primary_model,
                    mime_type=image["mime_type"],
                )
            self.logger.info(f"{self.primary_model} returned no image, trying Imagen...")

        return await self._generate_with_imagen(request)

    async def _generate_with_imagen(self, request: GenerationRequest) -> GenerationResult:
        errors: List[ImageRelayError] = []

        for model in self.imagen_models:
            seed = random.randint(0, 999999)
            try:
                response = await self._request(
                    "POST",
                    self._endpoint(model),
                    headers=self.headers,
                    json=self.build_imagen_payload(request, seed),
                )
                image = extract_inline_image(self._json(response))
            except self._FATAL_ERRORS:
                raise
            except ImageRelayError as e:
                errors.append(e)
                self.logger.info(f"Model {model} failed ({e.message}), trying next...")
                continue

            if image:
                return GenerationResult(
                    data=image["data"],
                    format=ImageFormat.BASE64,
                    service=self.provider_name,
                    model=f"gemini-{model}",
                    seed=seed,
                    mime_type=image["mime_type"],
                )
            self.logger.info(f"Model {model} returned no image, trying next...")

        # Every model failed the same way: keep that kind (e.g. BadRequest, timeout)
        if errors and len(errors) == len(self.imagen_models):
            last_error = errors[-1]
            if all(type(error) is type(last_error) for error in errors):
                raise type(last_error)(
                    f"All Gemini image models failed: {last_error.message}",
                    provider=self.provider_name,
                ) from last_error

        detail = f": {errors[-1].message}" if errors else ""
        raise ProviderEmptyResponse(
            f"All Gemini image models failed{detail}", provider=self.provider_name
        )
