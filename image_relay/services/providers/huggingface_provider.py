"""
Hugging Face Inference API image generation provider.

Returns raw image bytes. Walks an ordered chain of Stable Diffusion models,
advancing when a model is loading (503) or rejects the request (400).
"""

from typing import Any, Dict, List, Optional, Sequence

from ...config.constants import MODEL_REJECTED_STATUS, MODEL_UNAVAILABLE_STATUS
from ...core.exceptions import BadRequest, ProviderEmptyResponse, ProviderError
from ...core.models import GenerationRequest, GenerationResult, ImageFormat
from ..reference_images import InfluenceParams, ReferenceScaling
from .base import BaseImageProvider


class HuggingFaceProvider(BaseImageProvider):
    """
    Hugging Face provider with per-call model fallback.

    Image-to-image sends the first reference image as the input with a
    direct strength parameter.
    """

    provider_name = "huggingface"

    DEFAULT_MODELS = (
        "runwayml/stable-diffusion-v1-5",
        "CompVis/stable-diffusion-v1-4",
        "stabilityai/stable-diffusion-2-1",
    )
    DEFAULT_STEPS = 50
    DEFAULT_GUIDANCE = 7.5

    reference_scaling = ReferenceScaling(
        inverse=False,
        style_factor=0.6,
        composition_factor=0.8,
        base_guidance=DEFAULT_GUIDANCE,
        guidance_ceiling=12.0,
    )

    def __init__(self, api_key: str, models: Optional[Sequence[str]] = None, **kwargs):
        super().__init__(api_key, **kwargs)
        self.models: List[str] = list(models or self.DEFAULT_MODELS)

    def build_payload(
        self, request: GenerationRequest, params: Optional[InfluenceParams]
    ) -> Dict[str, Any]:
        width, height = request.dimensions
        if params is not None:
            return {
                "inputs": request.base_image.encoded,
                "parameters": {
                    "prompt": request.prompt,
                    "strength": params.native_strength,
                    "guidance_scale": params.guidance,
                    "num_inference_steps": self.DEFAULT_STEPS,
                },
            }
        return {
            "inputs": request.prompt,
            "parameters": {
                "width": width,
                "height": height,
                "num_inference_steps": self.DEFAULT_STEPS,
                "guidance_scale": self.DEFAULT_GUIDANCE,
            },
        }

    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        params = self.translate_reference(request)
        payload = self.build_payload(request, params)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        last_status: Optional[int] = None
        last_message = ""

        for model in self.models:
            response = await self._send(
                "POST", f"{self.config.base_url}/{model}", headers=headers, json=payload
            )

            if response.status_code == MODEL_UNAVAILABLE_STATUS:
                last_status, last_message = response.status_code, self._error_message(response)
                self.logger.info(f"Model {model} is loading, trying next model...")
                continue
            if response.status_code == MODEL_REJECTED_STATUS:
                last_status, last_message = response.status_code, self._error_message(response)
                self.logger.info(f"Model {model} rejected request, trying next model...")
                continue

            # Anything else (auth, quota, server errors) ends the chain
            self._raise_for_status(response)

            if response.content:
                return GenerationResult(
                    data=response.content,
                    format=ImageFormat.BYTES,
                    service=self.provider_name,
                    model=model,
                    mime_type=response.headers.get("content-type", "image/jpeg"),
                )

            last_status, last_message = None, ""
            self.logger.info(f"Model {model} returned no image, trying next model...")

        if last_status == MODEL_UNAVAILABLE_STATUS:
            raise ProviderError(
                "All Hugging Face models are currently loading. "
                f"Please wait a few minutes and try again. ({last_message})",
                provider=self.provider_name,
            )
        if last_status == MODEL_REJECTED_STATUS:
            raise BadRequest(
                f"All Hugging Face models rejected the request: {last_message}",
                provider=self.provider_name,
            )
        raise ProviderEmptyResponse(
            "No Hugging Face model returned an image", provider=self.provider_name
        )
