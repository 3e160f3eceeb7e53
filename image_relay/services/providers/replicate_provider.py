"""
Replicate image generation provider.

Creates a prediction, polls it until it reaches a terminal state, then
downloads the output image from the returned URL.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from ...config.settings import PollingConfig
from ...core.exceptions import GenerationTimeout, ProviderEmptyResponse, ProviderError
from ...core.models import GenerationRequest, GenerationResult, ImageFormat
from ..reference_images import ReferenceScaling
from .base import BaseImageProvider
from .polling import JobState, poll_job


class ReplicateProvider(BaseImageProvider):
    """
    Replicate provider (SDXL by default).

    Image-to-image passes the first reference image as a data URL with a
    direct prompt_strength (higher = more reference influence).
    """

    provider_name = "replicate"

    DEFAULT_MODEL = (
        "stability-ai/sdxl:"
        "39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b"
    )
    DEFAULT_STEPS = 50
    DEFAULT_GUIDANCE = 7.5

    reference_scaling = ReferenceScaling(
        inverse=False,
        style_factor=0.5,
        composition_factor=0.75,
        base_guidance=DEFAULT_GUIDANCE,
        guidance_ceiling=15.0,
    )

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        polling: Optional[PollingConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        **kwargs,
    ):
        super().__init__(api_key, **kwargs)
        self.model = model
        self.polling = polling or PollingConfig()
        self._sleep = sleep

    @property
    def version(self) -> str:
        return self.model.split(":", 1)[1] if ":" in self.model else self.model

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(self, request: GenerationRequest) -> Dict[str, Any]:
        width, height = request.dimensions
        model_input = {
            "prompt": request.prompt,
            "width": width,
            "height": height,
            "num_inference_steps": self.DEFAULT_STEPS,
            "guidance_scale": self.DEFAULT_GUIDANCE,
            "num_outputs": 1,
        }

        params = self.translate_reference(request)
        if params is not None:
            model_input["image"] = request.base_image.data_url
            model_input["prompt_strength"] = params.native_strength
            model_input["guidance_scale"] = params.guidance

        return {"version": self.version, "input": model_input}

    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        payload = self.build_payload(request)
        self.logger.info(
            f"Creating Replicate prediction ({request.size}, "
            f"image_to_image={'image' in payload['input']})"
        )

        response = await self._request(
            "POST", f"{self.config.base_url}/predictions", headers=self.headers, json=payload
        )
        prediction = self._json(response)
        prediction_id = prediction.get("id")
        if not prediction_id:
            raise ProviderError("Replicate did not return a prediction id", provider=self.provider_name)

        async def fetch_status() -> Dict[str, Any]:
            status_response = await self._request(
                "GET",
                f"{self.config.base_url}/predictions/{prediction_id}",
                headers={"Authorization": f"Token {self.api_key}"},
            )
            return self._json(status_response)

        outcome = await poll_job(
            prediction,
            fetch_status,
            policy=self.polling,
            sleep=self._sleep,
            label=f"Replicate prediction {prediction_id}",
        )

        if outcome.state == JobState.FAILED:
            error = outcome.job.get("error") or "Unknown error"
            raise ProviderError(f"Generation failed: {error}", provider=self.provider_name)

        if outcome.state == JobState.TIMED_OUT:
            budget = int(self.polling.interval * self.polling.max_attempts)
            raise GenerationTimeout(
                f"Generation timed out after {budget}s ({outcome.attempts} polls)",
                provider=self.provider_name,
            )

        output = outcome.job.get("output")
        image_url = output[0] if isinstance(output, list) and output else output
        if not image_url:
            raise ProviderEmptyResponse(
                "Replicate prediction succeeded without output", provider=self.provider_name
            )

        image_bytes = await self._download(image_url)
        if not image_bytes:
            raise ProviderEmptyResponse("Downloaded Replicate image is empty", provider=self.provider_name)

        return GenerationResult(
            data=image_bytes,
            format=ImageFormat.BYTES,
            service=self.provider_name,
            model=self.model,
            url=image_url,
        )
