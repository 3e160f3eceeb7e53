"""
OpenAI DALL-E image generation provider.

Text-to-image only. The generations endpoint returns a result URL which is
downloaded as a second request; DALL-E 3 also returns its revised prompt.
"""

from typing import Any, Dict, Optional

from ...core.exceptions import BadRequest, ProviderEmptyResponse
from ...core.models import GenerationRequest, GenerationResult, ImageFormat
from .base import BaseImageProvider


class OpenAIProvider(BaseImageProvider):
    """
    OpenAI DALL-E provider.

    Features:
    - DALL-E 3 for its sizes, DALL-E 2 for the smaller square sizes
    - Quality (standard/hd) and style (natural/vivid) on DALL-E 3
    - Reference images are not supported and are dropped
    """

    provider_name = "openai"

    DALLE3_SIZES = ("1024x1024", "1024x1792", "1792x1024")
    DALLE2_SIZES = ("256x256", "512x512", "1024x1024")
    QUALITIES = ("standard", "hd")
    STYLES = ("natural", "vivid")

    def __init__(self, api_key: str, style: str = "natural", **kwargs):
        super().__init__(api_key, **kwargs)
        self.style = style

    def select_model(self, size: str) -> str:
        """DALL-E 3 where the size allows it, otherwise DALL-E 2."""
        return "dall-e-3" if size in self.DALLE3_SIZES else "dall-e-2"

    def validate_options(
        self,
        model: str,
        size: str,
        quality: Optional[str],
        style: Optional[str],
        n: int = 1,
    ) -> None:
        """
        Check options against the DALL-E model limits.

        Raises:
            BadRequest: If any option is invalid for the model
        """
        valid_sizes = self.DALLE3_SIZES if model == "dall-e-3" else self.DALLE2_SIZES
        if size not in valid_sizes:
            raise BadRequest(
                f"Invalid size for {model}. Valid sizes: {', '.join(valid_sizes)}",
                provider=self.provider_name,
            )

        if model == "dall-e-3":
            if quality and quality not in self.QUALITIES:
                raise BadRequest("Invalid quality. Valid: standard, hd", provider=self.provider_name)
            if style and style not in self.STYLES:
                raise BadRequest("Invalid style. Valid: natural, vivid", provider=self.provider_name)
            if n > 1:
                raise BadRequest(
                    "DALL-E 3 can only generate 1 image at a time", provider=self.provider_name
                )

        if n < 1 or n > 4:
            raise BadRequest("Number of images must be between 1 and 4", provider=self.provider_name)

    def build_payload(self, request: GenerationRequest) -> Dict[str, Any]:
        model = self.select_model(request.size)
        self.validate_options(model, request.size, request.quality, self.style)

        payload = {
            "model": model,
            "prompt": request.prompt,
            "n": 1,
            "size": request.size,
            "response_format": "url",
        }
        if model == "dall-e-3":
            payload["quality"] = request.quality
            payload["style"] = self.style
        return payload

    async def generate_image(self, request: GenerationRequest) -> GenerationResult:
        if request.wants_image_to_image:
            self.logger.info("OpenAI does not support image-to-image; reference images ignored")

        payload = self.build_payload(request)
        self.logger.info(f"Generating image with OpenAI {payload['model']} ({request.size})")

        response = await self._request(
            "POST",
            f"{self.config.base_url}/images/generations",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json=payload,
        )

        data = self._first_item(self._json(response), "data")
        image_url = data.get("url")
        if not image_url:
            raise ProviderEmptyResponse(
                "No image URL received from OpenAI", provider=self.provider_name
            )

        image_bytes = await self._download(image_url)
        if not image_bytes:
            raise ProviderEmptyResponse(
                "Downloaded OpenAI image is empty", provider=self.provider_name
            )

        return GenerationResult(
            data=image_bytes,
            format=ImageFormat.BYTES,
            service=self.provider_name,
            model=payload["model"],
            url=image_url,
            revised_prompt=data.get("revised_prompt"),
        )
