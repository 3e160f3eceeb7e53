"""
Static capability table for image generation providers.

Describes, per provider, supported models, output sizes, quality levels,
maximum batch size and how well image-to-image generation is supported.
Consumed by the orchestrator for pre-flight checks and by callers to
render choices.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Optional, Tuple, Union

from ..core.exceptions import UnsupportedCapability
from ..core.models import GenerationRequest


class ImageToImageTier(str, Enum):
    """Image-to-image support tier."""
    EXCELLENT = "excellent"
    GOOD = "good"
    LIMITED = "limited"
    NONE = "none"

    @property
    def compatible(self) -> bool:
        return self in (ImageToImageTier.EXCELLENT, ImageToImageTier.GOOD)


@dataclass(frozen=True)
class ProviderCapability:
    """What one provider supports."""

    service: str
    models: Tuple[str, ...] = ()
    sizes: FrozenSet[Tuple[int, int]] = field(default_factory=frozenset)
    quality: Tuple[str, ...] = ()
    max_images: int = 1
    image_to_image: ImageToImageTier = ImageToImageTier.NONE
    known: bool = True

    def supports_size(self, size: Union[str, Tuple[int, int]]) -> bool:
        if not self.known:
            return True
        if isinstance(size, str):
            width, height = map(int, size.lower().split("x"))
            size = (width, height)
        return size in self.sizes

    def supports_quality(self, quality: str) -> bool:
        return not self.known or quality in self.quality

    def size_labels(self) -> list:
        return [f"{w}x{h}" for w, h in sorted(self.sizes)]

    def to_dict(self) -> Dict:
        if not self.known:
            return {"service": self.service, "note": "Unknown capabilities"}
        return {
            "service": self.service,
            "models": list(self.models),
            "sizes": self.size_labels(),
            "quality": list(self.quality),
            "max_images": self.max_images,
            "image_to_image": self.image_to_image.value,
        }


def _sizes(*labels: str) -> FrozenSet[Tuple[int, int]]:
    return frozenset(tuple(map(int, label.split("x"))) for label in labels)


_CAPABILITIES = MappingProxyType({
    "openai": ProviderCapability(
        service="openai",
        models=("dall-e-3", "dall-e-2"),
        sizes=_sizes("256x256", "512x512", "1024x1024", "1024x1792", "1792x1024"),
        quality=("standard", "hd"),
        max_images=4,
        image_to_image=ImageToImageTier.NONE,
    ),
    "stability": ProviderCapability(
        service="stability",
        models=("stable-diffusion-xl-1024-v1-0", "stable-diffusion-v1-6"),
        sizes=_sizes("512x512", "1024x1024"),
        quality=("standard",),
        max_images=10,
        image_to_image=ImageToImageTier.EXCELLENT,
    ),
    "replicate": ProviderCapability(
        service="replicate",
        models=("stability-ai/sdxl", "stability-ai/stable-diffusion"),
        sizes=_sizes("512x512", "1024x1024"),
        quality=("standard",),
        max_images=4,
        image_to_image=ImageToImageTier.EXCELLENT,
    ),
    "huggingface": ProviderCapability(
        service="huggingface",
        models=(
            "runwayml/stable-diffusion-v1-5",
            "CompVis/stable-diffusion-v1-4",
            "stabilityai/stable-diffusion-2-1",
        ),
        sizes=_sizes("512x512", "1024x1024"),
        quality=("standard",),
        max_images=1,
        image_to_image=ImageToImageTier.GOOD,
    ),
    "gemini": ProviderCapability(
        service="gemini",
        models=("gemini-2.0-flash-exp", "imagen-3.0-generate-001", "imagegeneration@006"),
        sizes=_sizes("512x512", "1024x1024", "1024x1792", "1792x1024"),
        quality=("standard",),
        max_images=4,
        image_to_image=ImageToImageTier.LIMITED,
    ),
})

# Ordered from best to worst image-to-image support
_TIER_ORDER = (
    ImageToImageTier.EXCELLENT,
    ImageToImageTier.GOOD,
    ImageToImageTier.LIMITED,
    ImageToImageTier.NONE,
)


def known_services() -> Tuple[str, ...]:
    """Services present in the capability table, in table order."""
    return tuple(_CAPABILITIES.keys())


def capabilities_for(service: str) -> ProviderCapability:
    """
    Look up a provider's capabilities.

    Unknown services get a capability flagged known=False instead of an
    error, so newly detected credentials can still be used best-effort.
    """
    capability = _CAPABILITIES.get(service)
    if capability is None:
        return ProviderCapability(service=service, known=False)
    return capability


def compatibility_tiers(
    needs_image_to_image: bool,
) -> Union[Tuple[str, ...], Dict[ImageToImageTier, Tuple[str, ...]]]:
    """
    Providers usable for a request.

    Args:
        needs_image_to_image: Whether the request carries reference images

    Returns:
        Every known provider for text-only requests, otherwise a mapping of
        each tier to the providers in it.
    """
    if not needs_image_to_image:
        return known_services()

    return {
        tier: tuple(
            name for name, capability in _CAPABILITIES.items()
            if capability.image_to_image == tier
        )
        for tier in _TIER_ORDER
    }


def ensure_supported(request: GenerationRequest, capability: Optional[ProviderCapability]) -> None:
    """
    Pre-flight check of a request against a provider.

    Raises:
        UnsupportedCapability: If size, quality or image-to-image is unsupported
    """
    if capability is None or not capability.known:
        return

    if not capability.supports_size(request.dimensions):
        raise UnsupportedCapability(
            f"Size {request.size} is not supported. "
            f"Supported sizes: {', '.join(capability.size_labels())}",
            provider=capability.service,
        )

    if not capability.supports_quality(request.quality):
        raise UnsupportedCapability(
            f"Quality '{request.quality}' is not supported. "
            f"Supported: {', '.join(capability.quality)}",
            provider=capability.service,
        )

    if request.wants_image_to_image and not capability.image_to_image.compatible:
        raise UnsupportedCapability(
            f"Image-to-image support is '{capability.image_to_image.value}'",
            provider=capability.service,
        )
