"""
Reference image preparation and influence translation.

Loads validated reference images and maps the normalized influence strength
and reference type onto provider-native image-to-image parameters.
"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..config.constants import (
    DEFAULT_INFLUENCE_STRENGTH,
    MAX_INFLUENCE_STRENGTH,
    MAX_REFERENCE_IMAGE_BYTES,
    MIN_INFLUENCE_STRENGTH,
    OPTIMIZATION_SETTINGS,
    SUPPORTED_IMAGE_EXTENSIONS,
)
from ..core.exceptions import ValidationError
from ..core.models import ReferenceImage, ReferenceType
from .capabilities import ImageToImageTier, compatibility_tiers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceScaling:
    """A provider's convention for image-to-image influence parameters."""

    inverse: bool = False  # True: native value is "image strength" (1 = keep source)
    style_factor: float = 0.5
    composition_factor: float = 0.75
    base_guidance: float = 7.0
    guidance_ceiling: float = 15.0


@dataclass(frozen=True)
class InfluenceParams:
    """Translated influence for one request."""

    influence: float        # effective reference influence, higher = closer to reference
    native_strength: float  # value sent to the provider
    guidance: float         # CFG / guidance scale


def _clamp_strength(strength: float) -> float:
    return min(max(strength, MIN_INFLUENCE_STRENGTH), MAX_INFLUENCE_STRENGTH)


def effective_influence(
    strength: float,
    reference_type: Union[ReferenceType, str],
    scaling: ReferenceScaling = ReferenceScaling(),
) -> float:
    """Scale a normalized strength by reference type."""
    strength = _clamp_strength(strength)
    reference_type = ReferenceType(reference_type)

    if reference_type == ReferenceType.STYLE:
        return strength * scaling.style_factor
    if reference_type == ReferenceType.COMPOSITION:
        return strength * scaling.composition_factor
    # transformation applies directly; combined was merged upstream
    return strength


def translate_influence(
    strength: Optional[float],
    reference_type: Optional[Union[ReferenceType, str]],
    scaling: ReferenceScaling = ReferenceScaling(),
) -> InfluenceParams:
    """
    Translate normalized strength and reference type to native parameters.

    Style weakens direct image influence and boosts guidance to compensate,
    capped at the provider's ceiling.
    """
    if strength is None:
        strength = DEFAULT_INFLUENCE_STRENGTH
    reference_type = ReferenceType(reference_type or ReferenceType.STYLE)

    influence = effective_influence(strength, reference_type, scaling)
    native = 1.0 - influence if scaling.inverse else influence

    guidance = scaling.base_guidance
    if reference_type == ReferenceType.STYLE:
        boost = 1.0 + (1.0 - scaling.style_factor)
        guidance = min(scaling.base_guidance * boost, scaling.guidance_ceiling)

    return InfluenceParams(
        influence=round(influence, 4),
        native_strength=round(native, 4),
        guidance=round(guidance, 4),
    )


def encode_image(data: bytes) -> str:
    """Base64-encode image bytes."""
    return base64.b64encode(data).decode("utf-8")


def decode_image(encoded: str) -> bytes:
    """
    Decode base64 or a data URL back to bytes.

    Raises:
        ValidationError: If the payload is not valid base64
    """
    if encoded.startswith("data:"):
        _, _, encoded = encoded.partition(",")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 image payload: {e}") from e


def mime_type_for(path: str) -> str:
    extension = os.path.splitext(path)[1].lower()
    return SUPPORTED_IMAGE_EXTENSIONS.get(extension, "image/jpeg")


def validate_image_file(path: str) -> List[str]:
    """Return a list of problems with a candidate reference image (empty if valid)."""
    issues = []

    if not os.path.isfile(path):
        issues.append("File does not exist")
        return issues

    extension = os.path.splitext(path)[1].lower()
    if extension not in SUPPORTED_IMAGE_EXTENSIONS:
        issues.append(
            f"Unsupported format {extension or '(none)'}. "
            f"Supported: {', '.join(SUPPORTED_IMAGE_EXTENSIONS)}"
        )

    size = os.path.getsize(path)
    if size > MAX_REFERENCE_IMAGE_BYTES:
        issues.append(
            f"File too large ({size} bytes). Maximum: {MAX_REFERENCE_IMAGE_BYTES} bytes"
        )
    if size == 0:
        issues.append("File is empty")

    return issues


def load_reference_image(path: str) -> ReferenceImage:
    with open(path, "rb") as f:
        data = f.read()
    return ReferenceImage(
        data=data,
        encoded=encode_image(data),
        mime_type=mime_type_for(path),
        source_path=path,
    )


def optimize_for_provider(image: ReferenceImage, service: str) -> Dict:
    """
    Report the provider's nominal upload settings for a reference image.

    Images are passed through unchanged; resizing happens provider-side.
    """
    settings = OPTIMIZATION_SETTINGS.get(service, OPTIMIZATION_SETTINGS["stability"])
    return {
        "data": image.data,
        "optimized": False,
        "original_size": image.size,
        "final_size": image.size,
        "settings": settings,
    }


TiersLookup = Callable[[bool], Union[Sequence[str], Mapping[ImageToImageTier, Sequence[str]]]]


class ReferenceImageTranslator:
    """Decide provider compatibility for reference images and prepare them."""

    def __init__(self, tiers_lookup: TiersLookup = compatibility_tiers):
        self.tiers_lookup = tiers_lookup

    def is_compatible(self, active_service: str, wants_image_to_image: bool) -> bool:
        """Excellent and good tiers are compatible; limited and none are not."""
        tiers = self.tiers_lookup(wants_image_to_image)
        if not wants_image_to_image:
            return True
        return (
            active_service in tiers.get(ImageToImageTier.EXCELLENT, ())
            or active_service in tiers.get(ImageToImageTier.GOOD, ())
        )

    def recommend_alternate(
        self,
        tiers: Optional[Mapping[ImageToImageTier, Sequence[str]]] = None,
        available: Optional[Iterable[str]] = None,
        exclude: Optional[str] = None,
    ) -> Optional[str]:
        """
        Best alternate for image-to-image: first excellent, else first good.

        Args:
            tiers: Tier partition (defaults to the capability table)
            available: Restrict candidates to these services (e.g. constructed adapters)
            exclude: Service to skip (usually the active one)
        """
        if tiers is None:
            tiers = self.tiers_lookup(True)
        allowed = set(available) if available is not None else None

        for tier in (ImageToImageTier.EXCELLENT, ImageToImageTier.GOOD):
            for service in tiers.get(tier, ()):
                if service == exclude:
                    continue
                if allowed is not None and service not in allowed:
                    continue
                return service
        return None

    def prepare(
        self,
        paths: Iterable[str],
        reference_type: Union[ReferenceType, str] = ReferenceType.STYLE,
        strength: float = DEFAULT_INFLUENCE_STRENGTH,
    ) -> List[ReferenceImage]:
        """
        Validate and load reference images.

        Invalid files are skipped with a warning; only a bad reference type
        or out-of-range strength raises.

        Raises:
            ValidationError: If reference_type or strength is invalid
        """
        try:
            reference_type = ReferenceType(reference_type)
        except ValueError as e:
            raise ValidationError(f"Invalid reference type '{reference_type}'") from e
        if not MIN_INFLUENCE_STRENGTH <= strength <= MAX_INFLUENCE_STRENGTH:
            raise ValidationError(
                f"Influence strength must be between {MIN_INFLUENCE_STRENGTH} "
                f"and {MAX_INFLUENCE_STRENGTH}, got {strength}"
            )

        prepared = []
        for path in paths:
            issues = validate_image_file(path)
            if issues:
                logger.warning(f"Skipping {path}: {', '.join(issues)}")
                continue
            try:
                prepared.append(load_reference_image(path))
            except OSError as e:
                logger.warning(f"Skipping {path}: {e}")
                continue
            logger.debug(f"Loaded reference image: {path}")

        logger.info(
            f"Prepared {len(prepared)} reference image(s) "
            f"(type={reference_type.value}, strength={strength})"
        )
        return prepared
