"""
Data model shared by the detector, adapters and orchestrator.
"""

import base64
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from ..config.constants import (
    DEFAULT_INFLUENCE_STRENGTH,
    MASKED_KEY_PREFIX,
    MAX_INFLUENCE_STRENGTH,
    MAX_PROMPT_LENGTH,
    MIN_INFLUENCE_STRENGTH,
)
from .exceptions import ValidationError


class DetectionMethod(str, Enum):
    """How a credential was discovered."""
    KNOWN_REGISTRY = "known_service"
    PATTERN_MATCH = "pattern_match"


class ReferenceType(str, Enum):
    """How reference images should influence the output."""
    STYLE = "style"                    # overall aesthetic
    COMPOSITION = "composition"        # layout / pose / structure
    TRANSFORMATION = "transformation"  # direct image-to-image
    COMBINED = "combined"              # effects merged upstream


class ImageFormat(str, Enum):
    """Encoding of GenerationResult.data."""
    BYTES = "bytes"
    BASE64 = "base64"


@dataclass(frozen=True)
class Credential:
    """A provider credential discovered at startup."""

    key_name: str
    service: str
    priority: int
    description: str
    cost: str
    api_key: str = field(repr=False)
    detection: DetectionMethod = DetectionMethod.KNOWN_REGISTRY

    @property
    def masked_key(self) -> str:
        return f"{self.api_key[:MASKED_KEY_PREFIX]}..."


@dataclass(frozen=True)
class ReferenceImage:
    """A validated reference image loaded from disk."""

    data: bytes = field(repr=False)
    encoded: str = field(repr=False)  # base64 of data
    mime_type: str
    source_path: str

    @property
    def filename(self) -> str:
        return os.path.basename(self.source_path)

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.encoded}"

    @property
    def size(self) -> int:
        return len(self.data)


def parse_size(size: str) -> Tuple[int, int]:
    """Parse 'WIDTHxHEIGHT' into a (width, height) tuple."""
    try:
        width, height = map(int, size.lower().split("x"))
    except (ValueError, AttributeError) as e:
        raise ValidationError(f"Invalid size '{size}', expected WIDTHxHEIGHT") from e
    if width <= 0 or height <= 0:
        raise ValidationError(f"Invalid size '{size}', dimensions must be positive")
    return width, height


@dataclass
class GenerationRequest:
    """Provider-agnostic image generation request."""

    prompt: str
    size: str = "1024x1024"
    quality: str = "standard"
    reference_images: List[ReferenceImage] = field(default_factory=list)
    strength: Optional[float] = None
    reference_type: Optional[ReferenceType] = None

    def __post_init__(self):
        if not self.prompt or not self.prompt.strip():
            raise ValidationError("Prompt is required")
        if len(self.prompt) > MAX_PROMPT_LENGTH:
            raise ValidationError(
                f"Prompt is too long ({len(self.prompt)} chars, max {MAX_PROMPT_LENGTH})"
            )

        width, height = parse_size(self.size)
        self.size = f"{width}x{height}"

        if self.strength is not None and not (
            MIN_INFLUENCE_STRENGTH <= self.strength <= MAX_INFLUENCE_STRENGTH
        ):
            raise ValidationError(
                f"Influence strength must be between {MIN_INFLUENCE_STRENGTH} "
                f"and {MAX_INFLUENCE_STRENGTH}, got {self.strength}"
            )

        if self.reference_type is not None and not isinstance(self.reference_type, ReferenceType):
            try:
                self.reference_type = ReferenceType(self.reference_type)
            except ValueError as e:
                valid = ", ".join(t.value for t in ReferenceType)
                raise ValidationError(
                    f"Invalid reference type '{self.reference_type}'. Valid: {valid}"
                ) from e

        self.reference_images = list(self.reference_images or [])

    @property
    def dimensions(self) -> Tuple[int, int]:
        return parse_size(self.size)

    @property
    def wants_image_to_image(self) -> bool:
        return bool(self.reference_images)

    @property
    def base_image(self) -> Optional[ReferenceImage]:
        """First reference image; single-base-image providers use only this one."""
        return self.reference_images[0] if self.reference_images else None

    @property
    def effective_strength(self) -> float:
        return self.strength if self.strength is not None else DEFAULT_INFLUENCE_STRENGTH

    @property
    def effective_reference_type(self) -> ReferenceType:
        return self.reference_type or ReferenceType.STYLE


@dataclass
class GenerationResult:
    """Image returned by a provider."""

    data: Union[bytes, str] = field(repr=False)
    format: ImageFormat
    service: str
    model: str
    url: Optional[str] = None
    revised_prompt: Optional[str] = None
    seed: Optional[int] = None
    mime_type: str = "image/png"

    def image_bytes(self) -> bytes:
        """Return the payload as raw bytes regardless of format."""
        if self.format == ImageFormat.BASE64:
            return base64.b64decode(self.data)
        return self.data

    def to_metadata(self) -> dict:
        return {
            "service": self.service,
            "model": self.model,
            "format": self.format.value,
            "mime_type": self.mime_type,
            "url": self.url,
            "revised_prompt": self.revised_prompt,
            "seed": self.seed,
            "size_bytes": len(self.image_bytes()),
        }
