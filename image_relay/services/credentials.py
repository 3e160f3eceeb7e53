"""
Credential discovery for image generation providers.

Scans a configuration mapping (the process environment by default) for
provider credentials, first against the registry of known providers and
then heuristically by variable name and key format.
"""

import logging
import os
from typing import Dict, List, Mapping, Optional

from ..config.constants import (
    IMAGE_KEY_KEYWORDS,
    KEY_PATTERNS,
    KNOWN_PROVIDERS,
    MIN_KEY_LENGTH,
    PATTERN_MATCH_PRIORITY,
    PLACEHOLDER_MARKERS,
)
from ..config.settings import load_env
from ..core.models import Credential, DetectionMethod

logger = logging.getLogger(__name__)


def is_valid_key(value: Optional[str]) -> bool:
    """Reject empty values, placeholders and implausibly short keys."""
    if not value or not isinstance(value, str):
        return False
    stripped = value.strip()
    if not stripped:
        return False
    if any(marker in value for marker in PLACEHOLDER_MARKERS):
        return False
    return len(stripped) >= MIN_KEY_LENGTH


def looks_like_image_key(key_name: str) -> bool:
    """Whether a variable name suggests an image/AI credential."""
    lower_key = key_name.lower()
    return any(keyword in lower_key for keyword in IMAGE_KEY_KEYWORDS)


def identify_key_pattern(value: str) -> Dict[str, str]:
    """Best-guess service label for a key value."""
    for pattern, service, description in KEY_PATTERNS:
        if pattern.match(value):
            return {"service": service, "description": description}
    return {"service": "unknown", "description": "Unknown Format"}


class CredentialDetector:
    """
    Discover and rank provider credentials.

    The configuration source is injected so detection is deterministic in
    tests; use from_env() for the real process environment.
    """

    def __init__(
        self,
        environ: Mapping[str, str],
        known_providers: Optional[Mapping[str, Mapping]] = None,
    ):
        self.environ = environ
        self.known_providers = known_providers if known_providers is not None else KNOWN_PROVIDERS

    @classmethod
    def from_env(cls) -> "CredentialDetector":
        """Detector over os.environ after loading .env."""
        load_env()
        return cls(dict(os.environ))

    def detect(self) -> List[Credential]:
        """
        Detect credentials ranked by priority (lower first).

        Returns:
            Credentials sorted by priority, ties kept in discovery order.
            Empty list when nothing is found.
        """
        detected: List[Credential] = []
        claimed_values = set()

        for key_name, info in self.known_providers.items():
            value = self.environ.get(key_name)
            if not is_valid_key(value):
                continue
            detected.append(Credential(
                key_name=key_name,
                service=info["service"],
                priority=info["priority"],
                description=info["description"],
                cost=info["cost"],
                api_key=value.strip(),
                detection=DetectionMethod.KNOWN_REGISTRY,
            ))
            claimed_values.add(value.strip())

        for key_name, value in self.environ.items():
            if key_name in self.known_providers:
                continue
            if not looks_like_image_key(key_name) or not is_valid_key(value):
                continue
            if value.strip() in claimed_values:
                continue

            pattern = identify_key_pattern(value.strip())
            detected.append(Credential(
                key_name=key_name,
                service=pattern["service"],
                priority=PATTERN_MATCH_PRIORITY,
                description=f"Unknown Image Generation Service ({pattern['description']})",
                cost="Unknown",
                api_key=value.strip(),
                detection=DetectionMethod.PATTERN_MATCH,
            ))
            logger.debug(f"Pattern-matched credential {key_name} as {pattern['service']}")

        # sorted() is stable, so equal priorities keep discovery order
        ranked = sorted(detected, key=lambda credential: credential.priority)

        if ranked:
            logger.info(f"Detected {len(ranked)} image generation credential(s)")
            for credential in ranked:
                logger.info(
                    f"  {credential.description} "
                    f"(key: {credential.key_name} {credential.masked_key}, cost: {credential.cost})"
                )
        else:
            logger.warning("No image generation credentials detected")

        return ranked
