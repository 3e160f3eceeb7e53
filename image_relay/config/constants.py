"""
Static tables shared by credential detection, capabilities and validation.
"""

import re

# Known image generation services, keyed by environment variable name.
# Lower priority number = preferred provider.
KNOWN_PROVIDERS = {
    "OPENAI_API_KEY": {
        "service": "openai",
        "priority": 1,
        "description": "OpenAI DALL-E (Premium Image Generation)",
        "cost": "$0.02-0.08 per image",
    },
    "STABILITY_API_KEY": {
        "service": "stability",
        "priority": 2,
        "description": "Stability AI (Stable Diffusion)",
        "cost": "$0.01 per image",
    },
    "REPLICATE_API_TOKEN": {
        "service": "replicate",
        "priority": 3,
        "description": "Replicate (Multiple Models + Free Credits)",
        "cost": "Free $5 credits, then paid",
    },
    "HUGGINGFACE_API_KEY": {
        "service": "huggingface",
        "priority": 4,
        "description": "Hugging Face (Free Tier Available)",
        "cost": "Free (rate limited)",
    },
    "GEMINI_API_KEY": {
        "service": "gemini",
        "priority": 5,
        "description": "Google Gemini (Imagen Models)",
        "cost": "$0.03-0.04 per image",
    },
}

# Priority assigned to keys found by the keyword heuristic
PATTERN_MATCH_PRIORITY = 50

# Substrings (case-insensitive) that make an env var name a candidate key
IMAGE_KEY_KEYWORDS = (
    "api_key", "api_token", "token", "key",
    "openai", "dall_e", "dalle", "stability", "stable_diffusion",
    "replicate", "huggingface", "midjourney", "gemini", "imagen",
)

# Ordered key-format patterns: first match wins
KEY_PATTERNS = (
    (re.compile(r"^sk-[a-zA-Z0-9]+$"), "openai_like", "OpenAI-style Key"),
    (re.compile(r"^r8_[a-zA-Z0-9]+$"), "replicate", "Replicate Token"),
    (re.compile(r"^hf_[a-zA-Z0-9]+$"), "huggingface", "Hugging Face Token"),
    (re.compile(r"^AIza[a-zA-Z0-9_-]+$"), "google", "Google AI Key"),
    (re.compile(r"^[a-zA-Z0-9]{32,}$"), "generic", "Generic AI Key"),
)

PLACEHOLDER_MARKERS = ("your_", "here", "example")
MIN_KEY_LENGTH = 10
MASKED_KEY_PREFIX = 4  # characters of a key shown in logs

# Generation request limits
MAX_PROMPT_LENGTH = 4000
MIN_INFLUENCE_STRENGTH = 0.1
MAX_INFLUENCE_STRENGTH = 1.0
DEFAULT_INFLUENCE_STRENGTH = 0.7

# Reference images
SUPPORTED_IMAGE_EXTENSIONS = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
}
MAX_REFERENCE_IMAGE_BYTES = 50 * 1024 * 1024  # 50MB

# Nominal per-provider upload targets (reported only, images are not resized)
OPTIMIZATION_SETTINGS = {
    "stability": {"max_size": 1024, "format": "png"},
    "replicate": {"max_size": 1024, "format": "jpg"},
    "huggingface": {"max_size": 512, "format": "jpg"},
    "gemini": {"max_size": 1024, "format": "png"},
}

# HTTP status codes worth a model-chain advance (loading / rejected)
MODEL_UNAVAILABLE_STATUS = 503
MODEL_REJECTED_STATUS = 400
