from .generate_image import register_generate_image_tool
from .list_providers import register_list_providers_tool

__all__ = [
    "register_generate_image_tool",
    "register_list_providers_tool",
]
