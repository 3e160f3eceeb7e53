import logging
from typing import Annotated, List, Literal, Optional

from fastmcp import FastMCP
from fastmcp.tools.tool import ToolResult
from fastmcp.utilities.types import Image as MCPImage
from mcp.types import TextContent
from pydantic import Field

from ..config.constants import MAX_PROMPT_LENGTH
from ..core.exceptions import ImageRelayError, UnsupportedCapability
from ..core.models import GenerationRequest, GenerationResult
from .. import services


def _image_format(result: GenerationResult) -> str:
    subtype = result.mime_type.split("/")[-1].split(";")[0].strip()
    return subtype or "png"


def register_generate_image_tool(server: FastMCP):
    """Register the generate_image tool with the FastMCP server."""

    @server.tool(
        annotations={
            "title": "Generate images (multi-provider with automatic fallback)",
            "readOnlyHint": True,
            "openWorldHint": True,
        }
    )
    async def generate_image(
        prompt: Annotated[
            str,
            Field(
                description="Clear, detailed image prompt.",
                min_length=1,
                max_length=MAX_PROMPT_LENGTH,
            ),
        ],
        size: Annotated[
            Optional[str],
            Field(description="Output size as WIDTHxHEIGHT. Default: DEFAULT_IMAGE_SIZE (1024x1024)."),
        ] = None,
        quality: Annotated[
            Optional[str],
            Field(description="Quality level, e.g. 'standard' or 'hd' (OpenAI only)."),
        ] = None,
        reference_image_paths: Annotated[
            Optional[List[str]],
            Field(description="Local reference image paths for image-to-image generation."),
        ] = None,
        reference_type: Annotated[
            Literal["style", "composition", "transformation", "combined"],
            Field(description="How reference images influence the output."),
        ] = "style",
        strength: Annotated[
            float,
            Field(description="Reference influence strength.", ge=0.1, le=1.0),
        ] = 0.7,
        provider: Annotated[
            Optional[str],
            Field(
                description="Provider to use ('openai', 'stability', 'replicate', 'huggingface', "
                "'gemini'), or 'auto' for the active (highest-priority by default) "
                "provider. Applies to this call only."
            ),
        ] = "auto",
        auto_switch: Annotated[
            bool,
            Field(
                description="Use an image-to-image capable provider for this call when the chosen "
                "one cannot use reference images."
            ),
        ] = True,
    ) -> ToolResult:
        """
        Generate an image with the best available provider.

        Providers are ranked from the API keys present in the environment.
        If the active provider fails, the next-ranked one is tried once.
        Reference images are honoured only by providers with good or
        excellent image-to-image support.
        """
        logger = logging.getLogger(__name__)

        orchestrator = services.get_orchestrator()
        translator = services.get_translator()
        server_config = services.get_server_config()

        try:
            service = orchestrator.resolve_service(
                provider if provider and provider != "auto" else None
            )

            references = []
            if reference_image_paths:
                references = translator.prepare(reference_image_paths, reference_type, strength)
                if not references:
                    logger.warning("No reference images could be processed, using text-only generation")

            if references and not translator.is_compatible(service, True):
                if not auto_switch:
                    raise UnsupportedCapability(
                        f"{service} does not support image-to-image generation",
                        provider=service,
                    )
                service = orchestrator.image_to_image_service(service)
                logger.info(f"Using {service.upper()} for image-to-image generation")

            request = GenerationRequest(
                prompt=prompt,
                size=size or server_config.default_size,
                quality=quality or server_config.default_quality,
                reference_images=references,
                strength=strength if references else None,
                reference_type=reference_type if references else None,
            )
            orchestrator.validate_request(request, service=service)

            logger.info(
                f"Generate image request: prompt='{prompt[:50]}...', size={request.size}, "
                f"references={len(references)}, provider={service}"
            )
            result = await orchestrator.generate_image(request, service=service)

        except ImageRelayError as e:
            logger.error(f"Image generation failed ({e.kind.value}): {e}")
            raise

        references_used = bool(references) and translator.is_compatible(result.service, True)

        metadata = result.to_metadata()
        summary_lines = [
            f"✅ Generated image with {result.service.upper()} ({result.model}).",
            f"📐 Size: {request.size} • ✨ Quality: {request.quality}",
        ]
        if references_used:
            summary_lines.append(
                f"🖼️ Conditioned on {len(references)} reference image(s) "
                f"({request.reference_type.value}, strength {strength})"
            )
        elif references:
            summary_lines.append(f"⚠️ {result.service.upper()} ignored the reference image(s)")
        if result.revised_prompt:
            summary_lines.append(f"📝 Revised prompt: {result.revised_prompt}")
        if result.url:
            summary_lines.append(f"🌐 Original URL: {result.url}")

        image = MCPImage(data=result.image_bytes(), format=_image_format(result))
        content = [TextContent(type="text", text="\n".join(summary_lines)), image.to_image_content()]

        structured_content = {
            **metadata,
            "size": request.size,
            "quality": request.quality,
            "references_used": references_used,
            "reference_image_paths": (
                [ref.source_path for ref in references] if references_used else []
            ),
            "reference_type": request.reference_type.value if references_used else None,
            "strength": request.strength if references_used else None,
            "requested_provider": service,
            "active_provider": orchestrator.active_service,
        }

        logger.info(f"Successfully generated image with {result.service}")
        return ToolResult(content=content, structured_content=structured_content)
