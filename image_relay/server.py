import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastmcp import FastMCP

from .config.settings import ServerConfig
from .services import initialize_services, shutdown_services
from .tools import register_generate_image_tool, register_list_providers_tool

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(server: FastMCP) -> AsyncIterator[dict]:
    try:
        yield {}
    finally:
        await shutdown_services()
        logger.info("Provider clients closed")


def create_server(config: Optional[ServerConfig] = None) -> FastMCP:
    """
    Build the MCP server with providers detected from the environment.

    Raises:
        NoProviderAvailable: If no provider could be initialized
    """
    config = config or ServerConfig.from_env()

    orchestrator = initialize_services(config)
    logger.info(f"✓ Active image provider: {orchestrator.active_service}")

    server = FastMCP(config.server_name, lifespan=_lifespan)
    register_generate_image_tool(server)
    register_list_providers_tool(server)
    return server


def main() -> None:
    config = ServerConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    server = create_server(config)
    if config.transport == "stdio":
        server.run()
    else:
        server.run(transport=config.transport, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
