"""Service registry for dependency injection."""

from typing import Optional, List

from ..config.settings import ServerConfig
from .credentials import CredentialDetector
from .orchestrator import Orchestrator
from .providers import ProviderFactory
from .reference_images import ReferenceImageTranslator

# Global service instances (initialized by the server)
_server_config: Optional[ServerConfig] = None
_orchestrator: Optional[Orchestrator] = None
_translator: Optional[ReferenceImageTranslator] = None


def initialize_services(
    server_config: ServerConfig,
    detector: Optional[CredentialDetector] = None,
) -> Orchestrator:
    """
    Detect credentials and build the orchestrator.

    Raises:
        NoProviderAvailable: If no provider could be initialized
    """
    global _server_config, _orchestrator, _translator

    detector = detector or CredentialDetector.from_env()
    _translator = ReferenceImageTranslator()
    _orchestrator = Orchestrator.initialize(detector.detect(), translator=_translator)
    _server_config = server_config
    return _orchestrator


def get_server_config() -> ServerConfig:
    """Get the server configuration."""
    if _server_config is None:
        raise RuntimeError("Services not initialized. Call initialize_services() first.")
    return _server_config


def get_orchestrator() -> Orchestrator:
    """Get the orchestrator instance."""
    if _orchestrator is None:
        raise RuntimeError("Services not initialized. Call initialize_services() first.")
    return _orchestrator


def get_translator() -> ReferenceImageTranslator:
    """Get the reference image translator instance."""
    if _translator is None:
        raise RuntimeError("Services not initialized. Call initialize_services() first.")
    return _translator


def list_providers() -> List[str]:
    """List all provider names with an implementation."""
    return ProviderFactory.list_providers()


def list_initialized_providers() -> List[str]:
    """List all initialized provider names, best first."""
    return [summary["service"] for summary in get_orchestrator().list_available()]


def reset_services() -> None:
    """Drop global instances (used by tests)."""
    global _server_config, _orchestrator, _translator
    _server_config = None
    _orchestrator = None
    _translator = None


async def shutdown_services() -> None:
    """
    Close provider HTTP clients.

    The registry stays in place; adapters reopen their clients lazily, so a
    server whose lifespan runs once per session keeps working.
    """
    if _orchestrator is not None:
        await _orchestrator.aclose()
