"""Settings loaded from the environment (and .env)."""

from .settings import PollingConfig, ProviderConfig, ServerConfig, load_env

__all__ = ["PollingConfig", "ProviderConfig", "ServerConfig", "load_env"]
