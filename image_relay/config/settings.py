from dataclasses import dataclass
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

_ENV_LOADED = False


def load_env() -> None:
    """Load .env once (explicit path first, then the project root)."""
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    dotenv_path = os.getenv("IMAGE_RELAY_ENV_PATH") or os.getenv("DOTENV_PATH")
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path)
    else:
        load_dotenv()
        repo_env = Path(__file__).resolve().parents[2] / ".env"
        if repo_env.exists():
            load_dotenv(dotenv_path=repo_env)

    _ENV_LOADED = True


@dataclass
class ServerConfig:
    """Server configuration settings."""

    server_name: str = "image-relay"
    transport: str = "stdio"  # stdio or http
    host: str = "127.0.0.1"
    port: int = 9000
    default_size: str = "1024x1024"
    default_quality: str = "standard"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        load_env()

        return cls(
            server_name=os.getenv("IMAGE_RELAY_SERVER_NAME", "image-relay"),
            transport=os.getenv("FASTMCP_TRANSPORT", "stdio"),
            host=os.getenv("FASTMCP_HOST", "127.0.0.1"),
            port=int(os.getenv("FASTMCP_PORT", "9000")),
            default_size=os.getenv("DEFAULT_IMAGE_SIZE", "1024x1024"),
            default_quality=os.getenv("DEFAULT_IMAGE_QUALITY", "standard"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@dataclass
class ProviderConfig:
    """Per-provider network settings."""

    base_url: str
    request_timeout: float = 120.0  # seconds
    download_timeout: float = 30.0

    DEFAULT_BASE_URLS = {
        "openai": "https://api.openai.com/v1",
        "stability": "https://api.stability.ai/v1",
        "replicate": "https://api.replicate.com/v1",
        "huggingface": "https://api-inference.huggingface.co/models",
        "gemini": "https://generativelanguage.googleapis.com/v1beta",
    }

    # Replicate predictions can sit in a queue for minutes
    DEFAULT_TIMEOUTS = {
        "replicate": 300.0,
    }

    @classmethod
    def for_service(
        cls,
        service: str,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ProviderConfig":
        """
        Build the config for one service, honouring env overrides.

        Overrides: <SERVICE>_BASE_URL, <SERVICE>_TIMEOUT, <SERVICE>_DOWNLOAD_TIMEOUT
        """
        if environ is None:
            load_env()
            environ = os.environ

        prefix = service.upper()
        base_url = environ.get(f"{prefix}_BASE_URL") or cls.DEFAULT_BASE_URLS.get(service, "")
        timeout = environ.get(f"{prefix}_TIMEOUT")
        download_timeout = environ.get(f"{prefix}_DOWNLOAD_TIMEOUT")

        return cls(
            base_url=base_url.rstrip("/"),
            request_timeout=float(timeout) if timeout else cls.DEFAULT_TIMEOUTS.get(service, 120.0),
            download_timeout=float(download_timeout) if download_timeout else 30.0,
        )


@dataclass(frozen=True)
class PollingConfig:
    """Job polling settings for asynchronous providers."""

    interval: float = 5.0  # seconds between polls
    max_attempts: int = 60
    progress_every: int = 6  # log a progress notice every Nth attempt
