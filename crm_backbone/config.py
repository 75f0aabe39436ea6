"""Runtime configuration read from the environment (and a local .env file)."""

import logging
import os

from dotenv import load_dotenv

load_dotenv()  # load environment variables from .env file

HUBSPOT_BASE_URL = os.getenv("HUBSPOT_BASE_URL", "https://api.hubapi.com")
HUBSPOT_TIMEOUT = float(os.getenv("HUBSPOT_TIMEOUT", "30"))
HUBSPOT_MAX_RETRIES = int(os.getenv("HUBSPOT_MAX_RETRIES", "3"))

# comma-separated values for multiple origins, or "*" for all (development only)
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""
    pass


def get_access_token() -> str:
    """Return the private app token, failing loudly when it is not set."""
    token = os.getenv("HUBSPOT_ACCESS_TOKEN")
    if not token:
        raise ConfigurationError(
            "HUBSPOT_ACCESS_TOKEN environment variable is required. "
            "Create a Private App at Settings > Integrations > Private Apps in HubSpot."
        )
    return token


def setup_logging(level: str | None = None) -> None:
    """configure root logging for the server and scripts."""
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
