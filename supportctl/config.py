"""Configuration management for the supportctl application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

class Config:
    """Application configuration with sensible defaults."""

    # OCM API Configuration
    OCM_URL: str = os.getenv("OCM_URL", "https://api.openshift.com")
    # Tool asked for a token when OCM_TOKEN is not set
    OCM_CLI: str = os.getenv("OCM_CLI", "ocm")

    # Timeouts (in seconds)
    API_TIMEOUT: int = int(os.getenv("API_TIMEOUT", "30"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Security
    REDACT_KEYS: tuple = ("authorization", "password", "secret", "token")
