"""Configuration management."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .models import Environment


@dataclass
class AppConfig:
    """Defaults read from the environment; command line flags take precedence."""
    certificate_path: Optional[str]        # path to the .p12 push certificate
    certificate_passphrase: Optional[str]
    topic: Optional[str]                   # bundle id of the target app
    environment: Environment
    log_level: str


def _getenv(key: str) -> Optional[str]:
    """Read an environment variable, treating blank values as unset."""
    value = os.getenv(key, "").strip()
    return value or None


def load_config(dotenv_path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from environment variables (and a .env file if present).

    Args:
        dotenv_path: Explicit .env file. By default one is searched for from
            the working directory upwards.

    Raises:
        InvalidEnvironment: If APNS_ENVIRONMENT is neither development nor production.
    """
    load_dotenv(dotenv_path or find_dotenv(usecwd=True))

    return AppConfig(
        certificate_path=_getenv("APNS_CERTIFICATE_PATH"),
        # Passphrases may legitimately contain surrounding whitespace
        certificate_passphrase=os.getenv("APNS_CERTIFICATE_PASSPHRASE") or None,
        topic=_getenv("APNS_TOPIC"),
        environment=Environment.parse(_getenv("APNS_ENVIRONMENT") or Environment.PRODUCTION.value),
        log_level=(_getenv("LOG_LEVEL") or "WARNING").upper(),
    )
