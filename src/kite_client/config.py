"""Configuration for the Kite client loaded from environment variables"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from .exceptions import ConfigurationError
from .platform import DEFAULT_TARGET, TARGETS
from .urls import DEFAULT_BASE_URL, DEFAULT_LOGIN_URL, validate_base_url


def _mask(value: str | None) -> str:
    if not value:
        return "Not configured"
    return f"{value[:3]}***" if len(value) > 6 else "***"


@dataclass
class KiteConfig:
    """Connection settings for one API key"""

    # Fields without defaults (required parameters)
    api_key: str

    # Fields with defaults
    access_token: str = ""
    api_secret: str | None = None
    base_url: str = DEFAULT_BASE_URL
    login_url: str = DEFAULT_LOGIN_URL
    timeout: float = 7.0
    target: str = DEFAULT_TARGET

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "KiteConfig":
        """Load configuration from environment variables

        Args:
            env_file: Optional .env file loaded before reading the environment

        Returns:
            KiteConfig instance with values from environment

        Raises:
            ConfigurationError: If required variables are missing or invalid
        """
        if env_file is not None:
            load_dotenv(env_file)

        api_key = os.getenv("KITE_API_KEY")
        if not api_key:
            raise ConfigurationError("Missing configuration: KITE_API_KEY")

        timeout_raw = os.getenv("KITE_TIMEOUT", str(cls.timeout))
        try:
            timeout = float(timeout_raw)
        except ValueError as e:
            raise ConfigurationError(
                f"KITE_TIMEOUT must be a number, got {timeout_raw!r}"
            ) from e

        config = cls(
            api_key=api_key,
            access_token=os.getenv("KITE_ACCESS_TOKEN", ""),
            api_secret=os.getenv("KITE_API_SECRET") or None,
            base_url=os.getenv("KITE_BASE_URL", DEFAULT_BASE_URL),
            login_url=os.getenv("KITE_LOGIN_URL", DEFAULT_LOGIN_URL),
            timeout=timeout,
            target=os.getenv("KITE_TARGET", DEFAULT_TARGET).lower(),
        )
        config.validate()

        logger.info("Configuration loaded:")
        logger.info(f"  API Key: {config.api_key}")
        logger.info(f"  Access Token: {_mask(config.access_token)}")
        logger.info(f"  API Secret: {_mask(config.api_secret)}")
        logger.info(f"  Base URL: {config.base_url}")
        logger.info(f"  Timeout: {config.timeout}s")
        logger.info(f"  Target: {config.target}")

        return config

    def validate(self) -> None:
        """Check field values

        Raises:
            ConfigurationError: On any invalid field
        """
        if not self.api_key:
            raise ConfigurationError("api_key must not be empty")
        if self.timeout <= 0:
            raise ConfigurationError(
                f"timeout must be positive, got {self.timeout}"
            )
        if self.target not in TARGETS:
            raise ConfigurationError(
                f"Unknown target {self.target!r}, expected one of {TARGETS}"
            )
        try:
            validate_base_url(self.base_url)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
