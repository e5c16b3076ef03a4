"""
Secure configuration management for the Airtable-to-Felt sync pipeline.

Usage:
    from at2felt.config.settings import Config
    config = Config()
    source = AirtableSource(config.airtable, timeout_s=config.http_timeout_s)

Environment Variables:
    AIRTABLE_API_KEY: Personal access token for Airtable
    AIRTABLE_BASE_ID: Airtable base holding the submissions table
    AIRTABLE_TABLE: Table name (default: poster submissions)
    NGROK_AUTH_TOKEN: ngrok agent auth token
    NGROK_SUBDOMAIN: Optional reserved subdomain
    NGROK_DOMAIN: Optional reserved domain (ngrok v3 agents)
    FELT_API_KEY: Felt API token
    FELT_MAP_ID: Felt map receiving the layer
    HTTP_TIMEOUT_S: Timeout for every outbound API call (default: 30)
"""

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

AIRTABLE = "airtable"
NGROK = "ngrok"
FELT = "felt"
ALL_SECTIONS = (AIRTABLE, NGROK, FELT)


@dataclass
class AirtableCredentials:
    """Airtable record store configuration."""
    api_key: str
    base_id: str
    table: str = "poster submissions"
    api_url: str = "https://api.airtable.com/v0"

    def __post_init__(self):
        """Validate Airtable configuration."""
        if not self.api_key:
            raise ValueError("API key cannot be empty")
        if not self.base_id:
            raise ValueError("Base id cannot be empty")
        if not self.table:
            raise ValueError("Table name cannot be empty")
        if not self.api_url.startswith(('http://', 'https://')):
            raise ValueError("API URL must include protocol (https://)")


@dataclass
class NgrokConfig:
    """ngrok tunnel configuration."""
    auth_token: str
    subdomain: Optional[str] = None
    domain: Optional[str] = None

    def __post_init__(self):
        """Validate tunnel configuration."""
        if not self.auth_token:
            raise ValueError("Auth token cannot be empty")
        if self.subdomain and self.domain:
            raise ValueError("Set either a subdomain or a domain, not both")


@dataclass
class FeltConfig:
    """Felt map platform configuration."""
    api_key: str
    map_id: str
    api_url: str = "https://felt.com/api/v2"

    def __post_init__(self):
        """Validate Felt configuration."""
        if not self.api_key:
            raise ValueError("API key cannot be empty")
        if not self.map_id:
            raise ValueError("Map id cannot be empty")
        if not self.api_url.startswith(('http://', 'https://')):
            raise ValueError("API URL must include protocol (https://)")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


class Config:
    """
    Centralized credential management for the sync pipeline.

    Secrets and connection settings come from the environment. Pipeline
    settings (status filter, layer name, settle delay) are managed through
    YAML files, see ``config_loader``.

    Environment variables loaded (in order of preference):
    1. Explicit environment file passed to constructor
    2. .env.{ENVIRONMENT} (where ENVIRONMENT=development|production|staging)
    3. .env file in project root
    4. System environment variables

    Only the sections a command needs are loaded, so ``export`` runs
    without ngrok or Felt credentials:

        config = Config(sections=["airtable"])
    """

    def __init__(self,
                 environment: Optional[str] = None,
                 env_file: Optional[Path] = None,
                 sections: Iterable[str] = ALL_SECTIONS):
        """
        Initialize configuration with secure credential loading.

        Args:
            environment: Target environment (development|staging|production)
            env_file: Explicit path to environment file
            sections: Credential sections to load and validate
        """
        self.environment = environment or os.getenv("ENVIRONMENT", "development")
        self.project_root = self._find_project_root()
        self.sections = tuple(sections)

        unknown = set(self.sections) - set(ALL_SECTIONS)
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

        self._load_environment_variables(env_file)

        self.airtable: Optional[AirtableCredentials] = None
        self.ngrok: Optional[NgrokConfig] = None
        self.felt: Optional[FeltConfig] = None

        if AIRTABLE in self.sections:
            self._load_airtable_config()
        if NGROK in self.sections:
            self._load_ngrok_config()
        if FELT in self.sections:
            self._load_felt_config()
        self._load_http_config()

    def _find_project_root(self) -> Path:
        """Find project root directory containing pyproject.toml or .git, else the working directory."""
        current = Path(__file__).resolve()

        for parent in current.parents:
            if any((parent / marker).exists() for marker in ['pyproject.toml', '.git']):
                return parent

        return Path.cwd()

    def _load_environment_variables(self, env_file: Optional[Path]) -> None:
        """Load environment variables from appropriate source."""
        loaded_files = []

        if env_file:
            env_file = Path(env_file)
            if env_file.exists():
                load_dotenv(env_file)
                loaded_files.append(str(env_file))
                logger.info(f"Loaded configuration from {env_file}")
            else:
                raise ConfigurationError(f"Specified env file not found: {env_file}")

        else:
            env_specific_file = self.project_root / f".env.{self.environment}"
            if env_specific_file.exists():
                load_dotenv(env_specific_file)
                loaded_files.append(str(env_specific_file))
                logger.info(f"Loaded environment-specific config: {env_specific_file}")

            generic_env_file = self.project_root / ".env"
            if generic_env_file.exists():
                load_dotenv(generic_env_file)
                loaded_files.append(str(generic_env_file))
                logger.info(f"Loaded generic config: {generic_env_file}")

        if not loaded_files:
            logger.debug("No .env files found, using system environment variables only")

        self._loaded_env_files = loaded_files

        logger.debug(f"Project root: {self.project_root}")
        logger.debug(f"Environment: {self.environment}")

    @staticmethod
    def _require(names: list[str], section: str) -> dict[str, str]:
        values = {name: os.getenv(name) for name in names}
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ConfigurationError(
                f"Missing required {section} settings: {', '.join(missing)}.\n"
                f"Please set these variables in your .env file or environment."
            )
        return values

    def _load_airtable_config(self) -> None:
        """Load and validate Airtable configuration."""
        values = self._require(["AIRTABLE_API_KEY", "AIRTABLE_BASE_ID"], "Airtable")

        try:
            self.airtable = AirtableCredentials(
                api_key=values["AIRTABLE_API_KEY"],
                base_id=values["AIRTABLE_BASE_ID"],
                table=os.getenv("AIRTABLE_TABLE", "poster submissions"),
                api_url=os.getenv("AIRTABLE_API_URL", "https://api.airtable.com/v0"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid Airtable configuration: {e}")

    def _load_ngrok_config(self) -> None:
        """Load and validate ngrok configuration."""
        values = self._require(["NGROK_AUTH_TOKEN"], "ngrok")

        try:
            self.ngrok = NgrokConfig(
                auth_token=values["NGROK_AUTH_TOKEN"],
                subdomain=os.getenv("NGROK_SUBDOMAIN") or None,
                domain=os.getenv("NGROK_DOMAIN") or None,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid ngrok configuration: {e}")

    def _load_felt_config(self) -> None:
        """Load and validate Felt configuration."""
        values = self._require(["FELT_API_KEY", "FELT_MAP_ID"], "Felt")

        try:
            self.felt = FeltConfig(
                api_key=values["FELT_API_KEY"],
                map_id=values["FELT_MAP_ID"],
                api_url=os.getenv("FELT_API_URL", "https://felt.com/api/v2"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid Felt configuration: {e}")

    def _load_http_config(self) -> None:
        """Load the timeout applied to every outbound API call."""
        raw = os.getenv("HTTP_TIMEOUT_S", "30")
        try:
            self.http_timeout_s = float(raw)
        except ValueError:
            raise ConfigurationError(f"HTTP_TIMEOUT_S must be a number, got {raw!r}")
        if self.http_timeout_s <= 0:
            raise ConfigurationError("HTTP_TIMEOUT_S must be positive")

    def get_security_summary(self) -> dict[str, Any]:
        """
        Get configuration summary for audit purposes.

        Returns:
            Dictionary with security-relevant configuration info (no secrets)
        """
        return {
            'environment': self.environment,
            'loaded_env_files': self._loaded_env_files,
            'sections': list(self.sections),
            'airtable_base': self.airtable.base_id if self.airtable else None,
            'airtable_table': self.airtable.table if self.airtable else None,
            'ngrok_subdomain': self.ngrok.subdomain if self.ngrok else None,
            'ngrok_domain': self.ngrok.domain if self.ngrok else None,
            'felt_map': self.felt.map_id if self.felt else None,
            'http_timeout_s': self.http_timeout_s,
        }

    def __repr__(self) -> str:
        """Safe string representation without credentials."""
        return (
            f"Config(environment={self.environment}, "
            f"sections={list(self.sections)}, "
            f"felt_map={self.felt.map_id if self.felt else None})"
        )
