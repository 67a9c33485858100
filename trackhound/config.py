"""
Config Loader - Load carrier credentials and tracker settings from YAML

Expected layout:
    config/
    └── trackhound.yaml

Example trackhound.yaml:
    settings:
      max_retries: 2
      retry_delay: 0.5
      attempt_timeout: 60
      geocode_concurrency: 10
      credential_margin: 100

    geocoder:
      provider: google
      api_key_env: GOOGLE_API_KEY

    carriers:
      fedex:
        base_url: https://apis.fedex.com
        client_id_env: FEDEX_API_KEY
        client_secret_env: FEDEX_SECRET_KEY
      usps:
        user_id_env: USPS_USERID
      dhl:
        enabled: false
        api_key_env: DHL_API_KEY
      amazon: {}

Keys ending in ``_env`` name an environment variable holding the value;
secrets should never be written into the file itself.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .formats import (
    AMAZON,
    DHL,
    DHL_ECOMMERCE,
    FEDEX,
    GOFO,
    NEWGISTICS,
    UPS,
    USPS,
    canonical_carrier,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "trackhound.yaml"

# Non-credential keys of a carrier entry
_CARRIER_KEYS = frozenset({"enabled", "base_url", "timeout"})

# Conventional environment variables, used when no config file exists
ENV_CREDENTIALS: Mapping[str, Mapping[str, str]] = MappingProxyType({
    FEDEX: {"client_id": "FEDEX_API_KEY", "client_secret": "FEDEX_SECRET_KEY"},
    UPS: {"client_id": "UPS_CLIENT_ID", "client_secret": "UPS_CLIENT_SECRET"},
    USPS: {"user_id": "USPS_USERID"},
    DHL: {"api_key": "DHL_API_KEY"},
    DHL_ECOMMERCE: {"client_id": "DHL_ECOMMERCE_CLIENT_ID", "client_secret": "DHL_ECOMMERCE_CLIENT_SECRET"},
    NEWGISTICS: {"client_id": "PITNEY_BOWES_API_KEY", "client_secret": "PITNEY_BOWES_API_SECRET"},
    AMAZON: {},
    GOFO: {},
})

ENV_BASE_URLS: Mapping[str, str] = MappingProxyType({
    FEDEX: "FEDEX_URL",
    UPS: "UPS_URL",
    USPS: "USPS_URL",
    DHL_ECOMMERCE: "DHL_ECOMMERCE_URL",
    NEWGISTICS: "PITNEY_BOWES_URL",
})


class TrackerSettings(BaseModel):
    """Tunables shared by every tracking call."""
    max_retries: int = Field(default=2, ge=0)
    retry_delay: float = Field(default=0.5, ge=0)
    attempt_timeout: Optional[float] = Field(default=60.0, gt=0)
    geocode_concurrency: int = Field(default=10, ge=1)
    credential_margin: float = Field(default=100.0, ge=0)

    model_config = ConfigDict(extra="ignore")


@dataclass
class CarrierConfig:
    """Configuration for one carrier API"""
    name: str  # carrier tag, e.g. "fedex", "dhl-ecommerce"
    enabled: bool = True
    base_url: Optional[str] = None
    timeout: float = 30.0
    credentials: Dict[str, str] = field(default_factory=dict)


@dataclass
class GeocoderConfig:
    """Configuration for the locality resolver"""
    provider: str = "google"
    api_key_env: Optional[str] = "GOOGLE_API_KEY"  # Environment variable name for API key
    api_key: Optional[str] = None  # Direct API key (not recommended)
    timeout: float = 30.0
    enabled: bool = True

    def resolve_api_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.getenv(self.api_key_env)
        return None


@dataclass
class TrackerConfig:
    settings: TrackerSettings = field(default_factory=TrackerSettings)
    carriers: Dict[str, CarrierConfig] = field(default_factory=dict)
    geocoder: Optional[GeocoderConfig] = None

    @classmethod
    def load(cls, config_dir: Optional[str] = None) -> "TrackerConfig":
        """Load from ``<config_dir>/trackhound.yaml``, or the environment if it is missing."""
        loader = ConfigLoader(config_dir)
        if loader.path.exists():
            return loader.load()

        logger.info(f"No {CONFIG_FILENAME} found in {loader.config_dir}, using environment")
        return cls.from_env()

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        """Build a configuration from conventional environment variables."""
        carriers: Dict[str, CarrierConfig] = {}
        for name, variables in ENV_CREDENTIALS.items():
            credentials = {key: os.getenv(env) for key, env in variables.items()}
            if not all(credentials.values()):
                logger.debug(f"Carrier {name} not configured in environment")
                continue

            carriers[name] = CarrierConfig(
                name=name,
                base_url=os.getenv(ENV_BASE_URLS[name]) if name in ENV_BASE_URLS else None,
                credentials=credentials,
            )

        geocoder = GeocoderConfig() if os.getenv("GOOGLE_API_KEY") else None
        logger.info(f"Configured carriers from environment: {sorted(carriers)}")
        return cls(carriers=carriers, geocoder=geocoder)

    def get_carrier(self, name: str) -> Optional[CarrierConfig]:
        return self.carriers.get(name)

    def get_enabled_carriers(self) -> List[CarrierConfig]:
        return [carrier for carrier in self.carriers.values() if carrier.enabled]


class ConfigLoader:
    """
    Load trackhound configuration from YAML

    Raises ConfigurationError for unreadable YAML, unknown carriers or
    invalid settings.
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Args:
            config_dir: Path to config directory (default: ./config)
        """
        self.config_dir = Path(config_dir) if config_dir else Path("config")
        self.path = self.config_dir / CONFIG_FILENAME

    def load(self) -> TrackerConfig:
        logger.info(f"Loading config from {self.path}")
        try:
            with open(self.path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{self.path} must contain a mapping")

        return TrackerConfig(
            settings=self._parse_settings(data.get('settings') or {}),
            carriers=self._parse_carriers(data.get('carriers') or {}),
            geocoder=self._parse_geocoder(data.get('geocoder')),
        )

    def _parse_settings(self, settings_data: Dict[str, Any]) -> TrackerSettings:
        try:
            return TrackerSettings(**settings_data)
        except (ValidationError, TypeError) as e:
            raise ConfigurationError(f"Invalid settings in {self.path}: {e}") from e

    def _parse_carriers(self, carriers_data: Dict[str, Any]) -> Dict[str, CarrierConfig]:
        carriers: Dict[str, CarrierConfig] = {}
        for name, config in carriers_data.items():
            tag = canonical_carrier(str(name))
            if tag is None:
                raise ConfigurationError(f"Unknown carrier '{name}' in {self.path}")

            config = config or {}
            carriers[tag] = CarrierConfig(
                name=tag,
                enabled=config.get('enabled', True),
                base_url=config.get('base_url'),
                timeout=config.get('timeout', 30.0),
                credentials=self._parse_credentials(tag, config),
            )

        logger.info(f"Loaded {len(carriers)} carrier configurations")
        return carriers

    @staticmethod
    def _parse_credentials(carrier: str, config: Dict[str, Any]) -> Dict[str, str]:
        """Collect credential keys, reading ``*_env`` keys from the environment."""
        credentials: Dict[str, str] = {}
        for key, value in config.items():
            if key in _CARRIER_KEYS or value is None:
                continue

            if key.endswith('_env'):
                resolved = os.getenv(str(value))
                if resolved is None:
                    logger.warning(f"Environment variable {value} for {carrier}.{key} is not set")
                    continue
                credentials[key[:-len('_env')]] = resolved
            else:
                credentials.setdefault(key, str(value))

        return credentials

    def _parse_geocoder(self, geocoder_data: Optional[Dict[str, Any]]) -> Optional[GeocoderConfig]:
        if not geocoder_data:
            return None

        provider = geocoder_data.get('provider', 'google')
        if provider != 'google':
            raise ConfigurationError(f"Unsupported geocoder provider '{provider}' in {self.path}")

        return GeocoderConfig(
            provider=provider,
            api_key_env=geocoder_data.get('api_key_env', 'GOOGLE_API_KEY'),
            api_key=geocoder_data.get('api_key'),
            timeout=geocoder_data.get('timeout', 30.0),
            enabled=geocoder_data.get('enabled', True),
        )
