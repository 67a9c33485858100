"""Tests for trackhound.config"""

import textwrap
from pathlib import Path

import pytest

from trackhound.config import ConfigLoader, GeocoderConfig, TrackerConfig, TrackerSettings
from trackhound.errors import ConfigurationError

ENV_VARIABLES = [
    "FEDEX_API_KEY", "FEDEX_SECRET_KEY", "FEDEX_URL",
    "UPS_CLIENT_ID", "UPS_CLIENT_SECRET",
    "USPS_USERID",
    "DHL_API_KEY",
    "DHL_ECOMMERCE_CLIENT_ID", "DHL_ECOMMERCE_CLIENT_SECRET",
    "PITNEY_BOWES_API_KEY", "PITNEY_BOWES_API_SECRET",
    "GOOGLE_API_KEY",
]


@pytest.fixture
def clean_env(monkeypatch):
    for variable in ENV_VARIABLES:
        monkeypatch.delenv(variable, raising=False)
    return monkeypatch


@pytest.fixture
def write_config(tmp_path):
    def _write(content):
        (tmp_path / "trackhound.yaml").write_text(textwrap.dedent(content))
        return str(tmp_path)
    return _write


class TestConfigLoader:

    def test_full_config(self, clean_env, write_config):
        clean_env.setenv("FEDEX_API_KEY", "fedex-id")
        clean_env.setenv("FEDEX_SECRET_KEY", "fedex-secret")
        config_dir = write_config("""
            settings:
              max_retries: 3
              retry_delay: 0.1
              geocode_concurrency: 5
            geocoder:
              provider: google
              api_key_env: GOOGLE_API_KEY
              timeout: 10
            carriers:
              FedEx:
                base_url: https://apis-sandbox.fedex.com
                timeout: 15
                client_id_env: FEDEX_API_KEY
                client_secret_env: FEDEX_SECRET_KEY
              usps:
                user_id: DIRECT
              DHL eCommerce:
                enabled: false
              amazon:
        """)

        config = ConfigLoader(config_dir).load()

        assert config.settings.max_retries == 3
        assert config.settings.retry_delay == 0.1
        assert config.settings.geocode_concurrency == 5
        assert config.settings.attempt_timeout == 60.0

        fedex = config.get_carrier("fedex")
        assert fedex.base_url == "https://apis-sandbox.fedex.com"
        assert fedex.timeout == 15
        assert fedex.credentials == {"client_id": "fedex-id", "client_secret": "fedex-secret"}

        assert config.get_carrier("usps").credentials == {"user_id": "DIRECT"}
        assert config.get_carrier("dhl-ecommerce").enabled is False
        assert config.get_carrier("amazon").credentials == {}
        assert sorted(carrier.name for carrier in config.get_enabled_carriers()) == ["amazon", "fedex", "usps"]

        assert config.geocoder.timeout == 10
        assert config.geocoder.api_key_env == "GOOGLE_API_KEY"

    def test_unset_env_variable_skipped(self, clean_env, write_config):
        config_dir = write_config("""
            carriers:
              ups:
                client_id_env: UPS_CLIENT_ID
                client_secret: inline
        """)
        config = ConfigLoader(config_dir).load()
        assert config.get_carrier("ups").credentials == {"client_secret": "inline"}

    def test_env_key_wins_over_direct_key(self, clean_env, write_config):
        clean_env.setenv("DHL_API_KEY", "from-env")
        config_dir = write_config("""
            carriers:
              dhl:
                api_key: inline
                api_key_env: DHL_API_KEY
        """)
        config = ConfigLoader(config_dir).load()
        assert config.get_carrier("dhl").credentials == {"api_key": "from-env"}

    def test_empty_file(self, write_config):
        config = ConfigLoader(write_config("")).load()
        assert config.carriers == {}
        assert config.geocoder is None
        assert config.settings == TrackerSettings()

    def test_unknown_carrier(self, write_config):
        with pytest.raises(ConfigurationError, match="Unknown carrier 'ontrac'"):
            ConfigLoader(write_config("carriers:\n  ontrac: {}\n")).load()

    def test_invalid_settings(self, write_config):
        with pytest.raises(ConfigurationError, match="Invalid settings"):
            ConfigLoader(write_config("settings:\n  max_retries: -1\n")).load()

    def test_unknown_settings_ignored(self, write_config):
        config = ConfigLoader(write_config("settings:\n  colour: blue\n")).load()
        assert config.settings == TrackerSettings()

    def test_invalid_yaml(self, write_config):
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ConfigLoader(write_config("carriers: [unclosed\n")).load()

    def test_not_a_mapping(self, write_config):
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            ConfigLoader(write_config("- fedex\n- ups\n")).load()

    def test_unsupported_geocoder(self, write_config):
        with pytest.raises(ConfigurationError, match="geocoder provider"):
            ConfigLoader(write_config("geocoder:\n  provider: mapbox\n")).load()

    def test_sample_config(self, clean_env):
        config_dir = Path(__file__).resolve().parents[1] / "config"
        config = ConfigLoader(str(config_dir)).load()

        assert sorted(config.carriers) == [
            "amazon", "dhl", "dhl-ecommerce", "fedex", "gofo", "newgistics", "ups", "usps",
        ]
        assert config.get_carrier("fedex").credentials == {}
        assert config.settings == TrackerSettings()
        assert config.geocoder.provider == "google"

    def test_default_directory(self):
        assert str(ConfigLoader().path).replace("\\", "/") == "config/trackhound.yaml"


class TestTrackerConfig:

    def test_from_env(self, clean_env):
        clean_env.setenv("UPS_CLIENT_ID", "ups-id")
        clean_env.setenv("UPS_CLIENT_SECRET", "ups-secret")
        clean_env.setenv("FEDEX_API_KEY", "fedex-id")  # secret missing

        config = TrackerConfig.from_env()

        assert sorted(config.carriers) == ["amazon", "gofo", "ups"]
        assert config.get_carrier("ups").credentials == {"client_id": "ups-id", "client_secret": "ups-secret"}
        assert config.geocoder is None

    def test_from_env_base_url_and_geocoder(self, clean_env):
        clean_env.setenv("FEDEX_API_KEY", "fedex-id")
        clean_env.setenv("FEDEX_SECRET_KEY", "fedex-secret")
        clean_env.setenv("FEDEX_URL", "https://apis-sandbox.fedex.com")
        clean_env.setenv("GOOGLE_API_KEY", "google")

        config = TrackerConfig.from_env()

        assert config.get_carrier("fedex").base_url == "https://apis-sandbox.fedex.com"
        assert config.geocoder.resolve_api_key() == "google"

    def test_load_uses_file(self, clean_env, write_config):
        config = TrackerConfig.load(write_config("carriers:\n  gofo: {}\n"))
        assert list(config.carriers) == ["gofo"]

    def test_load_falls_back_to_env(self, clean_env, tmp_path):
        config = TrackerConfig.load(str(tmp_path))
        assert sorted(config.carriers) == ["amazon", "gofo"]


class TestGeocoderConfig:

    def test_direct_key(self):
        assert GeocoderConfig(api_key="direct").resolve_api_key() == "direct"

    def test_env_key(self, monkeypatch):
        monkeypatch.setenv("MY_GEOCODER_KEY", "from-env")
        assert GeocoderConfig(api_key_env="MY_GEOCODER_KEY").resolve_api_key() == "from-env"

    def test_no_key(self):
        assert GeocoderConfig(api_key_env=None).resolve_api_key() is None
