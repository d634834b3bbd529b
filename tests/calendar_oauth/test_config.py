"""Tests for OAuth configuration module."""

from pathlib import Path
from unittest import mock

import pytest
import yaml

from src.calendar_oauth.config import DEFAULT_SCOPES, GoogleOAuthConfig
from src.calendar_oauth.exceptions import ConfigurationError

ENV_KEYS = (
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "CALENDAR_OAUTH_CALLBACK_HOST",
    "CALENDAR_OAUTH_CALLBACK_PORT",
    "CALENDAR_OAUTH_SCOPES",
    "CALENDAR_OAUTH_CREDENTIAL_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove OAuth environment variables for every test."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestGoogleOAuthConfig:
    """Tests for GoogleOAuthConfig dataclass."""

    def test_config_with_required_fields(self):
        """Config can be created with just client credentials."""
        config = GoogleOAuthConfig(client_id="id", client_secret="secret")

        assert config.client_id == "id"
        assert config.client_secret == "secret"
        assert config.callback_host == "127.0.0.1"
        assert config.callback_port == 3333
        assert config.callback_path == "/oauth/callback"
        assert config.scopes == DEFAULT_SCOPES
        assert config.refresh_buffer_seconds == 300
        assert config.authorization_timeout_seconds == 300
        assert config.request_timeout_seconds == 30

    def test_redirect_uri_property(self):
        """redirect_uri builds the loopback callback URL."""
        config = GoogleOAuthConfig(client_id="id", client_secret="secret", callback_port=4567)

        assert config.redirect_uri == "http://127.0.0.1:4567/oauth/callback"

    def test_empty_client_id_raises(self):
        """Empty client_id is rejected."""
        with pytest.raises(ConfigurationError, match="client_id"):
            GoogleOAuthConfig(client_id="", client_secret="secret")

    def test_empty_client_secret_raises(self):
        """Empty client_secret is rejected."""
        with pytest.raises(ConfigurationError, match="client_secret"):
            GoogleOAuthConfig(client_id="id", client_secret="")

    @pytest.mark.parametrize("port", [0, 70000, -1])
    def test_invalid_port_raises(self, port):
        """Ports outside 1-65535 are rejected."""
        with pytest.raises(ConfigurationError, match="callback_port"):
            GoogleOAuthConfig(client_id="id", client_secret="secret", callback_port=port)

    def test_callback_path_must_be_absolute(self):
        """callback_path must start with a slash."""
        with pytest.raises(ConfigurationError, match="callback_path"):
            GoogleOAuthConfig(client_id="id", client_secret="secret", callback_path="cb")

    def test_negative_refresh_buffer_raises(self):
        """Negative refresh buffer is rejected."""
        with pytest.raises(ConfigurationError, match="refresh_buffer_seconds"):
            GoogleOAuthConfig(client_id="id", client_secret="secret", refresh_buffer_seconds=-1)

    def test_empty_scopes_raises(self):
        """At least one scope is required."""
        with pytest.raises(ConfigurationError, match="scope"):
            GoogleOAuthConfig(client_id="id", client_secret="secret", scopes=())

    def test_scopes_list_normalized_to_tuple(self):
        """Scopes given as a list are stored as a tuple."""
        config = GoogleOAuthConfig(client_id="id", client_secret="secret", scopes=["a", "b"])

        assert config.scopes == ("a", "b")


class TestConfigFromEnv:
    """Tests for loading configuration from the environment."""

    def test_from_env_requires_credentials(self):
        """from_env raises when client credentials are missing."""
        with pytest.raises(ConfigurationError, match="GOOGLE_CLIENT_ID"):
            GoogleOAuthConfig.from_env()

    @mock.patch.dict(
        "os.environ",
        {
            "GOOGLE_CLIENT_ID": "env_id",
            "GOOGLE_CLIENT_SECRET": "env_secret",
            "CALENDAR_OAUTH_CALLBACK_PORT": "4444",
            "CALENDAR_OAUTH_SCOPES": "scope.a scope.b",
            "CALENDAR_OAUTH_CREDENTIAL_FILE": "/tmp/creds.json",
        },
    )
    def test_from_env_reads_all_variables(self):
        """from_env reads credentials and optional overrides."""
        config = GoogleOAuthConfig.from_env()

        assert config.client_id == "env_id"
        assert config.client_secret == "env_secret"
        assert config.callback_port == 4444
        assert config.scopes == ("scope.a", "scope.b")
        assert config.credential_file == "/tmp/creds.json"

    @mock.patch.dict(
        "os.environ",
        {
            "GOOGLE_CLIENT_ID": "env_id",
            "GOOGLE_CLIENT_SECRET": "env_secret",
            "CALENDAR_OAUTH_CALLBACK_PORT": "not-a-port",
        },
    )
    def test_from_env_rejects_non_integer_port(self):
        """A non-numeric port is a configuration error."""
        with pytest.raises(ConfigurationError, match="integer"):
            GoogleOAuthConfig.from_env()


class TestConfigFromFile:
    """Tests for loading configuration from YAML."""

    def test_load_from_yaml_file(self, tmp_path):
        """load reads nested sections from the YAML file."""
        config_file = tmp_path / "calendar_oauth.yaml"
        config_file.write_text(
            yaml.safe_dump(
                {
                    "client": {"id": "file_id", "secret": "file_secret"},
                    "callback": {"port": 5555, "path": "/cb"},
                    "storage": {"credential_file": str(tmp_path / "c.json")},
                    "refresh_buffer_seconds": 120,
                }
            )
        )

        config = GoogleOAuthConfig.load(config_file)

        assert config.client_id == "file_id"
        assert config.client_secret == "file_secret"
        assert config.callback_port == 5555
        assert config.callback_path == "/cb"
        assert config.credential_file == str(tmp_path / "c.json")
        assert config.refresh_buffer_seconds == 120

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        """Environment variables take precedence over file values."""
        config_file = tmp_path / "calendar_oauth.yaml"
        config_file.write_text(
            yaml.safe_dump({"client": {"id": "file_id", "secret": "file_secret"}})
        )
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "env_id")

        config = GoogleOAuthConfig.load(config_file)

        assert config.client_id == "env_id"
        assert config.client_secret == "file_secret"

    def test_missing_file_falls_back_to_env(self, tmp_path, monkeypatch):
        """A missing file is not an error."""
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "env_id")
        monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "env_secret")

        config = GoogleOAuthConfig.load(tmp_path / "missing.yaml")

        assert config.client_id == "env_id"

    def test_invalid_yaml_raises(self, tmp_path):
        """Invalid YAML raises ConfigurationError."""
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("client: [unclosed")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            GoogleOAuthConfig.load(config_file)

    def test_non_mapping_yaml_raises(self, tmp_path):
        """A YAML document that is not a mapping is rejected."""
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            GoogleOAuthConfig.load(config_file)

    def test_non_integer_timing_value_raises(self, tmp_path):
        """A timing value that is not an integer raises ConfigurationError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            yaml.safe_dump(
                {
                    "client": {"id": "file_id", "secret": "file_secret"},
                    "authorization_timeout_seconds": "five minutes",
                }
            )
        )

        with pytest.raises(ConfigurationError, match="authorization_timeout_seconds"):
            GoogleOAuthConfig.load(config_file)

    def test_default_config_path(self):
        """Default config path lives under ~/.taskpad."""
        path = GoogleOAuthConfig.get_default_config_path()

        assert path == Path.home() / ".taskpad" / "calendar_oauth.yaml"
