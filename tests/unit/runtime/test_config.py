from pathlib import Path

import pytest

from servicehub.core.errors import ConfigurationError
from servicehub.runtime.config import ConfigData, load_templated_yaml, validate_startup_config
from servicehub.runtime.config.config_data import missing_required_settings
from servicehub.runtime.config.config_template import (
    environment_overrides,
    substitute_config_values,
    substitute_env_vars,
)
from servicehub.runtime.context import (
    get_config,
    load_default_config,
    set_config,
    with_context,
)

_REPO_CONFIG = Path(__file__).resolve().parents[3] / "config.yaml"

_REQUIRED_ENV = {
    "JWT_SECRET_KEY": "s" * 40,
    "GOOGLE_CLIENT_ID": "client-id",
    "GOOGLE_CLIENT_SECRET": "client-secret",
}


class TestSubstituteEnvVars:
    def test_required_default_and_message_forms(self):
        env = {"HOST": "db.internal"}
        text = "${HOST}:${PORT:-5432}"

        assert substitute_env_vars(text, env) == "db.internal:5432"

    def test_missing_required_variable(self):
        with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
            substitute_env_vars("${JWT_SECRET_KEY}", {})

    def test_missing_variable_with_custom_message(self):
        with pytest.raises(ValueError, match="set it in .env"):
            substitute_env_vars("${SECRET:?set it in .env}", {})

    def test_environment_prefixed_overrides(self):
        env = {"DATABASE_URL": "sqlite://", "PRODUCTION_DATABASE_URL": "postgresql://db"}

        assert environment_overrides("production", env)["DATABASE_URL"] == "postgresql://db"
        assert environment_overrides("development", env)["DATABASE_URL"] == "sqlite://"


class TestLoadTemplatedYaml:
    def test_repository_config_loads(self):
        config = load_templated_yaml(_REPO_CONFIG, env_mode="test", env=_REQUIRED_ENV)

        assert config.app.environment == "test"
        assert config.jwt.secret_key == "s" * 40
        assert config.jwt.issuer == "servicehub"
        assert config.google.client_id == "client-id"
        assert config.google.redirect_uri == "postmessage"
        assert config.security.roles == ["Admin", "Customer"]
        assert config.app.port == 8000
        validate_startup_config(config)

    def test_missing_secret_fails(self):
        env = {k: v for k, v in _REQUIRED_ENV.items() if k != "JWT_SECRET_KEY"}

        with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
            load_templated_yaml(_REPO_CONFIG, env_mode="test", env=env)

    def test_placeholders_only_expand_in_values(self):
        document = {"jwt": {"secret_key": "${JWT_SECRET_KEY}", "clock_skew": 60}}

        assert substitute_config_values(document, {"JWT_SECRET_KEY": "k"}) == {
            "jwt": {"secret_key": "k", "clock_skew": 60}
        }

    def test_placeholders_in_comments_are_ignored(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "# ${UNSET_VAR} is required, ${OTHER:-x} has a default\n"
            "config:\n"
            "  app:\n"
            "    port: ${APP_PORT:-9000}\n"
        )

        config = load_templated_yaml(path, env={})

        assert config.app.port == 9000

    def test_invalid_document(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("config:\n  jwt:\n    expiration_minutes: soon\n")

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_templated_yaml(path, env={})


class TestLoadDefaultConfig:
    """Startup loading from the working directory."""

    @pytest.fixture
    def workdir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
        monkeypatch.chdir(tmp_path)
        for name in (*_REQUIRED_ENV, "APP_ENVIRONMENT", "CONFIG_FILE"):
            monkeypatch.delenv(name, raising=False)
        (tmp_path / "config.yaml").write_text(_REPO_CONFIG.read_text())
        return tmp_path

    def test_secrets_from_dotenv(self, workdir: Path):
        (workdir / ".env").write_text(
            "\n".join(f"{name}={value}" for name, value in _REQUIRED_ENV.items())
        )

        config = load_default_config()

        assert config.jwt.secret_key == "s" * 40
        assert config.google.client_secret == "client-secret"
        validate_startup_config(config)

    def test_process_environment_wins_over_dotenv(
        self, workdir: Path, monkeypatch: pytest.MonkeyPatch
    ):
        (workdir / ".env").write_text(
            "\n".join(f"{name}={value}" for name, value in _REQUIRED_ENV.items())
        )
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "from-environment")

        assert load_default_config().google.client_id == "from-environment"

    def test_missing_secret_without_dotenv(self, workdir: Path):
        with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
            load_default_config()

    def test_explicit_config_file(self, workdir: Path, tmp_path_factory):
        other = tmp_path_factory.mktemp("other") / "custom.yaml"
        other.write_text("config:\n  app:\n    port: 7000\n")

        assert load_default_config(other).app.port == 7000


class TestValidateStartupConfig:
    def test_complete_config_passes(self, config: ConfigData):
        assert validate_startup_config(config) is config

    def test_reports_every_missing_setting(self):
        assert missing_required_settings(ConfigData()) == [
            "jwt.secret_key",
            "jwt.issuer",
            "jwt.audience",
            "google.client_id",
            "google.client_secret",
        ]
        with pytest.raises(ConfigurationError, match="google.client_secret"):
            validate_startup_config(ConfigData())

    def test_inverted_delay_window(self, config: ConfigData):
        config.security.failure_delay_min_ms = 300
        config.security.failure_delay_max_ms = 100

        with pytest.raises(ConfigurationError, match="failure_delay"):
            validate_startup_config(config)

    def test_default_role_must_be_seeded(self, config: ConfigData):
        config.security.default_role = "Vendor"

        with pytest.raises(ConfigurationError, match="Vendor"):
            validate_startup_config(config)

    def test_defaults(self):
        config = ConfigData()

        assert config.jwt.expiration_minutes == 60
        assert config.jwt.refresh_token_ttl_seconds == 7 * 24 * 3600
        assert config.security.failure_delay_min_ms == 100
        assert config.security.failure_delay_max_ms == 300
        assert config.google.issuers == ["https://accounts.google.com", "accounts.google.com"]


class TestContext:
    def test_with_context_overrides_only_explicit_fields(self, config: ConfigData):
        set_config(config)
        override = ConfigData()
        override.jwt.expiration_minutes = 5

        with with_context(override) as merged:
            assert merged.jwt.expiration_minutes == 5
            assert merged.jwt.secret_key == config.jwt.secret_key
            assert get_config() is merged

        assert get_config().jwt.expiration_minutes == 60
