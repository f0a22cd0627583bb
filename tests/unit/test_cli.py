from pathlib import Path

import pytest
from typer.testing import CliRunner

from servicehub.cli import app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        f"""
config:
  app:
    environment: test
  jwt:
    secret_key: cli-test-secret-0123456789abcdef0123
    issuer: servicehub
    audience: servicehub-client
  google:
    client_id: client-id
    client_secret: client-secret
  seed:
    enabled: true
    admin_password: Adm1n-Passw0rd!
  logging:
    file: null
  database:
    url: sqlite:///{tmp_path / "servicehub.db"}
"""
    )
    return path


class TestCli:
    def test_init_db_seeds_roles_and_admin(self, config_file: Path):
        result = runner.invoke(app, ["init-db", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Database initialized" in result.output
        assert "Admin, Customer" in result.output

    def test_init_db_is_idempotent(self, config_file: Path):
        runner.invoke(app, ["init-db", "--config", str(config_file)])

        result = runner.invoke(app, ["init-db", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "none" in result.output

    def test_purge_tokens(self, config_file: Path):
        runner.invoke(app, ["init-db", "--config", str(config_file)])

        result = runner.invoke(app, ["purge-tokens", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Removed 0 expired refresh token(s)" in result.output
