"""Unit tests for the orcdk-ngrok CLI."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from orcdk_ngrok.errors import ControlApiError, TunnelStartError
from orcdk_ngrok.main import cli
from orcdk_ngrok.tunnel.api import TunnelInfo

CONTROLLER = "orcdk_ngrok.main.TunnelController"


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def configure_logging():
    """Keep CLI runs from rebinding global logging to the runner's streams."""
    with patch("orcdk_ngrok.main.configure_logging") as configure:
        yield configure


def test_verbose_sets_log_level(runner, configure_logging):
    with patch(f"{CONTROLLER}.stop", new_callable=AsyncMock) as stop:
        stop.return_value = False
        runner.invoke(cli, ["-v", "down"])

    configure_logging.assert_called_once_with(level="info")


class TestStatus:
    """Tests for orcdk-ngrok status."""

    def test_status_lists_tunnels(self, runner):
        with patch(f"{CONTROLLER}.list_tunnels", new_callable=AsyncMock) as list_tunnels:
            list_tunnels.return_value = [TunnelInfo(proto="https", public_url="https://a.ngrok.io")]
            result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "https://a.ngrok.io" in result.output

    def test_status_json(self, runner):
        with patch(f"{CONTROLLER}.list_tunnels", new_callable=AsyncMock) as list_tunnels:
            list_tunnels.return_value = [TunnelInfo(proto="https", public_url="https://a.ngrok.io")]
            result = runner.invoke(cli, ["--json", "status"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["running"] is True
        assert data["tunnels"] == [{"proto": "https", "public_url": "https://a.ngrok.io"}]

    def test_status_not_running(self, runner):
        with patch(f"{CONTROLLER}.list_tunnels", new_callable=AsyncMock) as list_tunnels:
            list_tunnels.side_effect = ControlApiError("Cannot connect")
            result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "not running" in result.output


class TestUp:
    """Tests for orcdk-ngrok up."""

    def test_up_writes_env_file(self, runner, tmp_path):
        env_file = tmp_path / ".env.local"
        with patch(f"{CONTROLLER}.ensure_active", new_callable=AsyncMock) as ensure:
            ensure.return_value = "https://abc123.ngrok.io"
            result = runner.invoke(cli, ["up", "--port", "8080", "--env-file", str(env_file)])

        assert result.exit_code == 0
        assert "https://abc123.ngrok.io" in result.output
        assert env_file.read_text() == "MCP_EXTERNAL_URL=https://abc123.ngrok.io"

    def test_up_custom_key(self, runner, tmp_path):
        env_file = tmp_path / ".env"
        with patch(f"{CONTROLLER}.ensure_active", new_callable=AsyncMock) as ensure:
            ensure.return_value = "https://abc123.ngrok.io"
            result = runner.invoke(
                cli, ["up", "--env-file", str(env_file), "--key", "PUBLIC_URL"]
            )

        assert result.exit_code == 0
        assert env_file.read_text() == "PUBLIC_URL=https://abc123.ngrok.io"

    def test_up_already_running(self, runner, tmp_path):
        env_file = tmp_path / ".env"
        with patch(f"{CONTROLLER}.ensure_active", new_callable=AsyncMock) as ensure:
            ensure.return_value = None
            result = runner.invoke(cli, ["up", "--env-file", str(env_file)])

        assert result.exit_code == 0
        assert "already running" in result.output
        assert not env_file.exists()

    def test_up_failure(self, runner, tmp_path):
        with patch(f"{CONTROLLER}.ensure_active", new_callable=AsyncMock) as ensure:
            ensure.side_effect = TunnelStartError("ngrok binary not found: ngrok")
            result = runner.invoke(cli, ["up", "--env-file", str(tmp_path / ".env")])

        assert result.exit_code == 1

    def test_up_invalid_port(self, runner):
        result = runner.invoke(cli, ["up", "--port", "70000"])

        assert result.exit_code == 1

    @pytest.mark.parametrize(
        "content",
        [
            "plugins: [unclosed\n",
            "- just\n- a list\n",
            "plugins:\n"
            "  - name: '@orcdkestrator/orcdk-plugin-ngrok'\n"
            "    config:\n"
            "      startupDelay: two\n",
        ],
    )
    def test_up_bad_config_file(self, runner, tmp_path, content):
        path = tmp_path / "orcdk.config.yaml"
        path.write_text(content)

        with patch(f"{CONTROLLER}.ensure_active", new_callable=AsyncMock) as ensure:
            result = runner.invoke(cli, ["-c", str(path), "up"])

        assert result.exit_code == 1
        assert "Error:" in result.output
        ensure.assert_not_called()


class TestDown:
    """Tests for orcdk-ngrok down."""

    def test_down(self, runner):
        with patch(f"{CONTROLLER}.stop", new_callable=AsyncMock) as stop:
            stop.return_value = True
            result = runner.invoke(cli, ["down"])

        assert result.exit_code == 0
        assert "Tunnel stopped" in result.output

    def test_down_nothing_running(self, runner):
        with patch(f"{CONTROLLER}.stop", new_callable=AsyncMock) as stop:
            stop.return_value = False
            result = runner.invoke(cli, ["down"])

        assert result.exit_code == 0
        assert "No tunnel" in result.output


class TestSetEnv:
    """Tests for orcdk-ngrok set-env."""

    def test_set_env(self, runner, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("A=1\n")

        result = runner.invoke(cli, ["set-env", "B", "2", "--env-file", str(env_file)])

        assert result.exit_code == 0
        assert env_file.read_text() == "A=1\nB=2\n"

    def test_set_env_invalid_key(self, runner, tmp_path):
        result = runner.invoke(cli, ["set-env", "A=B", "2", "--env-file", str(tmp_path / ".env")])

        assert result.exit_code == 1


class TestCheck:
    """Tests for orcdk-ngrok check."""

    @pytest.fixture
    def orcdk_file(self, tmp_path):
        path = tmp_path / "orcdk.config.yaml"
        path.write_text(
            "environments:\n"
            "  local:\n"
            "    isLocal: true\n"
            "  prod:\n"
            "    isLocal: false\n"
            "plugins:\n"
            "  - name: '@orcdkestrator/orcdk-plugin-ngrok'\n"
            "    config:\n"
            "      enabledStacks: [alpha]\n"
        )
        return path

    def test_targeted_stack(self, runner, orcdk_file, monkeypatch):
        monkeypatch.setenv("CDK_ENVIRONMENT", "local")

        result = runner.invoke(cli, ["--json", "-c", str(orcdk_file), "check", "alpha"])

        assert result.exit_code == 0
        assert json.loads(result.output) == {"stack": "alpha", "environment": "local", "tunnel": True}

    def test_untargeted_stack(self, runner, orcdk_file, monkeypatch):
        monkeypatch.setenv("CDK_ENVIRONMENT", "local")

        result = runner.invoke(cli, ["-c", str(orcdk_file), "check", "beta"])

        assert result.exit_code == 0
        assert "does not need the tunnel" in result.output

    def test_cloud_environment(self, runner, orcdk_file, monkeypatch):
        monkeypatch.setenv("CDK_ENVIRONMENT", "prod")

        result = runner.invoke(cli, ["--json", "-c", str(orcdk_file), "check", "alpha"])

        assert json.loads(result.output)["tunnel"] is False

    def test_no_environment(self, runner, orcdk_file):
        result = runner.invoke(cli, ["-c", str(orcdk_file), "check", "alpha"])

        assert result.exit_code == 0
        assert "CDK_ENVIRONMENT is not set" in result.output

    def test_up_uses_plugin_options_from_config(self, runner, tmp_path):
        path = tmp_path / "orcdk.config.yaml"
        env_file = tmp_path / ".env.dev"
        path.write_text(
            "plugins:\n"
            "  - name: '@orcdkestrator/orcdk-plugin-ngrok'\n"
            "    config:\n"
            "      port: 4321\n"
            f"      envFile: {env_file}\n"
        )
        with patch(f"{CONTROLLER}.ensure_active", new_callable=AsyncMock) as ensure:
            ensure.return_value = "https://abc123.ngrok.io"
            result = runner.invoke(cli, ["-c", str(path), "up"])

        assert result.exit_code == 0
        assert str(env_file) in result.output
        assert env_file.read_text() == "MCP_EXTERNAL_URL=https://abc123.ngrok.io"
