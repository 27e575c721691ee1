from click.testing import CliRunner

from scorm_api import cli as cli_module
from scorm_api.config.settings import Settings


def test_show_config(monkeypatch):
    settings = Settings(_env_file=None, storage_backend="s3", aws_secret_access_key="secret")
    monkeypatch.setattr(cli_module, "get_settings", lambda: settings)

    result = CliRunner().invoke(cli_module.cli, ["show-config"])

    assert result.exit_code == 0
    assert "STORAGE_BACKEND: s3" in result.output
    assert "secret" not in result.output


def test_serve_uses_configured_port(monkeypatch, tmp_path):
    settings = Settings(_env_file=None, port=4321, public_dir=str(tmp_path / "public"))
    monkeypatch.setattr(cli_module, "get_settings", lambda: settings)
    calls = []
    monkeypatch.setattr("uvicorn.run", lambda app, **kwargs: calls.append(kwargs))

    result = CliRunner().invoke(cli_module.cli, ["serve"])

    assert result.exit_code == 0, result.output
    assert calls == [{"host": "0.0.0.0", "port": 4321}]
