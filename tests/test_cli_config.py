import pytest
import yaml
from click.testing import CliRunner
from servicectl.cli import main

@pytest.fixture
def runner():
    return CliRunner()

def test_init_command_creates_files(runner, tmp_path, monkeypatch):
    home = tmp_path / "custom_home"
    monkeypatch.setenv("SERVICECTL_HOME", str(home))

    result = runner.invoke(main, ["init"])
    assert result.exit_code == 0
    assert "Initialized servicectl config" in result.output

    assert (home / "config.yaml").exists()
    assert (home / ".env").exists()

    cfg = yaml.safe_load((home / "config.yaml").read_text())
    assert cfg["blob_store"]["type"] == "file"
    assert cfg["default_timeout"] == 120

def test_init_does_not_overwrite_without_force(runner, tmp_path, monkeypatch):
    home = tmp_path / "custom_home"
    monkeypatch.setenv("SERVICECTL_HOME", str(home))
    home.mkdir(parents=True)

    (home / "config.yaml").write_text("existing: true")

    result = runner.invoke(main, ["init"])
    assert result.exit_code == 1
    assert "Config already exists" in result.output

    assert (home / "config.yaml").read_text() == "existing: true"

def test_init_force_overwrites(runner, tmp_path, monkeypatch):
    home = tmp_path / "custom_home"
    monkeypatch.setenv("SERVICECTL_HOME", str(home))
    home.mkdir(parents=True)

    (home / "config.yaml").write_text("existing: true")

    result = runner.invoke(main, ["init", "--force"])
    assert result.exit_code == 0

    cfg = yaml.safe_load((home / "config.yaml").read_text())
    assert "domain" in cfg

def test_commands_require_config(runner, tmp_path, monkeypatch):
    monkeypatch.setenv("SERVICECTL_HOME", str(tmp_path / "missing"))

    result = runner.invoke(main, ["list-services"])
    assert result.exit_code == 70
    assert "Config not loaded" in result.output
    assert "servicectl init" in result.output
