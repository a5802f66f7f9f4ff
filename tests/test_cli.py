import os

import pytest
import yaml
from click.testing import CliRunner

from qcmd import cli as cli_module
from qcmd.cli import EXIT_INTERNAL_ERROR, cli
from qcmd.config import Config, ProviderConfig, save_config
from qcmd.providers import NetworkError

from .conftest import FakeProvider

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX shell semantics")


@pytest.fixture
def configured(config_file, monkeypatch):
    save_config(Config(provider=ProviderConfig(api_key="sk-test")))
    monkeypatch.setenv("SHELL", "/bin/sh")
    return config_file


def _use_provider(monkeypatch, provider):
    monkeypatch.setattr(cli_module, "get_provider", lambda settings, credential: provider)
    return provider


def test_config_path(config_file) -> None:
    result = CliRunner().invoke(cli, ["--config-path"])
    assert result.exit_code == 0
    assert result.output.strip() == str(config_file)
    assert not config_file.exists()


def test_no_query_shows_help(configured) -> None:
    result = CliRunner().invoke(cli, [])
    assert result.exit_code == 0
    assert "Usage" in result.output


@posix_only
def test_query_words_are_joined(configured, monkeypatch) -> None:
    provider = _use_provider(monkeypatch, FakeProvider("```\ntrue\n```"))
    result = CliRunner().invoke(cli, ["find", "big", "files"], input="y\n")
    assert result.exit_code == 0, result.output
    assert provider.requests[0].query == "find big files"


@posix_only
def test_command_failure_exit_code(configured, monkeypatch) -> None:
    _use_provider(monkeypatch, FakeProvider("```\nexit 4\n```"))
    result = CliRunner().invoke(cli, ["fail", "please"], input="\n")
    assert result.exit_code == 4


def test_decline_exits_zero(configured, monkeypatch) -> None:
    _use_provider(monkeypatch, FakeProvider("```\nrm -rf /tmp/*\n```"))
    result = CliRunner().invoke(cli, ["delete", "everything", "in", "tmp"], input="no\n")
    assert result.exit_code == 0
    assert "Destructive" in result.output
    assert "Command not executed." in result.output


@posix_only
def test_yes_flag_skips_prompt(configured, monkeypatch, tmp_path) -> None:
    _use_provider(monkeypatch, FakeProvider("```\ntouch made-by-q\n```"))
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["-y", "make", "a", "file"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "made-by-q").exists()
    assert "Run this command" not in result.output


def test_provider_failure_is_internal_error(configured, monkeypatch) -> None:
    _use_provider(monkeypatch, FakeProvider(NetworkError("timeout")))
    result = CliRunner().invoke(cli, ["list", "files"])
    assert result.exit_code == EXIT_INTERNAL_ERROR
    assert "Could not reach AI provider: timeout" in result.output


def test_ambiguous_response_shows_candidates(configured, monkeypatch) -> None:
    _use_provider(monkeypatch, FakeProvider("Either:\nls -la\nls -lah"))
    result = CliRunner().invoke(cli, ["list", "files"])
    assert result.exit_code == EXIT_INTERNAL_ERROR
    assert "ls -lah" in result.output


def test_missing_api_key(config_file) -> None:
    save_config(Config(provider=ProviderConfig(api_key="")))
    result = CliRunner().invoke(cli, ["list", "files"])
    assert result.exit_code == EXIT_INTERNAL_ERROR
    assert "API key not configured" in result.output


def test_config_subcommand(config_file) -> None:
    result = CliRunner().invoke(cli, ["config"], input="openrouter\n\nsk-new\n")
    assert result.exit_code == 0, result.output
    data = yaml.safe_load(config_file.read_text())
    assert data["provider"]["api_key"] == "sk-new"
    assert data["provider"]["name"] == "openrouter"
