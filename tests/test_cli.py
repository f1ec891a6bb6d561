from __future__ import annotations

from pathlib import Path
from typing import List

import pytest
from typer.testing import CliRunner

from monochrome_dl import __version__
from monochrome_dl.cli import app as cli_app
from monochrome_dl.models.catalog import Artist
from monochrome_dl.models.config import DownloadConfig

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "monochrome-dl" / "config.ini"
    monkeypatch.setattr(cli_app, "CONFIG_FILE", path)
    for name in (
        "MONOCHROME_QUALITY",
        "MONOCHROME_API_URL",
        "MONOCHROME_INSTANCES_URL",
        "MONOCHROME_DOWNLOAD_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    return path


class FakeSearchClient:
    def __init__(self, artists: List[Artist]) -> None:
        self.artists = artists
        self.queries: List[str] = []
        self.closed = False

    async def search_artists(self, query: str) -> List[Artist]:
        self.queries.append(query)
        return self.artists

    async def close(self) -> None:
        self.closed = True


def test_version() -> None:
    result = runner.invoke(cli_app.app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_template_help_lists_placeholders() -> None:
    result = runner.invoke(cli_app.app, ["--template-help"])

    assert result.exit_code == 0
    assert "{trackNumber}" in result.output
    assert "{albumArtist}" in result.output


def test_init_writes_config_file(config_file: Path) -> None:
    result = runner.invoke(cli_app.app, ["init"])

    assert result.exit_code == 0
    assert config_file.is_file()
    assert "quality = LOSSLESS" in config_file.read_text(encoding="utf-8")


def test_invalid_config_exits_with_error(config_file: Path) -> None:
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[DEFAULT]\nquality = ultra\n", encoding="utf-8")

    result = runner.invoke(cli_app.app, ["--show-config"])

    assert result.exit_code == 1
    assert "validation failed" in result.output


def test_search_prints_matching_artists(config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = FakeSearchClient([Artist(id="7", name="Test Artist"), Artist(id="8", name="Tester")])
    monkeypatch.setattr(cli_app, "create_client", lambda config, reporter=None: client)

    result = runner.invoke(cli_app.app, ["search", "test", "artist"])

    assert result.exit_code == 0
    assert client.queries == ["test artist"]
    assert client.closed
    assert "Test Artist" in result.output
    assert "Tester" in result.output


def test_search_without_results(config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli_app, "create_client", lambda config, reporter=None: FakeSearchClient([]))

    result = runner.invoke(cli_app.app, ["search", "nobody"])

    assert result.exit_code == 0
    assert "No artists found" in result.output


class FakeRefreshClient:
    def __init__(self, succeeds: bool) -> None:
        self.succeeds = succeeds
        self.urls: List[str] = []

    async def refresh_instances(self, url: str) -> bool:
        self.urls.append(url)
        return self.succeeds


@pytest.mark.asyncio
async def test_instance_list_loads_only_from_a_configured_url() -> None:
    client = FakeRefreshClient(succeeds=True)

    await cli_app._refresh_instances(client, DownloadConfig())
    assert client.urls == []

    await cli_app._refresh_instances(
        client, DownloadConfig(instances_url="https://lists.test/instances.json")
    )
    assert client.urls == ["https://lists.test/instances.json"]


@pytest.mark.asyncio
async def test_single_instance_override_skips_the_instance_list() -> None:
    client = FakeRefreshClient(succeeds=True)
    config = DownloadConfig(
        api_url="https://mirror.test", instances_url="https://lists.test/instances.json"
    )

    await cli_app._refresh_instances(client, config)

    assert client.urls == []


@pytest.mark.asyncio
async def test_failed_instance_list_keeps_builtin_list(capsys: pytest.CaptureFixture) -> None:
    client = FakeRefreshClient(succeeds=False)

    await cli_app._refresh_instances(
        client, DownloadConfig(instances_url="https://lists.test/instances.json")
    )

    assert client.urls == ["https://lists.test/instances.json"]
    assert "Keeping the built-in instance list" in capsys.readouterr().out
