from pathlib import Path

import pytest
from typer.testing import CliRunner

from ebook_deploy import cli
from ebook_deploy.cache.manager import PublishCache
from ebook_deploy.cache.models import PublishRecord
from ebook_deploy.models.config import DeployConfig

runner = CliRunner()


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> list[DeployConfig]:
    """Replace the deploy run with one that records its configuration."""
    configs: list[DeployConfig] = []

    def fake_execute_deploy(config, console, runner=None):
        configs.append(config)
        return 0

    monkeypatch.setattr(cli, "execute_deploy", fake_execute_deploy)
    return configs


def test_requires_a_directory():
    result = runner.invoke(cli.app, [])

    assert result.exit_code == 2


def test_defaults(captured: list[DeployConfig], tmp_path: Path):
    result = runner.invoke(cli.app, [str(tmp_path / "emma.git"), "--scripts-dir", str(tmp_path)])

    assert result.exit_code == 0, result.output
    config = captured[0]
    assert config.group == "se"
    assert config.webroot == Path("/standardebooks.org/web")
    assert config.weburl == "https://standardebooks.org"
    assert config.images and config.build and config.epubcheck and config.recompose
    assert config.last_push_hash is None
    assert config.cache_dir is None
    assert config.repositories == [tmp_path / "emma.git"]


def test_options(captured: list[DeployConfig], tmp_path: Path):
    result = runner.invoke(
        cli.app,
        [
            str(tmp_path / "a.git"), str(tmp_path / "b.git"),
            "-v",
            "-g", "editors",
            "--webroot", str(tmp_path / "web"),
            "--weburl", "https://example.org/",
            "--no-images",
            "--no-epubcheck",
            "--no-recompose",
            "-l", "abc123",
            "--scripts-dir", str(tmp_path),
        ],
    )

    assert result.exit_code == 0, result.output
    config = captured[0]
    assert config.verbose
    assert config.group == "editors"
    assert config.webroot == tmp_path / "web"
    assert config.weburl == "https://example.org"
    assert not config.images
    assert config.build
    assert not config.epubcheck
    assert not config.recompose
    assert config.last_push_hash == "abc123"
    assert config.repositories == [tmp_path / "a.git", tmp_path / "b.git"]


def test_environment_defaults(captured: list[DeployConfig], tmp_path: Path):
    result = runner.invoke(
        cli.app,
        [str(tmp_path / "emma.git")],
        env={"SE_GROUP": "web", "SE_SCRIPTS_DIR": str(tmp_path)},
    )

    assert result.exit_code == 0, result.output
    assert captured[0].group == "web"
    assert captured[0].scripts_dir == tmp_path


def test_empty_last_push_hash_means_no_gating(captured: list[DeployConfig], tmp_path: Path):
    runner.invoke(cli.app, [str(tmp_path / "emma.git"), "-l", "", "--scripts-dir", str(tmp_path)])

    assert captured[0].last_push_hash is None


def test_failed_batch_exits_with_its_code(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setattr(cli, "execute_deploy", lambda config, console, runner=None: 1)

    result = runner.invoke(cli.app, [str(tmp_path / "emma.git"), "--scripts-dir", str(tmp_path)])

    assert result.exit_code == 1


def test_precondition_failure_exits_one(tmp_path: Path):
    result = runner.invoke(
        cli.app,
        [
            str(tmp_path / "emma.git"),
            "--webroot", str(tmp_path / "missing"),
            "--scripts-dir", str(tmp_path),
        ],
    )

    assert result.exit_code == 1
    assert "Error:" in result.output


def _seed_cache(cache_dir: Path) -> None:
    cache = PublishCache(cache_dir)
    cache.record(
        PublishRecord(
            repository="/srv/emma.git",
            identifier="jane-austen/emma",
            src_hash="0123456789abcdef",
        )
    )


def test_cache_list(tmp_path: Path):
    _seed_cache(tmp_path)

    result = runner.invoke(cli.cache_app, ["list", "--dir", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "jane-austen/emma" in result.output


def test_cache_list_empty(tmp_path: Path):
    result = runner.invoke(cli.cache_app, ["list", "--dir", str(tmp_path)])

    assert result.exit_code == 0
    assert "No cached repositories" in result.output


def test_cache_clear(tmp_path: Path):
    _seed_cache(tmp_path)

    result = runner.invoke(cli.cache_app, ["clear", "-d", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Cleared 1" in result.output
    assert PublishCache(tmp_path).list_cached() == []
