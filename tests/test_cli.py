"""Smoke tests for the CLI."""

from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from feedvault.cli import app
from feedvault.errors import FeedFetchError
from feedvault.feeds.models import DashboardState, Feed
from feedvault.feeds.services import STATE_FILENAME, load_dashboard_state, save_dashboard_state
from tests.helpers import ScriptedFetcher, fetched, make_item

FEED = "https://blog.test/feed"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config_file(tmp_path: Path, vault_dir: Path, monkeypatch) -> Path:
    for key in ("FEEDVAULT_VAULT_DIR", "FEEDVAULT_STATE_DIR", "FEEDVAULT_SAVE_FOLDER"):
        monkeypatch.delenv(key, raising=False)
    path = tmp_path / ".feedvault.toml"
    path.write_text(f'[vault]\ndirectory = "{vault_dir.as_posix()}"\n\n[import]\nentry_delay = 0\n')
    return path


@pytest.fixture
def populated(vault_dir: Path) -> Path:
    state = DashboardState(
        feeds=[
            Feed(
                title="Blog",
                url=FEED,
                items=[make_item("guid-1", feed_url=FEED), make_item("guid-2", title="Second", feed_url=FEED)],
            )
        ]
    )
    save_dashboard_state(state, vault_dir)
    return vault_dir


def _fetcher(fetcher: ScriptedFetcher):
    return patch("feedvault.pipeline.dashboard.FeedFetcher", return_value=fetcher)


class TestCLI:
    def test_main_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "import" in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "feedvault 0.4.0" in result.output


class TestImportCommand:
    def test_requires_urls(self, runner: CliRunner, config_file: Path) -> None:
        result = runner.invoke(app, ["-c", str(config_file), "import"])
        assert result.exit_code == 1
        assert "No feed URLs" in result.output

    def test_imports_feed(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        url = "https://a.test/rss"
        with _fetcher(ScriptedFetcher({url: fetched(url)})):
            result = runner.invoke(app, ["-c", str(config_file), "import", url])

        assert result.exit_code == 0, result.output
        assert "Imported 1 feeds" in result.output
        assert "Processed 1 feeds" in result.output
        assert (vault_dir / STATE_FILENAME).exists()

    def test_reports_failures(self, runner: CliRunner, config_file: Path) -> None:
        url = "https://a.test/rss"
        with _fetcher(ScriptedFetcher({url: FeedFetchError(url, "HTTP 500")})):
            result = runner.invoke(app, ["-c", str(config_file), "import", url])

        assert result.exit_code == 0
        assert "1 feeds failed" in result.output

    def test_feeds_file(self, runner: CliRunner, config_file: Path, tmp_path: Path) -> None:
        feeds = tmp_path / "feeds.txt"
        feeds.write_text("# my feeds\nhttps://a.test/rss\n\nhttps://b.test/rss\n")
        fetcher = ScriptedFetcher()
        with _fetcher(fetcher):
            result = runner.invoke(app, ["-c", str(config_file), "import", "-f", str(feeds)])

        assert "Imported 2 feeds" in result.output
        assert fetcher.calls == ["https://a.test/rss", "https://b.test/rss"]


class TestSaveCommand:
    def test_saves_item(self, runner: CliRunner, config_file: Path, populated: Path) -> None:
        result = runner.invoke(app, ["-c", str(config_file), "save", "guid-1"])

        assert result.exit_code == 0, result.output
        assert "Article saved: RSS articles/Test Article.md" in result.output
        assert (populated / "RSS articles" / "Test Article.md").exists()

    def test_unknown_guid(self, runner: CliRunner, config_file: Path, populated: Path) -> None:
        result = runner.invoke(app, ["-c", str(config_file), "save", "nope"])
        assert result.exit_code == 1
        assert "No item with guid nope" in result.output


class TestListAndReconcile:
    def test_list(self, runner: CliRunner, config_file: Path, populated: Path) -> None:
        result = runner.invoke(app, ["-c", str(config_file), "list"])
        assert result.exit_code == 0
        assert "Second" in result.output

    def test_list_saved(self, runner: CliRunner, config_file: Path, populated: Path) -> None:
        (populated / "RSS articles").mkdir()
        (populated / "RSS articles" / "Second.md").write_text("x")

        result = runner.invoke(app, ["-c", str(config_file), "list", "--saved"])

        assert result.exit_code == 0
        assert "Second" in result.output
        assert "Test Article" not in result.output

    def test_reconcile(self, runner: CliRunner, config_file: Path, populated: Path) -> None:
        (populated / "RSS articles").mkdir()
        (populated / "RSS articles" / "Second.md").write_text("x")

        result = runner.invoke(app, ["-c", str(config_file), "reconcile"])

        assert result.exit_code == 0
        assert "1 adopted" in result.output

    def test_refresh_failure_exit_code(self, runner: CliRunner, config_file: Path, populated: Path) -> None:
        with _fetcher(ScriptedFetcher()):
            result = runner.invoke(app, ["-c", str(config_file), "refresh"])
        assert result.exit_code == 1
        assert "Feeds refreshed: 0/1" in result.output

    def test_refresh_folder_without_feeds(self, runner: CliRunner, config_file: Path, populated: Path) -> None:
        fetcher = ScriptedFetcher()
        with _fetcher(fetcher):
            result = runner.invoke(app, ["-c", str(config_file), "refresh", "--folder", "Podcasts"])
        assert result.exit_code == 0
        assert "No feeds found in the selected folder" in result.output
        assert fetcher.calls == []


class TestPruneCommand:
    def test_prune_trims_feed(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        items = [make_item(f"guid-{n}", feed_url=FEED) for n in range(4)]
        save_dashboard_state(
            DashboardState(feeds=[Feed(title="Blog", url=FEED, items=items, max_items_limit=2)]),
            vault_dir,
        )

        result = runner.invoke(app, ["-c", str(config_file), "prune"])

        assert result.exit_code == 0
        assert "1 feeds trimmed" in result.output
        state = load_dashboard_state(vault_dir)
        assert len(state.feeds[0].items) == 2
