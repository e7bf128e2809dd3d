"""Tests for the worship-sound CLI commands."""

from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from worship_sound import __version__
from worship_sound.app.errors import TransportError
from worship_sound.app.main import app
from worship_sound.app.services.playback import PlaybackEngine

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path):
    """Config file keeping logs inside the test directory."""
    path = tmp_path / "config.toml"
    path.write_text(
        f'[app]\nlog_dir = "{tmp_path / "logs"}"\n\n'
        '[search]\nminimum_score = 25\n'
    )
    return path


@pytest.fixture
def deezer():
    """Patched DeezerClient; configure ``deezer.search`` per test."""
    with patch("worship_sound.app.main.DeezerClient") as client_cls:
        client_cls.return_value.search = AsyncMock()
        yield client_cls.return_value


class TestVersion:
    """Tests for --version."""

    def test_version(self):
        """Prints the package version."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestSearchCommand:
    """Tests for 'search' command."""

    def test_search_found(self, config_path, deezer, spiritual_page):
        """Spiritual results are listed with their scores."""
        deezer.search.return_value = spiritual_page

        result = runner.invoke(app, ["search", "oceans", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "Oceans" in result.output
        assert "Hillsong" in result.output
        assert "2 spiritual track(s) kept from 3 returned" in result.output
        deezer.search.assert_awaited_once_with("oceans worship christian gospel spiritual", 50, 0)

    def test_search_shows_match_label(self, config_path, deezer, spiritual_page):
        """Each row carries a coarse label for its score."""
        deezer.search.return_value = spiritual_page

        result = runner.invoke(app, ["search", "oceans", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "Match" in result.output
        assert "medium" in result.output
        assert "low" in result.output

    def test_search_limit_and_offset(self, config_path, deezer, spiritual_page):
        """Pagination options are passed through."""
        deezer.search.return_value = spiritual_page

        result = runner.invoke(app, ["search", "grace", "-n", "10", "--offset", "20", "--config", str(config_path)])

        assert result.exit_code == 0
        deezer.search.assert_awaited_once_with("grace", 10, 20)

    def test_search_empty(self, config_path, deezer, secular_page):
        """Nothing spiritual exits non-zero with a suggestion."""
        deezer.search.return_value = secular_page

        result = runner.invoke(app, ["search", "synthpop", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "No spiritual songs found" in result.output
        assert deezer.search.await_count == 2

    def test_search_transport_failure(self, config_path, deezer):
        """Network failures are reported with a hint."""
        deezer.search.side_effect = TransportError("Network error: unreachable")

        result = runner.invoke(app, ["search", "oceans", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "Search failed" in result.output
        assert "Check your connection" in result.output

    def test_search_blank_query(self, config_path, deezer):
        """Blank queries never reach the service."""
        result = runner.invoke(app, ["search", "  ", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "Enter a search term" in result.output
        deezer.search.assert_not_awaited()

    def test_search_min_score(self, config_path, deezer, spiritual_page):
        """--min-score narrows results and requests the larger page."""
        deezer.search.return_value = spiritual_page

        result = runner.invoke(app, ["search", "oceans", "--min-score", "30", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "1 spiritual track(s) kept from 3 returned" in result.output
        deezer.search.assert_awaited_once_with("oceans worship christian gospel spiritual", 100, 0)

    def test_search_high_quality_uses_config_score(self, config_path, deezer, spiritual_page):
        """--high-quality uses the configured minimum score."""
        deezer.search.return_value = spiritual_page

        result = runner.invoke(app, ["search", "oceans", "-q", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "1 spiritual track(s) kept" in result.output

    def test_search_high_quality_empty(self, config_path, deezer, spiritual_page):
        """Nothing above the threshold is reported as empty."""
        deezer.search.return_value = spiritual_page

        result = runner.invoke(app, ["search", "oceans", "--min-score", "95", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "No high-quality spiritual songs found" in result.output

    def test_search_missing_config(self, tmp_path, deezer):
        """An explicit config path must exist."""
        result = runner.invoke(app, ["search", "oceans", "--config", str(tmp_path / "missing.toml")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_search_corrupt_config(self, tmp_path, deezer):
        """Unparseable config is reported."""
        path = tmp_path / "config.toml"
        path.write_text("not = [valid")

        result = runner.invoke(app, ["search", "oceans", "--config", str(path)])

        assert result.exit_code == 1
        assert "Error loading config" in result.output


class TestTrendingCommand:
    """Tests for 'trending' command."""

    def test_trending(self, config_path, deezer, spiritual_page):
        """Trending results are listed."""
        deezer.search.return_value = spiritual_page

        result = runner.invoke(app, ["trending", "--limit", "20", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "Trending" in result.output
        assert deezer.search.await_args.args[1:] == (20, 0)

    def test_trending_empty(self, config_path, deezer, secular_page):
        """Two empty attempts exit non-zero."""
        deezer.search.return_value = secular_page

        result = runner.invoke(app, ["trending", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "No spiritual songs available" in result.output


class TestPlayCommand:
    """Tests for 'play' command."""

    def test_play_to_completion(self, config_path, deezer, spiritual_page, fake_backend):
        """The chosen result plays until its preview ends."""
        deezer.search.return_value = spiritual_page
        fake_backend.finish_after = 0.05
        engine = PlaybackEngine(fake_backend)

        with patch("worship_sound.app.main.build_engine", return_value=engine):
            result = runner.invoke(app, ["play", "oceans", "--index", "2", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "Now playing" in result.output
        assert fake_backend.log == [
            ("open", "https://cdn.example/3.mp3"),
            ("close", "https://cdn.example/3.mp3"),
        ]

    def test_play_failure(self, config_path, deezer, spiritual_page, fake_backend):
        """Preview load failures exit non-zero."""
        deezer.search.return_value = spiritual_page
        fake_backend.failing.add("https://cdn.example/1.mp3")
        engine = PlaybackEngine(fake_backend)

        with patch("worship_sound.app.main.build_engine", return_value=engine):
            result = runner.invoke(app, ["play", "oceans", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "Playback failed" in result.output

    def test_play_index_out_of_range(self, config_path, deezer, spiritual_page):
        """Asking for a result past the end fails."""
        deezer.search.return_value = spiritual_page

        result = runner.invoke(app, ["play", "oceans", "-i", "5", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "Only 2 result(s) found" in result.output

    def test_play_no_results(self, config_path, deezer, secular_page):
        """Nothing to play exits non-zero."""
        deezer.search.return_value = secular_page

        result = runner.invoke(app, ["play", "synthpop", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "No spiritual songs found" in result.output


class TestConfigCommand:
    """Tests for 'config' command."""

    def test_creates_default(self, tmp_path):
        """A default config file is written when missing."""
        path = tmp_path / "config.toml"

        result = runner.invoke(app, ["config", "--config", str(path)])

        assert result.exit_code == 0
        assert path.exists()
        assert "Created default config" in result.output
        assert "fallback 30" in result.output

    def test_shows_existing(self, config_path):
        """Existing values are shown."""
        result = runner.invoke(app, ["config", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "Created default config" not in result.output
        assert "min score 25" in result.output
