"""Configuration management for worship-sound.

Settings for the search API, search policy, preview playback and logging,
stored as TOML in the platform config directory.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import tomllib
import tomli_w


def get_app_config_dir() -> Path:
    """Get the platform-specific config directory for worship-sound.

    Returns:
        Path to the config directory
    """
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "worship-sound"
        return Path.home() / "AppData" / "Roaming" / "worship-sound"

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / "worship-sound"
    return Path.home() / ".config" / "worship-sound"


def get_app_config_path() -> Path:
    """Get the path to the config.toml file."""
    return get_app_config_dir() / "config.toml"


@dataclass
class AppConfig:
    """Configuration for worship-sound.

    Attributes:
        api_base_url: Base URL of the track search API
        timeout_seconds: HTTP timeout for search and preview fetches
        default_limit: Results requested by a search
        fallback_limit: Results requested by a fallback attempt
        high_quality_limit: Results requested by a high quality search
        minimum_score: Default minimum score for high quality searches
        progress_interval_ms: Cadence of playback progress events
        volume: Preview volume (0.0 to 1.0)
        buffer_ms: Audio device buffer size in milliseconds
        log_dir: Directory for session logs
    """

    # [api]
    api_base_url: str = "https://api.deezer.com"
    timeout_seconds: float = 30.0

    # [search]
    default_limit: int = 50
    fallback_limit: int = 30
    high_quality_limit: int = 100
    minimum_score: int = 40

    # [playback]
    progress_interval_ms: int = 500
    volume: float = 0.8
    buffer_ms: int = 200

    # [app]
    log_dir: Path = field(default_factory=lambda: get_app_config_dir() / "logs")

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AppConfig":
        """Load configuration from TOML file.

        Args:
            path: Path to config file (defaults to standard location)

        Returns:
            AppConfig instance with loaded values

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        if path is None:
            path = get_app_config_path()

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        config = cls()

        api = data.get("api", {})
        config.api_base_url = api.get("base_url", config.api_base_url)
        config.timeout_seconds = float(api.get("timeout_seconds", config.timeout_seconds))

        search = data.get("search", {})
        config.default_limit = int(search.get("default_limit", config.default_limit))
        config.fallback_limit = int(search.get("fallback_limit", config.fallback_limit))
        config.high_quality_limit = int(search.get("high_quality_limit", config.high_quality_limit))
        config.minimum_score = int(search.get("minimum_score", config.minimum_score))

        playback = data.get("playback", {})
        config.progress_interval_ms = int(playback.get("progress_interval_ms", config.progress_interval_ms))
        config.volume = max(0.0, min(1.0, float(playback.get("volume", config.volume))))
        config.buffer_ms = int(playback.get("buffer_ms", config.buffer_ms))

        app = data.get("app", {})
        if "log_dir" in app:
            config.log_dir = Path(app["log_dir"])

        return config

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to TOML file.

        Args:
            path: Path to save config (defaults to standard location)
        """
        if path is None:
            path = get_app_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "api": {
                "base_url": self.api_base_url,
                "timeout_seconds": self.timeout_seconds,
            },
            "search": {
                "default_limit": self.default_limit,
                "fallback_limit": self.fallback_limit,
                "high_quality_limit": self.high_quality_limit,
                "minimum_score": self.minimum_score,
            },
            "playback": {
                "progress_interval_ms": self.progress_interval_ms,
                "volume": self.volume,
                "buffer_ms": self.buffer_ms,
            },
            "app": {
                "log_dir": str(self.log_dir),
            },
        }

        with open(path, "wb") as f:
            tomli_w.dump(data, f)


def ensure_app_config_exists() -> AppConfig:
    """Load the config file, creating a default one if needed.

    Returns:
        AppConfig instance
    """
    config_path = get_app_config_path()

    if config_path.exists():
        try:
            return AppConfig.load(config_path)
        except (tomllib.TOMLDecodeError, ValueError):
            # Corrupted config is replaced by defaults
            pass

    config = AppConfig()
    config.save(config_path)
    return config
