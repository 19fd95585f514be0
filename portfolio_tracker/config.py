"""Client configuration from CLI arguments, environment and defaults."""

import argparse
from pathlib import Path
from typing import Optional, Sequence

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "http://localhost:3000"


class ClientSettings(BaseSettings):
    """Settings loaded from ``PORTFOLIO_*`` environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="PORTFOLIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_url: str = DEFAULT_API_URL
    settings_path: Path = Path("~/.portfolio-tracker/settings.json")

    log_level: str = "INFO"
    log_file: Optional[str] = "portfolio-tracker.log"

    # None = no timeout, same as the browser's fetch
    request_timeout: Optional[float] = None

    price_polling: bool = True


def get_config(argv: Optional[Sequence[str]] = None) -> ClientSettings:
    """Return settings with CLI args > env vars > defaults."""
    parser = argparse.ArgumentParser(description="Portfolio tracker")
    parser.add_argument("--api-url", type=str, default=None, help="Portfolio API URL")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level")
    parser.add_argument(
        "--no-polling",
        action="store_true",
        help="Disable background price refresh",
    )
    args = parser.parse_args(argv)

    overrides = {}
    if args.api_url:
        overrides["api_url"] = args.api_url
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.no_polling:
        overrides["price_polling"] = False

    config = ClientSettings(**overrides)
    config.api_url = config.api_url.rstrip("/")
    return config
