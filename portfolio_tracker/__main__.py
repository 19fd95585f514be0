"""Entry point for `python -m portfolio_tracker`."""

import logging

from portfolio_tracker.config import get_config
from portfolio_tracker.logging_context import setup_logging


def main() -> None:
    config = get_config()
    setup_logging(config.log_level, config.log_file)
    logging.getLogger(__name__).info(f"Starting portfolio tracker against {config.api_url}")

    # Import the app after config so argparse runs first
    from portfolio_tracker.tui import run

    run(config)


if __name__ == "__main__":
    main()
