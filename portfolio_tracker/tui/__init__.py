"""Terminal front end."""

from portfolio_tracker.tui.app import TrackerApp, run

__all__ = ["TrackerApp", "run"]
