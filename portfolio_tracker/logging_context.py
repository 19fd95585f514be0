"""Logging setup with the active view's load cycle attached to each record."""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

# Set while a view's load cycle runs (async-safe via contextvars)
_view_context: ContextVar[Optional[str]] = ContextVar("view_context", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(view)s] %(name)s: %(message)s"


def get_view_context() -> Optional[str]:
    """Get the current view context, e.g. 'orders#3'."""
    return _view_context.get()


@contextmanager
def view_context(view_name: str, generation: int) -> Iterator[str]:
    """Tag log records emitted inside the block with ``view#generation``."""
    label = f"{view_name}#{generation}"
    token = _view_context.set(label)
    try:
        yield label
    finally:
        _view_context.reset(token)


class ViewContextFilter(logging.Filter):
    """Logging filter that adds the view context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.view = get_view_context() or "-"
        return True


def setup_logging(level: str = "INFO", filename: Optional[str] = None) -> None:
    """Configure the root logger once.

    A TUI owns the terminal, so logs go to ``filename`` when given.
    """
    root_logger = logging.getLogger()
    handler: logging.Handler
    if filename:
        handler = logging.FileHandler(filename, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(ViewContextFilter())

    root_logger.handlers = [h for h in root_logger.handlers if not getattr(h, "_portfolio_tracker", False)]
    handler._portfolio_tracker = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())
