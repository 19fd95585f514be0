"""Client-side exceptions."""

from typing import Optional


class TrackerError(Exception):
    """Base exception for portfolio tracker errors."""

    pass


class ApiError(TrackerError):
    """Raised when the server rejects a request or cannot be reached.

    The string form is exactly the best message available, so it can be
    shown to the user as-is.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationError(TrackerError):
    """Raised when user input is rejected before any request is made."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class HolderRequiredError(TrackerError):
    """Raised when an operation needs a specific account holder but 'all' is selected."""

    def __init__(self, action: str = "this action"):
        self.action = action
        super().__init__(f"Select a specific account holder for {action}.")
