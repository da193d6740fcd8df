# fruitfusion/errors.py
from __future__ import annotations


class HostedStoreError(Exception):
    """A hosted-store call failed (network, timeout, or non-2xx response)."""

    def __init__(self, message: str, *, path: str = "", status_code: int | None = None):
        super().__init__(message)
        self.path = path
        self.status_code = status_code


class RepositoryError(Exception):
    """An operation failed on both the hosted store and the local cache."""


class CheckoutValidationError(ValueError):
    """Checkout input rejected at the boundary. `title` + `message` are user-facing."""

    def __init__(self, title: str, message: str):
        super().__init__(f"{title}: {message}")
        self.title = title
        self.message = message
