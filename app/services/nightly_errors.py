"""Error types for nightly E2E status operations."""

from __future__ import annotations


class NightlyConfigurationError(RuntimeError):
    """Raised when required nightly status configuration is missing."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class GitHubAPIError(RuntimeError):
    """Raised when GitHub Actions API calls fail."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CacheStoreError(RuntimeError):
    """Raised when a cache backend read or write fails."""
