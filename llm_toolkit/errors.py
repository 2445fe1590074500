"""Error taxonomy shared by the facade and every provider adapter."""

from __future__ import annotations

from typing import Any


class ToolkitError(Exception):
    """Base class for all errors raised by llm_toolkit."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details: dict[str, Any] = details or {}

    def __str__(self) -> str:
        return f"{self.message} (code={self.code})"


class ConfigurationError(ToolkitError):
    """Raised at construction when the selected backend is misconfigured."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, code=400, details=details)


class APIError(ToolkitError):
    """
    Raised when a backend call fails for any reason.

    ``code`` carries the backend HTTP status when known, 501 for operations
    the active backend does not implement, and 500 for anything unclassified.
    ``details`` keeps the provider tag and the original failure.
    """

    @property
    def status_code(self) -> int:
        return self.code

    @property
    def provider(self) -> str | None:
        return self.details.get("provider")
