"""Exception types raised by decaymem."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pydantic import ValidationError


class ConfigurationError(ValueError):
    """Raised when store or per-entry options are invalid.

    Always raised before any state change is applied. ``errors`` holds
    ``(field, message)`` pairs so callers can report every bad option at once.
    """

    def __init__(self, message: str, errors: list[tuple[str, str]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)

    @classmethod
    def from_validation_error(cls, context: str, exc: ValidationError) -> ConfigurationError:
        """Translate a pydantic ValidationError into a ConfigurationError."""
        errors: list[tuple[str, str]] = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
            errors.append((field, err.get("msg", "invalid value")))
        details = "; ".join(f"{field}: {msg}" for field, msg in errors)
        return cls(f"invalid {context}: {details}", errors)
