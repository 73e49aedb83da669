from __future__ import annotations

import cappa


class ImproperlyConfiguredError(cappa.Exit):
    """Raised when djangosites.toml describes something that cannot be rendered."""

    def __init__(self, message: str):
        super().__init__(message, code=1)


class ConflictError(ImproperlyConfiguredError):
    """Two sites claim the same address, instance name, or system identity."""
