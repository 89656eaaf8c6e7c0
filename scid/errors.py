"""Error taxonomy for scid.

Construction-time errors (``ConfigurationError``) and snapshot errors
(``ResolutionError``, ``VcsError``) abort the whole run before any action
executes.  ``ActionError`` and ``InfraError`` are per-action: they are
recorded on the outcome, logged, and never escape a task boundary.
"""

from __future__ import annotations


class ScidError(Exception):
    """Base class for every error raised by scid."""


class ConfigurationError(ScidError):
    """Raised for invalid configuration, unknown dependencies or cycles."""


class ResolutionError(ScidError):
    """Raised when a revision expression or tag does not resolve."""


class NoMatchingTagError(ResolutionError):
    """Raised when no tag satisfies the configured tag policy."""


class VcsError(ScidError):
    """Raised when a clone, pull, checkout or diff fails."""


class ActionError(ScidError):
    """An action ran but exited non-zero."""

    def __init__(self, returncode: int, output: str = "") -> None:
        super().__init__(f"exit status {returncode}")
        self.returncode = returncode
        self.output = output


class InfraError(ScidError):
    """An action could not be attempted, or its notification failed."""


class DecryptionError(InfraError):
    """An encrypted value overlay could not be decrypted."""
