"""
Exception hierarchy for artefact-sync.

Every error raised while resolving a sync target, serializing records or
talking to the git hosting provider derives from ``SyncError``. Each class
carries the HTTP status the trigger endpoint answers with, and whether a
caller may simply re-run the whole sync.

Exception Hierarchy:
    SyncError (base)
    ├── ConfigError (missing or malformed sync settings)
    │   ├── AccessDeniedError (principal may not use the target)
    │   └── TargetNotFoundError (profile or team row missing)
    ├── SerializationError (record cannot be rendered)
    ├── ProviderError (hosting API failure)
    │   └── GitHubAPIError (non-2xx response or transport failure)
    ├── RefConflictError (branch moved since it was read)
    └── StoreError (record/settings store failure)

Example:
    >>> try:
    ...     raise ConfigError("GitHub repository not configured", scope="personal")
    ... except SyncError as e:
    ...     print(e.status_code, e.context)
    400 {'scope': 'personal'}
"""

from __future__ import annotations


class SyncError(Exception):
    """
    Base exception for all artefact-sync errors.

    Attributes:
        message: Human-readable error message, safe to show to the user
        context: Additional diagnostic context (never contains credentials)
    """

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class ConfigError(SyncError):
    """
    Sync settings are missing or invalid.

    Not retryable: the user has to fix their settings first.
    """

    status_code = 400


class AccessDeniedError(ConfigError):
    """The principal is not allowed to sync the requested scope."""

    status_code = 403


class TargetNotFoundError(ConfigError):
    """The profile or team holding the sync settings does not exist."""

    status_code = 404


class SerializationError(SyncError):
    """
    A record could not be turned into file content.

    Fatal for the whole run: publishing the remaining records would leave the
    repository inconsistent with the database.
    """

    status_code = 422

    def __init__(self, record_id: str, message: str, **context: object) -> None:
        super().__init__(message, record_id=record_id, **context)
        self.record_id = record_id


class ProviderError(SyncError):
    """The git hosting provider failed; the caller may retry the whole sync."""

    status_code = 502
    retryable = True


class GitHubAPIError(ProviderError):
    """
    A GitHub REST call failed.

    Attributes:
        operation: Name of the object-graph primitive that failed
        status: HTTP status code, or None for transport failures
        rate_limited: GitHub refused the call because of a (secondary) rate limit
    """

    def __init__(
        self,
        operation: str,
        message: str,
        status: int | None = None,
        rate_limited: bool = False,
        **context: object,
    ) -> None:
        super().__init__(message, operation=operation, status=status, **context)
        self.operation = operation
        self.status = status
        self.rate_limited = rate_limited

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.message} ({self.operation}: HTTP {self.status})"
        return f"{self.message} ({self.operation})"


class RefConflictError(SyncError):
    """
    The branch moved between reading its head and advancing it.

    Raised when a concurrent sync won the race. The new commit is left
    orphaned and nothing visible changed.
    """

    status_code = 409


class StoreError(SyncError):
    """Reading records or settings, or recording the sync time, failed."""

    status_code = 500


__all__ = [
    "SyncError",
    "ConfigError",
    "AccessDeniedError",
    "TargetNotFoundError",
    "SerializationError",
    "ProviderError",
    "GitHubAPIError",
    "RefConflictError",
    "StoreError",
]
