"""
Application Error Taxonomy

This module defines the exception hierarchy shared by the boot sequence and the
request pipeline. The split mirrors how failures are contained:

Startup-fatal:
--------------
- `ConfigError`: a required configuration key is missing or malformed.
- `DataStoreConnectionError`: the data store could not be reached at boot.

Both are handled by the process orchestrator, which logs them and exits with a
non-zero status. They never reach the request pipeline.

Request-recoverable:
--------------------
- `DataStoreError`: a driver failure while serving a request.
- `DataStoreUnavailableError`: a request touched the data store before it was
  connected (or after it was closed).

These are converted into `503` responses by the error boundary
(`app.api.error_handlers`).
"""


class AppError(Exception):
    """Base class for all application errors."""


class ConfigError(AppError, KeyError):
    """Raised when a configuration key path is missing or has an invalid value."""

    def __str__(self) -> str:
        # KeyError wraps its message in quotes
        return str(self.args[0]) if self.args else ""


class DataStoreConnectionError(AppError):
    """Raised when the initial data store connection attempt fails."""


class DataStoreError(AppError):
    """Raised when a data store operation fails during a request."""


class DataStoreUnavailableError(DataStoreError):
    """Raised when a data store operation is attempted without a live connection."""
