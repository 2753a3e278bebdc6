"""Exceptions raised by landgit and helpers to convert them to exit codes."""

from __future__ import annotations

import logging

log = logging.getLogger("landgit")


class LandgitError(RuntimeError):
    """Base class for all landgit errors.

    Subclasses setting `expected` to True describe conditions that are
    reported to the operator but are not failures (e.g., the repository
    does not exist remotely), so the process exits with status zero.
    """

    expected = False


class WorkingDirectoryError(LandgitError):
    """Error emitted when we cannot create the remote working directory."""


class RepositoryNotFoundError(LandgitError):
    """Error emitted when the ledger does not know the repository."""

    expected = True

    def __init__(self, repo_id: str):
        super().__init__(f"repository '{repo_id}' not found")
        self.repo_id = repo_id


class DownloadError(LandgitError):
    """Error emitted when we cannot download a snapshot archive."""


class UnpackError(LandgitError):
    """Error emitted when a snapshot archive cannot be unpacked."""


class CloneError(LandgitError):
    """Error emitted when git cannot create the bare repository."""


class UploadError(LandgitError):
    """Error emitted when every upload provider failed.

    Attributes:
        errors: (provider name, exception) pairs in the order we tried them.
    """

    def __init__(self, errors: list[tuple[str, Exception]]):
        names = ", ".join(f"{name}: {exc}" for name, exc in errors) or "no providers"
        super().__init__(f"all upload providers failed ({names})")
        self.errors = errors


class PublishError(LandgitError):
    """Error emitted when the ledger rejected a new snapshot id.

    The blob already exists remotely, so we keep its id around to
    let the operator know what has been uploaded.
    """

    def __init__(self, message: str, *, blob_id: str):
        super().__init__(message)
        self.blob_id = blob_id


class Interceptor:
    """
    Context manager to intercept exceptions.

    Use as a context manager:

        interceptor = Interceptor()
        with interceptor:
            func()
        sys.exit(interceptor.exitcode())

    Exceptions are logged and suppressed. Expected conditions (see
    `LandgitError.expected`) are logged as plain messages and do not
    count as failures. KeyboardInterrupt is never suppressed.
    """

    def __init__(self):
        self.failed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is None:
            return False
        if issubclass(exc_type, KeyboardInterrupt):
            return False
        _ = traceback
        if isinstance(exc_value, LandgitError) and exc_value.expected:
            log.warning("%s", exc_value)
            return True
        log.error("operation failed: %s", exc_value)
        self.failed = True
        return True

    def exitcode(self) -> int:
        """
        Return the exitcode to pass to sys.exit.

        Zero on success, 1 on failure.
        """
        return int(self.failed)
