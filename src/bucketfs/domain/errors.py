"""Error definitions shared across bucketfs layers."""

# ============================================================================
#                              Root error
# ============================================================================


class BucketFSError(Exception):
    """Base class for all bucketfs errors."""


# ============================================================================
#                         Configuration errors
# ============================================================================


class ConfigurationError(BucketFSError):
    """Raised when the mount configuration is incomplete or invalid.

    Configuration errors are raised at construction time (config loading,
    client construction), never in the middle of a filesystem operation.
    """


class InvalidUriError(BucketFSError, ValueError):
    """Raised when a URI does not belong to the mounted scheme."""

    def __init__(self, uri: str, reason: str) -> None:
        super().__init__(f"Invalid URI {uri!r}: {reason}")
        self.uri = uri
        self.reason = reason


# ============================================================================
#                              Mode errors
# ============================================================================


class StreamModeError(BucketFSError):
    """Raised when a stream cannot be opened with the requested mode."""

    def __init__(self, mode: str, message: str) -> None:
        super().__init__(message)
        self.mode = mode


class ModeConflictError(StreamModeError):
    """Raised when a mode asks to read and write at the same time."""

    def __init__(self, mode: str) -> None:
        super().__init__(
            mode, f"Cannot simultaneously read and write (mode {mode!r})."
        )


class ModeNotSupportedError(StreamModeError):
    """Raised for modes outside of r, w, a and x."""

    def __init__(self, mode: str) -> None:
        super().__init__(
            mode, f"Mode {mode!r} is not supported; use one of 'r', 'w', 'a', 'x'."
        )


class ExclusiveCreateError(StreamModeError):
    """Raised when mode 'x' targets a path that already exists."""

    def __init__(self, uri: str) -> None:
        super().__init__("x", f"{uri} already exists.")
        self.uri = uri


# ============================================================================
#                              Path errors
# ============================================================================


class PathError(BucketFSError):
    """Base class for errors about a specific path."""

    message = "Path error"

    def __init__(self, uri: str) -> None:
        super().__init__(f"{self.message}: {uri}")
        self.uri = uri


class PathNotFoundError(PathError):
    """Raised when a path exists neither in the cache nor in the store."""

    message = "No such file or directory"


class NotADirectory(PathError):
    """Raised when a directory operation targets a file."""

    message = "Not a directory"


class IsADirectory(PathError):
    """Raised when a file operation targets a directory."""

    message = "Is a directory"


class DirectoryNotEmpty(PathError):
    """Raised by rmdir when the directory still has entries."""

    message = "Directory not empty"


# ============================================================================
#                        Resource and remote errors
# ============================================================================


class SeekLimitExceeded(BucketFSError):
    """Raised when a seek would buffer more than the allowed ceiling."""

    def __init__(self, target: int, limit: int) -> None:
        super().__init__(
            f"Seeking to byte {target} exceeds the buffering limit of {limit} bytes."
        )
        self.target = target
        self.limit = limit


class UploadFailedError(BucketFSError):
    """Raised when the object store rejects an upload."""

    def __init__(self, uri: str) -> None:
        super().__init__(f"Uploading {uri} to the object store failed.")
        self.uri = uri


class UploadNotConfirmedError(BucketFSError):
    """Raised when an upload succeeded but the store never confirmed it.

    Unlike `UploadFailedError`, the object may exist remotely even though the
    write is reported as failed.
    """

    def __init__(self, uri: str, attempts: int) -> None:
        super().__init__(
            f"Upload of {uri} was accepted but not confirmed after {attempts} attempts; "
            "the object may exist remotely."
        )
        self.uri = uri
        self.attempts = attempts


# ============================================================================
#                              Cache errors
# ============================================================================


class CacheStoreError(BucketFSError):
    """Raised when the metadata cache persistence layer fails."""


class PartialFailureError(BucketFSError):
    """Raised when the remote side of an operation succeeded but the cache update did not."""

    def __init__(self, uri: str, operation: str) -> None:
        super().__init__(
            f"{operation} of {uri} succeeded remotely but the metadata cache "
            "could not be updated; run a cache refresh to reconcile."
        )
        self.uri = uri
        self.operation = operation


class RefreshFailedError(BucketFSError):
    """Raised when a cache reconciliation run fails; the live cache is untouched."""

    def __init__(self, scope: str, cause: Exception) -> None:
        super().__init__(f"Refreshing the metadata cache for {scope} failed: {cause}")
        self.scope = scope
        self.cause = cause
