"""
Error taxonomy for the territory capture engine.

InvalidInput is raised before any storage access. Storage errors carry
internal details for logging; handlers turn them into a generic
"capture failed, retry" response.
"""


class CaptureError(Exception):
    """Base class for every engine error."""


class InvalidInput(CaptureError):
    """Rejected path or query input. `reason` is safe to show to users."""

    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


class StorageError(CaptureError):
    """Base class for storage layer failures."""


class StorageConflict(StorageError):
    """A key could not be written after the bounded number of retries."""

    def __init__(self, key, attempts):
        super().__init__(f"Concurrent modification of {key} after {attempts} attempts")
        self.key = key
        self.attempts = attempts


class StorageUnavailable(StorageError):
    """The underlying store could not be reached."""


class PartialCaptureError(CaptureError):
    """
    A capture failed part-way through its regions.

    Regions are written independently, so `applied_regions` may already
    hold the new owner while `failed_region` and any later regions do not.
    """

    def __init__(self, applied_regions, failed_region, cause=None):
        super().__init__(
            f"Capture failed at region {failed_region} "
            f"({len(applied_regions)} regions already applied)"
        )
        self.applied_regions = list(applied_regions)
        self.failed_region = failed_region
        self.cause = cause
