"""Exception types shared across the package."""


class ModManagerError(Exception):
    """Base class for all modmanager errors."""


class StoreError(ModManagerError):
    """Raised when the record store cannot be read or written."""


class UpstreamError(ModManagerError):
    """Raised when an upstream API call fails after retries."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class DownloadError(ModManagerError):
    """Raised when an artifact cannot be downloaded."""
