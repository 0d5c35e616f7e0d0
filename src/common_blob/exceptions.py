"""Common exception hierarchy for blob storage backends."""


class StorageError(Exception):
    """Base exception for all storage operations."""

    def __init__(self, message: str, key: str | None = None, cause: Exception | None = None):
        self.key = key
        self.cause = cause
        super().__init__(message)


class StorageConfigurationError(StorageError):
    """Raised when the backend cannot be configured from the supplied options."""


class UnsupportedProviderError(StorageConfigurationError):
    """Raised when the bucket provider tag is not recognised."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Unsupported bucket provider: {provider!r}. Supported: aws, gcp")


class StorageAuthenticationError(StorageError):
    """Raised when credentials or the signing identity cannot be resolved."""


class StorageNotFoundError(StorageError):
    """Raised when a requested key or bucket does not exist."""


class StoragePermissionError(StorageError):
    """Raised when credentials are invalid or access is denied."""


class StorageInvalidRangeError(StorageError):
    """Raised when a range read falls outside the object."""


class StorageConnectionError(StorageError):
    """Raised when the storage backend is unreachable."""
