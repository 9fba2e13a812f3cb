"""Exception types raised by bundle creation."""

from __future__ import annotations


class BundleCreatorError(RuntimeError):
    """Base class for failures that abort processing of a bundle specification."""


class ConfigurationError(BundleCreatorError):
    """Raised when a bundle specification or the ambient configuration is invalid."""


class LockTimeoutError(BundleCreatorError):
    """Raised when the bundle directory lock cannot be acquired in time."""

    def __init__(self, path: str, attempts: int) -> None:
        super().__init__(f"Cannot acquire lock for bundle directory: {path} (gave up after {attempts} attempts)")
        self.path = path
        self.attempts = attempts


class FilesystemError(BundleCreatorError):
    """Raised when creating, removing or copying staging content fails."""


class PackagingError(BundleCreatorError):
    """Raised when the bundle archive cannot be written."""
