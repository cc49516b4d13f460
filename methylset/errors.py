"""
Exception hierarchy for the methylset store.

Every error raised by the store derives from FileSetError so callers can
catch store failures as a group. Allocation and catalog errors are fatal to
the store instance; fill and slice errors only abort the current call.
"""


class FileSetError(Exception):
    """Base class for all store errors."""


class AllocationError(FileSetError):
    """A new store could not be created (bad dimensions or unwritable path)."""


class UnknownPlatformError(FileSetError):
    """A platform tag has no canonical probe catalog."""


class UnknownSampleError(FileSetError, KeyError):
    """A fill targeted a sample that is not part of the store."""

    def __str__(self):
        return Exception.__str__(self)


class UnknownProbeError(FileSetError, KeyError):
    """A strict fill supplied probe ids that are not part of the store."""

    def __str__(self):
        return Exception.__str__(self)


class CatalogError(FileSetError):
    """Base class for problems with the persisted index metadata."""


class CatalogNotFoundError(CatalogError, FileNotFoundError):
    """The catalog file next to the matrix store does not exist."""


class CatalogCorruptError(CatalogError):
    """The catalog file exists but cannot be decoded."""


class StoreReadError(FileSetError):
    """Cells could not be read from the matrix store (truncated or missing file)."""


class StoreWriteError(FileSetError):
    """A fill could not write to the matrix store (missing or truncated file)."""
