class MenuSyncError(Exception):
    """Base class for menu data layer errors."""


class StorageUnavailable(MenuSyncError):
    """The local database could not be opened or its schema created."""


class QueryError(MenuSyncError):
    """A single read or write against the local database failed."""


class FetchError(MenuSyncError):
    """The remote menu was unreachable or returned a malformed body."""


class CacheDownloadError(MenuSyncError):
    """An image could not be downloaded or written to the cache directory."""
