class StorageError(Exception):
    """Raised when the job store is unreachable or rejects an operation."""
