"""Custom exception classes for the storage driver."""


class StorageDriverError(Exception):
    """
    Base exception class for all driver errors.
    """
    pass


class PathNotFoundError(StorageDriverError):
    """
    Raised when no file exists at a logical path, or when a directory is
    found where file content was expected.
    """

    def __init__(self, path: str):
        super().__init__(f"Path not found: {path}")
        self.path = path


class UnsupportedMethodError(StorageDriverError):
    """
    Raised when an operation is not supported for the record, e.g. a
    temporary URL for content stored inline in the database.
    """

    def __init__(self, message: str = "unsupported method"):
        super().__init__(message)


class WriterMisuseError(StorageDriverError):
    """
    Raised when a writer is used after it was committed, cancelled or closed.
    """

    def __init__(self, state: str):
        super().__init__(f"already {state}")
        self.state = state


class OperationCancelledError(StorageDriverError):
    """
    Raised when the request context is cancelled or its deadline passes.
    """
    pass
