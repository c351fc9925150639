"""Exception classes raised by object store adapters."""


class ObjectStoreError(Exception):
    """
    Base exception for failures of the external object store.
    """
    pass


class ObjectNotFoundError(ObjectStoreError):
    """
    Raised when an object does not exist. Carries the object path, which is
    an internal address and must be translated before reaching callers.
    """

    def __init__(self, object_path: str):
        super().__init__(f"object not found: {object_path}")
        self.object_path = object_path


class TempURLUnsupportedError(ObjectStoreError):
    """
    Raised when the store is not configured to issue temporary URLs.
    """
    pass
