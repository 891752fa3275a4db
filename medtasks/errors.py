# medtasks/errors.py


class StorageError(Exception):
    """Base class for every failure raised by a storage backend."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InitializationFailure(StorageError):
    pass


class NotFound(StorageError):
    pass


class ValidationFailure(StorageError):
    pass


class BackendUnavailable(StorageError):
    pass
