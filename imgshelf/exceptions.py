# exceptions.py


class StorageError(Exception):
    """Base class for failures of the storage layer. `code` names the failure kind."""

    code = "OperationFailed"


class InvalidPathError(StorageError):
    """A path tried to leave the storage root or is malformed."""

    code = "InvalidPath"


class InvalidNameError(StorageError):
    """A user supplied file or folder name contains reserved characters."""

    code = "InvalidName"


class ItemNotFoundError(StorageError):
    """The target of an operation does not exist."""

    code = "NotFound"


class AlreadyExistsError(StorageError):
    """The destination of an operation is already occupied."""

    code = "AlreadyExists"


class PathNotADirectoryError(StorageError):
    """A directory was expected but the path points to something else."""

    code = "NotADirectory"


class WriteTimeoutError(StorageError):
    """A large file write did not finish in time."""

    code = "Timeout"


class OperationFailedError(StorageError):
    """An unexpected I/O error."""

    code = "OperationFailed"
