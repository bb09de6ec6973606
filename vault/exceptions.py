"""Custom exception classes for the vault server."""


class VaultException(Exception):
    """
    Base exception class for all vault errors.
    """
    pass


class ConfigurationError(VaultException):
    """
    Raised when a required setting is missing or malformed at startup.
    """
    pass


class BackendError(VaultException):
    """
    Raised when the remote storage backend rejects or fails a request.
    """
    pass


class AuthenticationError(VaultException):
    """
    Raised when a chunk fails authenticated decryption.
    """
    pass


class StoreError(VaultException):
    """
    Raised when the metadata store cannot read or write.
    """
    pass


class DuplicateFileError(StoreError):
    """
    Raised when a file with the same name is already stored.
    """
    pass


class NotFoundError(VaultException):
    """
    Raised when a requested file does not exist.
    """
    pass


class EmptyUploadError(VaultException):
    """
    Raised when an upload request carries no file part.
    """
    pass
