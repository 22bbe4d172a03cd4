"""Exception classes for the Extension system"""


class ExtensionError(Exception):
    """Base exception for all extension-related errors"""
    pass


class NotFoundError(ExtensionError):
    """Raised when a catalog or a named extension is absent"""
    pass


class CatalogNotFoundError(NotFoundError):
    """Raised when no local catalog exists and none could be bootstrapped"""
    pass


class ExtensionNotFoundError(NotFoundError):
    """Raised when the catalog has no extension with the requested name"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Could not find an extension named {name}")


class ParseError(ExtensionError):
    """Raised when stored or extracted bytes do not decode into the catalog schema"""
    pass


class MalformedArchiveError(ParseError):
    """Raised when a distribution archive lacks the required payloads"""
    pass


class UnsupportedEntryTypeError(MalformedArchiveError):
    """Raised when an archive holds an entry that is neither a file nor a directory"""

    def __init__(self, name: str, type_marker: str):
        self.name = name
        self.type_marker = type_marker
        super().__init__(
            f"unrecognized file type for file {name}: {type_marker}"
        )


class IntegrityError(ExtensionError):
    """Raised when a binary does not match its expected digest"""
    pass


class NetworkError(ExtensionError):
    """Raised when a remote request fails"""
    pass


class AuthError(ExtensionError):
    """Raised when the API credential is missing or rejected"""
    pass


class StorageError(ExtensionError):
    """Raised when a local filesystem operation fails"""
    pass


class ConflictError(ExtensionError):
    """Raised when another process holds the catalog lock; safe to retry"""
    pass
