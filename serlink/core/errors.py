"""Domain-specific errors for serlink."""


class SerlinkError(Exception):
    """Base error for serlink."""


class ConfigParseError(SerlinkError):
    """Raised when a sentinel code or charset cannot be parsed."""


class ConnectionStoreError(SerlinkError):
    """Raised when the persisted connection file cannot be read, validated or written."""


class ConnectionNotFoundError(SerlinkError):
    """Raised when a command names a connection that does not exist."""


class DuplicateConnectionError(SerlinkError):
    """Raised when adding or renaming a connection to a name already in use."""


class CommandUnavailableError(SerlinkError):
    """Raised when a command is not available in the connection's current state."""


class EncodeError(SerlinkError):
    """Raised when an outgoing message cannot be converted to bytes."""


class TransportError(SerlinkError):
    """Base transport error."""


class TransportOpenError(TransportError):
    """Raised when the serial port cannot be opened."""


class TransportIOError(TransportError):
    """Raised when reading from or writing to an open port fails."""
