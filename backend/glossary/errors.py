"""
Glossary error taxonomy

Every error carries an ErrorKind so batch operations can report failures
per item and the API can map them to status codes.
"""
import enum


class ErrorKind(str, enum.Enum):
    """Classification of glossary failures"""
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    STORE_UNAVAILABLE = "store_unavailable"


class GlossaryError(Exception):
    """Base class for glossary errors"""
    kind: ErrorKind = ErrorKind.STORE_UNAVAILABLE

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class InvalidInputError(GlossaryError):
    """Caller supplied malformed arguments"""
    kind = ErrorKind.INVALID_INPUT


class ImportStateError(InvalidInputError):
    """Import session operation called in the wrong state"""


class ConflictError(GlossaryError):
    """Store rejected a write (uniqueness violation, vanished row)"""
    kind = ErrorKind.CONFLICT


class StoreUnavailableError(GlossaryError):
    """Store call failed entirely (connection, timeout)"""
    kind = ErrorKind.STORE_UNAVAILABLE
