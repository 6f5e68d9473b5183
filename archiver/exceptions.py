"""Custom exceptions for the message archiver"""

from typing import Optional


class ArchiverException(Exception):
    """Base exception for the message archiver"""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)

class ConfigurationError(ArchiverException):
    """Exception raised for configuration errors"""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")

class DatabaseError(ArchiverException):
    """Exception raised when a lookup or write against the store fails"""

    def __init__(self, message: str, code: str = "DATABASE_ERROR"):
        super().__init__(message, code)

class DuplicateRecordError(DatabaseError):
    """Exception raised when inserting a record under an id that is taken."""

    def __init__(self, message: str, message_id: Optional[str] = None):
        self.message_id = message_id
        super().__init__(message, code="DUPLICATE_RECORD")

class RecordEncodingError(ArchiverException):
    """Exception raised when a record cannot be encoded or decoded"""

    def __init__(self, message: str, message_id: Optional[str] = None):
        self.message_id = message_id
        super().__init__(message, "RECORD_ENCODING_ERROR")

class TranslationError(ArchiverException):
    """
    Exception raised when an edit payload is too sparse to found a new
    incomplete record.
    """

    def __init__(self, message: str, code: str, message_id: Optional[str] = None):
        self.message_id = message_id
        super().__init__(message, code)

class MissingAuthorError(TranslationError):
    """The edit payload carries no author."""

    def __init__(self, message_id: Optional[str] = None):
        super().__init__(
            f"No author in message update event for message {message_id}",
            "MISSING_AUTHOR",
            message_id,
        )

class MissingTimestampError(TranslationError):
    """The edit payload carries no creation timestamp."""

    def __init__(self, message_id: Optional[str] = None):
        super().__init__(
            f"No timestamp in message update event for message {message_id}",
            "MISSING_TIMESTAMP",
            message_id,
        )

class GatewayError(ArchiverException):
    """Exception raised for event-stream client errors"""

    def __init__(self, message: str):
        super().__init__(message, "GATEWAY_ERROR")


__all__ = [
    "ArchiverException",
    "ConfigurationError",
    "DatabaseError",
    "DuplicateRecordError",
    "RecordEncodingError",
    "TranslationError",
    "MissingAuthorError",
    "MissingTimestampError",
    "GatewayError",
]
