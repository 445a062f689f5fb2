"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DuplicateError,
    ExternalServiceError,
    DatabaseError,

    # Sources
    CSVParseError,
    SourceFetchError,

    # Mapping / markup
    InvalidFieldMappingError,
    InvalidPriceError,

    # Remote platform
    RemoteMutationError,

    # Import sessions
    ImportSessionNotFoundError,
    ImportAlreadyRunningError,
    InvalidStatusTransitionError,

    # Connections
    ConnectionNotFoundError,
    ImportConfigurationNotFoundError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DuplicateError",
    "ExternalServiceError",
    "DatabaseError",

    # Sources
    "CSVParseError",
    "SourceFetchError",

    # Mapping / markup
    "InvalidFieldMappingError",
    "InvalidPriceError",

    # Remote platform
    "RemoteMutationError",

    # Import sessions
    "ImportSessionNotFoundError",
    "ImportAlreadyRunningError",
    "InvalidStatusTransitionError",

    # Connections
    "ConnectionNotFoundError",
    "ImportConfigurationNotFoundError",
]
