"""
Embedded JSON document store: one JSON array file per record type, with a
chainable where/get/first query API and locked read-modify-write CRUD.
"""
import logging

from .driver import Driver
from .entity import IDENTIFIER_KEY, Identifiable
from .errors import (
    ConfigurationError,
    DBError,
    DeleteFailedError,
    InvalidIdentityError,
    NotOpenedError,
    ParseError,
    QueryError,
    RecordNotFoundError,
    SerializationError,
    StorageError,
    UnknownOperatorError,
    UpdateFailedError,
)
from .query import Clause, OperatorRegistry, default_registry
from .storage import FileStorage

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "Driver",
    "FileStorage",
    "Identifiable",
    "IDENTIFIER_KEY",
    "Clause",
    "OperatorRegistry",
    "default_registry",
    "DBError",
    "StorageError",
    "ParseError",
    "SerializationError",
    "RecordNotFoundError",
    "DeleteFailedError",
    "UpdateFailedError",
    "NotOpenedError",
    "ConfigurationError",
    "UnknownOperatorError",
    "QueryError",
    "InvalidIdentityError",
]
