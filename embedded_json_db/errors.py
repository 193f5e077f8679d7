from __future__ import annotations


class DBError(Exception):
    """Base class for all embedded_json_db errors."""


class StorageError(DBError):
    """Reading or writing a collection file failed."""


class ParseError(StorageError):
    """Collection file does not hold a JSON array."""


class SerializationError(DBError):
    """Entity could not be converted to or from a document."""


class RecordNotFoundError(DBError):
    def __init__(self, message: str = "record not found") -> None:
        super().__init__(message)


class DeleteFailedError(RecordNotFoundError):
    pass


class UpdateFailedError(DBError):
    def __init__(self, message: str = "update failed, no record(s) to update") -> None:
        super().__init__(message)


class NotOpenedError(DBError):
    def __init__(self, message: str = "call open() before reading results") -> None:
        super().__init__(message)


class ConfigurationError(DBError):
    pass


class UnknownOperatorError(ConfigurationError):
    def __init__(self, operator: str) -> None:
        super().__init__(f"unknown query operator: {operator!r}")
        self.operator = operator


class InvalidIdentityError(ConfigurationError):
    pass


class QueryError(ConfigurationError):
    """A clause could not be evaluated, e.g. a bad regex or a failing custom operator."""
