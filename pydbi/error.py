from __future__ import annotations

__all__ = [
    "Error",
    "Warning",
    "InterfaceError",
    "DatabaseError",
    "InternalError",
    "OperationalError",
    "ProgrammingError",
    "IntegrityError",
    "DataError",
    "NotSupportedError",
    "ResourceExpired",
    "MalformedBindingSet",
    "BackendExecutionFailure",
    "UsageSequenceViolation",
]


class Error(Exception):
    pass


class Warning(Exception):  # noqa: N818,A001
    pass


class InterfaceError(Error):
    pass


class DatabaseError(Error):
    pass


class InternalError(DatabaseError):
    pass


class OperationalError(DatabaseError):
    pass


class ProgrammingError(DatabaseError):
    pass


class IntegrityError(DatabaseError):
    pass


class DataError(DatabaseError):
    pass


class NotSupportedError(DatabaseError):
    pass


class ResourceExpired(ProgrammingError):  # noqa: N818
    """An operation was attempted on a result or connection that is no longer valid."""


class MalformedBindingSet(ProgrammingError):  # noqa: N818
    """Parameter values do not form a usable binding set for the statement.

    Raised when named and positional values are mixed, when the value columns
    differ in length, or when the values do not match the placeholders found
    in the statement text.
    """


class BackendExecutionFailure(OperationalError):  # noqa: N818
    """The backend reported an error while executing a statement."""


class UsageSequenceViolation(ProgrammingError):  # noqa: N818
    """Operations were called out of order, e.g. fetching before execution."""
