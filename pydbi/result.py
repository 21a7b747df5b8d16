from __future__ import annotations

import logging
from abc import ABCMeta, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

import pandas as pd

from pydbi.binding import BindingSet
from pydbi.common import DBConnection, DBResult
from pydbi.converter import Converter
from pydbi.error import ProgrammingError, ResourceExpired, UsageSequenceViolation
from pydbi.parser import Placeholders, PlaceholderParser

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnDescriptor:
    """Description of one output column of a result.

    Attributes:
        name: Column name as reported by the backend.
        field_type: Backend type name of the column.
        data_type: Python type the column values are converted to.
        nullable: Whether the column may contain NULL, or ``None`` when the
            backend does not report it.
    """

    name: str
    field_type: str
    data_type: type[Any] = object
    nullable: bool | None = None


@dataclass(frozen=True)
class ResultInfo:
    statement: str
    row_count: int
    rows_affected: int
    has_completed: bool

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class ResultState(Enum):
    EXECUTING = "executing"
    PARTIALLY_FETCHED = "partially_fetched"
    COMPLETED = "completed"
    DISPOSED = "disposed"


class BackendCursor(metaclass=ABCMeta):
    """Backend side of one execution of a statement.

    A cursor is created by :meth:`BaseResult._open_cursor` once the statement
    has been executed with a binding set, and is owned by exactly one result.
    Data-modifying statements must be fully executed by the time the cursor is
    returned. Implementations wrap driver errors raised while reading in
    :class:`~pydbi.error.OperationalError`.
    """

    @property
    @abstractmethod
    def columns(self) -> tuple[ColumnDescriptor, ...]:
        raise NotImplementedError  # pragma: no cover

    @property
    @abstractmethod
    def is_query(self) -> bool:
        raise NotImplementedError  # pragma: no cover

    @property
    @abstractmethod
    def rows_affected(self) -> int:
        raise NotImplementedError  # pragma: no cover

    @property
    @abstractmethod
    def exhausted(self) -> bool:
        """True once no further row can be read."""
        raise NotImplementedError  # pragma: no cover

    @abstractmethod
    def read(self, n: int) -> list[tuple[Any | None, ...]]:
        """Read up to ``n`` rows, or every remaining row when ``n`` is -1.

        A read that raises consumes no row. A cursor whose backend failed
        keeps raising on every later read.
        """
        raise NotImplementedError  # pragma: no cover

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError  # pragma: no cover


class BaseResult(DBResult):
    """State machine shared by every backend result.

    Tracks the execution state of a statement, the number of rows fetched and
    the completion flag, and validates bindings before any of them is touched.
    Backends subclass this and implement :meth:`_open_cursor`, which executes
    the statement for a binding set and returns the :class:`BackendCursor`
    holding its rows.

    Each execution goes through ``EXECUTING``, ``PARTIALLY_FETCHED`` and
    ``COMPLETED``. Data-modifying statements are ``COMPLETED`` as soon as they
    have run. :meth:`bind` starts a new execution and :meth:`dispose` moves the
    result to ``DISPOSED`` for good.

    A statement without placeholders is executed when the result is created.
    A statement with placeholders is executed with ``params`` when they are
    given, otherwise it waits for the first :meth:`bind`.
    """

    def __init__(
        self,
        connection: DBConnection,
        statement: str,
        converter: Converter,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None = None,
        is_query: bool = True,
        arraysize: int | None = None,
        field_types: dict[str, str] | None = None,
        **kwargs,
    ) -> None:
        super().__init__(arraysize=arraysize)
        self._connection: DBConnection | None = connection
        self._statement = statement
        self._converter = converter
        self._field_types = (
            {k.lower(): v for k, v in field_types.items()} if field_types else {}
        )
        self._placeholders = self._parse_placeholders(statement)
        self._is_query = is_query
        self._cursor: BackendCursor | None = None
        self._state = ResultState.EXECUTING
        self._row_count = 0
        self._completed = False

        if params is not None:
            self._execute(BindingSet.from_params(params))
        elif not self._placeholders:
            self._execute(BindingSet.from_params())

    @staticmethod
    def _parse_placeholders(statement: str) -> Placeholders:
        return PlaceholderParser().parse(statement)

    @abstractmethod
    def _open_cursor(self, binding: BindingSet) -> BackendCursor:
        """Execute the statement for ``binding`` and return its cursor.

        Raises:
            BackendExecutionFailure: If the backend rejects the statement.
                Resources acquired before the failure must already be released.
        """
        raise NotImplementedError  # pragma: no cover

    @property
    def connection(self) -> DBConnection:
        if self._connection is None:
            raise ResourceExpired(f"{type(self).__name__} has been disposed.")
        return self._connection

    @property
    def is_valid(self) -> bool:
        return (
            self._state is not ResultState.DISPOSED
            and self._connection is not None
            and self._connection.is_valid
        )

    @property
    def state(self) -> ResultState:
        return self._state

    @property
    def is_query(self) -> bool:
        return self._is_query

    @property
    def statement(self) -> str:
        self._assert_valid()
        return self._statement

    @property
    def column_info(self) -> tuple[ColumnDescriptor, ...]:
        self._assert_valid()
        return self._assert_executed().columns

    @property
    def has_completed(self) -> bool:
        self._assert_valid()
        return self._completed

    @property
    def rows_affected(self) -> int:
        self._assert_valid()
        if self._cursor is None or self._is_query:
            return 0
        return self._cursor.rows_affected

    @property
    def row_count(self) -> int:
        self._assert_valid()
        return self._row_count

    def fetch(self, n: int = -1) -> pd.DataFrame:
        self._assert_valid()
        if n < -1:
            raise ProgrammingError(f"n must be -1 or a non-negative integer, got {n}.")
        cursor = self._assert_executed()
        if not self._is_query or self._completed or n == 0:
            return self._to_frame([])
        rows = cursor.read(n)
        exhausted = cursor.exhausted
        self._row_count += len(rows)
        if exhausted:
            self._completed = True
            self._state = ResultState.COMPLETED
        elif rows:
            self._state = ResultState.PARTIALLY_FETCHED
        return self._to_frame(rows)

    def bind(
        self,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None = None,
        **named: Any,
    ) -> BaseResult:
        """Bind new parameter values and start a new execution.

        Queries are re-executed lazily: the rows of the new values are read by
        the following :meth:`fetch` calls. Data-modifying statements run to
        completion for every row of the binding set before this method
        returns.

        Args:
            params: A mapping keyed by name or 1-based position, a sequence of
                positional values, or a DataFrame. Each value may be a list to
                execute the statement once per element.
            **named: Named values, as an alternative to a mapping.

        Returns:
            This result, for chaining.

        Raises:
            ResourceExpired: If the result has been disposed.
            MalformedBindingSet: If the values do not fit the placeholders.
                The result is left unchanged.
            BackendExecutionFailure: If the backend rejects the new execution.
                The previous execution has been discarded and the result waits
                for another :meth:`bind`.
        """
        self._assert_valid()
        self._execute(BindingSet.from_params(params, **named))
        return self

    def dispose(self) -> bool:
        """Release the cursor and every backend resource held by this result.

        Disposing twice is a no-op that returns ``True``.

        Raises:
            ResourceExpired: If the connection was closed before the result was
                disposed. The result is disposed nonetheless.
        """
        if self._state is ResultState.DISPOSED:
            return True
        cursor, self._cursor = self._cursor, None
        connection, self._connection = self._connection, None
        self._state = ResultState.DISPOSED
        if connection is None or not connection.is_valid:
            raise ResourceExpired(
                f"Connection was closed before {type(self).__name__} was disposed."
            )
        if cursor is not None:
            cursor.close()
        return True

    def _execute(self, binding: BindingSet) -> None:
        binding.check(self._placeholders)
        self._discard_cursor()
        _logger.debug(self._statement)
        cursor = self._open_cursor(binding)
        self._cursor = cursor
        self._is_query = cursor.is_query
        if cursor.is_query:
            self._state = ResultState.EXECUTING
        else:
            self._completed = True
            self._state = ResultState.COMPLETED

    def _discard_cursor(self) -> None:
        cursor, self._cursor = self._cursor, None
        self._row_count = 0
        self._completed = False
        self._state = ResultState.EXECUTING
        if cursor is not None:
            cursor.close()

    def _assert_valid(self) -> None:
        if self._state is ResultState.DISPOSED:
            raise ResourceExpired(f"{type(self).__name__} has been disposed.")
        if self._connection is None or not self._connection.is_valid:
            raise ResourceExpired(f"Connection of {type(self).__name__} is closed.")

    def _assert_executed(self) -> BackendCursor:
        if self._cursor is None:
            raise UsageSequenceViolation(
                "Statement has not been executed. Bind values to its placeholders first."
            )
        return self._cursor

    def _to_frame(self, rows: list[tuple[Any | None, ...]]) -> pd.DataFrame:
        columns = self._cursor.columns if self._cursor else ()
        data: dict[int, pd.Series] = {}
        for i, column in enumerate(columns):
            values = [row[i] for row in rows]
            dtype = self._converter.get_pandas_dtype(column.data_type)
            try:
                data[i] = pd.Series(values, dtype=dtype)
            except (TypeError, ValueError):
                # SQLite columns may hold values of several storage classes.
                data[i] = pd.Series(values, dtype="object")
        frame = pd.DataFrame(data, columns=list(range(len(columns))))
        frame.columns = [c.name for c in columns]
        return frame
