from __future__ import annotations

import collections
import logging
import sqlite3
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, cast

import pandas as pd

from pydbi.binding import BindingSet
from pydbi.converter import Converter
from pydbi.error import BackendExecutionFailure, OperationalError
from pydbi.result import BackendCursor, BaseResult, ColumnDescriptor
from pydbi.util import RetryConfig, retry_call

if TYPE_CHECKING:
    from pydbi.sqlite.connection import SQLiteConnection

_logger = logging.getLogger(__name__)

# https://www.sqlite.org/datatype3.html#storage_classes_and_datatypes
_STORAGE_CLASSES: dict[type[Any], str] = {
    int: "INTEGER",
    float: "REAL",
    str: "TEXT",
    bytes: "BLOB",
    type(None): "NULL",
}

_END = object()


class SQLiteCursor(BackendCursor):
    """Rows of one execution of a statement on a SQLite connection.

    The statement is executed once per row of the binding set. For a
    data-modifying statement every execution happens in the constructor and
    the affected row counts are summed. For a query only the first execution
    happens up front; the following ones run when the rows of the previous
    one have been read, and their rows are returned in order as a single
    stream.

    Column types come from ``field_types`` where the caller declared them and
    from the storage class of the first row otherwise. Only declared columns
    are converted, because a SQLite column may mix storage classes.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        statement: str,
        binding: BindingSet,
        converter: Converter,
        retry_config: RetryConfig,
        field_types: dict[str, str],
        is_query: bool,
    ) -> None:
        self._connection = connection
        self._statement = statement
        self._converter = converter
        self._retry_config = retry_config
        self._field_types = field_types
        self._params: Iterator[tuple[Any, ...] | dict[str, Any]] = binding.rows()
        self._cursor: sqlite3.Cursor | None = None
        self._rows: collections.deque[tuple[Any | None, ...]] = collections.deque()
        self._columns: tuple[ColumnDescriptor, ...] = ()
        self._converters: tuple[Callable[[Any | None], Any | None] | None, ...] = ()
        self._is_query = is_query
        self._rows_affected = 0
        self._failure: OperationalError | None = None
        try:
            self._start()
        except BaseException:
            self.close()
            raise

    @property
    def columns(self) -> tuple[ColumnDescriptor, ...]:
        return self._columns

    @property
    def is_query(self) -> bool:
        return self._is_query

    @property
    def rows_affected(self) -> int:
        return self._rows_affected

    @property
    def exhausted(self) -> bool:
        if self._rows:
            return False
        return not self._fill(1)

    def read(self, n: int) -> list[tuple[Any | None, ...]]:
        rows: list[tuple[Any | None, ...]] = []
        try:
            while n == -1 or len(rows) < n:
                if not self._rows and not self._fill(-1 if n == -1 else n - len(rows)):
                    break
                if n == -1:
                    rows.extend(self._rows)
                    self._rows.clear()
                else:
                    rows.append(self._rows.popleft())
            # Buffer the next row before handing these out; exhausted does no I/O.
            if not self._rows:
                self._fill(1)
            return [self._convert(row) for row in rows]
        except Exception:
            self._rows.extendleft(reversed(rows))
            raise

    def close(self) -> None:
        self._rows.clear()
        self._params = iter(())
        cursor, self._cursor = self._cursor, None
        if cursor is None:
            return
        try:
            cursor.close()
        except sqlite3.Error as e:
            _logger.exception("Failed to close cursor.")
            raise OperationalError(*e.args) from e

    def _start(self) -> None:
        params = next(self._params, _END)
        while params is not _END:
            cursor = self._execute(params)
            if cursor.description is not None:
                names = tuple(d[0] for d in cursor.description)
                self._cursor = cursor
                self._is_query = True
                self._fill(1)
                self._columns = self._describe(names)
                return
            self._is_query = False
            self._rows_affected += max(cursor.rowcount, 0)
            cursor.close()
            params = next(self._params, _END)

    def _execute(self, params: tuple[Any, ...] | dict[str, Any]) -> sqlite3.Cursor:
        cursor = self._connection.cursor()
        try:
            retry_call(
                cursor.execute,
                self._retry_config,
                _logger,
                self._statement,
                params,
                retry_on=sqlite3.OperationalError,
            )
        except Exception as e:
            cursor.close()
            _logger.exception("Failed to execute statement.")
            raise BackendExecutionFailure(*e.args) from e
        return cursor

    def _fill(self, size: int) -> bool:
        """Buffer up to ``size`` rows, moving on to the next execution when needed.

        Once reading or executing has failed, every further call raises the
        same error again.
        """
        if self._failure is not None:
            raise type(self._failure)(*self._failure.args) from self._failure
        while self._cursor is not None:
            try:
                rows = self._cursor.fetchall() if size == -1 else self._cursor.fetchmany(size)
            except sqlite3.Error as e:
                _logger.exception("Failed to fetch result set.")
                self._failure = OperationalError(*e.args)
                raise self._failure from e
            if rows:
                self._rows.extend(rows)
                return True
            self._advance()
        return False

    def _advance(self) -> None:
        cursor, self._cursor = self._cursor, None
        if cursor is not None:
            cursor.close()
        params = next(self._params, _END)
        if params is not _END:
            try:
                self._cursor = self._execute(params)
            except BackendExecutionFailure as e:
                self._failure = e
                raise

    def _describe(self, names: tuple[str, ...]) -> tuple[ColumnDescriptor, ...]:
        first = self._rows[0] if self._rows else (None,) * len(names)
        columns = []
        converters = []
        for name, value in zip(names, first, strict=True):
            declared = self._field_types.get(name.lower())
            if declared:
                field_type = declared
                converters.append(self._converter.get(declared))
            else:
                field_type = _STORAGE_CLASSES.get(type(value), "NULL")
                converters.append(None)
            columns.append(
                ColumnDescriptor(
                    name=name,
                    field_type=field_type,
                    data_type=self._converter.get_dtype(field_type),
                )
            )
        self._converters = tuple(converters)
        return tuple(columns)

    def _convert(self, row: tuple[Any | None, ...]) -> tuple[Any | None, ...]:
        if not any(self._converters):
            return tuple(row)
        return tuple(
            conv(value) if conv and value is not None else value
            for conv, value in zip(self._converters, row, strict=True)
        )


class SQLiteResult(BaseResult):
    """Result of a statement executed on a :class:`SQLiteConnection`.

    Example:
        >>> result = connection.send_query("SELECT * FROM many_rows WHERE a < ?")
        >>> result.bind([10]).fetch()
        >>> result.bind([20]).fetch(5)
        >>> result.dispose()
        True

    Note:
        Results are released by :meth:`dispose`. Results still open when their
        connection is closed are disposed by the connection, which logs a
        warning for each of them. No finalizer releases them earlier.
    """

    def __init__(
        self,
        connection: SQLiteConnection,
        statement: str,
        converter: Converter,
        retry_config: RetryConfig,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None = None,
        is_query: bool = True,
        arraysize: int | None = None,
        field_types: dict[str, str] | None = None,
        **kwargs,
    ) -> None:
        self._retry_config = retry_config
        super().__init__(
            connection=connection,
            statement=statement,
            converter=converter,
            params=params,
            is_query=is_query,
            arraysize=arraysize,
            field_types=field_types,
            **kwargs,
        )

    def _open_cursor(self, binding: BindingSet) -> SQLiteCursor:
        connection = cast("SQLiteConnection", self.connection)
        return SQLiteCursor(
            connection.driver_connection,
            self._statement,
            binding,
            self._converter,
            self._retry_config,
            self._field_types,
            self._is_query,
        )
