from __future__ import annotations

import logging
import os
import sqlite3
import weakref
from collections.abc import Mapping, Sequence
from typing import Any

import pandas as pd

from pydbi.common import DBConnection
from pydbi.converter import Converter, DefaultTypeConverter
from pydbi.error import OperationalError, ResourceExpired
from pydbi.result import ResultState
from pydbi.sqlite.result import SQLiteResult
from pydbi.util import RetryConfig

_logger = logging.getLogger(__name__)


class SQLiteConnection(DBConnection):
    """Connection to a SQLite database through the standard library driver.

    Statements are dispatched with :meth:`send_query` and
    :meth:`send_statement`, each returning a :class:`SQLiteResult` that the
    caller disposes. Any number of results may be open at the same time.

    Args:
        database: Path of the database file. Defaults to the
            ``PYDBI_SQLITE_DATABASE`` environment variable, then to an
            in-memory database.
        timeout: Seconds the driver waits for a lock before failing.
        isolation_level: Passed to ``sqlite3.connect``. Defaults to autocommit.
        arraysize: Default number of rows per frame when iterating results.
        converter: Converter for declared column types.
        retry_config: Retry policy for statements failing on a locked database.
        **kwargs: Additional arguments passed to ``sqlite3.connect``.

    Raises:
        OperationalError: If the database cannot be opened.

    Example:
        >>> with SQLiteConnection() as conn:
        ...     conn.execute("CREATE TABLE t (a INTEGER)")
        ...     conn.execute("INSERT INTO t VALUES (?)", [[1, 2, 3]])
        ...     print(conn.get_query("SELECT * FROM t"))
    """

    ENV_DATABASE: str = "PYDBI_SQLITE_DATABASE"

    def __init__(
        self,
        database: str | None = None,
        timeout: float = 5.0,
        isolation_level: str | None = None,
        arraysize: int | None = None,
        converter: Converter | None = None,
        retry_config: RetryConfig | None = None,
        **kwargs,
    ) -> None:
        if database is not None:
            self._database = database
        else:
            self._database = os.getenv(self.ENV_DATABASE, ":memory:")
        self._arraysize = arraysize
        self._converter = converter if converter else DefaultTypeConverter()
        self._retry_config = retry_config if retry_config else RetryConfig()
        self._results: weakref.WeakSet[SQLiteResult] = weakref.WeakSet()
        try:
            self._connection: sqlite3.Connection | None = sqlite3.connect(
                self._database,
                timeout=timeout,
                isolation_level=isolation_level,
                **kwargs,
            )
        except sqlite3.Error as e:
            _logger.exception("Failed to connect to %s.", self._database)
            raise OperationalError(*e.args) from e

    @property
    def database(self) -> str:
        return self._database

    @property
    def converter(self) -> Converter:
        return self._converter

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry_config

    @property
    def driver_connection(self) -> sqlite3.Connection:
        if not self.is_valid:
            raise ResourceExpired("SQLiteConnection is closed.")
        return self._connection  # type: ignore[return-value]

    @property
    def is_valid(self) -> bool:
        if self._connection is None:
            return False
        try:
            self._connection.total_changes  # noqa: B018
        except sqlite3.ProgrammingError:
            # The driver connection was closed behind our back.
            return False
        return True

    @property
    def supports_multiple_results(self) -> bool:
        return True

    @property
    def open_results(self) -> list[SQLiteResult]:
        return [r for r in self._results if r.state is not ResultState.DISPOSED]

    def send_query(
        self,
        statement: str,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None = None,
        **kwargs,
    ) -> SQLiteResult:
        """Dispatch a query.

        Args:
            statement: SQL text, optionally with placeholders.
            params: Values for the placeholders. Without them a statement with
                placeholders waits for :meth:`SQLiteResult.bind`.
            **kwargs: ``arraysize`` and ``field_types`` (column name to
                declared SQL type) for the result.

        Raises:
            ResourceExpired: If the connection is closed.
            MalformedBindingSet: If ``params`` do not fit the placeholders.
            BackendExecutionFailure: If SQLite rejects the statement.
        """
        return self._send(statement, params, is_query=True, **kwargs)

    def send_statement(
        self,
        statement: str,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None = None,
        **kwargs,
    ) -> SQLiteResult:
        """Dispatch a data-modifying statement.

        Same as :meth:`send_query`, except that the statement is run to
        completion as soon as it has values for its placeholders.
        """
        return self._send(statement, params, is_query=False, **kwargs)

    def _send(
        self,
        statement: str,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None,
        is_query: bool,
        **kwargs,
    ) -> SQLiteResult:
        if not self.is_valid:
            raise ResourceExpired("SQLiteConnection is closed.")
        kwargs.setdefault("arraysize", self._arraysize)
        result = SQLiteResult(
            connection=self,
            statement=statement,
            converter=self._converter,
            retry_config=self._retry_config,
            params=params,
            is_query=is_query,
            **kwargs,
        )
        self._results.add(result)
        return result

    def close(self) -> None:
        """Close the connection, disposing every result left open on it."""
        if self._connection is None:
            return
        try:
            if self.is_valid:
                for result in self.open_results:
                    _logger.warning(
                        "Disposing %s left open on connection close.", type(result).__name__
                    )
                    try:
                        result.dispose()
                    except Exception:
                        _logger.warning(
                            "Failed to dispose %s.", type(result).__name__, exc_info=True
                        )
        finally:
            connection, self._connection = self._connection, None
            if connection is not None:
                connection.close()
