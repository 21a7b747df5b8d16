from __future__ import annotations

from abc import ABCMeta, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, TextIO

from pydbi.error import ProgrammingError

if TYPE_CHECKING:
    import pandas as pd
    from pyarrow import Table

    from pydbi.result import ColumnDescriptor, ResultInfo


class DBObject(metaclass=ABCMeta):
    """Base class of every object that refers to live backend resources.

    Validity is a one-way flag: once an object reports ``is_valid == False``
    it never becomes valid again, and callers must not touch its backend
    state.
    """

    @property
    @abstractmethod
    def is_valid(self) -> bool:
        raise NotImplementedError  # pragma: no cover


class DBResult(DBObject):
    """Interface of the result of executing one statement.

    A result wraps the backend cursor of a query or the outcome of a
    data-modifying statement. It is created by statement dispatch on a
    connection, optionally rebound to new parameter values with :meth:`bind`,
    read with :meth:`fetch` until :attr:`has_completed` and released with
    :meth:`dispose`, which the caller must call exactly once before the owning
    connection is closed.

    Drivers implement the accessors, :meth:`bind`, :meth:`dispose` and one of
    the two fetch entry points. :meth:`fetch` forwards to :meth:`fetch_records`
    unless the driver overrides it, so drivers written against the older
    primitive keep working.

    Attributes:
        DEFAULT_FETCH_SIZE: Default number of rows per frame when iterating.
        arraysize: Number of rows per frame when iterating over the result.

    Example:
        >>> result = connection.send_query("SELECT * FROM many_rows")
        >>> while not result.has_completed:
        ...     frame = result.fetch(10)
        >>> result.dispose()
        True
    """

    DEFAULT_FETCH_SIZE: int = 1000

    def __init__(self, **kwargs) -> None:
        super().__init__()
        arraysize = kwargs.get("arraysize")
        self.arraysize: int = self.DEFAULT_FETCH_SIZE if arraysize is None else arraysize

    @property
    def arraysize(self) -> int:
        return self._arraysize

    @arraysize.setter
    def arraysize(self, value: int) -> None:
        if value <= 0:
            raise ProgrammingError("arraysize must be a positive integer value.")
        self._arraysize = value

    @property
    @abstractmethod
    def statement(self) -> str:
        raise NotImplementedError  # pragma: no cover

    @property
    @abstractmethod
    def column_info(self) -> tuple[ColumnDescriptor, ...]:
        raise NotImplementedError  # pragma: no cover

    @property
    @abstractmethod
    def has_completed(self) -> bool:
        raise NotImplementedError  # pragma: no cover

    @property
    @abstractmethod
    def rows_affected(self) -> int:
        raise NotImplementedError  # pragma: no cover

    @property
    @abstractmethod
    def row_count(self) -> int:
        raise NotImplementedError  # pragma: no cover

    @property
    def description(self) -> list[tuple[str, str, None, None, None, None, bool | None]]:
        """DB API 2.0 style description of the output columns."""
        return [
            (c.name, c.field_type, None, None, None, None, c.nullable) for c in self.column_info
        ]

    def fetch(self, n: int = -1) -> pd.DataFrame:
        """Fetch up to ``n`` rows as a DataFrame.

        Args:
            n: Maximum number of rows, or ``-1`` for all remaining rows.

        Returns:
            A DataFrame with one column per entry of :attr:`column_info`.
        """
        return self.fetch_records(n)

    def fetch_records(self, n: int = -1) -> pd.DataFrame:
        """Older fetch entry point, used by :meth:`fetch` when not overridden."""
        raise NotImplementedError(
            f"{type(self).__name__} implements neither fetch() nor fetch_records()."
        )

    def fetch_arrow(self, n: int = -1) -> Table:
        """Fetch up to ``n`` rows as a ``pyarrow.Table``.

        Requires the ``arrow`` extra.
        """
        import pyarrow as pa

        return pa.Table.from_pandas(self.fetch(n), preserve_index=False)

    @abstractmethod
    def bind(
        self,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None = None,
        **named: Any,
    ) -> DBResult:
        raise NotImplementedError  # pragma: no cover

    @abstractmethod
    def dispose(self) -> bool:
        raise NotImplementedError  # pragma: no cover

    def get_info(self) -> ResultInfo:
        """Snapshot of statement, row count, rows affected and completion.

        Reads the accessors every time it is called, so the snapshot reflects
        the current state even in the middle of a fetch loop.
        """
        from pydbi.result import ResultInfo

        return ResultInfo(
            statement=self.statement,
            row_count=self.row_count,
            rows_affected=self.rows_affected,
            has_completed=self.has_completed,
        )

    def show(self, file: TextIO | None = None) -> None:
        from pydbi.display import show_result

        show_result(self, file=file)

    def __repr__(self) -> str:
        from pydbi.display import format_result

        return "\n".join(format_result(self))

    def __iter__(self) -> Iterator[pd.DataFrame]:
        while not self.has_completed:
            frame = self.fetch(self.arraysize)
            if frame.empty and self.has_completed:
                break
            yield frame

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()


class DBConnection(DBObject):
    """Interface of the connection collaborator that dispatches statements.

    Establishing and tearing down the backend session is left to concrete
    drivers. A connection only has to report its validity, state whether it
    can hold several open results at once, and create results.
    """

    @property
    @abstractmethod
    def supports_multiple_results(self) -> bool:
        raise NotImplementedError  # pragma: no cover

    @abstractmethod
    def send_query(
        self,
        statement: str,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None = None,
        **kwargs,
    ) -> DBResult:
        raise NotImplementedError  # pragma: no cover

    @abstractmethod
    def send_statement(
        self,
        statement: str,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None = None,
        **kwargs,
    ) -> DBResult:
        raise NotImplementedError  # pragma: no cover

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError  # pragma: no cover

    def get_query(
        self,
        statement: str,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None = None,
        **kwargs,
    ) -> pd.DataFrame:
        """Run a query and return all of its rows.

        The result is disposed before returning, also when fetching fails.
        """
        result = self.send_query(statement, params, **kwargs)
        try:
            return result.fetch(-1)
        finally:
            result.dispose()

    def execute(
        self,
        statement: str,
        params: Mapping[Any, Any] | Sequence[Any] | pd.DataFrame | None = None,
        **kwargs,
    ) -> int:
        """Run a data-modifying statement and return the number of rows affected."""
        result = self.send_statement(statement, params, **kwargs)
        try:
            return result.rows_affected
        finally:
            result.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
