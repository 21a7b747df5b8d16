from __future__ import annotations

from typing import TYPE_CHECKING

from pydbi.converter import normalize_type
from pydbi.error import *  # noqa: F403

if TYPE_CHECKING:
    from pydbi.sqlite.connection import SQLiteConnection

try:
    from pydbi._version import __version__
except ImportError:
    try:
        from importlib.metadata import version

        __version__ = version("PyDBI")
    except Exception:
        __version__ = "unknown"

# Globals https://www.python.org/dev/peps/pep-0249/#globals
apilevel: str = "2.0"
threadsafety: int = 1
paramstyle: str = "qmark"


class DBAPITypeObject(frozenset[str]):
    """Type Objects and Constructors

    https://www.python.org/dev/peps/pep-0249/#type-objects-and-constructors

    Compares equal to any declared type name that normalizes to one of its
    members, so ``NUMBER == "DECIMAL(10, 2)"`` holds.
    """

    def __eq__(self, other: object):
        if isinstance(other, frozenset):
            return frozenset.__eq__(self, other)
        if isinstance(other, str):
            return normalize_type(other) in self
        return other in self

    def __ne__(self, other: object):
        return not self.__eq__(other)

    def __hash__(self):
        return frozenset.__hash__(self)


STRING: DBAPITypeObject = DBAPITypeObject(("text", "json"))
BINARY: DBAPITypeObject = DBAPITypeObject(("blob",))
BOOLEAN: DBAPITypeObject = DBAPITypeObject(("boolean",))
NUMBER: DBAPITypeObject = DBAPITypeObject(("integer", "real", "decimal"))
DATE: DBAPITypeObject = DBAPITypeObject(("date",))
DATETIME: DBAPITypeObject = DBAPITypeObject(("timestamp",))


def connect(*args, **kwargs) -> SQLiteConnection:
    """Open a connection to a SQLite database.

    This is the entry point of the bundled SQLite driver. Statements sent
    through the connection return results implementing the
    :class:`~pydbi.common.DBResult` protocol.

    Args:
        database: Path of the database file. Defaults to the
            ``PYDBI_SQLITE_DATABASE`` environment variable, then to
            ``":memory:"``.
        timeout: Seconds to wait for a database lock. Defaults to 5.
        arraysize: Default number of rows per frame when iterating results.
        converter: Converter for declared column types.
        retry_config: Retry policy for statements failing on a locked database.
        **kwargs: Additional keyword arguments passed to ``sqlite3.connect``.

    Returns:
        A SQLiteConnection.

    Example:
        >>> import pydbi
        >>> conn = pydbi.connect()
        >>> result = conn.send_query("SELECT 1 AS a")
        >>> result.fetch()
           a
        0  1
        >>> result.dispose()
        True
    """
    from pydbi.sqlite.connection import SQLiteConnection

    return SQLiteConnection(*args, **kwargs)
