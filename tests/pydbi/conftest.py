import pytest

from tests import ENV


def _connect(**kwargs):
    from pydbi import connect

    if "database" not in kwargs:
        kwargs["database"] = ENV.database
    return connect(**kwargs)


def _create_tables(conn):
    driver = conn.driver_connection
    driver.executescript(
        """
        DROP TABLE IF EXISTS one_row;
        DROP TABLE IF EXISTS many_rows;
        DROP TABLE IF EXISTS one_row_complex;
        DROP TABLE IF EXISTS unique_rows;
        DROP TABLE IF EXISTS mixed;
        CREATE TABLE one_row (number_of_rows INTEGER);
        CREATE TABLE many_rows (a INTEGER);
        CREATE TABLE one_row_complex (
            col_boolean BOOLEAN,
            col_int INTEGER,
            col_real REAL,
            col_text TEXT,
            col_blob BLOB,
            col_date DATE,
            col_timestamp TIMESTAMP,
            col_decimal TEXT,
            col_json TEXT
        );
        CREATE TABLE unique_rows (id INTEGER PRIMARY KEY);
        INSERT INTO one_row VALUES (1);
        INSERT INTO one_row_complex VALUES (
            1, 2147483647, 0.5, 'a string', X'0AFF',
            '2017-01-01', '2017-01-02 03:04:05.678', '0.1', '{"a": 1}'
        );
        """
    )
    driver.executemany(
        "INSERT INTO many_rows VALUES (?)", [(i,) for i in range(ENV.many_rows)]
    )


@pytest.fixture
def connection(request):
    if not hasattr(request, "param"):
        setattr(request, "param", {})  # noqa: B010
    conn = _connect(**request.param)
    try:
        _create_tables(conn)
        yield conn
    finally:
        conn.close()
