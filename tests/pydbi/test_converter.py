from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from pydbi.converter import DefaultTypeConverter, normalize_type


@pytest.mark.parametrize(
    ("type_", "expected"),
    [
        ("INTEGER", "integer"),
        ("int", "integer"),
        ("UNSIGNED BIG INT", "integer"),
        ("VARCHAR(20)", "text"),
        ("CLOB", "text"),
        ("string", "text"),
        ("BLOB", "blob"),
        ("DOUBLE PRECISION", "real"),
        ("FLOAT", "real"),
        ("NUMERIC", "decimal"),
        ("DECIMAL(10, 2)", "decimal"),
        ("BOOL", "boolean"),
        ("DATETIME", "timestamp"),
        ("date", "date"),
        ("JSONB", "json"),
        ("uuid", "uuid"),
        ("", "null"),
        (None, "null"),
    ],
)
def test_normalize_type(type_, expected):
    assert normalize_type(type_) == expected


class TestDefaultTypeConverter:
    @pytest.mark.parametrize(
        ("type_", "value", "expected"),
        [
            ("INTEGER", "42", 42),
            ("REAL", 1, 1.0),
            ("VARCHAR(10)", 42, "42"),
            ("TEXT", b"abc", "abc"),
            ("BLOB", "0a ff", b"\x0a\xff"),
            ("BOOLEAN", 1, True),
            ("BOOLEAN", 0, False),
            ("BOOLEAN", "false", False),
            ("DATE", "2023-01-15", date(2023, 1, 15)),
            ("DATE", "2023-01-15 10:00:00", date(2023, 1, 15)),
            ("TIMESTAMP", "2017-01-02 03:04:05.678", datetime(2017, 1, 2, 3, 4, 5, 678000)),
            ("TIMESTAMP", 0, datetime(1970, 1, 1, tzinfo=timezone.utc)),
            ("DECIMAL(10, 2)", 0.1, Decimal("0.1")),
            ("NUMERIC", "0.1", Decimal("0.1")),
            ("JSON", '{"a": 1}', {"a": 1}),
            ("uuid", "not converted", "not converted"),
            ("INTEGER", None, None),
        ],
    )
    def test_convert(self, type_, value, expected):
        assert DefaultTypeConverter().convert(type_, value) == expected

    def test_get_dtype(self):
        converter = DefaultTypeConverter()
        assert converter.get_dtype("INTEGER") is int
        assert converter.get_dtype("VARCHAR(20)") is str
        assert converter.get_dtype("DATETIME") is datetime
        assert converter.get_dtype("NULL") is object
        assert converter.get_dtype("uuid") is object

    def test_get_pandas_dtype(self):
        assert DefaultTypeConverter.get_pandas_dtype(int) == "Int64"
        assert DefaultTypeConverter.get_pandas_dtype(float) == "float64"
        assert DefaultTypeConverter.get_pandas_dtype(bool) == "boolean"
        assert DefaultTypeConverter.get_pandas_dtype(str) == "object"
        assert DefaultTypeConverter.get_pandas_dtype(object) == "object"

    def test_set_and_remove(self):
        converter = DefaultTypeConverter()
        converter.set("UUID", lambda v: f"uuid:{v}")
        assert converter.convert("uuid", "1") == "uuid:1"
        converter.remove("UUID")
        assert converter.convert("uuid", "1") == "1"

    def test_update(self):
        converter = DefaultTypeConverter()
        converter.update({"INT": lambda v: -int(v)})
        assert converter.convert("INTEGER", "1") == -1
        # Instances do not share their mappings.
        assert DefaultTypeConverter().convert("INTEGER", "1") == 1
