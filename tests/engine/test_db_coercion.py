"""Tests for database value to JSON conversion."""

import datetime
import uuid
from decimal import Decimal

import pytest


class TestProbeOrder:
    """Without type metadata: string, integer, float, boolean, else null."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("text", "text"),
            (42, 42),
            (2.5, 2.5),
            (True, True),
            (None, None),
        ],
    )
    def test_probe_types(self, value, expected) -> None:
        from noderun.engine.db.coercion import coerce_value

        result = coerce_value(value)
        assert result == expected
        assert type(result) is type(expected)

    def test_bool_is_not_integer(self) -> None:
        from noderun.engine.db.coercion import probe_value

        assert probe_value(False) is False

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_floats_are_null(self, value: float) -> None:
        from noderun.engine.db.coercion import coerce_value

        assert coerce_value(value) is None

    def test_undecodable_value_is_null(self) -> None:
        from noderun.engine.db.coercion import coerce_value

        assert coerce_value(object()) is None
        assert coerce_value(b"\xff\xfe") is None

    def test_driver_native_types(self) -> None:
        from noderun.engine.db.coercion import coerce_value

        assert coerce_value(Decimal("10")) == 10
        assert coerce_value(Decimal("10.25")) == 10.25
        assert coerce_value(datetime.date(2024, 3, 1)) == "2024-03-01"
        assert coerce_value(uuid.UUID(int=1)) == "00000000-0000-0000-0000-000000000001"
        assert coerce_value(b"hello") == "hello"


class TestTypeMetadata:
    def test_numeric_column(self) -> None:
        from noderun.engine.db.coercion import coerce_value

        assert coerce_value(Decimal("3.00"), "numeric") == 3
        assert coerce_value(Decimal("NaN"), "numeric") is None

    def test_oracle_number(self) -> None:
        from noderun.engine.db.coercion import coerce_value

        assert coerce_value(7, "DB_TYPE_NUMBER") == 7
        assert coerce_value(7.5, "DB_TYPE_NUMBER") == 7.5

    def test_timestamp_column(self) -> None:
        from noderun.engine.db.coercion import coerce_value

        value = datetime.datetime(2024, 3, 1, 12, 30)
        assert coerce_value(value, "timestamptz") == "2024-03-01T12:30:00"

    def test_text_column_reads_lob(self) -> None:
        from noderun.engine.db.coercion import coerce_value

        class FakeLob:
            def read(self) -> str:
                return "long text"

        assert coerce_value(FakeLob(), "DB_TYPE_CLOB") == "long text"

    def test_unrecognised_type_falls_back_to_probe(self) -> None:
        from noderun.engine.db.coercion import coerce_value

        assert coerce_value("abc", "geometry") == "abc"

    def test_decoder_failure_falls_back_to_probe(self) -> None:
        from noderun.engine.db.coercion import coerce_value

        assert coerce_value("not-a-number", "int4") == "not-a-number"


class TestCoerceRow:
    def test_column_order_preserved(self) -> None:
        from noderun.engine.db.coercion import coerce_row

        row = coerce_row((1, "a", None), ["id", "name", "note"])
        assert list(row) == ["id", "name", "note"]
        assert row == {"id": 1, "name": "a", "note": None}
