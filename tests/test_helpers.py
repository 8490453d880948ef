"""
Tests for the query convenience helpers and record formatting.
"""

from unittest.mock import Mock

import pytest
from hypothesis import given, strategies as st, settings

from reso_odata.compiler import compile_query
from reso_odata.errors import InvalidQueryError
from reso_odata.helpers import (
    build_query, build_query_by_key, build_query_with_expand, build_query_with_order,
    build_query_with_pagination, build_query_with_select, build_replication_query,
    count_records, extract_records, format_records,
)
from reso_odata.query import MAX_REPLICATION_TOP, QueryMode, ReplicationQuery, SortDirection


BASE_URL = "https://api-test.example.com/odata"


class TestQueryHelpers:
    """Each helper produces the same descriptor as the equivalent builder chain."""

    def test_build_query(self):
        query = build_query("Property", "City eq 'Austin'", 10)

        assert query.mode is QueryMode.COLLECTION
        assert query.filter == "City eq 'Austin'"
        assert query.top == 10

    def test_build_query_without_options(self):
        query = build_query("Office")
        assert compile_query(query, BASE_URL).url == f"{BASE_URL}/Office"

    def test_build_query_with_select(self):
        query = build_query_with_select("Property", None, ["ListingKey", "ListPrice"], 5)

        assert query.filter is None
        assert query.select == ("ListingKey", "ListPrice")
        assert query.top == 5

    def test_build_query_by_key(self):
        query = build_query_by_key("Property", "12345", ["ListingKey"])

        assert query.mode is QueryMode.BY_KEY
        assert query.key == "12345"
        assert query.select == ("ListingKey",)

    def test_build_query_with_order(self):
        query = build_query_with_order("Property", "ListPrice gt 0", "ListPrice", "desc", 20)

        assert query.order_by.field == "ListPrice"
        assert query.order_by.direction is SortDirection.DESC

    def test_build_query_with_order_rejects_bad_direction(self):
        with pytest.raises(InvalidQueryError):
            build_query_with_order("Property", None, "ListPrice", "sideways")

    @given(skip=st.integers(min_value=0, max_value=100000), top=st.integers(min_value=0, max_value=1000))
    @settings(max_examples=30)
    def test_build_query_with_pagination(self, skip, top):
        query = build_query_with_pagination("Property", None, ["ListingKey"], skip, top)

        assert query.skip == skip
        assert query.top == top

    def test_build_query_with_expand(self):
        query = build_query_with_expand("Property", None, ["ListingKey"], ["Media", "ListAgent"])
        assert query.expand == ("Media", "ListAgent")

    def test_build_replication_query(self):
        query = build_replication_query("Property", "StandardStatus eq 'Active'", MAX_REPLICATION_TOP)

        assert isinstance(query, ReplicationQuery)
        assert query.top == MAX_REPLICATION_TOP

    def test_build_replication_query_enforces_ceiling(self):
        with pytest.raises(InvalidQueryError):
            build_replication_query("Property", top=MAX_REPLICATION_TOP + 1)


class TestCountRecords:
    """count_records issues a count query through the client."""

    def test_count_records(self):
        client = Mock()
        client.execute_count.return_value = 42

        assert count_records(client, "Property", "City eq 'Austin'") == 42

        query = client.execute_count.call_args[0][0]
        assert query.mode is QueryMode.COUNT
        assert query.filter == "City eq 'Austin'"


class TestRecordFormatting:
    """Records are extracted from responses and rendered for display."""

    def test_extract_records(self):
        assert extract_records({'value': [{'a': 1}]}) == [{'a': 1}]
        assert extract_records({}) == []
        assert extract_records({'value': None}) == []

    def test_format_records(self):
        output = format_records([{'ListingKey': '1'}, {'ListingKey': '2'}])

        assert output.startswith("Found 2 records\n")
        assert "Record 1:" in output
        assert "Record 2:" in output
        assert '"ListingKey": "2"' in output

    def test_format_records_with_limit(self):
        records = [{'ListingKey': str(i)} for i in range(5)]

        output = format_records(records, limit=2)

        assert "Found 5 records" in output
        assert "Record 2:" in output
        assert "Record 3:" not in output
        assert output.rstrip().endswith("... and 3 more records")

    def test_format_no_records(self):
        assert format_records([]) == "Found 0 records\n"
