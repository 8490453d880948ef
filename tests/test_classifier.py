"""
Property-based tests for the response classifier.

Covers the status code to error kind table, error message extraction and
structural validation of each success shape.
"""

import json

import pytest
from hypothesis import given, strategies as st, settings

from reso_odata.classifier import (
    MAX_ERROR_BODY_CHARS, ResponseShape, classify_response, error_for_status, extract_error_message,
)
from reso_odata.errors import (
    ErrorKind, ForbiddenError, NotFoundError, ODataError, ParseError, RateLimitError,
    ServerError, UnauthorizedError,
)
from reso_odata.replication import ContinuationToken, ReplicationPage


record_strategy = st.fixed_dictionaries({
    'ListingKey': st.text(min_size=1, max_size=20),
    'ListPrice': st.integers(min_value=0, max_value=10 ** 8),
})

records_strategy = st.lists(record_strategy, max_size=20)

other_client_error_strategy = st.integers(min_value=400, max_value=499).filter(
    lambda code: code not in (401, 403, 404, 429)
)


def error_body(code, message):
    return json.dumps({'error': {'code': code, 'message': message}})


class TestStatusClassification:
    """Each non-success status maps to exactly one error kind."""

    def test_scenario_not_found_with_envelope(self):
        body = '{"error":{"code":404,"message":"not found"}}'

        with pytest.raises(NotFoundError) as exc_info:
            classify_response(404, body, ResponseShape.COLLECTION)

        error = exc_info.value
        assert error == NotFoundError("not found", status_code=404)
        assert error.kind is ErrorKind.NOT_FOUND
        assert error.message == "not found"
        assert error.status_code == 404

    @pytest.mark.parametrize('status_code, error_class, kind', [
        (401, UnauthorizedError, ErrorKind.UNAUTHORIZED),
        (403, ForbiddenError, ErrorKind.FORBIDDEN),
        (404, NotFoundError, ErrorKind.NOT_FOUND),
        (429, RateLimitError, ErrorKind.RATE_LIMITED),
        (500, ServerError, ErrorKind.SERVER_ERROR),
        (503, ServerError, ErrorKind.SERVER_ERROR),
        (400, ODataError, ErrorKind.ODATA_ERROR),
        (418, ODataError, ErrorKind.ODATA_ERROR),
    ])
    def test_status_table(self, status_code, error_class, kind):
        error = error_for_status(status_code, error_body(status_code, "boom"))

        assert type(error) is error_class
        assert error.kind is kind
        assert error.status_code == status_code
        assert error.message == "boom"

    @given(status_code=st.integers(min_value=500, max_value=599), shape=st.sampled_from(list(ResponseShape)))
    @settings(max_examples=50)
    def test_all_5xx_are_server_errors(self, status_code, shape):
        with pytest.raises(ServerError) as exc_info:
            classify_response(status_code, "upstream failure", shape)
        assert exc_info.value.is_retryable

    @given(status_code=other_client_error_strategy)
    @settings(max_examples=50)
    def test_unlisted_4xx_are_odata_errors(self, status_code):
        with pytest.raises(ODataError) as exc_info:
            classify_response(status_code, "", ResponseShape.COLLECTION)
        assert exc_info.value.kind is ErrorKind.ODATA_ERROR
        assert not exc_info.value.is_retryable

    @given(status_code=st.sampled_from([100, 301, 304, 600]))
    @settings(max_examples=10)
    def test_non_2xx_outside_error_ranges_are_odata_errors(self, status_code):
        with pytest.raises(ODataError):
            classify_response(status_code, "", ResponseShape.RECORD)

    @given(status_code=st.integers(min_value=200, max_value=299))
    @settings(max_examples=20)
    def test_any_2xx_is_success(self, status_code):
        result = classify_response(status_code, '{"value": []}', ResponseShape.COLLECTION)
        assert result == {'value': []}


class TestErrorMessages:
    """Messages come from the error envelope, then the raw body."""

    def test_odata_envelope(self):
        assert extract_error_message(400, error_body(400, "Invalid $filter")) == "Invalid $filter"

    def test_oauth_style_body(self):
        body = json.dumps({'error': 'invalid_token', 'error_description': 'Token expired'})
        assert extract_error_message(401, body) == "Token expired"

    def test_string_error_field(self):
        assert extract_error_message(403, json.dumps({'error': 'forbidden'})) == "forbidden"

    def test_plain_text_body(self):
        assert extract_error_message(502, "Bad Gateway") == "Bad Gateway"

    def test_empty_body_falls_back_to_status(self):
        assert extract_error_message(503, "") == "HTTP 503"
        assert extract_error_message(503, None) == "HTTP 503"

    @given(body=st.text(min_size=MAX_ERROR_BODY_CHARS + 1, max_size=MAX_ERROR_BODY_CHARS * 3))
    @settings(max_examples=20)
    def test_long_bodies_are_truncated(self, body):
        message = extract_error_message(500, body)
        assert len(message) <= MAX_ERROR_BODY_CHARS + 3


class TestCollectionShape:
    """Collection bodies need a 'value' array."""

    @given(records=records_strategy, count=st.one_of(st.none(), st.integers(min_value=0, max_value=10 ** 6)))
    @settings(max_examples=50)
    def test_valid_collection(self, records, count):
        payload = {'value': records}
        if count is not None:
            payload['@odata.count'] = count

        result = classify_response(200, json.dumps(payload), ResponseShape.COLLECTION)

        assert result['value'] == records
        assert result.get('@odata.count') == count

    def test_empty_value_is_valid(self):
        assert classify_response(200, '{"value": []}', ResponseShape.COLLECTION)['value'] == []

    @pytest.mark.parametrize('body', [
        '{}',
        '{"records": []}',
        '{"value": {}}',
        '{"value": "x"}',
        '[]',
        '42',
        '{"value": [], "@odata.count": -1}',
        '{"value": [], "@odata.count": "12"}',
        '{"value": [], "@odata.nextLink": 7}',
        '{"value": [1, "x", null]}',
        '{"value": [{"ListingKey": "1"}, null]}',
        '{"value": [[{"ListingKey": "1"}]]}',
        'not json',
        '',
    ])
    def test_malformed_collection_is_parse_error(self, body):
        with pytest.raises(ParseError) as exc_info:
            classify_response(200, body, ResponseShape.COLLECTION)
        assert exc_info.value.kind is ErrorKind.PARSE

    @given(items=st.lists(
        st.one_of(st.integers(), st.text(max_size=10), st.none(), st.booleans()),
        min_size=1, max_size=5
    ))
    @settings(max_examples=30)
    def test_non_object_records_are_parse_errors(self, items):
        body = json.dumps({'value': [{'ListingKey': '1'}] + items})

        with pytest.raises(ParseError):
            classify_response(200, body, ResponseShape.COLLECTION)
        with pytest.raises(ParseError):
            classify_response(200, body, ResponseShape.REPLICATION)


class TestRecordShape:
    """Key lookups return the bare record object."""

    def test_record_object(self):
        body = json.dumps({'ListingKey': '12345', 'City': 'Austin'})
        assert classify_response(200, body, ResponseShape.RECORD) == {'ListingKey': '12345', 'City': 'Austin'}

    def test_sparse_record_is_tolerated(self):
        assert classify_response(200, '{}', ResponseShape.RECORD) == {}

    @pytest.mark.parametrize('body', ['[]', '"text"', '12', 'null', '<xml/>'])
    def test_non_object_is_parse_error(self, body):
        with pytest.raises(ParseError):
            classify_response(200, body, ResponseShape.RECORD)


class TestCountShape:
    """Count responses are a bare integer or an object wrapping one."""

    @given(count=st.integers(min_value=0, max_value=10 ** 9))
    @settings(max_examples=50)
    def test_bare_integer(self, count):
        assert classify_response(200, str(count), ResponseShape.COUNT) == count

    @given(count=st.integers(min_value=0, max_value=10 ** 9))
    @settings(max_examples=50)
    def test_wrapped_integer(self, count):
        body = json.dumps({'@odata.count': count})
        assert classify_response(200, body, ResponseShape.COUNT) == count

    @pytest.mark.parametrize('body', ['-1', '1.5', 'true', '"12"', '{}', '{"@odata.count": "3"}', '[3]', ''])
    def test_invalid_count_is_parse_error(self, body):
        with pytest.raises(ParseError):
            classify_response(200, body, ResponseShape.COUNT)


class TestReplicationShape:
    """Replication bodies produce pages with an optional continuation token."""

    def test_page_with_next_link(self):
        body = json.dumps({
            'value': [{'ListingKey': '1'}, {'ListingKey': '2'}],
            '@odata.nextLink': 'https://api-test.example.com/odata/Property/replication?next=abc'
        })

        page = classify_response(200, body, ResponseShape.REPLICATION)

        assert isinstance(page, ReplicationPage)
        assert page.record_count == 2
        assert page.next_token == ContinuationToken(
            'https://api-test.example.com/odata/Property/replication?next=abc'
        )
        assert not page.is_last

    def test_terminal_page(self):
        page = classify_response(200, json.dumps({'value': [{'ListingKey': '1'}] * 37}), ResponseShape.REPLICATION)

        assert page.record_count == 37
        assert page.next_token is None
        assert page.is_last

    def test_next_link_from_header(self):
        page = classify_response(
            200, '{"value": []}', ResponseShape.REPLICATION,
            headers={'Next': 'https://api-test.example.com/odata/Property/replication?token=xyz'}
        )
        assert str(page.next_token) == 'https://api-test.example.com/odata/Property/replication?token=xyz'

    def test_body_next_link_wins_over_header(self):
        body = json.dumps({'value': [], '@odata.nextLink': 'https://a.example.com/body'})
        page = classify_response(200, body, ResponseShape.REPLICATION, headers={'next': 'https://a.example.com/header'})
        assert page.next_token.value == 'https://a.example.com/body'

    def test_missing_value_is_parse_error(self):
        with pytest.raises(ParseError):
            classify_response(200, '{"@odata.nextLink": "x"}', ResponseShape.REPLICATION)


class TestRawShape:
    """Metadata is passed through untouched."""

    def test_raw_body_returned_verbatim(self):
        xml = '<?xml version="1.0"?><edmx:Edmx Version="4.0"></edmx:Edmx>'
        assert classify_response(200, xml, ResponseShape.RAW) == xml

    def test_raw_errors_are_still_classified(self):
        with pytest.raises(UnauthorizedError):
            classify_response(401, "", ResponseShape.RAW)
