"""
Response classification for RESO OData requests.

Turns an HTTP status code and body into either a typed success value or a
ResoError of the matching kind. Transport-level failures never reach this
module; the transport raises NetworkError for those.
"""

import json
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .errors import (
    ResoError, UnauthorizedError, ForbiddenError, NotFoundError, RateLimitError,
    ServerError, ODataError, ParseError,
)
from .replication import ContinuationToken, ReplicationPage


# Longest raw body excerpt kept in an error message
MAX_ERROR_BODY_CHARS = 500

NEXT_LINK_FIELD = '@odata.nextLink'
COUNT_FIELD = '@odata.count'
RECORDS_FIELD = 'value'


class ResponseShape(Enum):
    """Expected shape of a successful response body."""
    COLLECTION = "collection"
    RECORD = "record"
    COUNT = "count"
    REPLICATION = "replication"
    RAW = "raw"


STATUS_ERRORS = {
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    429: RateLimitError,
}


def extract_error_message(status_code: int, body: Optional[str]) -> str:
    """
    Extract a human-readable message from an error body.

    Prefers the OData error envelope {"error": {"message": ...}}, then an
    OAuth style {"error_description": ...}, then the raw body text.
    """
    text = (body or '').strip()
    if text:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            payload = None

        if isinstance(payload, dict):
            error = payload.get('error')
            if isinstance(error, dict) and isinstance(error.get('message'), str):
                return error['message']
            if isinstance(payload.get('error_description'), str):
                return payload['error_description']
            if isinstance(error, str):
                return error

        if len(text) > MAX_ERROR_BODY_CHARS:
            return text[:MAX_ERROR_BODY_CHARS] + '...'
        return text

    return f"HTTP {status_code}"


def error_for_status(status_code: int, body: Optional[str] = None) -> ResoError:
    """
    Build the error for a non-success status code.

    Args:
        status_code: HTTP status code outside 2xx.
        body: Raw response body.

    Returns:
        ResoError subclass instance carrying the message and status code.
    """
    message = extract_error_message(status_code, body)
    error_class = STATUS_ERRORS.get(status_code)
    if error_class is None:
        error_class = ServerError if 500 <= status_code <= 599 else ODataError
    return error_class(message, status_code=status_code)


def _parse_json(body: Optional[str], status_code: int) -> Any:
    if body is None or not body.strip():
        raise ParseError("Empty response body", status_code=status_code)
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON response: {str(e)}", status_code=status_code)


def _header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    if not headers:
        return None
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def _validate_collection(payload: Any, status_code: int) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ParseError(
            f"Expected a JSON object with a '{RECORDS_FIELD}' array, got {type(payload).__name__}",
            status_code=status_code
        )
    if RECORDS_FIELD not in payload:
        raise ParseError(f"Response is missing the '{RECORDS_FIELD}' field", status_code=status_code)
    if not isinstance(payload[RECORDS_FIELD], list):
        raise ParseError(f"'{RECORDS_FIELD}' must be an array", status_code=status_code)
    for index, record in enumerate(payload[RECORDS_FIELD]):
        if not isinstance(record, dict):
            raise ParseError(
                f"'{RECORDS_FIELD}' item {index} must be a record object, got {type(record).__name__}",
                status_code=status_code
            )

    count = payload.get(COUNT_FIELD)
    if count is not None and (isinstance(count, bool) or not isinstance(count, int) or count < 0):
        raise ParseError(f"'{COUNT_FIELD}' must be a non-negative integer, got {count!r}", status_code=status_code)

    next_link = payload.get(NEXT_LINK_FIELD)
    if next_link is not None and not isinstance(next_link, str):
        raise ParseError(f"'{NEXT_LINK_FIELD}' must be a string", status_code=status_code)

    return payload


def _parse_count(payload: Any, status_code: int) -> int:
    if isinstance(payload, dict):
        payload = payload.get(COUNT_FIELD)
    if isinstance(payload, bool) or not isinstance(payload, int) or payload < 0:
        raise ParseError(f"Expected a non-negative integer count, got {payload!r}", status_code=status_code)
    return payload


def _parse_replication(
    payload: Any,
    status_code: int,
    headers: Optional[Mapping[str, str]]
) -> ReplicationPage:
    payload = _validate_collection(payload, status_code)
    next_link = payload.get(NEXT_LINK_FIELD) or _header(headers, 'next')
    return ReplicationPage(
        records=tuple(payload[RECORDS_FIELD]),
        next_token=ContinuationToken(next_link) if next_link else None
    )


def classify_response(
    status_code: int,
    body: Optional[str],
    shape: ResponseShape,
    headers: Optional[Mapping[str, str]] = None
) -> Any:
    """
    Classify a transport response.

    Args:
        status_code: HTTP status code.
        body: Raw response body text.
        shape: Expected success shape.
        headers: Response headers (used for the replication next link).

    Returns:
        COLLECTION: the response object with its 'value' array.
        RECORD: the bare record object.
        COUNT: a non-negative integer.
        REPLICATION: a ReplicationPage.
        RAW: the body text unchanged.

    Raises:
        ResoError: The classified failure.
    """
    if not 200 <= status_code <= 299:
        raise error_for_status(status_code, body)

    if shape is ResponseShape.RAW:
        return body or ''

    payload = _parse_json(body, status_code)

    if shape is ResponseShape.COLLECTION:
        return _validate_collection(payload, status_code)
    if shape is ResponseShape.RECORD:
        if not isinstance(payload, dict):
            raise ParseError(f"Expected a record object, got {type(payload).__name__}", status_code=status_code)
        return payload
    if shape is ResponseShape.COUNT:
        return _parse_count(payload, status_code)
    if shape is ResponseShape.REPLICATION:
        return _parse_replication(payload, status_code, headers)

    raise ValueError(f"Unknown response shape: {shape}")
