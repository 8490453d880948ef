"""
Convenience constructors for common RESO queries.

Thin wrappers over the builders for the query shapes most callers need,
plus helpers to drive a full replication and format records for display.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Sequence

from .client import ResoClient
from .query import Query, QueryBuilder, ReplicationQuery, ReplicationQueryBuilder
from .replication import ReplicationPage


def build_query(resource: str, filter_expr: Optional[str] = None, top: Optional[int] = None) -> Query:
    """
    Build a simple collection query.

    Example:
        query = build_query("Property", "City eq 'Austin'", 10)
    """
    builder = QueryBuilder(resource)
    if filter_expr is not None:
        builder.filter(filter_expr)
    if top is not None:
        builder.top(top)
    return builder.build()


def build_query_with_select(
    resource: str,
    filter_expr: Optional[str],
    fields: Sequence[str],
    top: Optional[int] = None
) -> Query:
    """Build a collection query with a field selection."""
    builder = QueryBuilder(resource).select(fields)
    if filter_expr is not None:
        builder.filter(filter_expr)
    if top is not None:
        builder.top(top)
    return builder.build()


def build_query_by_key(resource: str, key: str, fields: Optional[Sequence[str]] = None) -> Query:
    """Build a single-record lookup, optionally selecting fields."""
    builder = QueryBuilder.by_key(resource, key)
    if fields:
        builder.select(fields)
    return builder.build()


def build_query_with_order(
    resource: str,
    filter_expr: Optional[str],
    order_field: str,
    direction: str = "asc",
    top: Optional[int] = None
) -> Query:
    """Build a collection query ordered by one field."""
    builder = QueryBuilder(resource).order_by(order_field, direction)
    if filter_expr is not None:
        builder.filter(filter_expr)
    if top is not None:
        builder.top(top)
    return builder.build()


def build_query_with_pagination(
    resource: str,
    filter_expr: Optional[str],
    fields: Sequence[str],
    skip: int,
    top: int
) -> Query:
    """Build one page of an offset-paged collection query."""
    builder = QueryBuilder(resource).select(fields).skip(skip).top(top)
    if filter_expr is not None:
        builder.filter(filter_expr)
    return builder.build()


def build_query_with_expand(
    resource: str,
    filter_expr: Optional[str],
    fields: Sequence[str],
    expand: Sequence[str],
    top: Optional[int] = None
) -> Query:
    """Build a collection query that embeds related entities."""
    builder = QueryBuilder(resource).select(fields).expand(expand)
    if filter_expr is not None:
        builder.filter(filter_expr)
    if top is not None:
        builder.top(top)
    return builder.build()


def build_replication_query(
    resource: str,
    filter_expr: Optional[str] = None,
    top: Optional[int] = None
) -> ReplicationQuery:
    """Build a replication query for bulk synchronization."""
    builder = ReplicationQueryBuilder(resource)
    if filter_expr is not None:
        builder.filter(filter_expr)
    if top is not None:
        builder.top(top)
    return builder.build()


def count_records(client: ResoClient, resource: str, filter_expr: Optional[str] = None) -> int:
    """Count the records of a resource matching an optional filter."""
    builder = QueryBuilder(resource).count()
    if filter_expr is not None:
        builder.filter(filter_expr)
    return client.execute_count(builder.build())


def replicate_all(
    client: ResoClient,
    query: ReplicationQuery,
    on_page: Optional[Callable[[ReplicationPage], None]] = None,
    max_pages: Optional[int] = None
) -> int:
    """
    Walk a replication to its end.

    Args:
        client: Client used for page requests.
        query: Replication query for the first page.
        on_page: Called with every page as it arrives.
        max_pages: Stop after this many pages (None for all).

    Returns:
        Total number of records fetched.
    """
    cursor = client.replicate(query)
    for page in cursor:
        if on_page is not None:
            on_page(page)
        if max_pages is not None and cursor.pages_fetched >= max_pages:
            break
    return cursor.records_fetched


def extract_records(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Get the records array of a collection response."""
    records = response.get('value')
    return records if isinstance(records, list) else []


def format_records(records: Sequence[Dict[str, Any]], limit: Optional[int] = None) -> str:
    """Render records as numbered, indented JSON blocks."""
    shown = list(records if limit is None else records[:limit])
    lines = [f"Found {len(records)} records", ""]
    for i, record in enumerate(shown, start=1):
        lines.append(f"Record {i}:")
        lines.append(json.dumps(record, indent=2, default=str))
        lines.append("")
    if len(shown) < len(records):
        lines.append(f"... and {len(records) - len(shown)} more records")
    return "\n".join(lines).rstrip() + "\n"
