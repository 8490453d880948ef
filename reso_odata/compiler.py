"""
Request compiler for RESO OData queries.

Maps immutable query descriptors to a request path and an ordered list of
query parameters. Compilation is pure: the same descriptor and base URL
always produce byte-identical output.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import quote

from .query import Query, QueryMode, ReplicationQuery


# Parameters whose values are opaque expressions and must be percent-encoded
ENCODED_PARAMS = frozenset({'$filter', '$orderby', '$apply'})

COUNT_SEGMENT = '$count'
REPLICATION_SEGMENT = 'replication'
METADATA_SEGMENT = '$metadata'


@dataclass(frozen=True)
class CompiledRequest:
    """A compiled GET request: path plus ordered query parameters."""
    path: str
    params: Tuple[Tuple[str, str], ...] = ()

    @property
    def query_string(self) -> str:
        parts = []
        for name, value in self.params:
            if name in ENCODED_PARAMS:
                value = quote(value, safe='')
            parts.append(f"{name}={value}")
        return '&'.join(parts)

    @property
    def url(self) -> str:
        if self.params:
            return f"{self.path}?{self.query_string}"
        return self.path

    def param_names(self) -> List[str]:
        return [name for name, _ in self.params]


def build_path(base_url: str, dataset_id: Optional[str], *segments: str) -> str:
    """
    Join the base URL, optional dataset segment and path segments.

    Args:
        base_url: Service root, with or without a trailing slash.
        dataset_id: Optional dataset identifier inserted after the base URL.
        segments: Already-safe path segments.

    Returns:
        Absolute path without a query string.
    """
    parts = [base_url.rstrip('/')]
    if dataset_id:
        parts.append(dataset_id.strip('/'))
    parts.extend(segments)
    return '/'.join(parts)


def key_segment(resource: str, key: str) -> str:
    """Format a key lookup segment, e.g. Property('12345')."""
    literal = key.replace("'", "''")
    return f"{resource}('{quote(literal, safe='')}')"


def compile_query(query: Query, base_url: str, dataset_id: Optional[str] = None) -> CompiledRequest:
    """
    Compile a standard query.

    Parameters are emitted in a fixed order: $filter, $select, $expand,
    $orderby, $top, $skip, $count, $apply. Count queries route to the
    $count sub-path and never carry $top, $skip, $orderby or $count.

    Args:
        query: Query descriptor produced by QueryBuilder.build().
        base_url: Service root URL.
        dataset_id: Optional dataset segment.

    Returns:
        CompiledRequest for the query.
    """
    if query.mode is QueryMode.BY_KEY:
        path = build_path(base_url, dataset_id, key_segment(query.resource, query.key or ''))
    elif query.mode is QueryMode.COUNT:
        path = build_path(base_url, dataset_id, query.resource, COUNT_SEGMENT)
    else:
        path = build_path(base_url, dataset_id, query.resource)

    paging = query.mode is QueryMode.COLLECTION
    params: List[Tuple[str, str]] = []

    if query.filter is not None:
        params.append(('$filter', query.filter))
    if query.select:
        params.append(('$select', ','.join(query.select)))
    if query.expand:
        params.append(('$expand', ','.join(query.expand)))
    if paging and query.order_by is not None:
        params.append(('$orderby', query.order_by.to_odata()))
    if paging and query.top is not None:
        params.append(('$top', str(query.top)))
    if paging and query.skip is not None:
        params.append(('$skip', str(query.skip)))
    if paging and query.include_count:
        params.append(('$count', 'true'))
    if query.apply is not None:
        params.append(('$apply', query.apply))

    return CompiledRequest(path=path, params=tuple(params))


def compile_replication(query: ReplicationQuery, base_url: str, dataset_id: Optional[str] = None) -> CompiledRequest:
    """Compile a replication query against the resource's replication endpoint."""
    path = build_path(base_url, dataset_id, query.resource, REPLICATION_SEGMENT)

    params: List[Tuple[str, str]] = []
    if query.filter is not None:
        params.append(('$filter', query.filter))
    if query.select:
        params.append(('$select', ','.join(query.select)))
    if query.top is not None:
        params.append(('$top', str(query.top)))

    return CompiledRequest(path=path, params=tuple(params))


def compile_metadata(base_url: str, dataset_id: Optional[str] = None) -> CompiledRequest:
    """Compile the $metadata document request."""
    return CompiledRequest(path=build_path(base_url, dataset_id, METADATA_SEGMENT))
