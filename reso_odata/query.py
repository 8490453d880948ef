"""
Query descriptors and builders for the RESO Web API.

Builders accumulate parameters through fluent setter calls and defer every
check to build(), so setter call order never matters. A successful build
returns a frozen descriptor; a builder is consumed by its first build().
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple, Union

from .errors import InvalidQueryError


# Maximum $top for standard collection queries
MAX_TOP = 1000

# Maximum $top for replication queries
MAX_REPLICATION_TOP = 2000

IDENTIFIER_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')


class QueryMode(Enum):
    """Access mode of a standard query."""
    COLLECTION = "collection"
    BY_KEY = "by_key"
    COUNT = "count"


class SortDirection(Enum):
    """Sort direction for $orderby."""
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Union[str, 'SortDirection']) -> 'SortDirection':
        """
        Parse a sort direction.

        Accepts a SortDirection or one of 'asc', 'ascending', 'desc',
        'descending' in any case.

        Raises:
            InvalidQueryError: If the value is not a known direction.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized in ('asc', 'ascending'):
            return cls.ASC
        if normalized in ('desc', 'descending'):
            return cls.DESC
        raise InvalidQueryError(f"Invalid sort direction: {value!r} (expected 'asc' or 'desc')")


@dataclass(frozen=True)
class OrderBy:
    """A single $orderby clause."""
    field: str
    direction: SortDirection = SortDirection.ASC

    def to_odata(self) -> str:
        return f"{self.field} {self.direction.value}"


@dataclass(frozen=True)
class Query:
    """
    Immutable standard query descriptor.

    Produced by QueryBuilder.build(). The mode decides which fields may be
    set: key lookups carry only select/expand, count queries never carry
    include_count.
    """
    resource: str
    mode: QueryMode = QueryMode.COLLECTION
    key: Optional[str] = None
    filter: Optional[str] = None
    select: Tuple[str, ...] = ()
    expand: Tuple[str, ...] = ()
    order_by: Optional[OrderBy] = None
    top: Optional[int] = None
    skip: Optional[int] = None
    include_count: bool = False
    apply: Optional[str] = None

    @property
    def count_only(self) -> bool:
        return self.mode is QueryMode.COUNT


@dataclass(frozen=True)
class ReplicationQuery:
    """Immutable replication query descriptor."""
    resource: str
    filter: Optional[str] = None
    select: Tuple[str, ...] = ()
    top: Optional[int] = None


def is_identifier(name: object) -> bool:
    """Check that a name is safe to emit unencoded in a URL."""
    return isinstance(name, str) and bool(IDENTIFIER_PATTERN.fullmatch(name))


def _as_names(names: Tuple) -> Tuple:
    # select("A", "B") and select(["A", "B"]) are equivalent
    if len(names) == 1 and not isinstance(names[0], str) and isinstance(names[0], Iterable):
        return tuple(names[0])
    return tuple(names)


def _normalize_expr(expr: Optional[str]) -> Optional[str]:
    if expr is None:
        return None
    expr = str(expr)
    return expr if expr.strip() else None


class _BaseQueryBuilder:
    """Shared accumulation state for resource, filter, select and top."""

    def __init__(self, resource: str):
        if not resource or not str(resource).strip():
            raise InvalidQueryError("Resource name must not be empty")
        if not is_identifier(resource):
            raise InvalidQueryError(f"Resource name contains characters not allowed in a URL path: {resource!r}")
        self._resource = resource
        self._filter: Optional[str] = None
        self._select: Tuple = ()
        self._top = None
        self._consumed = False

    @property
    def resource(self) -> str:
        return self._resource

    def _ensure_open(self) -> None:
        if self._consumed:
            raise InvalidQueryError(f"Builder for {self._resource} was already built; create a new builder")

    def filter(self, expression: str):
        """Set the $filter expression (replaces any previous filter)."""
        self._ensure_open()
        self._filter = expression
        return self

    def select(self, *fields):
        """Set the $select field list (replaces any previous selection)."""
        self._ensure_open()
        self._select = _as_names(fields)
        return self

    def top(self, count: int):
        """Set $top (replaces any previous value)."""
        self._ensure_open()
        self._top = count
        return self

    def _check_count(self, name: str, value, ceiling: Optional[int] = None) -> None:
        if value is None:
            return
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidQueryError(f"{name} must be an integer, got {value!r}")
        if value < 0:
            raise InvalidQueryError(f"{name} must be non-negative, got {value}")
        if ceiling is not None and value > ceiling:
            raise InvalidQueryError(f"{name} must not exceed {ceiling}, got {value}")

    def _check_names(self, kind: str, names: Tuple) -> None:
        for name in names:
            if not is_identifier(name):
                raise InvalidQueryError(f"Invalid {kind} name {name!r}: only letters, digits and underscores are allowed")


class QueryBuilder(_BaseQueryBuilder):
    """
    Fluent builder for standard queries.

    Example:
        query = QueryBuilder("Property").filter("City eq 'Austin'").top(10).build()
        lookup = QueryBuilder.by_key("Property", "12345").select("ListPrice").build()
    """

    def __init__(self, resource: str):
        super().__init__(resource)
        self._key = None
        self._by_key = False
        self._expand: Tuple = ()
        self._order_by = None
        self._skip = None
        self._include_count = False
        self._count_only = False
        self._apply: Optional[str] = None

    @classmethod
    def new(cls, resource: str) -> 'QueryBuilder':
        """Start a collection query."""
        return cls(resource)

    @classmethod
    def by_key(cls, resource: str, key: Union[str, int]) -> 'QueryBuilder':
        """Start a single-record lookup by key."""
        builder = cls(resource)
        builder._by_key = True
        builder._key = key
        return builder

    def expand(self, *names) -> 'QueryBuilder':
        """Set the $expand navigation properties (replaces any previous set)."""
        self._ensure_open()
        self._expand = _as_names(names)
        return self

    def order_by(self, field: str, direction: Union[str, SortDirection] = SortDirection.ASC) -> 'QueryBuilder':
        """Set the $orderby field and direction."""
        self._ensure_open()
        self._order_by = (field, direction)
        return self

    def skip(self, count: int) -> 'QueryBuilder':
        """Set $skip."""
        self._ensure_open()
        self._skip = count
        return self

    def apply(self, expression: str) -> 'QueryBuilder':
        """Set the $apply aggregation expression."""
        self._ensure_open()
        self._apply = expression
        return self

    def with_count(self, enabled: bool = True) -> 'QueryBuilder':
        """Request an @odata.count annotation alongside the records."""
        self._ensure_open()
        self._include_count = enabled
        return self

    def count(self) -> 'QueryBuilder':
        """Request a bare record count instead of records."""
        self._ensure_open()
        self._count_only = True
        return self

    def build(self) -> Query:
        """
        Validate the accumulated state and produce a Query.

        Checks run in a fixed order and the first violation is reported:
        mode exclusivity, numeric bounds, required values, identifier safety.

        Returns:
            Immutable Query descriptor.

        Raises:
            InvalidQueryError: If any construction rule is violated.
        """
        self._ensure_open()
        self._consumed = True

        self._check_exclusivity()
        self._check_count("top", self._top, MAX_TOP)
        self._check_count("skip", self._skip)

        if self._by_key and (self._key is None or not str(self._key).strip()):
            raise InvalidQueryError(f"Key for {self._resource} lookup must not be empty")

        self._check_names("select field", self._select)
        self._check_names("expand", self._expand)

        order_by = None
        if self._order_by is not None:
            field, direction = self._order_by
            if not is_identifier(field):
                raise InvalidQueryError(f"Invalid orderby field name {field!r}")
            order_by = OrderBy(field, SortDirection.parse(direction))

        if self._by_key:
            mode = QueryMode.BY_KEY
        elif self._count_only:
            mode = QueryMode.COUNT
        else:
            mode = QueryMode.COLLECTION

        return Query(
            resource=self._resource,
            mode=mode,
            key=str(self._key) if self._by_key else None,
            filter=_normalize_expr(self._filter),
            select=self._select,
            expand=self._expand,
            order_by=order_by,
            top=self._top,
            skip=self._skip,
            include_count=self._include_count,
            apply=_normalize_expr(self._apply)
        )

    def _check_exclusivity(self) -> None:
        if self._by_key:
            conflicts = [
                ("filter", _normalize_expr(self._filter) is not None),
                ("top", self._top is not None),
                ("skip", self._skip is not None),
                ("orderby", self._order_by is not None),
                ("count annotation", self._include_count),
                ("count", self._count_only),
                ("apply", _normalize_expr(self._apply) is not None),
            ]
            for name, is_set in conflicts:
                if is_set:
                    raise InvalidQueryError(
                        f"Cannot combine {name} with key lookup {self._resource}({self._key!r}); "
                        f"key access only supports select and expand"
                    )

        if self._count_only and self._include_count:
            raise InvalidQueryError(
                "count() and with_count() are mutually exclusive: "
                "a count query returns a bare number, not records with a count annotation"
            )


class ReplicationQueryBuilder(_BaseQueryBuilder):
    """
    Fluent builder for replication queries.

    Replication streams records oldest to newest, so only filter, select
    and top are available.
    """

    def build(self) -> ReplicationQuery:
        """
        Validate the accumulated state and produce a ReplicationQuery.

        Raises:
            InvalidQueryError: If top is out of bounds or a field name is unsafe.
        """
        self._ensure_open()
        self._consumed = True

        self._check_count("top", self._top, MAX_REPLICATION_TOP)
        self._check_names("select field", self._select)

        return ReplicationQuery(
            resource=self._resource,
            filter=_normalize_expr(self._filter),
            select=self._select,
            top=self._top
        )
