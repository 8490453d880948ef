"""
Replication paging for the RESO Web API.

Replication streams a full resource oldest to newest. Each page carries an
opaque continuation token (the server-issued next link) that is handed back
to the transport verbatim to fetch the following page.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

from .query import ReplicationQuery

if TYPE_CHECKING:
    from .client import ResoClient
    from .logger import ResoLogger


@dataclass(frozen=True)
class ContinuationToken:
    """Opaque server-issued reference to the next replication page."""
    value: str = field(repr=False)

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"ContinuationToken(<{len(self.value)} chars>)"


@dataclass(frozen=True)
class ReplicationPage:
    """One page of replicated records."""
    records: Tuple[Dict[str, Any], ...]
    next_token: Optional[ContinuationToken] = None

    @property
    def record_count(self) -> int:
        return len(self.records)

    @property
    def is_last(self) -> bool:
        """A page without a continuation token ends the stream."""
        return self.next_token is None


class ReplicationCursor:
    """
    Drives a multi-page replication.

    The first page comes from the compiled replication query; every later
    page comes from the previous page's continuation token. Iteration stops
    after the terminal page, which is never fetched twice. Records are not
    retained; aggregate them in the caller if needed.

    Example:
        cursor = client.replicate(query)
        for page in cursor:
            store(page.records)
        print(cursor.records_fetched)
    """

    def __init__(
        self,
        client: 'ResoClient',
        query: ReplicationQuery,
        logger: Optional['ResoLogger'] = None
    ):
        """
        Initialize ReplicationCursor.

        Args:
            client: Client used to execute page requests.
            query: Replication query for the first page.
            logger: Optional structured logger for page progress.
        """
        self._client = client
        self._query = query
        self._logger = logger
        self._log = logging.getLogger(__name__)
        self._next_token: Optional[ContinuationToken] = None
        self._started = False
        self._exhausted = False
        self.pages_fetched = 0
        self.records_fetched = 0

    @property
    def query(self) -> ReplicationQuery:
        return self._query

    @property
    def next_token(self) -> Optional[ContinuationToken]:
        return self._next_token

    @property
    def is_exhausted(self) -> bool:
        return self._exhausted

    def fetch_next(self) -> Optional[ReplicationPage]:
        """
        Fetch the next page.

        A failed request leaves the cursor where it was, so calling again
        retries the same page.

        Returns:
            The next ReplicationPage, or None once the terminal page has
            been returned.

        Raises:
            ResoError: If the page request fails.
        """
        if self._exhausted:
            return None

        if not self._started:
            page = self._client.execute_replication(self._query)
            self._started = True
        else:
            page = self._client.execute_continuation(self._next_token)

        self.pages_fetched += 1
        self.records_fetched += page.record_count
        self._next_token = page.next_token
        self._exhausted = page.is_last

        self._log.debug(
            "Replication page %d for %s: %d records (total %d)",
            self.pages_fetched, self._query.resource, page.record_count, self.records_fetched
        )
        if self._logger:
            self._logger.log_replication_page(
                resource=self._query.resource,
                page_number=self.pages_fetched,
                records_in_page=page.record_count,
                total_records=self.records_fetched,
                has_more=not page.is_last
            )
            if self._exhausted:
                self._logger.log_replication_complete(
                    resource=self._query.resource,
                    pages=self.pages_fetched,
                    total_records=self.records_fetched
                )

        return page

    def __iter__(self) -> 'ReplicationCursor':
        return self

    def __next__(self) -> ReplicationPage:
        page = self.fetch_next()
        if page is None:
            raise StopIteration
        return page
