"""
RESO Web API client.

Executes compiled queries over HTTP and classifies the responses. The
client never retries; failures surface as ResoError subclasses whose kind
tells the caller whether a retry makes sense.
"""

import logging
import time
from typing import Dict, Any, Optional

from .classifier import ResponseShape, classify_response
from .compiler import CompiledRequest, compile_metadata, compile_query, compile_replication
from .config import ClientConfig, ConfigManager
from .errors import InvalidQueryError, ResoError
from .logger import ResoLogger
from .query import Query, QueryMode, ReplicationQuery
from .replication import ContinuationToken, ReplicationCursor, ReplicationPage
from .transport import RequestsTransport, Transport


class ResoClient:
    """
    Client for a RESO OData server.

    The configuration is immutable and the client holds no per-request
    state, so one client may be shared by concurrent callers.

    Example:
        with ResoClient.from_env() as client:
            query = QueryBuilder("Property").filter("City eq 'Austin'").top(10).build()
            response = client.execute(query)
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[Transport] = None,
        logger: Optional[ResoLogger] = None
    ):
        """
        Initialize ResoClient.

        Args:
            config: Connection settings (base URL, token, dataset, timeout).
            transport: HTTP transport; a RequestsTransport is created if None.
            logger: Optional structured logger for requests and errors.
        """
        self.config = config
        self.logger = logger
        self._transport = transport or RequestsTransport(timeout=config.timeout)
        self._log = logging.getLogger(__name__)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, logger: Optional[ResoLogger] = None) -> 'ResoClient':
        """
        Create a client from RESO_* environment variables.

        Raises:
            ConfigurationError: If required settings are missing.
        """
        config = ConfigManager(env_file).load_config()
        return cls(config.client, logger=logger)

    def _get_headers(self, accept: str = 'application/json') -> Dict[str, str]:
        """Get headers with authentication token."""
        return {
            'Authorization': f'Bearer {self.config.token}',
            'Accept': accept
        }

    def compile(self, query: Query) -> CompiledRequest:
        """Compile a query against this client's base URL and dataset."""
        return compile_query(query, self.config.base_url, self.config.dataset_id)

    def _send(self, url: str, shape: ResponseShape, accept: str = 'application/json') -> Any:
        """
        Send one GET request and classify the result.

        Raises:
            ResoError: On transport failure or a classified error response.
        """
        if self.logger:
            self.logger.log_api_request(url)
        self._log.debug("GET %s", url)

        start = time.perf_counter()
        try:
            response = self._transport.send('GET', url, self._get_headers(accept))
        except ResoError as e:
            if self.logger:
                self.logger.log_api_error(url, e)
            raise

        elapsed_ms = response.elapsed_ms or (time.perf_counter() - start) * 1000

        try:
            result = classify_response(response.status_code, response.text, shape, response.headers)
        except ResoError as e:
            if self.logger:
                self.logger.log_api_response(url, response.status_code, elapsed_ms)
                self.logger.log_api_error(url, e)
            raise

        if self.logger:
            self.logger.log_api_response(url, response.status_code, elapsed_ms, _records_in(result))
        return result

    def _require_mode(self, query: Query, mode: QueryMode, operation: str) -> None:
        if not isinstance(query, Query):
            raise InvalidQueryError(f"{operation} expects a Query, got {type(query).__name__}")
        if query.mode is not mode:
            raise InvalidQueryError(
                f"{operation} expects a {mode.value} query, got a {query.mode.value} query for {query.resource}"
            )

    def execute(self, query: Query) -> Dict[str, Any]:
        """
        Execute a collection query.

        Returns:
            Response object with a 'value' records array and, when present,
            '@odata.count' and '@odata.nextLink'.

        Raises:
            ResoError: If the request fails or the body is malformed.
        """
        self._require_mode(query, QueryMode.COLLECTION, "execute")
        return self._send(self.compile(query).url, ResponseShape.COLLECTION)

    def execute_by_key(self, query: Query) -> Dict[str, Any]:
        """
        Execute a key lookup.

        Returns:
            The bare record object.
        """
        self._require_mode(query, QueryMode.BY_KEY, "execute_by_key")
        return self._send(self.compile(query).url, ResponseShape.RECORD)

    def execute_count(self, query: Query) -> int:
        """
        Execute a count query.

        Returns:
            Number of matching records.
        """
        self._require_mode(query, QueryMode.COUNT, "execute_count")
        return self._send(self.compile(query).url, ResponseShape.COUNT)

    def execute_replication(self, query: ReplicationQuery) -> ReplicationPage:
        """
        Execute the first page of a replication query.

        Returns:
            ReplicationPage with the records and the continuation token, if any.
        """
        if not isinstance(query, ReplicationQuery):
            raise InvalidQueryError(
                f"execute_replication expects a ReplicationQuery, got {type(query).__name__}"
            )
        request = compile_replication(query, self.config.base_url, self.config.dataset_id)
        return self._send(request.url, ResponseShape.REPLICATION)

    def execute_continuation(self, token: ContinuationToken) -> ReplicationPage:
        """
        Fetch the replication page referenced by a continuation token.

        The token is sent to the server exactly as it was issued.
        """
        if not isinstance(token, ContinuationToken):
            raise InvalidQueryError(
                f"execute_continuation expects a ContinuationToken, got {type(token).__name__}"
            )
        return self._send(token.value, ResponseShape.REPLICATION)

    def replicate(self, query: ReplicationQuery) -> ReplicationCursor:
        """Create a cursor that walks every page of a replication query."""
        return ReplicationCursor(self, query, logger=self.logger)

    def fetch_metadata(self) -> str:
        """
        Retrieve the raw $metadata document.

        Returns:
            Metadata XML as text, unparsed.
        """
        request = compile_metadata(self.config.base_url, self.config.dataset_id)
        return self._send(request.url, ResponseShape.RAW, accept='application/xml')

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


def _records_in(result: Any) -> int:
    if isinstance(result, ReplicationPage):
        return result.record_count
    if isinstance(result, dict):
        records = result.get('value')
        return len(records) if isinstance(records, list) else 1
    return 0
