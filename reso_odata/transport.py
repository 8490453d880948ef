"""
HTTP transport for the RESO OData client.

The transport sends one request and reports the raw status, body and
headers. Connection, DNS and timeout failures are raised as NetworkError;
status codes are left to the response classifier.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import requests

from .errors import NetworkError


@dataclass(frozen=True)
class TransportResponse:
    """Raw HTTP response as seen by the transport."""
    status_code: int
    text: str = ''
    headers: Mapping[str, str] = field(default_factory=dict)
    elapsed_ms: float = 0.0


class Transport(ABC):
    """Sends HTTP requests on behalf of the client."""

    @abstractmethod
    def send(self, method: str, url: str, headers: Dict[str, str]) -> TransportResponse:
        """
        Send a request.

        Raises:
            NetworkError: If the request could not be completed.
        """

    def close(self) -> None:
        """Release any pooled connections."""


class RequestsTransport(Transport):
    """Transport backed by a pooled requests.Session."""

    def __init__(self, timeout: float = 30, session: Optional[requests.Session] = None):
        """
        Initialize RequestsTransport.

        Args:
            timeout: Per-request timeout in seconds.
            session: Optional pre-configured session.
        """
        self.timeout = timeout
        self._session = session or requests.Session()

    def send(self, method: str, url: str, headers: Dict[str, str]) -> TransportResponse:
        start = time.perf_counter()
        try:
            response = self._session.request(method, url, headers=headers, timeout=self.timeout)
        except requests.Timeout as e:
            raise NetworkError(f"Request timed out after {self.timeout}s: {str(e)}")
        except requests.RequestException as e:
            raise NetworkError(f"Network error during request: {str(e)}")

        return TransportResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
            elapsed_ms=(time.perf_counter() - start) * 1000
        )

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()
