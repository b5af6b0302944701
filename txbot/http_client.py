"""JSON-over-HTTP client that records timing information for each query."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping

import requests

USER_AGENT = "cosmos-transactions-bot"
DEFAULT_TIMEOUT = 60.0

_log = logging.getLogger(__name__)


@dataclass
class QueryInfo:
    """Outcome of a single query: whether it succeeded, against which node, and how long it took."""

    success: bool
    node: str
    time: float = 0.0


class QueryError(Exception):
    """Raised when a query fails; carries the query's information."""

    def __init__(self, message: str, query_info: QueryInfo) -> None:
        super().__init__(message)
        self.query_info = query_info


class HttpClient:
    """Performs GET requests against a single host and decodes JSON responses."""

    def __init__(self, host: str, chain_name: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.host = host
        self.chain_name = chain_name
        self.timeout = timeout
        self._logger = logging.LoggerAdapter(
            _log,
            {"component": "tendermint_api_client", "url": host, "chain": chain_name},
        )

    def get(self, relative_url: str) -> tuple[Any, QueryInfo]:
        """Fetch ``relative_url`` and return the decoded JSON with the query info."""
        return self.get_with_headers(relative_url, {})

    def get_with_headers(
        self, relative_url: str, headers: Mapping[str, str]
    ) -> tuple[Any, QueryInfo]:
        """Fetch ``relative_url`` with extra headers; raise QueryError on any failure."""
        url = f"{self.host}{relative_url}"
        query_info = QueryInfo(success=False, node=self.host)
        request_headers = {"User-Agent": USER_AGENT, **headers}

        self._logger.debug("Doing a query to %s", url)
        start = time.monotonic()
        try:
            response = requests.get(url, headers=request_headers, timeout=self.timeout)
        except requests.RequestException as error:
            query_info.time = time.monotonic() - start
            self._logger.warning("Query to %s failed: %s", url, error)
            raise QueryError(str(error), query_info) from error
        query_info.time = time.monotonic() - start

        with response:
            if response.status_code >= 400:
                self._logger.warning(
                    "Query to %s returned bad HTTP code %d", url, response.status_code
                )
                raise QueryError(f"bad HTTP code: {response.status_code}", query_info)

            self._logger.debug("Query to %s finished in %.3fs", url, query_info.time)

            try:
                data = response.json()
            except ValueError as error:
                raise QueryError(f"invalid JSON: {error}", query_info) from error

        query_info.success = True
        return data, query_info