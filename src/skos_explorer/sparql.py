"""
SPARQL transport client.

The only component that talks to the network. Every failure is classified
into a ``TransportError`` here, once, so that the probes built on top can
tell "the endpoint said no" apart from "the endpoint could not be reached".

Example:
    >>> from skos_explorer.sparql import SPARQLClient
    >>> from skos_explorer.models import Endpoint
    >>> client = SPARQLClient()
    >>> results = client.send(Endpoint(id="ex", url="https://example.org/sparql"),
    ...                       "SELECT * WHERE { ?s ?p ?o } LIMIT 1")
    >>> results.bindings
    [{'s': {'type': 'uri', 'value': ...}, ...}]
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import requests

from .errors import ErrorCode, TransportError
from .models import Endpoint

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0  # seconds, per request
DEFAULT_MAX_RETRIES = 1
DEFAULT_RETRY_DELAY = 0.5  # fixed backoff between attempts

SPARQL_PREFIXES = """
PREFIX skos: <http://www.w3.org/2004/02/skos/core#>
PREFIX skosxl: <http://www.w3.org/2008/05/skos-xl#>
PREFIX dct: <http://purl.org/dc/terms/>
PREFIX dc: <http://purl.org/dc/elements/1.1/>
PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>
PREFIX rdf: <http://www.w3.org/1999/02/22-rdf-syntax-ns#>
PREFIX owl: <http://www.w3.org/2002/07/owl#>
""".strip()

# Markers in low-level error text that indicate a cross-origin rejection
_CORS_MARKERS = ("cors", "cross-origin", "access-control-allow-origin")


def with_prefixes(query: str) -> str:
    """Prepend the standard prefixes unless the query declares its own."""
    if query.lstrip().upper().startswith("PREFIX"):
        return query
    return f"{SPARQL_PREFIXES}\n\n{query}"


def http_error_message(status: int, reason: str = "") -> str:
    """Map an HTTP status to a user-facing message."""
    if status == 400:
        return "Invalid SPARQL query"
    if status == 401:
        return "Authentication required"
    if status == 403:
        return "Access denied. Check credentials."
    if status == 404:
        return "Endpoint not found"
    if status == 408:
        return "Request timed out"
    if 500 <= status <= 504:
        return f"Server error: {reason}" if reason else "Server error"
    return f"HTTP {status}: {reason}".rstrip(": ")


@dataclass
class SPARQLResults:
    """Parsed SPARQL JSON results (SELECT bindings or ASK boolean)."""

    vars: list[str] = field(default_factory=list)
    bindings: list[dict[str, dict[str, Any]]] = field(default_factory=list)
    boolean: bool | None = None

    @classmethod
    def from_json(cls, data: Any) -> SPARQLResults:
        """Build results from a decoded SPARQL JSON document.

        Raises:
            TransportError: MALFORMED_RESPONSE if the document is neither a
                SELECT result set nor an ASK answer.
        """
        if not isinstance(data, dict):
            raise TransportError(
                ErrorCode.MALFORMED_RESPONSE,
                "Unexpected response format",
                details=f"Expected a JSON object, got {type(data).__name__}",
            )
        if isinstance(data.get("boolean"), bool):
            return cls(vars=[], bindings=[], boolean=data["boolean"])
        results = data.get("results")
        bindings = results.get("bindings") if isinstance(results, dict) else None
        if not isinstance(bindings, list):
            raise TransportError(
                ErrorCode.MALFORMED_RESPONSE,
                "Unexpected response format",
                details="Response has neither results.bindings nor boolean",
            )
        head_vars = (data.get("head") or {}).get("vars") or []
        return cls(vars=list(head_vars), bindings=bindings, boolean=None)

    def values(self, var: str) -> list[str]:
        """Return the non-empty values bound to ``var``, in result order."""
        result = []
        for binding in self.bindings:
            value = binding.get(var, {}).get("value")
            if value:
                result.append(value)
        return result

    def first_value(self, var: str) -> str | None:
        if not self.bindings:
            return None
        return self.bindings[0].get(var, {}).get("value")

    @staticmethod
    def lang(binding: dict[str, dict[str, Any]], var: str) -> str | None:
        term = binding.get(var) or {}
        return term.get("xml:lang") or term.get("lang") or None


class QueryClient(Protocol):
    """Anything that can run a SPARQL query for an endpoint."""

    def send(
        self,
        endpoint: Endpoint,
        query: str,
        timeout: float | None = None,
        max_retries: int | None = None,
    ) -> SPARQLResults: ...


class SPARQLClient:
    """HTTP client for SPARQL endpoints with timeout, retry and error classification."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        origin: str | None = None,
        session: requests.Session | None = None,
    ):
        """Initialize the client.

        Args:
            timeout: Default per-request timeout in seconds.
            max_retries: Default number of extra attempts for network errors
                and timeouts. Other failures are never retried.
            retry_delay: Fixed pause between attempts, in seconds.
            origin: Browser origin to emulate. When set, an ``Origin`` header
                is sent and responses that a browser would refuse to expose
                (no matching ``Access-Control-Allow-Origin``) are reported as
                CORS_BLOCKED.
            session: Optional pre-configured ``requests.Session``.
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.origin = origin
        self.session = session or requests.Session()

    def send(
        self,
        endpoint: Endpoint,
        query: str,
        timeout: float | None = None,
        max_retries: int | None = None,
    ) -> SPARQLResults:
        """Execute a query and return parsed results.

        Args:
            endpoint: Target endpoint (URL and auth).
            query: SPARQL query text.
            timeout: Per-request timeout in seconds (default: client setting).
            max_retries: Extra attempts for NETWORK/TIMEOUT (default: client setting).

        Returns:
            Parsed ``SPARQLResults``.

        Raises:
            TransportError: Classified failure of the last attempt.
        """
        timeout = self.timeout if timeout is None else timeout
        max_retries = self.max_retries if max_retries is None else max_retries

        preview = " ".join(query.split())[:200]
        logger.debug("Executing query on %s (timeout %.1fs, retries %d): %s", endpoint.url, timeout, max_retries, preview)

        last_error: TransportError | None = None
        for attempt in range(max_retries + 1):
            if attempt > 0:
                logger.debug("Retry attempt %d/%d for %s", attempt, max_retries, endpoint.url)
                time.sleep(self.retry_delay)
            try:
                results = self._send_once(endpoint, query, timeout)
            except TransportError as e:
                last_error = e
                if not e.retryable:
                    logger.warning("SPARQL query failed for %s: %s", endpoint.url, e.message)
                    raise
                logger.warning("SPARQL query attempt %d failed for %s: %s", attempt + 1, endpoint.url, e.message)
                continue
            logger.debug("Query successful on %s: %d results", endpoint.url, len(results.bindings))
            return results

        assert last_error is not None
        raise last_error

    def _headers(self, endpoint: Endpoint) -> dict[str, str]:
        headers = {
            "Accept": "application/sparql-results+json",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        if self.origin:
            headers["Origin"] = self.origin
        headers.update(endpoint.headers())
        return headers

    def _send_once(self, endpoint: Endpoint, query: str, timeout: float) -> SPARQLResults:
        try:
            response = self.session.post(
                endpoint.url,
                data={"query": query},
                headers=self._headers(endpoint),
                timeout=timeout,
            )
        except requests.Timeout as e:
            raise TransportError(ErrorCode.TIMEOUT, "Request timed out", details=str(e)) from e
        except requests.RequestException as e:
            text = str(e).lower()
            if any(marker in text for marker in _CORS_MARKERS):
                raise TransportError(
                    ErrorCode.CORS_BLOCKED,
                    "CORS error: Endpoint does not allow browser access",
                    details="The endpoint needs to enable CORS headers",
                ) from e
            raise TransportError(ErrorCode.NETWORK, "Network error", details=str(e)) from e

        self._check_cors(response)

        if not response.ok:
            raise TransportError(
                ErrorCode.HTTP_ERROR,
                http_error_message(response.status_code, response.reason or ""),
                status=response.status_code,
            )

        content_type = response.headers.get("Content-Type", "")
        if "json" not in content_type:
            raise TransportError(
                ErrorCode.MALFORMED_RESPONSE,
                "Unexpected response format",
                details=f"Expected JSON, got: {content_type or 'no content type'}",
            )
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                ErrorCode.MALFORMED_RESPONSE, "Response is not valid JSON", details=str(e)
            ) from e
        return SPARQLResults.from_json(data)

    def _check_cors(self, response: requests.Response) -> None:
        """Reject responses a browser at ``self.origin`` could not read."""
        if not self.origin:
            return
        allowed = response.headers.get("Access-Control-Allow-Origin")
        if allowed not in ("*", self.origin):
            raise TransportError(
                ErrorCode.CORS_BLOCKED,
                "CORS error: Endpoint does not allow browser access",
                details=f"Access-Control-Allow-Origin: {allowed or 'missing'}",
            )

    def close(self) -> None:
        self.session.close()
