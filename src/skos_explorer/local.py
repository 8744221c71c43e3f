"""
Local RDF dumps as a query client.

Loads N-Quads, TriG, N-Triples, Turtle or RDF/XML files into an in-memory
Oxigraph store (pyoxigraph) and answers queries with the same
``send(endpoint, query)`` contract as ``SPARQLClient``, so a dump can be
probed exactly like a live endpoint before it is published.

The default graph is queried as the union of all graphs, which is how most
public SPARQL endpoints expose quad data.

Example:
    >>> client = LocalStoreClient.from_files(["vocabulary.nq"])
    >>> endpoint = client.endpoint()
    >>> client.send(endpoint, "ASK { GRAPH ?g { ?s ?p ?o } }").boolean
    True
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .errors import ErrorCode, TransportError
from .models import Endpoint
from .sparql import SPARQLResults

logger = logging.getLogger(__name__)


def _import_pyoxigraph():
    try:
        import pyoxigraph
    except ImportError as e:
        raise ImportError(
            "pyoxigraph required for local RDF dumps. "
            "Install with: pip install skos-explorer[local]"
        ) from e
    return pyoxigraph


class LocalStoreClient:
    """Query client over an in-memory Oxigraph store."""

    def __init__(self):
        self._pyoxigraph = _import_pyoxigraph()
        self._store = self._pyoxigraph.Store()
        self._loaded_files: list[Path] = []

    @classmethod
    def from_files(cls, paths) -> LocalStoreClient:
        client = cls()
        for path in paths:
            client.load(path)
        return client

    def _format_for(self, path: Path):
        formats = {
            ".nq": self._pyoxigraph.RdfFormat.N_QUADS,
            ".nquads": self._pyoxigraph.RdfFormat.N_QUADS,
            ".trig": self._pyoxigraph.RdfFormat.TRIG,
            ".nt": self._pyoxigraph.RdfFormat.N_TRIPLES,
            ".ntriples": self._pyoxigraph.RdfFormat.N_TRIPLES,
            ".ttl": self._pyoxigraph.RdfFormat.TURTLE,
            ".turtle": self._pyoxigraph.RdfFormat.TURTLE,
            ".rdf": self._pyoxigraph.RdfFormat.RDF_XML,
            ".xml": self._pyoxigraph.RdfFormat.RDF_XML,
        }
        return formats.get(path.suffix.lower(), self._pyoxigraph.RdfFormat.N_QUADS)

    def load(self, path: Path | str) -> int:
        """Load an RDF file; returns the number of quads added."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"RDF file not found: {path}")
        before = len(self._store)
        with open(path, "rb") as f:
            self._store.load(f, self._format_for(path))
        loaded = len(self._store) - before
        self._loaded_files.append(path)
        logger.info("Loaded %d quads from %s (total: %d)", loaded, path, len(self._store))
        return loaded

    def __len__(self) -> int:
        return len(self._store)

    def endpoint(self) -> Endpoint:
        """An endpoint descriptor naming the loaded dump."""
        if self._loaded_files:
            first = self._loaded_files[0].resolve()
            return Endpoint(id=f"file:{first}", url=first.as_uri(), name=first.name)
        return Endpoint(id="local", url="local:", name="in-memory store")

    def _term(self, value) -> dict[str, Any]:
        if isinstance(value, self._pyoxigraph.NamedNode):
            return {"type": "uri", "value": value.value}
        if isinstance(value, self._pyoxigraph.BlankNode):
            return {"type": "bnode", "value": value.value}
        term: dict[str, Any] = {"type": "literal", "value": value.value}
        if getattr(value, "language", None):
            term["xml:lang"] = value.language
        elif getattr(value, "datatype", None) is not None:
            term["datatype"] = value.datatype.value
        return term

    def send(
        self,
        endpoint: Endpoint,
        query: str,
        timeout: float | None = None,
        max_retries: int | None = None,
    ) -> SPARQLResults:
        """Evaluate a SELECT or ASK query against the loaded data.

        ``timeout`` and ``max_retries`` are accepted for interface
        compatibility; local evaluation neither times out nor retries.
        Rejected queries are reported like an endpoint answering 400.
        """
        try:
            results = self._store.query(query, use_default_graph_as_union=True)
        except SyntaxError as e:
            raise TransportError(
                ErrorCode.HTTP_ERROR, "Invalid SPARQL query", status=400, details=str(e)
            ) from e
        except (OSError, ValueError, RuntimeError) as e:
            raise TransportError(
                ErrorCode.HTTP_ERROR, "Server error: query evaluation failed", status=500, details=str(e)
            ) from e

        variables = getattr(results, "variables", None)
        if variables is None:
            return SPARQLResults(boolean=bool(results))

        names = [var.value for var in variables]
        bindings = []
        for solution in results:
            row = {}
            for var, name in zip(variables, names):
                value = solution[var]
                if value is not None:
                    row[name] = self._term(value)
            bindings.append(row)
        return SPARQLResults(vars=names, bindings=bindings)
