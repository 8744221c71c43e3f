"""
Endpoint capability probes.

Each probe is a decision procedure over the results of one or a few SPARQL
queries sent through a ``QueryClient``. None of them performs I/O directly.

Probes, in the order the analyzer runs them:

1. ``test_connection``   - reachability and auth, one minimal query
2. ``detect_graphs``     - named graph support via cascading strategies
3. ``detect_duplicates`` - same triples asserted in more than one graph
4. ``detect_skos_graphs`` - graphs holding schemes or labelled concepts
5. ``detect_languages``  - census of language tags on preferred labels

The vocabulary probes (``count_concepts``, ``detect_relationships``,
``detect_concept_schemes``, ``detect_label_predicates``) run after the
census. Their failures are not fatal to an analysis.
"""
from __future__ import annotations

import logging
import re
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from .errors import CapabilityAmbiguous, ErrorCode, TransportError
from .languages import LABEL_PRIORITY
from .models import DetectedLanguage, Endpoint, GraphSupport, QueryMethod, RelationshipSupport
from .sparql import QueryClient, SPARQLResults

logger = logging.getLogger(__name__)

CONNECTION_TEST_QUERY = "SELECT * WHERE { ?s ?p ?o } LIMIT 1"
CONNECTION_TEST_TIMEOUT = 10.0

DEFAULT_MAX_GRAPHS = 1000
DEFAULT_DUPLICATE_SAMPLE_SIZE = 1000
DEFAULT_LANGUAGE_LIMIT = 50
DEFAULT_SKOS_GRAPH_LIMIT = 500
DEFAULT_CENSUS_BATCH_SIZE = 10
DEFAULT_MAX_SCHEMES = 200

PREFIXES = """
    PREFIX skos: <http://www.w3.org/2004/02/skos/core#>
    PREFIX skosxl: <http://www.w3.org/2008/05/skos-xl#>
    PREFIX dct: <http://purl.org/dc/terms/>
    PREFIX dc: <http://purl.org/dc/elements/1.1/>
    PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>"""

# HTTP statuses that say nothing about graph syntax: auth problems, rate
# limiting and gateway/overload errors are reported as transport failures.
_NOT_A_SYNTAX_VERDICT = frozenset({401, 403, 429, 502, 503, 504})


# =============================================================================
# CONNECTIVITY
# =============================================================================


@dataclass(frozen=True)
class ConnectionTestResult:
    success: bool
    response_time_ms: int
    error: TransportError | None = None

    @property
    def message(self) -> str:
        if self.success:
            return f"Connected successfully ({self.response_time_ms}ms)"
        return self.error.message if self.error else "Connection failed"


def test_connection(
    client: QueryClient, endpoint: Endpoint, timeout: float = CONNECTION_TEST_TIMEOUT
) -> ConnectionTestResult:
    """Check that an endpoint answers a minimal query.

    The classified ``TransportError`` is returned as-is on failure; it is
    never re-mapped.
    """
    start = time.monotonic()
    try:
        client.send(endpoint, CONNECTION_TEST_QUERY, timeout=timeout, max_retries=0)
    except TransportError as e:
        elapsed = round((time.monotonic() - start) * 1000)
        logger.info("Connection test failed for %s after %dms: %s", endpoint.url, elapsed, e.message)
        return ConnectionTestResult(success=False, response_time_ms=elapsed, error=e)
    elapsed = round((time.monotonic() - start) * 1000)
    logger.info("Connection test succeeded for %s in %dms", endpoint.url, elapsed)
    return ConnectionTestResult(success=True, response_time_ms=elapsed)


# =============================================================================
# NAMED GRAPH DETECTION
# =============================================================================


@dataclass(frozen=True)
class GraphDetection:
    """Outcome of named graph detection."""

    supports_named_graphs: GraphSupport
    graph_count: int | None
    graph_count_exact: bool
    query_method: QueryMethod

    @classmethod
    def unknown(cls) -> GraphDetection:
        return cls(GraphSupport.UNKNOWN, None, True, QueryMethod.NONE)


@dataclass
class DetectionContext:
    """State shared by the strategies of one ``detect_graphs`` call."""

    client: QueryClient
    endpoint: Endpoint
    max_graphs: int
    graphs_seen: bool = False
    needs_enumeration: bool = False
    # Graph pattern that found graphs; enumeration must match the same graphs
    pattern: str | None = None
    aggregate_count: int | None = None
    attempted: list[str] = field(default_factory=list)

    @property
    def aggregate_capped(self) -> bool:
        return self.aggregate_count is not None and self.aggregate_count >= self.max_graphs


class GraphSyntaxRejected(Exception):
    """The endpoint answered a graph query with an explicit error response."""


def _is_syntax_rejection(error: TransportError) -> bool:
    return error.code == ErrorCode.HTTP_ERROR and error.status not in _NOT_A_SYNTAX_VERDICT


def _ask(context: DetectionContext, query: str) -> bool:
    try:
        results = context.client.send(context.endpoint, query)
    except TransportError as e:
        if _is_syntax_rejection(e):
            raise GraphSyntaxRejected(e.message) from e
        raise
    if results.boolean is None:
        raise CapabilityAmbiguous(f"ASK answered without a boolean: {query}")
    return results.boolean


def _count(context: DetectionContext, pattern: str) -> int | None:
    """Count distinct graphs matching ``pattern``, or None if counting is too expensive.

    Runs with zero retries; a rejected, timed out or unparsable aggregate
    sends the cascade to enumeration instead.
    """
    query = f"SELECT (COUNT(DISTINCT ?g) AS ?count) WHERE {{ GRAPH ?g {{ {pattern} }} }}"
    try:
        results = context.client.send(context.endpoint, query, max_retries=0)
    except TransportError as e:
        if e.code == ErrorCode.TIMEOUT or _is_syntax_rejection(e):
            logger.info("Graph count aggregate unavailable on %s: %s", context.endpoint.url, e.message)
            return None
        raise
    raw = results.first_value("count")
    try:
        count = int(raw) if raw is not None else None
    except ValueError:
        count = None
    if count is None or count < 0:
        logger.info("Graph count aggregate returned no usable count on %s: %r", context.endpoint.url, raw)
        return None
    context.aggregate_count = count
    if count >= context.max_graphs:
        # Report through enumeration so large counts carry the cap semantics
        return None
    return count


class GraphStrategy:
    """A graph detection strategy: applicability check plus detection."""

    method: QueryMethod = QueryMethod.NONE

    def applies(self, context: DetectionContext) -> bool:
        raise NotImplementedError

    def detect(self, context: DetectionContext) -> GraphDetection | None:
        """Return a detection, or None when this strategy is inconclusive."""
        raise NotImplementedError


class _PatternStrategy(GraphStrategy):
    pattern = ""

    def _detect_with_pattern(self, context: DetectionContext) -> tuple[bool, GraphDetection | None]:
        exists = _ask(context, f"ASK {{ GRAPH ?g {{ {self.pattern} }} }}")
        if not exists:
            return False, None
        context.graphs_seen = True
        context.pattern = self.pattern
        count = _count(context, self.pattern)
        if count is None or count == 0:
            context.needs_enumeration = True
            return True, None
        return True, GraphDetection(GraphSupport.SUPPORTED, count, True, self.method)


class EmptyPatternStrategy(_PatternStrategy):
    """Ask whether any named graph exists using an empty graph pattern."""

    method = QueryMethod.EMPTY_PATTERN
    pattern = ""

    def applies(self, context: DetectionContext) -> bool:
        return True

    def detect(self, context: DetectionContext) -> GraphDetection | None:
        _, detection = self._detect_with_pattern(context)
        return detection


class BlankNodePatternStrategy(_PatternStrategy):
    """Match any triple inside any graph.

    Separates "empty graph patterns are not bound" from "no graph is populated".
    A negative answer here means the syntax works and there are no graphs.
    """

    method = QueryMethod.BLANK_NODE_PATTERN
    pattern = "[] ?p ?o"

    def applies(self, context: DetectionContext) -> bool:
        return not context.graphs_seen

    def detect(self, context: DetectionContext) -> GraphDetection | None:
        exists, detection = self._detect_with_pattern(context)
        if not exists:
            return GraphDetection(GraphSupport.UNSUPPORTED, 0, True, self.method)
        return detection


class FallbackLimitStrategy(GraphStrategy):
    """Enumerate distinct graph names up to a cap.

    Fetches one row more than the cap; if that row arrives, the cap is
    reported as a lower bound. It is also a lower bound when the count
    aggregate already reached the cap, since endpoints may cut SELECT
    results short on their side.

    Enumerates with the graph pattern that found the graphs, so both this
    strategy and the count aggregate see the same set of graphs.
    """

    method = QueryMethod.FALLBACK_LIMIT
    default_pattern = "?s ?p ?o"

    def applies(self, context: DetectionContext) -> bool:
        return context.graphs_seen and context.needs_enumeration

    def detect(self, context: DetectionContext) -> GraphDetection | None:
        pattern = context.pattern if context.pattern is not None else self.default_pattern
        query = (
            f"SELECT DISTINCT ?g WHERE {{ GRAPH ?g {{ {pattern} }} }} "
            f"LIMIT {context.max_graphs + 1}"
        )
        try:
            results = context.client.send(context.endpoint, query)
        except TransportError as e:
            if _is_syntax_rejection(e):
                raise GraphSyntaxRejected(e.message) from e
            raise
        graphs = set(results.values("g"))
        if not graphs:
            raise CapabilityAmbiguous("Graphs reported present but none could be listed")
        if len(graphs) > context.max_graphs or context.aggregate_capped:
            if len(graphs) <= context.max_graphs:
                logger.info(
                    "Enumeration on %s returned %d graphs but the aggregate counted %d",
                    context.endpoint.url, len(graphs), context.aggregate_count,
                )
            return GraphDetection(GraphSupport.SUPPORTED, context.max_graphs, False, self.method)
        return GraphDetection(GraphSupport.SUPPORTED, len(graphs), True, self.method)


GRAPH_STRATEGIES: tuple[GraphStrategy, ...] = (
    EmptyPatternStrategy(),
    BlankNodePatternStrategy(),
    FallbackLimitStrategy(),
)


def detect_graphs(
    client: QueryClient,
    endpoint: Endpoint,
    max_graphs: int = DEFAULT_MAX_GRAPHS,
    strategies: tuple[GraphStrategy, ...] = GRAPH_STRATEGIES,
) -> GraphDetection:
    """Detect named graph support and count graphs.

    Strategies are tried in order; the first applicable one that returns a
    detection wins.

    Args:
        client: Query client.
        endpoint: Endpoint to probe.
        max_graphs: Enumeration cap. Counts at or above it are lower bounds.
        strategies: Ordered strategies (default: ``GRAPH_STRATEGIES``).

    Returns:
        ``GraphDetection``. An explicit error response to graph syntax, or a
        response no strategy can interpret, gives ``GraphSupport.UNKNOWN``.

    Raises:
        TransportError: Timeouts, network, CORS and malformed responses.
    """
    context = DetectionContext(client=client, endpoint=endpoint, max_graphs=max_graphs)
    try:
        for strategy in strategies:
            if not strategy.applies(context):
                continue
            context.attempted.append(strategy.method.value)
            detection = strategy.detect(context)
            if detection is not None:
                logger.info(
                    "Graph detection on %s: %s, count=%s%s via %s",
                    endpoint.url,
                    detection.supports_named_graphs.value,
                    detection.graph_count,
                    "" if detection.graph_count_exact else "+",
                    detection.query_method.value,
                )
                return detection
    except GraphSyntaxRejected as e:
        logger.info("Endpoint %s rejected graph syntax: %s", endpoint.url, e)
        return GraphDetection.unknown()
    except CapabilityAmbiguous as e:
        logger.warning("Ambiguous graph capability on %s: %s", endpoint.url, e)
        return GraphDetection.unknown()

    logger.warning("No graph strategy was conclusive for %s (tried %s)", endpoint.url, ", ".join(context.attempted))
    return GraphDetection.unknown()


# =============================================================================
# DUPLICATE TRIPLES
# =============================================================================


def duplicate_query(sample_size: int = DEFAULT_DUPLICATE_SAMPLE_SIZE) -> str:
    return f"""
    ASK {{
      {{
        SELECT ?s ?p ?o ?g1 WHERE {{ GRAPH ?g1 {{ ?s ?p ?o }} }}
        LIMIT {sample_size}
      }}
      GRAPH ?g2 {{ ?s ?p ?o }}
      FILTER(?g1 != ?g2)
    }}
    """


def detect_duplicates(
    client: QueryClient,
    endpoint: Endpoint,
    graphs: GraphDetection,
    sample_size: int = DEFAULT_DUPLICATE_SAMPLE_SIZE,
) -> bool | None:
    """Check whether sampled triples are asserted in more than one graph.

    With unknown graph support the answer is None. With zero or one graph
    it is False, decided without a query.

    Raises:
        TransportError: On any transport failure, or MALFORMED_RESPONSE when
            the ASK query is answered without a boolean.
    """
    if graphs.supports_named_graphs is GraphSupport.UNKNOWN:
        return None
    if graphs.supports_named_graphs is GraphSupport.UNSUPPORTED or (graphs.graph_count or 0) <= 1:
        return False

    results = client.send(endpoint, duplicate_query(sample_size))
    if results.boolean is None:
        raise TransportError(
            ErrorCode.MALFORMED_RESPONSE,
            "Unexpected response format",
            details="Duplicate check answered without a boolean",
        )
    logger.info("Duplicate triples across graphs on %s: %s", endpoint.url, results.boolean)
    return results.boolean


# =============================================================================
# SKOS GRAPHS
# =============================================================================


# Characters that cannot appear inside <...> in a query
_IRI_UNSAFE = re.compile(r'[<>"{}|^`\\\s]')


@dataclass(frozen=True)
class SkosGraphDetection:
    """Graphs holding a concept scheme or a concept with a preferred label.

    ``uris`` is None when more than the limit were found; ``count`` is then
    a lower bound.
    """

    count: int
    uris: tuple[str, ...] | None

    @property
    def batchable(self) -> bool:
        return bool(self.uris)


def skos_graph_query(limit: int = DEFAULT_SKOS_GRAPH_LIMIT) -> str:
    return f"""{PREFIXES}
    SELECT DISTINCT ?g
    WHERE {{
      GRAPH ?g {{
        {{ ?s a skos:ConceptScheme }}
        UNION
        {{ ?s a skos:Concept . ?s skos:prefLabel ?label }}
      }}
    }}
    LIMIT {limit + 1}
    """


def detect_skos_graphs(
    client: QueryClient, endpoint: Endpoint, limit: int = DEFAULT_SKOS_GRAPH_LIMIT
) -> SkosGraphDetection:
    """Find the named graphs that carry SKOS data.

    Graphs whose concepts have no ``skos:prefLabel`` and no scheme are not
    counted. Graph names that cannot be written back into a query are
    dropped from ``uris``.

    Raises:
        TransportError: On transport failure.
    """
    found = list(dict.fromkeys(client.send(endpoint, skos_graph_query(limit)).values("g")))
    if len(found) > limit:
        logger.info("More than %d SKOS graphs on %s", limit, endpoint.url)
        return SkosGraphDetection(count=len(found), uris=None)
    usable = tuple(uri for uri in found if not _IRI_UNSAFE.search(uri))
    if len(usable) < len(found):
        logger.debug("Skipping %d unusable graph names on %s", len(found) - len(usable), endpoint.url)
    logger.info("Found %d SKOS graphs on %s", len(found), endpoint.url)
    return SkosGraphDetection(count=len(found), uris=usable)


# =============================================================================
# LANGUAGE CENSUS
# =============================================================================


_LABEL_PATTERN = """
        ?concept a skos:Concept .
        {
          ?concept skos:prefLabel ?label .
        } UNION {
          ?concept skosxl:prefLabel/skosxl:literalForm ?label .
        }"""


def language_query(
    graph_scoped: bool = False,
    limit: int = DEFAULT_LANGUAGE_LIMIT,
    graphs: Sequence[str] | None = None,
) -> str:
    """Build the census query.

    With ``graph_scoped`` the concept and its label must share a graph, so
    copies of the same data in several graphs cannot pair a concept in one
    graph with a label from another. ``graphs`` restricts a scoped census
    to the listed graphs.
    """
    if graphs:
        values = " ".join(f"<{uri}>" for uri in graphs)
        where = f"VALUES ?g {{ {values} }}\n      GRAPH ?g {{{_LABEL_PATTERN}\n      }}"
    elif graph_scoped:
        where = f"GRAPH ?g {{{_LABEL_PATTERN}\n      }}"
    else:
        where = _LABEL_PATTERN.strip()
    return f"""
    PREFIX skos: <http://www.w3.org/2004/02/skos/core#>
    PREFIX skosxl: <http://www.w3.org/2008/05/skos-xl#>
    SELECT ?lang (COUNT(?label) AS ?count)
    WHERE {{
      {where}
      BIND(LANG(?label) AS ?lang)
      FILTER(?lang != "")
    }}
    GROUP BY ?lang
    ORDER BY DESC(?count)
    LIMIT {limit}
    """


def _tally_census(results: SPARQLResults, counts: dict[str, int]) -> None:
    for binding in results.bindings:
        lang = binding.get("lang", {}).get("value", "")
        if not lang:
            continue
        raw = binding.get("count", {}).get("value")
        try:
            count = int(raw)
        except (TypeError, ValueError) as e:
            raise TransportError(
                ErrorCode.MALFORMED_RESPONSE,
                "Unexpected response format",
                details=f"Language count for {lang!r} is not an integer: {raw!r}",
            ) from e
        counts[lang] = counts.get(lang, 0) + count


def _ranked(counts: dict[str, int]) -> list[DetectedLanguage]:
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [DetectedLanguage(lang=lang, count=count) for lang, count in ordered]


def detect_languages(
    client: QueryClient,
    endpoint: Endpoint,
    graph_scoped: bool = False,
    limit: int = DEFAULT_LANGUAGE_LIMIT,
    graphs: Sequence[str] | None = None,
    batch_size: int = DEFAULT_CENSUS_BATCH_SIZE,
) -> list[DetectedLanguage]:
    """Count language tags on concept preferred labels.

    Args:
        client: Query client.
        endpoint: Endpoint to query.
        graph_scoped: Require concept and label to share a graph.
        limit: Maximum number of languages returned.
        graphs: Graph names for a scoped census run in batches of
            ``batch_size`` graphs, one query per batch, counts summed.
        batch_size: Graphs per batched query.

    Returns:
        Languages sorted by count descending (ties by tag), at most ``limit``.

    Raises:
        TransportError: On transport failure or a non-integer count.
    """
    counts: dict[str, int] = {}
    if graphs:
        graphs = list(graphs)
        for start in range(0, len(graphs), batch_size):
            batch = graphs[start:start + batch_size]
            _tally_census(client.send(endpoint, language_query(limit=limit, graphs=batch)), counts)
        mode = f" (batched over {len(graphs)} graphs)"
    else:
        _tally_census(client.send(endpoint, language_query(graph_scoped, limit)), counts)
        mode = " (graph scoped)" if graph_scoped else ""
    languages = _ranked(counts)[:limit]
    logger.info("Detected %d languages on %s%s", len(languages), endpoint.url, mode)
    return languages


# =============================================================================
# VOCABULARY CONTENT
# =============================================================================


def _int_value(results: SPARQLResults, var: str, what: str) -> int:
    """Integer bound to ``var`` in the first row; a missing row counts as 0."""
    raw = results.first_value(var)
    if raw is None:
        return 0
    try:
        return int(raw)
    except ValueError as e:
        raise TransportError(
            ErrorCode.MALFORMED_RESPONSE,
            "Unexpected response format",
            details=f"{what} is not an integer: {raw!r}",
        ) from e


def _exists_row(results: SPARQLResults, what: str) -> dict[str, bool]:
    """Parse the single row of an EXISTS projection.

    Stores answer with "true"/"false" or "1"/"0"; anything else is False.
    """
    if not results.bindings:
        raise TransportError(
            ErrorCode.MALFORMED_RESPONSE, "Unexpected response format", details=f"No row for {what}"
        )
    row = results.bindings[0]
    return {var: row.get(var, {}).get("value") in ("true", "1") for var in row}


def count_concepts(client: QueryClient, endpoint: Endpoint) -> int:
    query = f"""{PREFIXES}
    SELECT (COUNT(DISTINCT ?concept) AS ?count)
    WHERE {{ ?concept a skos:Concept . }}
    """
    total = _int_value(client.send(endpoint, query), "count", "Concept count")
    logger.info("Counted %d concepts on %s", total, endpoint.url)
    return total


_RELATIONSHIP_PATTERNS = {
    "hasInScheme": "?c a skos:Concept . ?c skos:inScheme ?x",
    "hasTopConceptOf": "?c a skos:Concept . ?c skos:topConceptOf ?x",
    "hasHasTopConcept": "?s skos:hasTopConcept ?x",
    "hasBroader": "?c a skos:Concept . ?c skos:broader ?x",
    "hasNarrower": "?c a skos:Concept . ?c skos:narrower ?x",
    "hasBroaderTransitive": "?c a skos:Concept . ?c skos:broaderTransitive ?x",
    "hasNarrowerTransitive": "?c a skos:Concept . ?c skos:narrowerTransitive ?x",
}


def relationship_query() -> str:
    projections = "\n      ".join(
        f"(EXISTS {{ {pattern} }} AS ?{var})" for var, pattern in _RELATIONSHIP_PATTERNS.items()
    )
    return f"""{PREFIXES}
    SELECT
      {projections}
    WHERE {{}}
    """


def detect_relationships(client: QueryClient, endpoint: Endpoint) -> RelationshipSupport:
    """Check which SKOS relationships are used anywhere in the dataset.

    Raises:
        TransportError: On transport failure, or MALFORMED_RESPONSE when the
            answer has no row.
    """
    present = _exists_row(client.send(endpoint, relationship_query()), "relationship check")
    relationships = RelationshipSupport.from_dict(present)
    logger.info("%d/7 SKOS relationships present on %s", relationships.available, endpoint.url)
    return relationships


@dataclass(frozen=True)
class SchemeDetection:
    count: int
    uris: tuple[str, ...] = ()

    @property
    def limited(self) -> bool:
        return self.count > len(self.uris)


def detect_concept_schemes(
    client: QueryClient, endpoint: Endpoint, max_schemes: int = DEFAULT_MAX_SCHEMES
) -> SchemeDetection:
    """Count concept schemes and list up to ``max_schemes`` of their URIs.

    Raises:
        TransportError: On transport failure or a non-integer count.
    """
    count_query = f"""{PREFIXES}
    SELECT (COUNT(DISTINCT ?scheme) AS ?count)
    WHERE {{ ?scheme a skos:ConceptScheme . }}
    """
    total = _int_value(client.send(endpoint, count_query), "count", "Scheme count")
    if total == 0:
        return SchemeDetection(count=0)

    list_query = f"""{PREFIXES}
    SELECT DISTINCT ?scheme
    WHERE {{ ?scheme a skos:ConceptScheme . }}
    LIMIT {max_schemes}
    """
    uris = tuple(dict.fromkeys(client.send(endpoint, list_query).values("scheme")))
    logger.info("Found %d concept schemes on %s (listed %d)", total, endpoint.url, len(uris))
    return SchemeDetection(count=total, uris=uris[:max_schemes])


# Resource kind -> RDF type
RESOURCE_TYPES = {
    "concept": "skos:Concept",
    "scheme": "skos:ConceptScheme",
    "collection": "skos:Collection",
}

_LABEL_PREDICATE_PATTERNS = {
    "prefLabel": "?r skos:prefLabel ?x",
    "xlPrefLabel": "?r skosxl:prefLabel/skosxl:literalForm ?x",
    "dctTitle": "?r dct:title ?x",
    "dcTitle": "?r dc:title ?x",
    "rdfsLabel": "?r rdfs:label ?x",
}


def label_predicate_query(rdf_type: str) -> str:
    projections = "\n      ".join(
        f"(EXISTS {{ ?r a {rdf_type} . {pattern} }} AS ?{label_type})"
        for label_type, pattern in _LABEL_PREDICATE_PATTERNS.items()
    )
    return f"""{PREFIXES}
    SELECT
      {projections}
    WHERE {{}}
    """


def detect_label_predicates(client: QueryClient, endpoint: Endpoint) -> dict[str, tuple[str, ...]]:
    """Find which label predicates are used on each kind of SKOS resource.

    Returns:
        Resource kind -> label types present, in ``LABEL_PRIORITY`` order.
        Kinds without any label predicate are left out.

    Raises:
        TransportError: On transport failure, or MALFORMED_RESPONSE when an
            answer has no row.
    """
    found: dict[str, tuple[str, ...]] = {}
    for kind, rdf_type in RESOURCE_TYPES.items():
        present = _exists_row(client.send(endpoint, label_predicate_query(rdf_type)), f"{kind} labels")
        label_types = tuple(label_type for label_type in LABEL_PRIORITY if present.get(label_type))
        if label_types:
            found[kind] = label_types
    logger.info("Label predicates on %s: %s", endpoint.url, found or "none")
    return found
