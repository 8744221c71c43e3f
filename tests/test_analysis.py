"""Tests for analysis orchestration."""
import threading
from unittest.mock import MagicMock

import pytest

from skos_explorer import analysis
from skos_explorer.errors import AnalysisAborted, ErrorCode, TransportError
from skos_explorer.models import (
    DetectedLanguage,
    Endpoint,
    EndpointAnalysis,
    GraphSupport,
    LanguagePriorityList,
    LogStatus,
    QueryMethod,
    RelationshipSupport,
)
from skos_explorer.sparql import SPARQLResults
from skos_explorer.store import EndpointStore

ENDPOINT = Endpoint(id="ex", url="https://vocab.example.org/sparql")


def census(*rows):
    return SPARQLResults(
        vars=["lang", "count"],
        bindings=[
            {"lang": {"type": "literal", "value": lang}, "count": {"type": "literal", "value": str(n)}}
            for lang, n in rows
        ],
    )


def exists_row(**values):
    return SPARQLResults(vars=list(values), bindings=[{var: {"value": v} for var, v in values.items()}])


RELATIONSHIPS = exists_row(
    hasInScheme="true", hasTopConceptOf="false", hasHasTopConcept="false", hasBroader="1",
    hasNarrower="0", hasBroaderTransitive="false", hasNarrowerTransitive="false",
)
LABEL_PREDICATES = exists_row(prefLabel="true", xlPrefLabel="false", dctTitle="false", dcTitle="false",
                              rdfsLabel="false")


def kind_of(query):
    if "GROUP BY ?lang" in query:
        return "census"
    if "FILTER(?g1 != ?g2)" in query:
        return "duplicates"
    if "COUNT(DISTINCT ?concept)" in query:
        return "concepts"
    if "AS ?hasInScheme" in query:
        return "relationships"
    if "COUNT(DISTINCT ?scheme)" in query:
        return "scheme_count"
    if "SELECT DISTINCT ?scheme" in query:
        return "schemes"
    if "AS ?prefLabel" in query:
        return "label_predicates"
    if "?s a skos:ConceptScheme" in query:
        return "skos_graphs"
    if "COUNT(DISTINCT ?g)" in query:
        return "count"
    if query.startswith("ASK"):
        return "ask"
    return "connection"


def endpoint_client(graph_count=0, duplicates=False, languages=(("en", 5),), fail=None):
    """Fake endpoint: ``graph_count`` named graphs, all holding SKOS data, optional failure by query kind."""

    def send(endpoint, query, timeout=None, max_retries=None):
        kind = kind_of(query)
        if fail and fail[0] == kind:
            raise fail[1]
        if kind == "census":
            return census(*languages)
        if kind == "duplicates":
            return SPARQLResults(boolean=duplicates)
        if kind == "count":
            return SPARQLResults(vars=["count"], bindings=[{"count": {"value": str(graph_count)}}])
        if kind == "ask":
            return SPARQLResults(boolean=graph_count > 0)
        if kind == "skos_graphs":
            return SPARQLResults(
                vars=["g"], bindings=[{"g": {"value": f"http://example.org/g{i}"}} for i in range(graph_count)]
            )
        if kind == "concepts":
            return SPARQLResults(vars=["count"], bindings=[{"count": {"value": "42"}}])
        if kind == "relationships":
            return RELATIONSHIPS
        if kind == "scheme_count":
            return SPARQLResults(vars=["count"], bindings=[{"count": {"value": "1"}}])
        if kind == "schemes":
            return SPARQLResults(vars=["scheme"], bindings=[{"scheme": {"value": "http://example.org/scheme"}}])
        if kind == "label_predicates":
            return LABEL_PREDICATES
        return SPARQLResults()

    client = MagicMock()
    client.send.side_effect = send
    return client


def census_queries(client):
    return [call.args[1] for call in client.send.call_args_list if kind_of(call.args[1]) == "census"]


def stored_snapshot():
    return EndpointAnalysis(
        GraphSupport.SUPPORTED, 2, True, QueryMethod.EMPTY_PATTERN, False,
        languages=(DetectedLanguage("de", 1),),
    )


class TestRunAnalysis:
    """Tests for a complete analysis run."""

    def test_no_graphs(self):
        store = EndpointStore()
        analyzer = analysis.EndpointAnalyzer(endpoint_client(), store)

        run = analyzer.run_analysis(ENDPOINT)

        result = run.analysis
        assert run.state is analysis.AnalysisState.DONE
        assert result.supports_named_graphs is GraphSupport.UNSUPPORTED
        assert result.graph_count == 0
        assert result.has_duplicate_triples is False
        assert result.languages == (DetectedLanguage("en", 5),)
        assert store.get_analysis(ENDPOINT.id) == result
        assert store.get_priorities(ENDPOINT.id).languages == ("en",)

    def test_log_messages(self):
        analyzer = analysis.EndpointAnalyzer(endpoint_client(graph_count=1))

        run = analyzer.run_analysis(ENDPOINT)

        messages = [entry.message for entry in run.log]
        assert messages[0].startswith("(1/9) Connected (")
        assert messages[1:] == [
            "(2/9) Graph support: yes (1 graphs, empty-pattern)",
            "(3/9) Duplicate triples: skipped (fewer than 2 graphs)",
            "(4/9) SKOS graphs: 1 (will batch)",
            "(5/9) Languages: found 1 (default)",
            "(6/9) Concepts: 42",
            "(7/9) Relationships: 2/7 available",
            "(8/9) Concept schemes: 1",
            "(9/9) Label predicates: concept prefLabel; scheme prefLabel; collection prefLabel",
        ]
        assert [entry.status for entry in run.log] == [
            LogStatus.SUCCESS, LogStatus.SUCCESS, LogStatus.INFO, LogStatus.SUCCESS, LogStatus.SUCCESS,
            LogStatus.SUCCESS, LogStatus.SUCCESS, LogStatus.SUCCESS, LogStatus.SUCCESS,
        ]
        assert analyzer.get_analysis_log(ENDPOINT.id) == run.log

    def test_vocabulary_content_recorded(self):
        store = EndpointStore()
        analyzer = analysis.EndpointAnalyzer(endpoint_client(graph_count=2), store)

        result = analyzer.run_analysis(ENDPOINT).analysis

        assert result.skos_graph_count == 2
        assert result.skos_graph_uris == ("http://example.org/g0", "http://example.org/g1")
        assert result.total_concepts == 42
        assert result.relationships == RelationshipSupport(in_scheme=True, broader=True)
        assert result.scheme_count == 1
        assert result.scheme_uris == ("http://example.org/scheme",)
        assert result.schemes_limited is False
        assert result.label_predicates == {
            "concept": ("prefLabel",), "scheme": ("prefLabel",), "collection": ("prefLabel",),
        }
        assert store.get_analysis(ENDPOINT.id) == result

    def test_duplicates_scope_language_census(self):
        client = endpoint_client(graph_count=3, duplicates=True)
        analyzer = analysis.EndpointAnalyzer(client, census_batch_size=2)

        run = analyzer.run_analysis(ENDPOINT)

        assert run.analysis.graph_count == 3
        assert run.analysis.has_duplicate_triples is True
        queries = census_queries(client)
        assert len(queries) == 2
        assert all("GRAPH ?g {" in query and "VALUES ?g" in query for query in queries)
        assert run.log[2].status is LogStatus.WARNING
        assert run.log[4].message == "(5/9) Languages: found 1 (batched, 3 graphs)"
        assert run.analysis.languages == (DetectedLanguage("en", 10),)

    def test_duplicates_without_listed_graphs_use_scoped_census(self):
        client = endpoint_client(
            graph_count=3, duplicates=True,
            fail=("skos_graphs", TransportError(ErrorCode.HTTP_ERROR, "Server error", status=500)),
        )
        analyzer = analysis.EndpointAnalyzer(client)

        run = analyzer.run_analysis(ENDPOINT)

        assert run.log[3].status is LogStatus.WARNING
        assert run.log[3].message == "(4/9) SKOS graphs: detection failed (Server error)"
        [query] = census_queries(client)
        assert "GRAPH ?g {" in query
        assert "VALUES ?g" not in query
        assert run.log[4].message == "(5/9) Languages: found 1 (graph scoped)"
        assert run.analysis.skos_graph_count is None
        assert run.analysis.skos_graph_uris is None

    def test_no_duplicates_default_census(self):
        client = endpoint_client(graph_count=3, duplicates=False)
        analyzer = analysis.EndpointAnalyzer(client)

        analyzer.run_analysis(ENDPOINT)

        [query] = census_queries(client)
        assert "GRAPH ?g {" not in query

    def test_skos_graphs_skipped_without_graph_support(self):
        client = endpoint_client()
        analyzer = analysis.EndpointAnalyzer(client)

        run = analyzer.run_analysis(ENDPOINT)

        assert run.log[3].message == "(4/9) SKOS graphs: skipped (no graph support)"
        assert run.log[3].status is LogStatus.INFO
        assert run.analysis.skos_graph_count is None
        assert not any(kind_of(call.args[1]) == "skos_graphs" for call in client.send.call_args_list)

    @pytest.mark.parametrize("kind, index, message", [
        ("concepts", 5, "(6/9) Concepts: count failed (Request timed out)"),
        ("relationships", 6, "(7/9) Relationships: detection failed (Request timed out)"),
        ("scheme_count", 7, "(8/9) Concept schemes: detection failed (Request timed out)"),
        ("label_predicates", 8, "(9/9) Label predicates: detection failed (Request timed out)"),
    ])
    def test_vocabulary_step_failure_is_warning(self, kind, index, message, caplog):
        store = EndpointStore()
        client = endpoint_client(fail=(kind, TransportError(ErrorCode.TIMEOUT, "Request timed out")))
        analyzer = analysis.EndpointAnalyzer(client, store)

        run = analyzer.run_analysis(ENDPOINT)

        assert run.state is analysis.AnalysisState.DONE
        assert run.log[index].status is LogStatus.WARNING
        assert run.log[index].message == message
        assert len(run.log) == 9
        assert store.get_analysis(ENDPOINT.id) == run.analysis
        assert "Request timed out" in caplog.text

    def test_failed_vocabulary_step_leaves_field_empty(self):
        client = endpoint_client(fail=("relationships", TransportError(ErrorCode.NETWORK, "Network error")))

        result = analysis.EndpointAnalyzer(client).run_analysis(ENDPOINT).analysis

        assert result.relationships is None
        assert result.total_concepts == 42
        assert "relationships" not in result.to_dict()

    def test_duplicate_check_skipped_for_single_graph(self):
        client = endpoint_client(graph_count=1)
        analyzer = analysis.EndpointAnalyzer(client)

        run = analyzer.run_analysis(ENDPOINT)

        assert run.analysis.has_duplicate_triples is False
        assert not any("FILTER(?g1 != ?g2)" in call.args[1] for call in client.send.call_args_list)

    def test_unknown_graph_support(self):
        client = endpoint_client(
            fail=("ask", TransportError(ErrorCode.HTTP_ERROR, "Invalid SPARQL query", status=400))
        )
        analyzer = analysis.EndpointAnalyzer(client)

        run = analyzer.run_analysis(ENDPOINT)

        assert run.analysis.supports_named_graphs is GraphSupport.UNKNOWN
        assert run.analysis.has_duplicate_triples is None
        assert run.log[1].status is LogStatus.WARNING
        assert run.log[2].message == "(3/9) Duplicate triples: skipped (graph support unknown)"
        assert run.log[3].message == "(4/9) SKOS graphs: skipped (graph support unknown)"

    def test_new_languages_merged_into_priorities(self):
        store = EndpointStore()
        store.save_priorities(ENDPOINT.id, LanguagePriorityList(("fr",), current_override="fr"))
        analyzer = analysis.EndpointAnalyzer(endpoint_client(languages=(("en", 5), ("fr", 2))), store)

        analyzer.run_analysis(ENDPOINT)

        priorities = store.get_priorities(ENDPOINT.id)
        assert priorities.languages == ("fr", "en")
        assert priorities.current_override == "fr"

    def test_reanalysis_replaces_snapshot(self):
        store = EndpointStore()
        store.save_analysis(ENDPOINT.id, stored_snapshot())
        analyzer = analysis.EndpointAnalyzer(endpoint_client(), store)

        run = analyzer.run_analysis(ENDPOINT)

        assert store.get_analysis(ENDPOINT.id) == run.analysis
        assert store.get_analysis(ENDPOINT.id).languages == (DetectedLanguage("en", 5),)


class TestFailedRun:
    """Tests for aborted runs."""

    def test_cors_blocked_connection(self):
        store = EndpointStore()
        previous = stored_snapshot()
        store.save_analysis(ENDPOINT.id, previous)
        error = TransportError(ErrorCode.CORS_BLOCKED, "CORS error: Endpoint does not allow browser access")
        client = endpoint_client(fail=("connection", error))
        analyzer = analysis.EndpointAnalyzer(client, store)

        with pytest.raises(AnalysisAborted) as exc_info:
            analyzer.run_analysis(ENDPOINT)

        aborted = exc_info.value
        assert aborted.state is analysis.AnalysisState.TESTING
        assert aborted.error is error
        assert aborted.__cause__ is error
        assert aborted.run.state is analysis.AnalysisState.FAILED
        assert aborted.run.analysis is None

        log = analyzer.get_analysis_log(ENDPOINT.id)
        assert [entry.status for entry in log] == [LogStatus.ERROR]
        assert log[0].message == "(1/9) Testing connection failed: CORS error: Endpoint does not allow browser access"
        assert client.send.call_count == 1
        assert store.get_analysis(ENDPOINT.id) == previous

    def test_census_failure_discards_partial_results(self):
        store = EndpointStore()
        client = endpoint_client(
            graph_count=2, fail=("census", TransportError(ErrorCode.TIMEOUT, "Request timed out"))
        )
        analyzer = analysis.EndpointAnalyzer(client, store)

        with pytest.raises(AnalysisAborted) as exc_info:
            analyzer.run_analysis(ENDPOINT)

        run = exc_info.value.run
        assert exc_info.value.state is analysis.AnalysisState.LANGUAGE_CENSUS
        assert run.log[-1].status is LogStatus.ERROR
        assert run.log[-1].message == "(5/9) Detecting languages (default) failed: Request timed out"
        assert [entry.status for entry in run.log].count(LogStatus.ERROR) == 1
        assert store.get_analysis(ENDPOINT.id) is None
        assert store.get_priorities(ENDPOINT.id) == LanguagePriorityList()

    def test_duplicate_failure_aborts(self):
        client = endpoint_client(
            graph_count=2, fail=("duplicates", TransportError(ErrorCode.NETWORK, "Network error"))
        )
        analyzer = analysis.EndpointAnalyzer(client)

        with pytest.raises(AnalysisAborted) as exc_info:
            analyzer.run_analysis(ENDPOINT)

        assert exc_info.value.state is analysis.AnalysisState.DUPLICATE_DETECT


class TestSupersededRuns:
    """Tests for concurrent re-analysis of one endpoint."""

    def test_only_latest_run_commits(self):
        store = EndpointStore()
        slow_in_census = threading.Event()
        release_slow = threading.Event()
        fast = endpoint_client(languages=(("fr", 3),))

        def send(endpoint, query, timeout=None, max_retries=None):
            if threading.current_thread().name == "slow-run" and "GROUP BY ?lang" in query:
                slow_in_census.set()
                assert release_slow.wait(timeout=5)
                return census(("en", 5))
            return fast.send(endpoint, query, timeout=timeout, max_retries=max_retries)

        client = MagicMock()
        client.send.side_effect = send
        analyzer = analysis.EndpointAnalyzer(client, store)

        results = {}
        slow = threading.Thread(
            target=lambda: results.setdefault("slow", analyzer.run_analysis(ENDPOINT)), name="slow-run"
        )
        slow.start()
        assert slow_in_census.wait(timeout=5)

        latest = analyzer.run_analysis(ENDPOINT)
        release_slow.set()
        slow.join(timeout=5)

        earlier = results["slow"]
        assert earlier.generation < latest.generation
        assert earlier.superseded is True
        assert latest.superseded is False
        assert store.get_analysis(ENDPOINT.id) == latest.analysis
        assert store.get_priorities(ENDPOINT.id).languages == ("fr",)
        assert analyzer.current_run(ENDPOINT.id) is latest

    def test_runs_for_different_endpoints_both_commit(self):
        store = EndpointStore()
        other = Endpoint(id="other", url="https://other.example.org/sparql")
        analyzer = analysis.EndpointAnalyzer(endpoint_client(), store)

        analyzer.run_analysis(ENDPOINT)
        analyzer.run_analysis(other)

        assert store.get_analysis(ENDPOINT.id) is not None
        assert store.get_analysis(other.id) is not None


class TestSubmitAnalysis:
    """Tests for background runs."""

    def test_submit_returns_future_of_run(self):
        store = EndpointStore()
        with analysis.EndpointAnalyzer(endpoint_client(), store, max_workers=1) as analyzer:
            run = analyzer.submit_analysis(ENDPOINT).result(timeout=5)

        assert run.state is analysis.AnalysisState.DONE
        assert store.get_analysis(ENDPOINT.id) == run.analysis

    def test_submit_failure_raises_from_future(self):
        error = TransportError(ErrorCode.NETWORK, "Network error")
        with analysis.EndpointAnalyzer(endpoint_client(fail=("connection", error))) as analyzer:
            future = analyzer.submit_analysis(ENDPOINT)
            with pytest.raises(AnalysisAborted):
                future.result(timeout=5)

    def test_log_empty_for_unknown_endpoint(self):
        analyzer = analysis.EndpointAnalyzer(MagicMock())
        assert analyzer.get_analysis_log("missing") == ()


class TestAnalysisRun:
    """Tests for run timing and log handling."""

    def test_elapsed_hidden_before_delay(self):
        run = analysis.AnalysisRun(ENDPOINT, 1, elapsed_delay=60)
        run.start()

        assert run.running is True
        assert run.show_elapsed() is False
        assert run.format_elapsed() is None

    def test_elapsed_shown_after_delay(self):
        run = analysis.AnalysisRun(ENDPOINT, 1, elapsed_delay=0)
        run.start()

        assert run.show_elapsed() is True
        assert run.format_elapsed() == "0s"

        run.finish(analysis.AnalysisState.DONE)
        assert run.show_elapsed() is False
        assert run.duration_seconds is not None

    def test_update_last_only_touches_last_entry(self):
        run = analysis.AnalysisRun(ENDPOINT, 1)
        run.log_step("(1/9) Testing connection...")
        run.update_last("(1/9) Connected (5ms)", LogStatus.SUCCESS)
        run.log_step("(2/9) Detecting graph support...")
        run.update_last("(2/9) Graph support: no", LogStatus.SUCCESS)

        assert [entry.message for entry in run.log] == ["(1/9) Connected (5ms)", "(2/9) Graph support: no"]

    def test_fail_without_entries(self):
        run = analysis.AnalysisRun(ENDPOINT, 1)
        run.fail(TransportError(ErrorCode.NETWORK, "Network error"))

        assert run.log[0].status is LogStatus.ERROR
        assert run.state is analysis.AnalysisState.FAILED


class TestFromConfig:
    """Tests for EndpointAnalyzer.from_config."""

    def test_settings_taken_from_config(self):
        config = MagicMock(
            connect_timeout=3.0, max_graphs=10, duplicate_sample_size=20,
            language_limit=5, elapsed_delay=1.0, max_workers=2,
        )

        analyzer = analysis.EndpointAnalyzer.from_config(config, MagicMock())

        assert analyzer.connect_timeout == 3.0
        assert analyzer.max_graphs == 10
        assert analyzer.duplicate_sample_size == 20
        assert analyzer.language_limit == 5
        assert analyzer.max_workers == 2
