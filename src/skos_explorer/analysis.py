"""
Endpoint analysis orchestration.

Runs the capability probes in order, keeps a human-readable step log for
each run, and commits one complete ``EndpointAnalysis`` per run.

Steps:
    (1/9) connection test
    (2/9) named graph detection
    (3/9) duplicate triples (only with more than one graph)
    (4/9) SKOS graphs (only with named graph support)
    (5/9) language census (graph scoped when duplicates were found,
          batched over the SKOS graphs when they could be listed)
    (6/9) concept count
    (7/9) SKOS relationships
    (8/9) concept schemes
    (9/9) label predicates per resource kind

A failed step 1, 2, 3 or 5 aborts the run; nothing computed so far is
kept. Steps 4 and 6-9 are optional: a failure there is logged as a
warning and leaves its fields of the snapshot empty. Runs for the
same endpoint are numbered, and only the most recently started run may
commit, so a slow earlier run can never overwrite a later re-analysis.
"""
from __future__ import annotations

import itertools
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum

from . import probe
from .errors import AnalysisAborted, TransportError
from .languages import merge_detected_languages
from .models import (
    AnalysisLogEntry,
    Endpoint,
    EndpointAnalysis,
    GraphSupport,
    LanguagePriorityList,
    LogStatus,
)
from .sparql import QueryClient
from .store import EndpointStore

logger = logging.getLogger(__name__)

DEFAULT_ELAPSED_DELAY = 2.0
TOTAL_STEPS = 9


class AnalysisState(str, Enum):
    IDLE = "idle"
    TESTING = "testing"
    GRAPH_DETECT = "graph-detect"
    DUPLICATE_DETECT = "duplicate-detect"
    SKOS_GRAPH_DETECT = "skos-graph-detect"
    LANGUAGE_CENSUS = "language-census"
    CONCEPT_COUNT = "concept-count"
    RELATIONSHIP_DETECT = "relationship-detect"
    SCHEME_DETECT = "scheme-detect"
    LABEL_PREDICATE_DETECT = "label-predicate-detect"
    DONE = "done"
    FAILED = "failed"


class AnalysisRun:
    """One analysis run: its generation, step log, timing and outcome.

    The log only grows by appending a step or updating the last entry.
    """

    def __init__(self, endpoint: Endpoint, generation: int, elapsed_delay: float = DEFAULT_ELAPSED_DELAY):
        self.endpoint = endpoint
        self.generation = generation
        self.elapsed_delay = elapsed_delay
        self.state = AnalysisState.IDLE
        self.analysis: EndpointAnalysis | None = None
        self.error: TransportError | None = None
        self.superseded = False
        self._entries: list[AnalysisLogEntry] = []
        self._started: float | None = None
        self._finished: float | None = None

    def __repr__(self) -> str:
        return f"<AnalysisRun {self.endpoint.id}#{self.generation} {self.state.value}>"

    @property
    def log(self) -> tuple[AnalysisLogEntry, ...]:
        return tuple(self._entries)

    def log_step(self, message: str, status: LogStatus = LogStatus.PENDING) -> None:
        self._entries.append(AnalysisLogEntry(message, status))

    def update_last(self, message: str, status: LogStatus) -> None:
        if self._entries:
            self._entries[-1] = AnalysisLogEntry(message, status)

    def start(self) -> None:
        self._started = time.monotonic()
        self._finished = None
        self._entries.clear()

    def finish(self, state: AnalysisState) -> None:
        self.state = state
        self._finished = time.monotonic()

    def fail(self, error: TransportError) -> None:
        """Flip the step in progress to error and close the run."""
        self.error = error
        if self._entries:
            step = self._entries[-1].message.rstrip(".")
            self.update_last(f"{step} failed: {error.message}", LogStatus.ERROR)
        else:
            self.log_step(error.message, LogStatus.ERROR)
        self.finish(AnalysisState.FAILED)

    @property
    def running(self) -> bool:
        return self._started is not None and self._finished is None

    def elapsed_seconds(self) -> float:
        if self._started is None:
            return 0.0
        end = self._finished if self._finished is not None else time.monotonic()
        return end - self._started

    def show_elapsed(self) -> bool:
        """True once a still-running analysis has taken longer than the delay."""
        return self.running and self.elapsed_seconds() >= self.elapsed_delay

    def format_elapsed(self) -> str | None:
        """Elapsed time as "3s" while it should be shown, else None."""
        if not self.show_elapsed():
            return None
        return f"{int(self.elapsed_seconds())}s"

    @property
    def duration_seconds(self) -> float | None:
        if self._started is None or self._finished is None:
            return None
        return self._finished - self._started


def _step(number: int, text: str) -> str:
    return f"({number}/{TOTAL_STEPS}) {text}"


def _describe_skos_graphs(found: probe.SkosGraphDetection) -> tuple[str, LogStatus]:
    if found.count == 0:
        return "SKOS graphs: none found", LogStatus.WARNING
    if found.uris is None:
        return f"SKOS graphs: {found.count - 1}+ (too many to batch)", LogStatus.SUCCESS
    return f"SKOS graphs: {found.count} (will batch)", LogStatus.SUCCESS


def _describe_schemes(found: probe.SchemeDetection) -> tuple[str, LogStatus]:
    if found.count == 0:
        return "Concept schemes: none", LogStatus.SUCCESS
    listed = f", first {len(found.uris)} kept" if found.limited else ""
    return f"Concept schemes: {found.count:,}{listed}", LogStatus.SUCCESS


def _describe_label_predicates(found: dict[str, tuple[str, ...]]) -> tuple[str, LogStatus]:
    if not found:
        return "Label predicates: none found", LogStatus.WARNING
    summary = "; ".join(f"{kind} {', '.join(types)}" for kind, types in found.items())
    return f"Label predicates: {summary}", LogStatus.SUCCESS


class EndpointAnalyzer:
    """Sequences the probes and commits analysis snapshots to a store."""

    def __init__(
        self,
        client: QueryClient,
        store: EndpointStore | None = None,
        connect_timeout: float = probe.CONNECTION_TEST_TIMEOUT,
        max_graphs: int = probe.DEFAULT_MAX_GRAPHS,
        duplicate_sample_size: int = probe.DEFAULT_DUPLICATE_SAMPLE_SIZE,
        language_limit: int = probe.DEFAULT_LANGUAGE_LIMIT,
        skos_graph_limit: int = probe.DEFAULT_SKOS_GRAPH_LIMIT,
        census_batch_size: int = probe.DEFAULT_CENSUS_BATCH_SIZE,
        max_schemes: int = probe.DEFAULT_MAX_SCHEMES,
        elapsed_delay: float = DEFAULT_ELAPSED_DELAY,
        max_workers: int = 4,
    ):
        """Initialize the analyzer.

        Args:
            client: Query client used by every probe.
            store: Where committed snapshots and priority lists go.
                Default: an in-memory store.
            connect_timeout: Timeout of the connection test, in seconds.
            max_graphs: Graph enumeration cap.
            duplicate_sample_size: Triples sampled by the duplicate check.
            language_limit: Maximum number of census rows.
            skos_graph_limit: SKOS graphs listed for the batched census.
            census_batch_size: Graphs per batched census query.
            max_schemes: Concept scheme URIs kept in the snapshot.
            elapsed_delay: Seconds before a run reports elapsed time.
            max_workers: Worker threads for ``submit_analysis``.
        """
        self.client = client
        self.store = store if store is not None else EndpointStore()
        self.connect_timeout = connect_timeout
        self.max_graphs = max_graphs
        self.duplicate_sample_size = duplicate_sample_size
        self.language_limit = language_limit
        self.skos_graph_limit = skos_graph_limit
        self.census_batch_size = census_batch_size
        self.max_schemes = max_schemes
        self.elapsed_delay = elapsed_delay
        self.max_workers = max_workers

        self._lock = threading.Lock()
        self._generations = itertools.count(1)
        self._latest: dict[str, AnalysisRun] = {}
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_config(cls, config, client: QueryClient, store: EndpointStore | None = None) -> EndpointAnalyzer:
        return cls(
            client,
            store=store,
            connect_timeout=config.connect_timeout,
            max_graphs=config.max_graphs,
            duplicate_sample_size=config.duplicate_sample_size,
            language_limit=config.language_limit,
            skos_graph_limit=config.skos_graph_limit,
            census_batch_size=config.census_batch_size,
            max_schemes=config.max_schemes,
            elapsed_delay=config.elapsed_delay,
            max_workers=config.max_workers,
        )

    # Public API

    def run_analysis(self, endpoint: Endpoint) -> AnalysisRun:
        """Analyze an endpoint and commit the result.

        Every call is a fresh run that fully replaces the previous snapshot,
        unless a newer run for the same endpoint was started in the meantime;
        then this run is marked ``superseded`` and nothing is stored.

        Returns:
            The finished ``AnalysisRun`` with ``analysis`` set.

        Raises:
            AnalysisAborted: A step failed. The stored snapshot is unchanged.
        """
        run = self._begin(endpoint)
        logger.info("Analyzing %s (run %d)", endpoint.url, run.generation)
        try:
            analysis = self._execute(run)
        except TransportError as e:
            failed_state = run.state
            run.fail(e)
            logger.error(
                "Analysis of %s failed during %s: %s", endpoint.url, failed_state.value, e.message
            )
            raise AnalysisAborted(run, failed_state, e) from e

        self._commit(run, analysis)
        return run

    def submit_analysis(self, endpoint: Endpoint) -> Future:
        """Run ``run_analysis`` on the worker pool; returns a Future of the run."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="skos-analysis"
                )
            executor = self._executor
        return executor.submit(self.run_analysis, endpoint)

    def get_analysis_log(self, endpoint_id: str) -> tuple[AnalysisLogEntry, ...]:
        """Log of the most recently started run for an endpoint."""
        run = self.current_run(endpoint_id)
        return run.log if run else ()

    def current_run(self, endpoint_id: str) -> AnalysisRun | None:
        with self._lock:
            return self._latest.get(endpoint_id)

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> EndpointAnalyzer:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # Internals

    def _begin(self, endpoint: Endpoint) -> AnalysisRun:
        with self._lock:
            run = AnalysisRun(endpoint, next(self._generations), self.elapsed_delay)
            self._latest[endpoint.id] = run
        run.start()
        return run

    def _execute(self, run: AnalysisRun) -> EndpointAnalysis:
        endpoint = run.endpoint

        run.state = AnalysisState.TESTING
        run.log_step(_step(1, "Testing connection..."))
        connection = probe.test_connection(self.client, endpoint, timeout=self.connect_timeout)
        if not connection.success:
            raise connection.error
        run.update_last(_step(1, f"Connected ({connection.response_time_ms}ms)"), LogStatus.SUCCESS)

        run.state = AnalysisState.GRAPH_DETECT
        run.log_step(_step(2, "Detecting graph support..."))
        graphs = probe.detect_graphs(self.client, endpoint, max_graphs=self.max_graphs)
        if graphs.supports_named_graphs is GraphSupport.UNKNOWN:
            run.update_last(_step(2, "Graph support: unknown"), LogStatus.WARNING)
        elif graphs.supports_named_graphs is GraphSupport.UNSUPPORTED:
            run.update_last(_step(2, "Graph support: no"), LogStatus.SUCCESS)
        else:
            suffix = "" if graphs.graph_count_exact else "+"
            run.update_last(
                _step(2, f"Graph support: yes ({graphs.graph_count}{suffix} graphs, {graphs.query_method.value})"),
                LogStatus.SUCCESS,
            )

        if graphs.supports_named_graphs is GraphSupport.SUPPORTED and (graphs.graph_count or 0) > 1:
            run.state = AnalysisState.DUPLICATE_DETECT
            run.log_step(_step(3, "Checking for duplicate triples..."))
            duplicates = probe.detect_duplicates(
                self.client, endpoint, graphs, sample_size=self.duplicate_sample_size
            )
            if duplicates:
                run.update_last(_step(3, "Duplicate triples: found across graphs"), LogStatus.WARNING)
            else:
                run.update_last(_step(3, "Duplicate triples: none"), LogStatus.SUCCESS)
        else:
            duplicates = probe.detect_duplicates(self.client, endpoint, graphs)
            reason = (
                "graph support unknown"
                if graphs.supports_named_graphs is GraphSupport.UNKNOWN
                else "fewer than 2 graphs"
            )
            run.log_step(_step(3, f"Duplicate triples: skipped ({reason})"), LogStatus.INFO)

        if graphs.supports_named_graphs is GraphSupport.SUPPORTED:
            skos_graphs = self._optional_step(
                run, 4, AnalysisState.SKOS_GRAPH_DETECT, "Detecting SKOS graphs...", "SKOS graphs: detection failed",
                lambda: probe.detect_skos_graphs(self.client, endpoint, limit=self.skos_graph_limit),
                _describe_skos_graphs,
            )
        else:
            skos_graphs = None
            reason = (
                "no graph support"
                if graphs.supports_named_graphs is GraphSupport.UNSUPPORTED
                else "graph support unknown"
            )
            run.log_step(_step(4, f"SKOS graphs: skipped ({reason})"), LogStatus.INFO)

        graph_scoped = duplicates is True
        census_graphs = skos_graphs.uris if graph_scoped and skos_graphs and skos_graphs.batchable else None
        if census_graphs:
            mode = f"batched, {len(census_graphs)} graphs"
        else:
            mode = "graph scoped" if graph_scoped else "default"
        run.state = AnalysisState.LANGUAGE_CENSUS
        run.log_step(_step(5, f"Detecting languages ({mode})..."))
        languages = probe.detect_languages(
            self.client, endpoint, graph_scoped=graph_scoped, limit=self.language_limit,
            graphs=census_graphs, batch_size=self.census_batch_size,
        )
        run.update_last(
            _step(5, f"Languages: found {len(languages)} ({mode})"),
            LogStatus.SUCCESS if languages else LogStatus.WARNING,
        )

        total_concepts = self._optional_step(
            run, 6, AnalysisState.CONCEPT_COUNT, "Counting concepts...", "Concepts: count failed",
            lambda: probe.count_concepts(self.client, endpoint),
            lambda total: (f"Concepts: {total:,}", LogStatus.SUCCESS),
        )
        relationships = self._optional_step(
            run, 7, AnalysisState.RELATIONSHIP_DETECT, "Detecting relationships...",
            "Relationships: detection failed",
            lambda: probe.detect_relationships(self.client, endpoint),
            lambda found: (f"Relationships: {found.available}/7 available", LogStatus.SUCCESS),
        )
        schemes = self._optional_step(
            run, 8, AnalysisState.SCHEME_DETECT, "Detecting concept schemes...", "Concept schemes: detection failed",
            lambda: probe.detect_concept_schemes(self.client, endpoint, max_schemes=self.max_schemes),
            _describe_schemes,
        )
        label_predicates = self._optional_step(
            run, 9, AnalysisState.LABEL_PREDICATE_DETECT, "Detecting label predicates...",
            "Label predicates: detection failed",
            lambda: probe.detect_label_predicates(self.client, endpoint),
            _describe_label_predicates,
        )

        return EndpointAnalysis(
            supports_named_graphs=graphs.supports_named_graphs,
            graph_count=graphs.graph_count,
            graph_count_exact=graphs.graph_count_exact,
            query_method=graphs.query_method,
            has_duplicate_triples=duplicates,
            languages=tuple(languages),
            skos_graph_count=skos_graphs.count if skos_graphs else None,
            skos_graph_uris=skos_graphs.uris if skos_graphs else None,
            total_concepts=total_concepts,
            relationships=relationships,
            scheme_count=schemes.count if schemes else None,
            scheme_uris=schemes.uris if schemes else (),
            schemes_limited=schemes.limited if schemes else False,
            label_predicates=label_predicates,
        )

    def _optional_step(self, run: AnalysisRun, number: int, state: AnalysisState, pending: str,
                       failed: str, detect, describe):
        """Run a step whose failure only costs its own result.

        ``describe`` maps the result to the final (message, status) of the
        step's log entry. Returns None when the step failed.
        """
        run.state = state
        run.log_step(_step(number, pending))
        try:
            result = detect()
        except TransportError as e:
            run.update_last(_step(number, f"{failed} ({e.message})"), LogStatus.WARNING)
            logger.warning("%s on %s: %s", failed, run.endpoint.url, e.message)
            return None
        message, status = describe(result)
        run.update_last(_step(number, message), status)
        return result

    def _commit(self, run: AnalysisRun, analysis: EndpointAnalysis) -> None:
        endpoint_id = run.endpoint.id
        with self._lock:
            latest = self._latest.get(endpoint_id)
            if latest is None or latest.generation != run.generation:
                run.superseded = True
            else:
                priorities: LanguagePriorityList = merge_detected_languages(
                    self.store.get_priorities(endpoint_id), analysis.languages
                )
                self.store.save_result(endpoint_id, analysis, priorities)
        run.analysis = analysis
        run.finish(AnalysisState.DONE)
        if run.superseded:
            logger.info(
                "Discarding analysis run %d of %s: superseded by run %d",
                run.generation, run.endpoint.url, latest.generation if latest else -1,
            )
        else:
            logger.info(
                "Analysis of %s complete in %.1fs: graphs=%s, languages=%d",
                run.endpoint.url, run.duration_seconds or 0.0,
                analysis.supports_named_graphs.value, len(analysis.languages),
            )
