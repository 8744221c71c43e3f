"""Tests for the endpoint store."""
import json

from skos_explorer.models import (
    DetectedLanguage,
    Endpoint,
    EndpointAnalysis,
    EndpointAuth,
    GraphSupport,
    LanguagePriorityList,
    QueryMethod,
)
from skos_explorer.store import EndpointStore

ENDPOINT = Endpoint(
    id="ex", url="https://vocab.example.org/sparql", name="Example",
    auth=EndpointAuth(type="bearer", token="abc"),
)


def make_analysis():
    return EndpointAnalysis(
        GraphSupport.SUPPORTED, 3, True, QueryMethod.EMPTY_PATTERN, True,
        languages=(DetectedLanguage("en", 10), DetectedLanguage("nl", 2)),
    )


class TestEndpoints:
    """Tests for endpoint descriptors."""

    def test_save_and_reload(self, tmp_path):
        path = tmp_path / "data" / "endpoints.json"
        store = EndpointStore(path)
        store.save_endpoint(ENDPOINT)

        reloaded = EndpointStore(path)

        assert reloaded.list_endpoints() == [ENDPOINT]
        assert reloaded.get_endpoint("ex") == ENDPOINT

    def test_find_by_id_name_or_url(self):
        store = EndpointStore()
        store.save_endpoint(ENDPOINT)

        assert store.find_endpoint("ex") == ENDPOINT
        assert store.find_endpoint("Example") == ENDPOINT
        assert store.find_endpoint("https://vocab.example.org/sparql") == ENDPOINT
        assert store.find_endpoint("nope") is None

    def test_remove(self, tmp_path):
        path = tmp_path / "endpoints.json"
        store = EndpointStore(path)
        store.save_endpoint(ENDPOINT)
        store.save_analysis(ENDPOINT.id, make_analysis())

        assert store.remove_endpoint("ex") is True
        assert store.remove_endpoint("ex") is False
        assert store.get_analysis("ex") is None
        assert json.loads(path.read_text()) == {"endpoints": {}}


class TestAnalysisAndPriorities:
    """Tests for analysis snapshots and priority lists."""

    def test_save_result_single_file(self, tmp_path):
        path = tmp_path / "endpoints.json"
        store = EndpointStore(path)
        priorities = LanguagePriorityList(("en", "nl"))

        store.save_result("ex", make_analysis(), priorities)

        data = json.loads(path.read_text())["endpoints"]["ex"]
        assert data["analysis"]["graphCount"] == 3
        assert data["languagePriorities"] == {"languages": ["en", "nl"], "currentOverride": None}

        reloaded = EndpointStore(path)
        assert reloaded.get_analysis("ex") == EndpointAnalysis.from_dict(data["analysis"])
        assert reloaded.get_priorities("ex") == priorities

    def test_priorities_default_empty(self):
        assert EndpointStore().get_priorities("missing") == LanguagePriorityList()


class TestFailures:
    """Tests for unreadable or unwritable store files."""

    def test_corrupt_file_starts_empty(self, tmp_path, caplog):
        path = tmp_path / "endpoints.json"
        path.write_text("{not json")

        store = EndpointStore(path)

        assert store.list_endpoints() == []
        assert "Failed to load endpoint store" in caplog.text

    def test_wrong_shape_starts_empty(self, tmp_path):
        path = tmp_path / "endpoints.json"
        path.write_text('{"endpoints": []}')

        assert EndpointStore(path).list_endpoints() == []

    def test_unreadable_analysis_ignored(self, tmp_path):
        path = tmp_path / "endpoints.json"
        path.write_text(json.dumps({"endpoints": {"ex": {"analysis": {"queryMethod": "bogus"}}}}))

        assert EndpointStore(path).get_analysis("ex") is None

    def test_write_failure_keeps_memory_state(self, tmp_path, caplog):
        blocker = tmp_path / "file"
        blocker.write_text("")
        store = EndpointStore(blocker / "endpoints.json")

        store.save_endpoint(ENDPOINT)

        assert store.get_endpoint("ex") == ENDPOINT
        assert "Failed to save endpoint store" in caplog.text

    def test_malformed_endpoint_entries_skipped(self, tmp_path, caplog):
        path = tmp_path / "endpoints.json"
        path.write_text(json.dumps({"endpoints": {
            "ex": {"endpoint": ENDPOINT.to_dict()},
            "no-url": {"endpoint": {"id": "no-url"}},
            "not-a-dict": {"endpoint": ["https://broken.example.org/sparql"]},
            "bad-auth": {"endpoint": {"id": "bad-auth", "url": "https://x.example.org", "auth": {"type": "kerberos"}}},
            "junk": "not an entry",
        }}))
        store = EndpointStore(path)

        assert store.list_endpoints() == [ENDPOINT]
        assert store.get_endpoint("no-url") is None
        assert store.get_endpoint("junk") is None
        assert store.get_analysis("junk") is None
        assert store.find_endpoint("https://vocab.example.org/sparql") == ENDPOINT
        assert store.find_endpoint("no-url") is None
        assert "Ignoring unreadable endpoint no-url" in caplog.text
        assert "Ignoring unreadable endpoint bad-auth" in caplog.text

    def test_unreadable_label_predicates_ignored(self, tmp_path):
        path = tmp_path / "endpoints.json"
        path.write_text(json.dumps({"endpoints": {"ex": {"analysis": {
            "supportsNamedGraphs": False, "queryMethod": "none", "labelPredicates": ["prefLabel"],
        }}}}))

        assert EndpointStore(path).get_analysis("ex") is None
