"""Tests for data records."""
from datetime import datetime, timezone

import pytest

from skos_explorer.errors import ErrorCode, TransportError
from skos_explorer.models import (
    DetectedLanguage,
    Endpoint,
    EndpointAnalysis,
    EndpointAuth,
    GraphSupport,
    LanguagePriorityList,
    QueryMethod,
    RelationshipSupport,
)


class TestGraphSupport:
    """Tests for the three-valued graph capability."""

    def test_not_usable_as_bool(self):
        with pytest.raises(TypeError):
            bool(GraphSupport.UNKNOWN)
        with pytest.raises(TypeError):
            if GraphSupport.SUPPORTED:
                pass

    @pytest.mark.parametrize("member,value", [
        (GraphSupport.SUPPORTED, True),
        (GraphSupport.UNSUPPORTED, False),
        (GraphSupport.UNKNOWN, None),
    ])
    def test_json_mapping(self, member, value):
        assert member.to_json() is value
        assert GraphSupport.from_json(value) is member


class TestEndpointAuth:
    """Tests for auth header generation."""

    def test_bearer(self):
        assert EndpointAuth(type="bearer", token="t0k").headers() == {"Authorization": "Bearer t0k"}

    def test_apikey_default_header(self):
        assert EndpointAuth(type="apikey", api_key="k").headers() == {"X-API-Key": "k"}

    def test_apikey_custom_header(self):
        auth = EndpointAuth(type="apikey", api_key="k", header_name="X-Token")
        assert auth.headers() == {"X-Token": "k"}

    def test_incomplete_basic_sends_nothing(self):
        assert EndpointAuth(type="basic", username="ann").headers() == {}

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown auth type"):
            EndpointAuth(type="digest")

    def test_round_trip_keeps_credentials(self):
        auth = EndpointAuth(type="apikey", api_key="k", header_name="X-Token")
        data = auth.to_dict()
        assert data == {"type": "apikey", "credentials": {"apiKey": "k", "headerName": "X-Token"}}
        assert EndpointAuth.from_dict(data) == auth


class TestEndpoint:
    """Tests for endpoint descriptors."""

    def test_label(self):
        assert Endpoint(id="a", url="https://x.org/sparql").label == "https://x.org/sparql"
        assert Endpoint(id="a", url="https://x.org/sparql", name="X").label == "X"

    def test_no_auth_omitted(self):
        endpoint = Endpoint(id="a", url="https://x.org/sparql", auth=EndpointAuth())
        assert endpoint.to_dict() == {"id": "a", "url": "https://x.org/sparql"}
        assert endpoint.headers() == {}


class TestEndpointAnalysis:
    """Tests for analysis snapshots."""

    def test_serialized_form(self):
        analysis = EndpointAnalysis(
            supports_named_graphs=GraphSupport.SUPPORTED,
            graph_count=1000,
            graph_count_exact=False,
            query_method=QueryMethod.FALLBACK_LIMIT,
            has_duplicate_triples=True,
            languages=(DetectedLanguage("en", 10), DetectedLanguage("fr", 4)),
            analyzed_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        )

        data = analysis.to_dict()

        assert data == {
            "supportsNamedGraphs": True,
            "graphCount": 1000,
            "graphCountExact": False,
            "queryMethod": "fallback-limit",
            "hasDuplicateTriples": True,
            "languages": [{"lang": "en", "count": 10}, {"lang": "fr", "count": 4}],
            "analyzedAt": "2024-05-01T12:00:00+00:00",
        }
        assert EndpointAnalysis.from_dict(data) == analysis

    def test_unknown_support_stored_as_null(self):
        data = {"supportsNamedGraphs": None, "graphCount": None, "queryMethod": "none",
                "hasDuplicateTriples": None, "languages": []}

        analysis = EndpointAnalysis.from_dict(data)

        assert analysis.supports_named_graphs is GraphSupport.UNKNOWN
        assert analysis.has_duplicate_triples is None

    def test_vocabulary_content_serialized(self):
        analysis = EndpointAnalysis(
            GraphSupport.SUPPORTED, 2, True, QueryMethod.EMPTY_PATTERN, False,
            skos_graph_count=2,
            skos_graph_uris=("http://example.org/a", "http://example.org/b"),
            total_concepts=1500,
            relationships=RelationshipSupport(in_scheme=True, narrower=True),
            scheme_count=3,
            scheme_uris=("http://example.org/s1",),
            schemes_limited=True,
            label_predicates={"concept": ("prefLabel", "xlPrefLabel"), "scheme": ("dctTitle",)},
            analyzed_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        )

        data = analysis.to_dict()

        assert data["skosGraphCount"] == 2
        assert data["skosGraphUris"] == ["http://example.org/a", "http://example.org/b"]
        assert data["totalConcepts"] == 1500
        assert data["relationships"] == {
            "hasInScheme": True, "hasTopConceptOf": False, "hasHasTopConcept": False, "hasBroader": False,
            "hasNarrower": True, "hasBroaderTransitive": False, "hasNarrowerTransitive": False,
        }
        assert data["schemeUris"] == ["http://example.org/s1"]
        assert data["schemeCount"] == 3
        assert data["schemesLimited"] is True
        assert data["labelPredicates"] == {
            "concept": {"prefLabel": True, "xlPrefLabel": True}, "scheme": {"dctTitle": True},
        }
        assert EndpointAnalysis.from_dict(data) == analysis

    def test_too_many_skos_graphs_stored_without_uris(self):
        analysis = EndpointAnalysis(
            GraphSupport.SUPPORTED, 1000, False, QueryMethod.FALLBACK_LIMIT, True, skos_graph_count=501,
        )

        data = analysis.to_dict()

        assert data["skosGraphUris"] is None
        assert EndpointAnalysis.from_dict(data).skos_graph_uris is None

    def test_relationships_from_browser_snapshot(self):
        relationships = RelationshipSupport.from_dict({"hasBroader": True, "hasNarrower": True})

        assert relationships.broader is True
        assert relationships.in_scheme is False
        assert relationships.available == 2

    def test_language_count(self):
        analysis = EndpointAnalysis(
            GraphSupport.UNSUPPORTED, 0, True, QueryMethod.BLANK_NODE_PATTERN, False,
            languages=(DetectedLanguage("en", 10),),
        )
        assert analysis.language_count("en") == 10
        assert analysis.language_count("fr") is None


class TestLanguagePriorityList:
    """Tests for priority lists."""

    def test_duplicates_removed(self):
        assert LanguagePriorityList(("en", "fr", "en")).languages == ("en", "fr")

    def test_top(self):
        assert LanguagePriorityList().top is None
        assert LanguagePriorityList(("fr", "en")).top == "fr"
        assert LanguagePriorityList(("fr", "en"), current_override="de").top == "de"

    def test_with_override_clears_empty(self):
        assert LanguagePriorityList(("en",), "fr").with_override("").current_override is None

    def test_container_protocol(self):
        priorities = LanguagePriorityList(("en", "fr"))
        assert len(priorities) == 2
        assert "fr" in priorities
        assert list(priorities) == ["en", "fr"]

    def test_from_dict_none(self):
        assert LanguagePriorityList.from_dict(None) == LanguagePriorityList()


class TestTransportError:
    """Tests for TransportError."""

    @pytest.mark.parametrize("code,retryable", [
        (ErrorCode.NETWORK, True),
        (ErrorCode.TIMEOUT, True),
        (ErrorCode.HTTP_ERROR, False),
        (ErrorCode.CORS_BLOCKED, False),
        (ErrorCode.MALFORMED_RESPONSE, False),
    ])
    def test_retryable(self, code, retryable):
        assert TransportError(code, "x").retryable is retryable

    def test_to_dict(self):
        error = TransportError(ErrorCode.HTTP_ERROR, "Endpoint not found", status=404)
        assert error.to_dict() == {"code": "HTTP_ERROR", "message": "Endpoint not found", "status": 404}
        assert str(error) == "Endpoint not found"
