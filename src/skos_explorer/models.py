"""
Data records for endpoint analysis and label resolution.

Serialized form uses camelCase keys so stored snapshots stay readable
alongside the browser-side configuration that shares the same store.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class GraphSupport(Enum):
    """Three-valued named-graph capability.

    UNSUPPORTED means the endpoint understood graph syntax and has no named
    graphs. UNKNOWN means the endpoint rejected graph syntax or answered in a
    way no detection strategy could interpret.
    """

    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"

    def __bool__(self) -> bool:
        raise TypeError("GraphSupport is three-valued; compare against a member instead")

    def to_json(self) -> bool | None:
        return {
            GraphSupport.SUPPORTED: True,
            GraphSupport.UNSUPPORTED: False,
            GraphSupport.UNKNOWN: None,
        }[self]

    @classmethod
    def from_json(cls, value: bool | None) -> GraphSupport:
        if value is True:
            return cls.SUPPORTED
        if value is False:
            return cls.UNSUPPORTED
        return cls.UNKNOWN


class QueryMethod(str, Enum):
    """Which graph detection strategy produced the graph count."""

    EMPTY_PATTERN = "empty-pattern"
    BLANK_NODE_PATTERN = "blank-node-pattern"
    FALLBACK_LIMIT = "fallback-limit"
    NONE = "none"


class LogStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"


AUTH_TYPES = ("none", "basic", "apikey", "bearer")


@dataclass(frozen=True)
class EndpointAuth:
    """Authentication settings for an endpoint."""

    type: str = "none"
    username: str | None = None
    password: str | None = None
    api_key: str | None = None
    token: str | None = None
    header_name: str = "X-API-Key"

    def __post_init__(self):
        if self.type not in AUTH_TYPES:
            raise ValueError(f"Unknown auth type: {self.type!r} (expected one of {', '.join(AUTH_TYPES)})")

    def headers(self) -> dict[str, str]:
        """Return the HTTP headers for this auth type.

        Incomplete credentials produce no header rather than a broken one.
        """
        if self.type == "basic" and self.username and self.password:
            encoded = base64.b64encode(f"{self.username}:{self.password}".encode()).decode("ascii")
            return {"Authorization": f"Basic {encoded}"}
        if self.type == "bearer" and self.token:
            return {"Authorization": f"Bearer {self.token}"}
        if self.type == "apikey" and self.api_key:
            return {self.header_name or "X-API-Key": self.api_key}
        return {}

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type}
        credentials = {
            "username": self.username,
            "password": self.password,
            "apiKey": self.api_key,
            "token": self.token,
        }
        credentials = {k: v for k, v in credentials.items() if v}
        if self.type == "apikey":
            credentials["headerName"] = self.header_name
        if credentials:
            result["credentials"] = credentials
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EndpointAuth | None:
        if not data:
            return None
        credentials = data.get("credentials") or {}
        return cls(
            type=data.get("type", "none"),
            username=credentials.get("username"),
            password=credentials.get("password"),
            api_key=credentials.get("apiKey"),
            token=credentials.get("token"),
            header_name=credentials.get("headerName") or "X-API-Key",
        )


@dataclass(frozen=True)
class Endpoint:
    """A SPARQL endpoint descriptor, immutable for the duration of a probe run."""

    id: str
    url: str
    name: str | None = None
    auth: EndpointAuth | None = None

    @property
    def label(self) -> str:
        return self.name or self.url

    def headers(self) -> dict[str, str]:
        return self.auth.headers() if self.auth else {}

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "url": self.url}
        if self.name:
            result["name"] = self.name
        if self.auth and self.auth.type != "none":
            result["auth"] = self.auth.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Endpoint:
        return cls(
            id=data["id"],
            url=data["url"],
            name=data.get("name"),
            auth=EndpointAuth.from_dict(data.get("auth")),
        )


@dataclass(frozen=True)
class DetectedLanguage:
    """One row of the language census."""

    lang: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"lang": self.lang, "count": self.count}


@dataclass(frozen=True)
class RelationshipSupport:
    """Which SKOS relationships occur on at least one concept."""

    in_scheme: bool = False
    top_concept_of: bool = False
    has_top_concept: bool = False
    broader: bool = False
    narrower: bool = False
    broader_transitive: bool = False
    narrower_transitive: bool = False

    # attribute -> serialized key, also the variable name in the EXISTS query
    KEYS = {
        "in_scheme": "hasInScheme",
        "top_concept_of": "hasTopConceptOf",
        "has_top_concept": "hasHasTopConcept",
        "broader": "hasBroader",
        "narrower": "hasNarrower",
        "broader_transitive": "hasBroaderTransitive",
        "narrower_transitive": "hasNarrowerTransitive",
    }

    @property
    def available(self) -> int:
        return sum(getattr(self, name) for name in self.KEYS)

    def to_dict(self) -> dict[str, bool]:
        return {key: getattr(self, name) for name, key in self.KEYS.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RelationshipSupport:
        return cls(**{name: bool(data.get(key)) for name, key in cls.KEYS.items()})


@dataclass(frozen=True)
class EndpointAnalysis:
    """Snapshot produced by one complete analysis run.

    Never updated field by field: a re-analysis replaces the whole snapshot.

    Fields after ``languages`` describe the vocabulary itself. They come from
    optional steps and are None when the step was skipped or failed.
    ``skos_graph_uris`` is None when there were too many SKOS graphs to list.
    ``label_predicates`` maps a resource kind (concept, scheme, collection)
    to the label predicate types found on it.
    """

    supports_named_graphs: GraphSupport
    graph_count: int | None
    graph_count_exact: bool
    query_method: QueryMethod
    has_duplicate_triples: bool | None
    languages: tuple[DetectedLanguage, ...] = ()
    skos_graph_count: int | None = None
    skos_graph_uris: tuple[str, ...] | None = None
    total_concepts: int | None = None
    relationships: RelationshipSupport | None = None
    scheme_count: int | None = None
    scheme_uris: tuple[str, ...] = ()
    schemes_limited: bool = False
    label_predicates: dict[str, tuple[str, ...]] | None = None
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def language_count(self, lang: str) -> int | None:
        """Return the census count for a language tag, or None if not detected."""
        for detected in self.languages:
            if detected.lang == lang:
                return detected.count
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys. Optional results that are None are left out."""
        result: dict[str, Any] = {
            "supportsNamedGraphs": self.supports_named_graphs.to_json(),
            "graphCount": self.graph_count,
            "graphCountExact": self.graph_count_exact,
            "queryMethod": self.query_method.value,
            "hasDuplicateTriples": self.has_duplicate_triples,
            "languages": [lang.to_dict() for lang in self.languages],
        }
        if self.skos_graph_count is not None:
            result["skosGraphCount"] = self.skos_graph_count
            result["skosGraphUris"] = list(self.skos_graph_uris) if self.skos_graph_uris is not None else None
        if self.total_concepts is not None:
            result["totalConcepts"] = self.total_concepts
        if self.relationships is not None:
            result["relationships"] = self.relationships.to_dict()
        if self.scheme_count is not None:
            result["schemeUris"] = list(self.scheme_uris)
            result["schemeCount"] = self.scheme_count
            result["schemesLimited"] = self.schemes_limited
        if self.label_predicates is not None:
            result["labelPredicates"] = {
                kind: {predicate: True for predicate in predicates}
                for kind, predicates in self.label_predicates.items()
            }
        result["analyzedAt"] = self.analyzed_at.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EndpointAnalysis:
        analyzed_at = data.get("analyzedAt")
        skos_graph_uris = data.get("skosGraphUris")
        relationships = data.get("relationships")
        label_predicates = data.get("labelPredicates")
        return cls(
            supports_named_graphs=GraphSupport.from_json(data.get("supportsNamedGraphs")),
            graph_count=data.get("graphCount"),
            graph_count_exact=data.get("graphCountExact", True),
            query_method=QueryMethod(data.get("queryMethod", QueryMethod.NONE.value)),
            has_duplicate_triples=data.get("hasDuplicateTriples"),
            languages=tuple(
                DetectedLanguage(lang=item["lang"], count=int(item.get("count", 0)))
                for item in data.get("languages") or []
            ),
            skos_graph_count=data.get("skosGraphCount"),
            skos_graph_uris=tuple(skos_graph_uris) if skos_graph_uris is not None else None,
            total_concepts=data.get("totalConcepts"),
            relationships=RelationshipSupport.from_dict(relationships) if relationships is not None else None,
            scheme_count=data.get("schemeCount"),
            scheme_uris=tuple(data.get("schemeUris") or ()),
            schemes_limited=bool(data.get("schemesLimited", False)),
            label_predicates=(
                {
                    kind: tuple(predicate for predicate, present in predicates.items() if present)
                    for kind, predicates in label_predicates.items()
                }
                if label_predicates is not None
                else None
            ),
            analyzed_at=(
                datetime.fromisoformat(analyzed_at) if analyzed_at else datetime.now(timezone.utc)
            ),
        )


@dataclass(frozen=True)
class AnalysisLogEntry:
    message: str
    status: LogStatus = LogStatus.PENDING

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "status": self.status.value}


@dataclass(frozen=True)
class LanguagePriorityList:
    """User-ordered language preference for one endpoint.

    May contain tags the latest census no longer reports; those are kept.
    """

    languages: tuple[str, ...] = ()
    current_override: str | None = None

    def __post_init__(self):
        # Normalize to a duplicate-free tuple, first occurrence wins
        object.__setattr__(self, "languages", tuple(dict.fromkeys(self.languages)))

    def __len__(self) -> int:
        return len(self.languages)

    def __iter__(self):
        return iter(self.languages)

    def __contains__(self, lang: object) -> bool:
        return lang in self.languages

    @property
    def top(self) -> str | None:
        """Return the effective highest-priority tag (override wins)."""
        if self.current_override:
            return self.current_override
        return self.languages[0] if self.languages else None

    def with_languages(self, languages) -> LanguagePriorityList:
        return replace(self, languages=tuple(languages))

    def with_override(self, lang: str | None) -> LanguagePriorityList:
        return replace(self, current_override=lang or None)

    def to_dict(self) -> dict[str, Any]:
        return {"languages": list(self.languages), "currentOverride": self.current_override}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> LanguagePriorityList:
        if not data:
            return cls()
        return cls(
            languages=tuple(data.get("languages") or ()),
            current_override=data.get("currentOverride"),
        )


@dataclass(frozen=True)
class LabelValue:
    """A literal value of a label property, optionally language-tagged."""

    text: str
    lang: str | None = None
    datatype: str | None = None

    def __post_init__(self):
        # SPARQL JSON reports untagged literals with lang "" in some stores
        if self.lang == "":
            object.__setattr__(self, "lang", None)


@dataclass(frozen=True)
class TypedLabel:
    """A label value together with the predicate it came from."""

    value: LabelValue
    type: str  # prefLabel, xlPrefLabel, dctTitle, dcTitle, rdfsLabel
