"""
SKOS Explorer - Capability probing for SPARQL endpoints serving SKOS vocabularies

Features:
- Connection test with classified transport errors
- Named graph detection with graph counts
- Duplicate triple detection across graphs
- Language census of concept labels
- Per-endpoint language priorities for label display
"""

from ._version import __version__
from .analysis import AnalysisRun, EndpointAnalyzer
from .errors import AnalysisAborted, ErrorCode, TransportError
from .languages import LabelResolver, merge_detected_languages, resolve_label
from .models import Endpoint, EndpointAnalysis, GraphSupport, LanguagePriorityList, LabelValue
from .sparql import SPARQLClient

__all__ = [
    "__version__",
    "AnalysisAborted",
    "AnalysisRun",
    "Endpoint",
    "EndpointAnalysis",
    "EndpointAnalyzer",
    "ErrorCode",
    "GraphSupport",
    "LabelResolver",
    "LabelValue",
    "LanguagePriorityList",
    "SPARQLClient",
    "TransportError",
    "merge_detected_languages",
    "resolve_label",
]
