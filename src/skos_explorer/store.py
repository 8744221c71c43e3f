"""
Persisted per-endpoint state.

Holds, per endpoint id, the endpoint descriptor, the latest analysis snapshot
and the language priority list, in one JSON file. The file is read once on
construction and rewritten on every change. Read and write failures are
logged and the store carries on in memory.
"""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from .models import Endpoint, EndpointAnalysis, LanguagePriorityList

logger = logging.getLogger(__name__)


class EndpointStore:
    """JSON-file backed store for endpoints, analyses and language priorities."""

    def __init__(self, path: Path | None = None):
        """Initialize the store.

        Args:
            path: JSON file to persist to. None keeps everything in memory.
        """
        self.path = path
        self._lock = threading.RLock()
        self._entries: dict[str, dict[str, Any]] = {}
        self._load()

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            entries = data.get("endpoints", {})
            if not isinstance(entries, dict):
                raise ValueError("'endpoints' is not an object")
            self._entries = entries
            logger.debug("Loaded %d endpoints from %s", len(entries), self.path)
        except (json.JSONDecodeError, OSError, ValueError, AttributeError) as e:
            logger.warning("Failed to load endpoint store %s, starting empty: %s", self.path, e)
            self._entries = {}

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump({"endpoints": self._entries}, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.warning("Failed to save endpoint store %s: %s", self.path, e)

    # Endpoints

    def _endpoint_from(self, endpoint_id: str, data: Any) -> Endpoint | None:
        try:
            return Endpoint.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Ignoring unreadable endpoint %s: %s", endpoint_id, e)
            return None

    def list_endpoints(self) -> list[Endpoint]:
        with self._lock:
            entries = [
                (endpoint_id, entry["endpoint"])
                for endpoint_id, entry in self._entries.items()
                if isinstance(entry, dict) and "endpoint" in entry
            ]
        endpoints = (self._endpoint_from(endpoint_id, data) for endpoint_id, data in entries)
        return [endpoint for endpoint in endpoints if endpoint is not None]

    def _field(self, endpoint_id: str, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(endpoint_id)
            return entry.get(key) if isinstance(entry, dict) else None

    def get_endpoint(self, endpoint_id: str) -> Endpoint | None:
        data = self._field(endpoint_id, "endpoint")
        return self._endpoint_from(endpoint_id, data) if data else None

    def find_endpoint(self, target: str) -> Endpoint | None:
        """Find an endpoint by id, then by name, then by URL."""
        endpoint = self.get_endpoint(target)
        if endpoint is not None:
            return endpoint
        for candidate in self.list_endpoints():
            if candidate.name == target or candidate.url == target:
                return candidate
        return None

    def save_endpoint(self, endpoint: Endpoint) -> None:
        with self._lock:
            self._entries.setdefault(endpoint.id, {})["endpoint"] = endpoint.to_dict()
            self._save()

    def remove_endpoint(self, endpoint_id: str) -> bool:
        with self._lock:
            if self._entries.pop(endpoint_id, None) is None:
                return False
            self._save()
            return True

    # Analysis snapshots

    def get_analysis(self, endpoint_id: str) -> EndpointAnalysis | None:
        data = self._field(endpoint_id, "analysis")
        if not data:
            return None
        try:
            return EndpointAnalysis.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Ignoring unreadable analysis for %s: %s", endpoint_id, e)
            return None

    def save_analysis(self, endpoint_id: str, analysis: EndpointAnalysis) -> None:
        with self._lock:
            self._entries.setdefault(endpoint_id, {})["analysis"] = analysis.to_dict()
            self._save()

    # Language priorities

    def get_priorities(self, endpoint_id: str) -> LanguagePriorityList:
        data = self._field(endpoint_id, "languagePriorities")
        try:
            return LanguagePriorityList.from_dict(data)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Ignoring unreadable language priorities for %s: %s", endpoint_id, e)
            return LanguagePriorityList()

    def save_priorities(self, endpoint_id: str, priorities: LanguagePriorityList) -> None:
        with self._lock:
            self._entries.setdefault(endpoint_id, {})["languagePriorities"] = priorities.to_dict()
            self._save()

    def save_result(
        self, endpoint_id: str, analysis: EndpointAnalysis, priorities: LanguagePriorityList
    ) -> None:
        """Store an analysis and its merged priorities in a single write."""
        with self._lock:
            entry = self._entries.setdefault(endpoint_id, {})
            entry["analysis"] = analysis.to_dict()
            entry["languagePriorities"] = priorities.to_dict()
            self._save()
