"""Pytest configuration for test suite.

Ensures the project root is on ``sys.path`` so ``import promvar_mcp`` resolves
without an editable install, and provides a fake Prometheus datasource.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest


def _ensure_project_root_on_syspath() -> None:
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)


_ensure_project_root_on_syspath()

from promvar_mcp.models import ResultItem, TimeRange  # noqa: E402
from promvar_mcp.prom_client import PrometheusRestClient  # noqa: E402


class FakeDatasource:
    """Records every call and answers metadata requests from a path -> body map."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None, labels_match: bool = True):
        self.responses = responses or {}
        self.labels_match = labels_match
        self.requests: List[tuple] = []
        self.series_label_calls: List[tuple] = []
        self.tag_key_calls: List[tuple] = []
        self.series_labels: List[str] = []
        self.tag_keys: List[ResultItem] = []

    async def metadata_request(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        self.requests.append((path, dict(params or {})))
        return self.responses[path]

    async def get_series_labels(self, selector: str, extra_labels: Sequence[str],
                                time_range: Optional[TimeRange] = None) -> List[str]:
        self.series_label_calls.append((selector, list(extra_labels), time_range))
        return self.series_labels

    async def get_tag_keys(self, filters: Sequence[Mapping[str, str]] = (),
                           time_range: Optional[TimeRange] = None) -> List[ResultItem]:
        self.tag_key_calls.append((list(filters), time_range))
        return self.tag_keys

    def has_labels_match_api_support(self) -> bool:
        return self.labels_match

    def get_original_metric_name(self, labels: Mapping[str, str]) -> str:
        return PrometheusRestClient.get_original_metric_name(labels)


def ok(data: Any) -> Dict[str, Any]:
    return {"status": "success", "data": data}


@pytest.fixture
def time_range() -> TimeRange:
    return TimeRange(start=1700000000.4, end=1700003600.2)
