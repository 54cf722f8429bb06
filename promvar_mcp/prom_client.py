from __future__ import annotations

import httpx
from typing import Any, Dict, List, Mapping, Optional, Sequence

from promvar_mcp.config import PrometheusConfig
from promvar_mcp.errors import PrometheusAPIError
from promvar_mcp.models import ResultItem, TimeRange
from promvar_mcp.utils import parse_duration_to_seconds, render_labels, time_range_params
from loguru import logger


def merge_selector(selector: str, extra_labels: Sequence[str]) -> str:
    """把额外的标签匹配条件（如 job="api"）并入 {...} 选择器。"""
    if not extra_labels:
        return selector
    extra = ",".join(extra_labels)
    body = selector.rstrip()
    if body.endswith("}"):
        inner = body[:-1]
        sep = "" if inner.endswith("{") else ","
        return f"{inner}{sep}{extra}}}"
    return f"{body}{{{extra}}}"


def filters_to_selector(filters: Sequence[Mapping[str, str]]) -> str:
    parts = [f'{f["key"]}{f.get("operator", "=")}"{f["value"]}"' for f in filters]
    return "{" + ",".join(parts) + "}"


class PrometheusRestClient:
    """变量查询所需的 Prometheus 元数据接口（异步）。"""

    def __init__(self, base_url: str, request_timeout: Optional[str] = None, *,
                 labels_match_api_support: bool = False,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.labels_match_api_support = labels_match_api_support
        timeout_seconds = parse_duration_to_seconds(request_timeout, 30.0)
        logger.debug(f"初始化 PrometheusRestClient base_url={self.base_url} timeout={timeout_seconds}s "
                     f"labelsMatch={labels_match_api_support} (no auth)")
        self.client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

    @classmethod
    def from_config(cls, pcfg: PrometheusConfig, **kwargs) -> "PrometheusRestClient":
        return cls(pcfg.baseUrl, request_timeout=pcfg.queryTimeout,
                   labels_match_api_support=pcfg.has_labels_match_api_support(), **kwargs)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "PrometheusRestClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def has_labels_match_api_support(self) -> bool:
        return self.labels_match_api_support

    async def metadata_request(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """GET {base_url}{path}，返回完整响应 JSON；非 2xx 或 status!=success 时抛出异常。"""
        url = f"{self.base_url}{path}"
        logger.debug(f"元数据请求 url={url} params={params}")
        try:
            r = await self.client.get(url, params=params or {})
            r.raise_for_status()
            body = r.json()
        except Exception:
            logger.exception(f"Prometheus 元数据请求失败 path={path}")
            raise
        if not isinstance(body, dict) or body.get("status") != "success":
            logger.error(f"Prometheus 返回非 success: {body}")
            raise PrometheusAPIError(body if isinstance(body, dict) else {"body": body})
        size = len(body.get("data") or [])
        logger.info(f"元数据请求完成 path={path} size={size}")
        return body

    async def get_series_labels(self, selector: str, extra_labels: Sequence[str],
                                time_range: Optional[TimeRange] = None) -> List[str]:
        """返回匹配选择器的序列上出现过的标签名（首次出现顺序）。"""
        match = merge_selector(selector, extra_labels)
        params = {"match[]": match, **time_range_params(time_range or TimeRange.default())}
        if self.labels_match_api_support:
            body = await self.metadata_request("/api/v1/labels", params)
            return [str(name) for name in body.get("data") or []]
        body = await self.metadata_request("/api/v1/series", params)
        names: Dict[str, None] = {}
        for series in body.get("data") or []:
            for name in series:
                names.setdefault(name, None)
        return list(names)

    async def get_tag_keys(self, filters: Sequence[Mapping[str, str]] = (),
                           time_range: Optional[TimeRange] = None) -> List[ResultItem]:
        params = time_range_params(time_range or TimeRange.default())
        if filters:
            params["match[]"] = filters_to_selector(filters)
        body = await self.metadata_request("/api/v1/labels", params)
        return [ResultItem(text=name) for name in sorted(str(n) for n in body.get("data") or [])]

    @staticmethod
    def get_original_metric_name(labels: Mapping[str, str]) -> str:
        rest = {k: v for k, v in labels.items() if k != "__name__"}
        return f"{labels.get('__name__', '')}{render_labels(rest)}"
