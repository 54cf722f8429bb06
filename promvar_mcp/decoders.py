"""Prometheus 元数据响应到 ResultItem 列表的转换。

所有函数接收完整的响应体（{"status": ..., "data": ...}），不修改入参。
"""
from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Mapping

from promvar_mcp.errors import UnknownResultTypeError
from promvar_mcp.models import ResultItem
from promvar_mcp.utils import format_js_number, render_labels


def _data(body: Dict[str, Any]) -> Any:
    return (body or {}).get("data")


def _data_list(body: Dict[str, Any]) -> List[Any]:
    return _data(body) or []


def decode_label_values(body: Dict[str, Any]) -> List[ResultItem]:
    return [ResultItem(text=str(v)) for v in _data_list(body)]


def decode_series_label_values(body: Dict[str, Any], label: str, *, drop_empty: bool = True) -> List[ResultItem]:
    """从 /api/v1/series 返回的序列中提取某个标签的取值。
    去重并保留首次出现的顺序；缺失的标签视为空串。
    drop_empty 控制是否丢弃空串取值（默认丢弃）。"""
    seen: Dict[str, None] = {}
    for series in _data_list(body):
        value = series.get(label) or ""
        if drop_empty and value == "":
            continue
        seen.setdefault(value, None)
    return [ResultItem(text=v, expandable=True) for v in seen]


def decode_metric_names(body: Dict[str, Any], pattern: str) -> List[ResultItem]:
    r = re.compile(pattern)
    return [ResultItem(text=name, expandable=True) for name in _data_list(body) if r.search(name)]


def format_vector_sample(sample: Dict[str, Any]) -> str:
    """vector 样本 -> name{k="v",...} <value> <毫秒时间戳>"""
    metric: Mapping[str, str] = sample.get("metric") or {}
    labels = {k: v for k, v in metric.items() if k != "__name__"}
    pair = sample.get("value") or []
    ts = pair[0] if len(pair) > 0 else 0
    value = pair[1] if len(pair) > 1 else ""
    ts_ms = float(ts) * 1000 if isinstance(ts, str) else ts * 1000
    return f"{metric.get('__name__', '')}{render_labels(labels)} {value} {format_js_number(ts_ms)}"


def decode_query_result(body: Dict[str, Any]) -> List[ResultItem]:
    data = _data(body) or {}
    result_type = data.get("resultType")
    result = data.get("result")
    if result_type in ("scalar", "string"):
        # [ <unix_time>, "<value>" ]
        value = result[1] if isinstance(result, list) and len(result) > 1 else None
        return [ResultItem(text=str(value) if value else "", expandable=False)]
    elif result_type == "vector":
        return [ResultItem(text=format_vector_sample(s), expandable=True) for s in result or []]
    else:
        raise UnknownResultTypeError(result_type)


def decode_series_names(body: Dict[str, Any], formatter: Callable[[Dict[str, str]], str]) -> List[ResultItem]:
    return [ResultItem(text=formatter(series), expandable=True) for series in _data_list(body)]
