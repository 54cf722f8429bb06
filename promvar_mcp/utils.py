from __future__ import annotations

import math
import re
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from promvar_mcp.models import TimeRange

ScopedVars = Mapping[str, Union[str, Sequence[str]]]


def parse_duration_to_seconds(text: str | None, default: float = 30.0) -> float:
    if not text:
        return default
    t = text.strip().lower()
    try:
        if t.endswith("ms"):
            return float(t[:-2]) / 1000.0
        if t.endswith("s"):
            return float(t[:-1])
        if t.endswith("m"):
            return float(t[:-1]) * 60.0
        if t.endswith("h"):
            return float(t[:-1]) * 3600.0
        if t.endswith("d"):
            return float(t[:-1]) * 86400.0
        return float(t)
    except ValueError:
        return default


def normalize_time_range(tr: TimeRange) -> Tuple[int, int]:
    """将时间范围转换为 Prometheus 使用的整数秒。
    start 向下取整，end 向上取整，保证窗口完整覆盖请求范围。"""
    return math.floor(tr.start), math.ceil(tr.end)


def time_range_params(tr: TimeRange) -> Dict[str, str]:
    start, end = normalize_time_range(tr)
    return {"start": str(start), "end": str(end)}


def render_labels(labels: Mapping[str, str]) -> str:
    """按插入顺序渲染为 {k="v",...}，空集合渲染为 {}。"""
    parts = [f'{k}="{v}"' for k, v in labels.items()]
    return "{" + ",".join(parts) + "}"


def format_js_number(value: float) -> str:
    """按 JavaScript 数字的方式输出：整数不带 .0。"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ---- 模板变量替换 ----
_VARIABLE_RE = re.compile(r"\$(\w+)|\$\{(\w+)(?::\w+)?\}|\[\[(\w+)\]\]")
_PROMQL_REGEX_SPECIAL_RE = re.compile(r"[$^*{}\[\]'+?.()|]")


def escape_promql_regex(value: str) -> str:
    """转义正则元字符，结果可直接放入 PromQL 双引号字符串（反斜杠需要双写）。"""
    value = value.replace("\\", "\\" * 4)
    return _PROMQL_REGEX_SPECIAL_RE.sub(lambda m: "\\\\" + m.group(0), value)


def _format_variable_value(value: Union[str, Sequence[str]]) -> str:
    if isinstance(value, str):
        return value
    values: List[str] = [escape_promql_regex(str(v)) for v in value]
    if len(values) == 1:
        return values[0]
    return "(" + "|".join(values) + ")"


def interpolate_variables(query: str, scoped_vars: Optional[ScopedVars]) -> str:
    """替换 $var / ${var} / [[var]]。多值变量展开为正则分支 (a|b)，未知变量保持原样。"""
    if not scoped_vars:
        return query

    def _replace(m: re.Match) -> str:
        name = m.group(1) or m.group(2) or m.group(3)
        if name not in scoped_vars:
            return m.group(0)
        return _format_variable_value(scoped_vars[name])

    return _VARIABLE_RE.sub(_replace, query)


def parse_version(text: str | None) -> Tuple[int, ...]:
    """解析 2.24.0 / v0.18.1-rc.0 之类的版本号，无法解析时返回空元组。"""
    if not text:
        return ()
    m = re.match(r"^v?(\d+(?:\.\d+)*)", text.strip())
    if not m:
        return ()
    return tuple(int(p) for p in m.group(1).split("."))


def version_gte(version: str | None, minimum: str) -> bool:
    v = parse_version(version)
    if not v:
        return False
    want = parse_version(minimum)
    width = max(len(v), len(want))
    return v + (0,) * (width - len(v)) >= want + (0,) * (width - len(want))
