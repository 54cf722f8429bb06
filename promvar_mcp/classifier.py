from __future__ import annotations

import re
from typing import Callable, Optional, Tuple

from loguru import logger

from promvar_mcp.models import (
    FreeformSeriesSelector,
    LabelNamesAll,
    LabelNamesFiltered,
    LabelValues,
    MatchedForm,
    MetricNames,
    QueryResult,
)

LABEL_NAMES_RE = re.compile(r"^label_names\(\)\s*$")
LABEL_NAMES_WITH_MATCH_RE = re.compile(r"^label_names\((.+)\)\s*$")
LABEL_VALUES_RE = re.compile(r"^label_values\((?:(.+),\s*)?([a-zA-Z_][a-zA-Z0-9_]*)\)\s*$")
METRIC_NAMES_RE = re.compile(r"^metrics\((.+)\)\s*$")
QUERY_RESULT_RE = re.compile(r"^query_result\((.+)\)\s*$")

# 不带参数时不作为序列选择器处理的保留写法
RESERVED_EMPTY_FORMS = ("label_values()", "metrics()", "query_result()")

# 按优先级排列，第一条命中即返回
RULES: Tuple[Tuple[re.Pattern, Callable[[re.Match], MatchedForm]], ...] = (
    (LABEL_NAMES_WITH_MATCH_RE, lambda m: LabelNamesFiltered(match=m.group(1))),
    (LABEL_NAMES_RE, lambda m: LabelNamesAll()),
    (LABEL_VALUES_RE, lambda m: LabelValues(label=m.group(2), metric=m.group(1) or None)),
    (METRIC_NAMES_RE, lambda m: MetricNames(pattern=m.group(1))),
    (QUERY_RESULT_RE, lambda m: QueryResult(query=m.group(1))),
)


def classify(query: str) -> Optional[MatchedForm]:
    """将变量查询归类为支持的几种形式之一；返回 None 表示结果为空。"""
    for pattern, build in RULES:
        m = pattern.match(query)
        if m:
            form = build(m)
            logger.debug(f"变量查询分类 kind={form.kind} query={query[:120]}")
            return form
    if query not in RESERVED_EMPTY_FORMS:
        logger.debug(f"按序列选择器处理 query={query[:120]}")
        return FreeformSeriesSelector(query=query)
    logger.debug(f"保留空写法，无结果 query={query}")
    return None
