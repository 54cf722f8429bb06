from __future__ import annotations

import time
from datetime import datetime
from typing import Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# 默认时间范围：最近 6 小时
DEFAULT_RANGE_SECONDS = 6 * 3600


class TimeRange(BaseModel):
    """变量查询的时间范围（Unix 秒，允许小数部分）。"""
    model_config = ConfigDict(frozen=True)

    start: float
    end: float

    @classmethod
    def from_datetimes(cls, start: datetime, end: datetime) -> "TimeRange":
        return cls(start=start.timestamp(), end=end.timestamp())

    @classmethod
    def default(cls) -> "TimeRange":
        now = time.time()
        return cls(start=now - DEFAULT_RANGE_SECONDS, end=now)


class ResultItem(BaseModel):
    text: str
    expandable: bool = False


class MetadataRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    params: Dict[str, str] = Field(default_factory=dict)


# ---- 分类结果（封闭的标签联合类型） ----

class _Form(BaseModel):
    model_config = ConfigDict(frozen=True)


class LabelNamesAll(_Form):
    kind: Literal["label_names_all"] = "label_names_all"


class LabelNamesFiltered(_Form):
    kind: Literal["label_names_filtered"] = "label_names_filtered"
    match: str

    @property
    def selector(self) -> str:
        return '{__name__=~".*' + self.match + '.*"}'


class LabelValues(_Form):
    kind: Literal["label_values"] = "label_values"
    label: str
    metric: Optional[str] = None


class MetricNames(_Form):
    kind: Literal["metric_names"] = "metric_names"
    pattern: str


class QueryResult(_Form):
    kind: Literal["query_result"] = "query_result"
    query: str


class FreeformSeriesSelector(_Form):
    kind: Literal["series_selector"] = "series_selector"
    query: str


MatchedForm = Union[
    LabelNamesAll,
    LabelNamesFiltered,
    LabelValues,
    MetricNames,
    QueryResult,
    FreeformSeriesSelector,
]
