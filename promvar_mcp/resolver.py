from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from loguru import logger

from promvar_mcp.classifier import classify
from promvar_mcp.decoders import (
    decode_label_values,
    decode_metric_names,
    decode_query_result,
    decode_series_label_values,
    decode_series_names,
)
from promvar_mcp.errors import UnknownResultTypeError
from promvar_mcp.models import (
    FreeformSeriesSelector,
    LabelNamesAll,
    LabelNamesFiltered,
    LabelValues,
    MetadataRequest,
    MetricNames,
    QueryResult,
    ResultItem,
    TimeRange,
)
from promvar_mcp.utils import ScopedVars, interpolate_variables, time_range_params


class PrometheusDatasource(Protocol):
    async def metadata_request(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]: ...

    async def get_series_labels(self, selector: str, extra_labels: Sequence[str],
                                time_range: Optional[TimeRange] = None) -> List[str]: ...

    async def get_tag_keys(self, filters: Sequence[Mapping[str, str]] = (),
                           time_range: Optional[TimeRange] = None) -> List[ResultItem]: ...

    def has_labels_match_api_support(self) -> bool: ...

    def get_original_metric_name(self, labels: Mapping[str, str]) -> str: ...


# ---- label_values 的两种取值方式 ----

class MatchParamLabelValues:
    """/api/v1/label/<label>/values，指标通过 match[] 过滤。"""

    def build_request(self, form: LabelValues, tr: TimeRange) -> MetadataRequest:
        params = time_range_params(tr)
        if form.metric:
            params = {"match[]": form.metric, **params}
        return MetadataRequest(path=f"/api/v1/label/{form.label}/values", params=params)

    def decode(self, form: LabelValues, body: Dict[str, Any]) -> List[ResultItem]:
        return decode_label_values(body)


class SeriesDerivedLabelValues:
    """后端不支持 match[] 时，从 /api/v1/series 的结果中提取标签取值。"""

    def __init__(self, drop_empty: bool = True):
        self.drop_empty = drop_empty

    def build_request(self, form: LabelValues, tr: TimeRange) -> MetadataRequest:
        if not form.metric:
            return MatchParamLabelValues().build_request(form, tr)
        return MetadataRequest(path="/api/v1/series", params={"match[]": form.metric, **time_range_params(tr)})

    def decode(self, form: LabelValues, body: Dict[str, Any]) -> List[ResultItem]:
        if not form.metric:
            return decode_label_values(body)
        return decode_series_label_values(body, form.label, drop_empty=self.drop_empty)


def select_label_values_strategy(labels_match_api_support: bool):
    return MatchParamLabelValues() if labels_match_api_support else SeriesDerivedLabelValues()


class VariableQueryResolver:
    """解析模板变量查询并返回下拉候选项。"""

    def __init__(self, datasource: PrometheusDatasource, label_values_strategy=None):
        self.datasource = datasource
        self.label_values_strategy = label_values_strategy or select_label_values_strategy(
            datasource.has_labels_match_api_support()
        )

    async def resolve(self, query: str, time_range: Optional[TimeRange] = None,
                      scoped_vars: Optional[ScopedVars] = None) -> List[ResultItem]:
        tr = time_range or TimeRange.default()
        q = interpolate_variables(query, scoped_vars)
        form = classify(q)
        if form is None:
            return []
        logger.info(f"解析变量查询 kind={form.kind} start={tr.start} end={tr.end} query={q[:120]}")
        if isinstance(form, LabelNamesFiltered):
            names = await self.datasource.get_series_labels(form.selector, [], time_range=tr)
            return [ResultItem(text=name) for name in names]
        if isinstance(form, LabelNamesAll):
            return await self.datasource.get_tag_keys(filters=[], time_range=tr)
        if isinstance(form, LabelValues):
            return await self.label_values_query(form, tr)
        if isinstance(form, MetricNames):
            return await self.metric_name_query(form, tr)
        if isinstance(form, QueryResult):
            return await self.query_result_query(form)
        if isinstance(form, FreeformSeriesSelector):
            return await self.metric_name_and_labels_query(form, tr)
        raise TypeError(f"Unhandled query form: {form!r}")

    async def _request(self, req: MetadataRequest) -> Dict[str, Any]:
        return await self.datasource.metadata_request(req.path, dict(req.params))

    async def label_values_query(self, form: LabelValues, tr: TimeRange) -> List[ResultItem]:
        strategy = self.label_values_strategy
        body = await self._request(strategy.build_request(form, tr))
        return strategy.decode(form, body)

    async def metric_name_query(self, form: MetricNames, tr: TimeRange) -> List[ResultItem]:
        req = MetadataRequest(path="/api/v1/label/__name__/values", params=time_range_params(tr))
        return decode_metric_names(await self._request(req), form.pattern)

    async def query_result_query(self, form: QueryResult) -> List[ResultItem]:
        req = MetadataRequest(path="/api/v1/query", params={"query": form.query})
        body = await self._request(req)
        try:
            return decode_query_result(body)
        except UnknownResultTypeError:
            logger.error(f"query_result 返回未知结果类型 query={form.query[:120]}")
            raise

    async def metric_name_and_labels_query(self, form: FreeformSeriesSelector, tr: TimeRange) -> List[ResultItem]:
        req = MetadataRequest(path="/api/v1/series", params={"match[]": form.query, **time_range_params(tr)})
        return decode_series_names(await self._request(req), self.datasource.get_original_metric_name)
