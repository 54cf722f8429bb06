from __future__ import annotations

import pytest

from promvar_mcp.errors import UnknownResultTypeError
from promvar_mcp.models import ResultItem, TimeRange
from promvar_mcp.resolver import (
    MatchParamLabelValues,
    SeriesDerivedLabelValues,
    VariableQueryResolver,
    select_label_values_strategy,
)

from conftest import FakeDatasource, ok

WINDOW = {"start": "1700000000", "end": "1700003601"}


def test_strategy_selection():
    assert isinstance(select_label_values_strategy(True), MatchParamLabelValues)
    assert isinstance(select_label_values_strategy(False), SeriesDerivedLabelValues)
    assert isinstance(VariableQueryResolver(FakeDatasource(labels_match=False)).label_values_strategy,
                      SeriesDerivedLabelValues)


@pytest.mark.asyncio
async def test_label_values_without_metric(time_range):
    ds = FakeDatasource({"/api/v1/label/job/values": ok(["a", "b"])}, labels_match=False)
    items = await VariableQueryResolver(ds).resolve("label_values(job)", time_range)
    assert items == [ResultItem(text="a"), ResultItem(text="b")]
    assert ds.requests == [("/api/v1/label/job/values", WINDOW)]


@pytest.mark.asyncio
async def test_label_values_with_match_support(time_range):
    ds = FakeDatasource({"/api/v1/label/job/values": ok(["api"])}, labels_match=True)
    items = await VariableQueryResolver(ds).resolve("label_values(up, job)", time_range)
    assert items == [ResultItem(text="api")]
    assert ds.requests == [("/api/v1/label/job/values", {"match[]": "up", **WINDOW})]


@pytest.mark.asyncio
async def test_label_values_falls_back_to_series(time_range):
    series = [{"job": "a"}, {"job": "a"}, {"job": "b"}, {"job": ""}]
    ds = FakeDatasource({"/api/v1/series": ok(series)}, labels_match=False)
    items = await VariableQueryResolver(ds).resolve("label_values(up, job)", time_range)
    assert items == [ResultItem(text="a", expandable=True), ResultItem(text="b", expandable=True)]
    assert ds.requests == [("/api/v1/series", {"match[]": "up", **WINDOW})]


@pytest.mark.asyncio
async def test_injected_strategy_overrides_capability(time_range):
    ds = FakeDatasource({"/api/v1/series": ok([{"job": "z"}])}, labels_match=True)
    resolver = VariableQueryResolver(ds, label_values_strategy=SeriesDerivedLabelValues())
    assert await resolver.resolve("label_values(up, job)", time_range) == [ResultItem(text="z", expandable=True)]


@pytest.mark.asyncio
async def test_metric_names(time_range):
    ds = FakeDatasource({"/api/v1/label/__name__/values": ok(["foobar", "baz"])})
    items = await VariableQueryResolver(ds).resolve("metrics(foo.*)", time_range)
    assert items == [ResultItem(text="foobar", expandable=True)]
    assert ds.requests == [("/api/v1/label/__name__/values", WINDOW)]


@pytest.mark.asyncio
async def test_query_result_has_no_time_window(time_range):
    ds = FakeDatasource({"/api/v1/query": ok({"resultType": "scalar", "result": [1000, "42"]})})
    items = await VariableQueryResolver(ds).resolve("query_result(count(up))", time_range)
    assert items == [ResultItem(text="42", expandable=False)]
    assert ds.requests == [("/api/v1/query", {"query": "count(up)"})]


@pytest.mark.asyncio
async def test_query_result_unknown_type_rejects(time_range):
    ds = FakeDatasource({"/api/v1/query": ok({"resultType": "matrix", "result": []})})
    with pytest.raises(UnknownResultTypeError, match="matrix"):
        await VariableQueryResolver(ds).resolve("query_result(up[5m])", time_range)


@pytest.mark.asyncio
async def test_freeform_selector(time_range):
    ds = FakeDatasource({"/api/v1/series": ok([{"__name__": "up", "job": "api"}])})
    items = await VariableQueryResolver(ds).resolve('up{job="api"}', time_range)
    assert items == [ResultItem(text='up{job="api"}', expandable=True)]
    assert ds.requests == [("/api/v1/series", {"match[]": 'up{job="api"}', **WINDOW})]


@pytest.mark.asyncio
async def test_label_names_with_match_uses_series_labels(time_range):
    ds = FakeDatasource()
    ds.series_labels = ["__name__", "job"]
    items = await VariableQueryResolver(ds).resolve("label_names(node)", time_range)
    assert items == [ResultItem(text="__name__"), ResultItem(text="job")]
    assert ds.series_label_calls == [('{__name__=~".*node.*"}', [], time_range)]
    assert ds.requests == []


@pytest.mark.asyncio
async def test_label_names_bare_uses_tag_keys(time_range):
    ds = FakeDatasource()
    ds.tag_keys = [ResultItem(text="job")]
    assert await VariableQueryResolver(ds).resolve("label_names()", time_range) == [ResultItem(text="job")]
    assert ds.tag_key_calls == [([], time_range)]


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["label_values()", "metrics()", "query_result()"])
async def test_reserved_forms_resolve_empty_without_request(query, time_range):
    ds = FakeDatasource()
    assert await VariableQueryResolver(ds).resolve(query, time_range) == []
    assert ds.requests == []


@pytest.mark.asyncio
async def test_scoped_vars_are_interpolated(time_range):
    ds = FakeDatasource({"/api/v1/label/instance/values": ok(["i1"])}, labels_match=True)
    await VariableQueryResolver(ds).resolve('label_values(up{job="$job"}, instance)', time_range,
                                            scoped_vars={"job": "api"})
    assert ds.requests[0][1]["match[]"] == 'up{job="api"}'


@pytest.mark.asyncio
async def test_multi_value_variable_sends_escaped_match(time_range):
    ds = FakeDatasource({"/api/v1/label/job/values": ok(["node"])}, labels_match=True)
    await VariableQueryResolver(ds).resolve('label_values(up{instance=~"$inst"}, job)', time_range,
                                            scoped_vars={"inst": ["10.0.0.1:9100", "10.0.0.2:9100"]})
    assert ds.requests == [("/api/v1/label/job/values", {
        "match[]": r'up{instance=~"(10\\.0\\.0\\.1:9100|10\\.0\\.0\\.2:9100)"}', **WINDOW,
    })]


@pytest.mark.asyncio
async def test_transport_failure_propagates(time_range):
    class Boom(FakeDatasource):
        async def metadata_request(self, path, params=None):
            raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        await VariableQueryResolver(Boom()).resolve("metrics(x)", time_range)


@pytest.mark.asyncio
async def test_resolution_is_idempotent(time_range):
    ds = FakeDatasource({"/api/v1/label/__name__/values": ok(["a_total", "b_total", "c"])})
    resolver = VariableQueryResolver(ds)
    first = await resolver.resolve("metrics(_total$)", time_range)
    second = await resolver.resolve("metrics(_total$)", time_range)
    assert first == second == [ResultItem(text="a_total", expandable=True), ResultItem(text="b_total", expandable=True)]


@pytest.mark.asyncio
async def test_default_time_range_is_used():
    ds = FakeDatasource({"/api/v1/label/__name__/values": ok([])})
    assert await VariableQueryResolver(ds).resolve("metrics(.*)") == []
    params = ds.requests[0][1]
    assert int(params["end"]) - int(params["start"]) in (6 * 3600, 6 * 3600 + 1)
