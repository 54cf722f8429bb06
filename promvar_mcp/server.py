from __future__ import annotations

from typing import Any, Dict, List, Annotated, Optional, Union

from fastmcp import FastMCP

from promvar_mcp.classifier import classify
from promvar_mcp.config import ConfigManager
from promvar_mcp.errors import PrometheusAPIError, UnknownResultTypeError
from promvar_mcp.models import TimeRange
from promvar_mcp.prom_client import PrometheusRestClient
from promvar_mcp.resolver import VariableQueryResolver
from loguru import logger
import httpx
import time

app = FastMCP("promvar-mcp")


async def run_variable_query(cfg: ConfigManager, query: str, start: Optional[float], end: Optional[float],
                             scoped_vars: Optional[Dict[str, Union[str, List[str]]]] = None,
                             transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, Any]:
    if (start is None) != (end is None):
        return {"error": "start 与 end 必须同时提供或同时省略"}
    if start is not None and end is not None:
        if end < start:
            return {"error": "end 不能早于 start"}
        tr = TimeRange(start=start, end=end)
    else:
        tr = TimeRange.default()
    async with PrometheusRestClient.from_config(cfg.global_config.prometheusConfig, transport=transport) as client:
        resolver = VariableQueryResolver(client)
        try:
            items = await resolver.resolve(query, tr, scoped_vars=scoped_vars)
        except (httpx.HTTPError, PrometheusAPIError, UnknownResultTypeError) as e:
            return {"error": f"变量查询失败: {e}"}
    return {"query": query, "start": tr.start, "end": tr.end, "items": [i.model_dump() for i in items]}


@app.tool()
async def resolve_variable_query(
    query: Annotated[str, "模板变量查询，如 label_values(up, job)、metrics(node_.*)、query_result(count(up))、label_names() 或序列选择器"],
    start: Annotated[Optional[float], "时间范围起点(unix 秒)，省略则为最近 6 小时"] = None,
    end: Annotated[Optional[float], "时间范围终点(unix 秒)"] = None,
    scoped_vars: Annotated[Optional[Dict[str, Union[str, List[str]]]], "变量替换上下文，如 {'job': 'api'} 或 {'job': ['a','b']}"] = None,
) -> Dict[str, Any]:
    """解析模板变量查询，返回 {text, expandable} 候选项列表。"""
    logger.info(f"调用 resolve_variable_query start={start} end={end} query={query[:120]}")
    return await run_variable_query(ConfigManager.load(), query, start, end, scoped_vars)


@app.tool()
def classify_variable_query(query: Annotated[str, "模板变量查询"]) -> Dict[str, Any]:
    """返回变量查询被识别成的形式，不访问 Prometheus。"""
    form = classify(query)
    logger.info(f"调用 classify_variable_query kind={form.kind if form else None}")
    return form.model_dump() if form else {"kind": None}


@app.tool()
def current_timestamp() -> Dict[str, int]:
    """获取当前 Unix 时间戳(秒)"""
    ts = int(time.time())
    logger.info(f"调用 current_timestamp now={ts}")
    return {"timestamp": ts}


def main() -> None:
    cfg = ConfigManager.load()
    port = cfg.global_config.serverPort or 7000
    logger.info(f"启动 promvar-mcp 服务器 port={port}")
    app.run(transport="streamable-http", port=port)


if __name__ == "__main__":
    main()
