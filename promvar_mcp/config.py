from __future__ import annotations

import json
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ValidationError
from loguru import logger

from promvar_mcp.utils import version_gte


class PromApplication(str, Enum):
    Prometheus = "Prometheus"
    Cortex = "Cortex"
    Mimir = "Mimir"
    Thanos = "Thanos"


# 各后端开始支持 /api/v1/label/<name>/values?match[]= 的版本
_LABELS_MATCH_MIN_VERSION = {
    PromApplication.Prometheus: "2.24.0",
    PromApplication.Cortex: "1.11.0",
    PromApplication.Thanos: "0.18.0",
}


class PrometheusConfig(BaseModel):
    baseUrl: str
    queryTimeout: Optional[str] = None
    prometheusType: Optional[PromApplication] = None
    prometheusVersion: Optional[str] = None
    # 显式配置时覆盖基于类型/版本的推断
    labelsMatchApiSupport: Optional[bool] = None

    def has_labels_match_api_support(self) -> bool:
        if self.labelsMatchApiSupport is not None:
            return self.labelsMatchApiSupport
        if self.prometheusType == PromApplication.Mimir:
            return True
        minimum = _LABELS_MATCH_MIN_VERSION.get(self.prometheusType) if self.prometheusType else None
        if minimum is None:
            return False
        return version_gte(self.prometheusVersion, minimum)


class GlobalConfig(BaseModel):
    prometheusConfig: PrometheusConfig
    serverPort: Optional[int] = Field(default=7000, description="MCP 服务监听端口")


@dataclass
class ConfigManager:
    global_config: GlobalConfig

    @property
    def base_url(self) -> str:
        return self.global_config.prometheusConfig.baseUrl

    @staticmethod
    def load(path: Optional[str] = None) -> "ConfigManager":
        cfg_path = path or os.getenv("PROMVAR_CONFIG_PATH") or os.path.abspath("config.json")
        logger.debug(f"加载配置文件: {cfg_path}")
        with open(cfg_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        try:
            gc = GlobalConfig.model_validate(raw)
        except ValidationError as e:
            logger.error(f"配置文件校验失败: {e}")
            raise RuntimeError(f"Invalid config.json: {e}")
        pcfg = gc.prometheusConfig
        logger.info(
            f"配置加载成功: promBase={pcfg.baseUrl} type={pcfg.prometheusType.value if pcfg.prometheusType else 'N/A'} "
            f"version={pcfg.prometheusVersion or 'N/A'} labelsMatch={pcfg.has_labels_match_api_support()} port={gc.serverPort}"
        )
        return ConfigManager(global_config=gc)
