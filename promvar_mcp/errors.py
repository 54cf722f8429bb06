from __future__ import annotations

from typing import Any, Dict


class PrometheusAPIError(RuntimeError):
    """Prometheus 返回 status != success。"""

    def __init__(self, payload: Dict[str, Any]):
        self.payload = payload
        super().__init__(f"Prometheus error: {payload}")


class UnknownResultTypeError(ValueError):
    def __init__(self, result_type: Any):
        self.result_type = result_type
        super().__init__(f"Unknown/Unhandled result type: [{result_type}]")
