"""Route access metrics for Prometheus.

Metrics are created lazily on first use. Without ``prometheus_client``
installed every recording call is a no-op.

Usage:
    ```python
    from route_access.observability import RouteAccessMetrics

    RouteAccessMetrics.record_send("comparison", "sent")
    ```
"""

from __future__ import annotations

import logging
from typing import Any

_logger = logging.getLogger(__name__)


class _RouteAccessMetricsRegistry:
    """Registry for route access Prometheus metrics."""

    def __init__(self) -> None:
        self._sends: Any = None
        self._verifications: Any = None
        self._guard_checks: Any = None
        self._initialized = False

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        try:
            from prometheus_client import Counter

            self._sends = Counter(
                "route_access_otp_sends_total",
                "Route email OTP send requests",
                ["route_key", "result"],
            )
            self._verifications = Counter(
                "route_access_otp_verifications_total",
                "Route email OTP verification attempts",
                ["route_key", "result"],
            )
            self._guard_checks = Counter(
                "route_access_guard_checks_total",
                "Route access guard checks",
                ["route_key", "result"],
            )
        except ImportError:
            _logger.debug("prometheus_client not available, metrics disabled")

        self._initialized = True

    @property
    def sends(self) -> Any:
        self._ensure_initialized()
        return self._sends

    @property
    def verifications(self) -> Any:
        self._ensure_initialized()
        return self._verifications

    @property
    def guard_checks(self) -> Any:
        self._ensure_initialized()
        return self._guard_checks


_registry = _RouteAccessMetricsRegistry()


def _inc(counter: Any, route_key: str, result: str) -> None:
    if not counter:
        return
    try:
        counter.labels(route_key=route_key, result=result).inc()
    except Exception:  # noqa: BLE001
        _logger.debug("Failed to record route access metric")


class RouteAccessMetrics:
    """Recording helpers used by the route access service.

    ``result`` is either ``"sent"`` / ``"verified"`` / ``"allowed"`` or the
    error code that ended the operation.
    """

    @staticmethod
    def record_send(route_key: str, result: str) -> None:
        _inc(_registry.sends, route_key, result)

    @staticmethod
    def record_verification(route_key: str, result: str) -> None:
        _inc(_registry.verifications, route_key, result)

    @staticmethod
    def record_guard_check(route_key: str, result: str) -> None:
        _inc(_registry.guard_checks, route_key, result)


__all__: list[str] = ["RouteAccessMetrics"]
