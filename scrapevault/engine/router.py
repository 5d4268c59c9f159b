"""Pick the acquisition strategy for a request and contain its failures."""

from __future__ import annotations

from enum import Enum
from typing import Protocol

import structlog

from ..models import Record, ScrapeRequest
from .fetcher import STATIC_FAILURE_TITLE


class StrategyKind(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


class AcquisitionStrategy(Protocol):
    def acquire(self, request: ScrapeRequest) -> Record: ...


class AcquisitionRouter:
    """Dispatch on ``use_dynamic_rendering``; never lets an exception escape."""

    def __init__(
        self,
        static: AcquisitionStrategy,
        dynamic: AcquisitionStrategy,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.static = static
        self.dynamic = dynamic
        self.logger = logger or structlog.get_logger("scrapevault.router")

    @staticmethod
    def kind_for(request: ScrapeRequest) -> StrategyKind:
        return StrategyKind.DYNAMIC if request.use_dynamic_rendering else StrategyKind.STATIC

    def acquire(self, request: ScrapeRequest) -> Record:
        kind = self.kind_for(request)
        strategy = self.dynamic if kind is StrategyKind.DYNAMIC else self.static
        try:
            return strategy.acquire(request)
        except Exception as exc:  # noqa: BLE001
            self.logger.error(
                "acquisition_crashed", url=request.url, strategy=kind.value, error=str(exc)
            )
            return Record.degraded(
                request.url,
                STATIC_FAILURE_TITLE,
                f"Failed to scrape URL: {exc}",
                is_dynamic=request.use_dynamic_rendering,
                error=str(exc),
                transient=True,
            )

    def close(self) -> None:
        for strategy in (self.static, self.dynamic):
            close = getattr(strategy, "close", None)
            if callable(close):
                close()


__all__ = ["AcquisitionRouter", "AcquisitionStrategy", "StrategyKind"]
