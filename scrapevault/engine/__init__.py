"""Engine components orchestrating acquire → extract → dedup → export."""

from .browser import DynamicRenderStrategy
from .dedup import DedupGate
from .extractor import Extractor
from .fetcher import FetchResponse, StaticFetchStrategy
from .fingerprint import compute_fingerprint
from .router import AcquisitionRouter, StrategyKind
from .thread_pool import ThreadPoolManager

__all__ = [
    "AcquisitionRouter",
    "DedupGate",
    "DynamicRenderStrategy",
    "Extractor",
    "FetchResponse",
    "StaticFetchStrategy",
    "StrategyKind",
    "ThreadPoolManager",
    "compute_fingerprint",
]
