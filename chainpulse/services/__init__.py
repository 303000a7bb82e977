"""Service layer."""
from .auxiliary_service import AuxiliaryService
from .cache import AggregationCache, CacheView
from .market import MarketService
from .reconciler import Backoff, PatchReconciler

__all__ = [
    "AggregationCache",
    "AuxiliaryService",
    "Backoff",
    "CacheView",
    "MarketService",
    "PatchReconciler",
]
