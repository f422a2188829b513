"""Monitoring services: price comparison, alert evaluation and notification."""

from .price_comparator import ComparisonResult, KeyedLock, PriceComparator
from .alert_evaluator import AlertEvaluator
from .notification_service import DispatchResult, NotificationDispatcher, build_message
from .monitor_service import MonitorService, ProductOutcome

__all__ = [
    "AlertEvaluator",
    "ComparisonResult",
    "DispatchResult",
    "KeyedLock",
    "MonitorService",
    "NotificationDispatcher",
    "PriceComparator",
    "ProductOutcome",
    "build_message",
]
