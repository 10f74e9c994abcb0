"""Service-layer helpers for the Kraxler backend."""

from .allocation import allocate_expense
from .anomaly_detection import AnomalyDetector, check_for_anomalies, summarize_anomalies
from .situations import build_invoice_context
from .vendor_history import VendorHistoryAggregator

__all__ = [
    "AnomalyDetector",
    "VendorHistoryAggregator",
    "allocate_expense",
    "build_invoice_context",
    "check_for_anomalies",
    "summarize_anomalies",
]
