"""Consumer-side monitoring helpers."""

from bulkspine.monitoring.timer import TimerReconciler, TimerState, format_duration

__all__ = ["TimerReconciler", "TimerState", "format_duration"]
