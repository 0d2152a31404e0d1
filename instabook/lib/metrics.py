"""
Prometheus-compatible counters for the booking engine.

Tracks:
- SMS sends (by carrier, template, status)
- Instant booking outcomes (created, rejected by reason, failed)

Usage:
    from instabook.lib.metrics import get_metrics_collector

    metrics = get_metrics_collector()
    metrics.increment_sms(carrier="beeline", template="new_booking", status="sent")
    metrics.increment_bookings(outcome="created")

    prometheus_output = metrics.export_prometheus()
"""

from typing import Dict, Tuple
from threading import Lock


LabelKey = Tuple[str, Tuple[Tuple[str, str], ...]]


class MetricsCollector:
    """
    Prometheus-style counter registry.

    Counters:
    - sms_messages_total: SMS send attempts (labels: carrier, template, status)
    - bookings_total: Instant booking requests (labels: outcome)

    Thread-safe for concurrent increments.
    """

    HELP_TEXTS = {
        "sms_messages_total": "Total number of SMS send attempts",
        "bookings_total": "Total number of instant booking requests by outcome",
    }

    def __init__(self):
        self._lock = Lock()
        self._counters: Dict[LabelKey, int] = {}

    def _get_counter_key(self, metric_name: str, labels: Dict[str, str]) -> LabelKey:
        """Generate unique key for counter with sorted labels."""
        return (metric_name, tuple(sorted(labels.items())))

    def _increment(self, metric_name: str, labels: Dict[str, str], amount: int = 1):
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def increment_sms(self, carrier: str, template: str, status: str, amount: int = 1):
        """
        Count an SMS send attempt.

        Args:
            carrier: Carrier key or "unknown"
            template: Template ID
            status: sent or failed
            amount: Increment amount
        """
        labels = {
            "carrier": carrier.lower(),
            "template": template.lower(),
            "status": status.lower(),
        }
        self._increment("sms_messages_total", labels, amount)

    def increment_bookings(self, outcome: str, amount: int = 1):
        """Count an instant booking request by outcome (created, time_conflict, ...)."""
        self._increment("bookings_total", {"outcome": outcome.lower()}, amount)

    def export_prometheus(self) -> str:
        """
        Export all metrics in Prometheus text format.

        Returns:
            Prometheus-compatible text output
        """
        output_lines = []

        metrics_by_name: Dict[str, list] = {}
        with self._lock:
            for (metric_name, labels_tuple), value in self._counters.items():
                metrics_by_name.setdefault(metric_name, []).append((dict(labels_tuple), value))

        for metric_name in sorted(metrics_by_name):
            help_text = self.HELP_TEXTS.get(metric_name, "Counter metric")
            output_lines.append(f"# HELP {metric_name} {help_text}")
            output_lines.append(f"# TYPE {metric_name} counter")

            for labels_dict, value in sorted(metrics_by_name[metric_name], key=lambda x: str(x[0])):
                labels_str = ",".join(f'{k}="{v}"' for k, v in sorted(labels_dict.items()))
                output_lines.append(f"{metric_name}{{{labels_str}}} {value}")

            output_lines.append("")

        return "\n".join(output_lines)

    def get_counter_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        """Get current value of a specific counter."""
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    def reset_all(self):
        """Reset all counters (for testing)."""
        with self._lock:
            self._counters.clear()


# Global singleton instance
_metrics_collector: MetricsCollector | None = None
_metrics_lock = Lock()


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector singleton."""
    global _metrics_collector
    if _metrics_collector is None:
        with _metrics_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics():
    """Reset global metrics collector (for testing)."""
    with _metrics_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset_all()
