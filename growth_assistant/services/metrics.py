from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Dict, List


@dataclass
class MetricsSnapshot:
    turns_total: int
    intents: Dict[str, int]
    clarifications: int
    classifier_fallbacks: int
    history_write_failures: int
    dispatch_failures: Dict[str, int]
    quota_rejections: int
    fatal_errors: int
    onboarding_outcomes: Dict[str, int]
    avg_response_latency_ms: float = 0.0


class MetricsService:
    """Thread-safe in-process counters for the conversation pipeline."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._turns_total = 0
        self._intents: Dict[str, int] = {}
        self._clarifications = 0
        self._classifier_fallbacks = 0
        self._history_write_failures = 0
        self._dispatch_failures: Dict[str, int] = {}
        self._quota_rejections = 0
        self._fatal_errors = 0
        self._onboarding_outcomes: Dict[str, int] = {}
        self._response_latencies: List[float] = []
        self._max_latency_samples = 1000

    def record_turn(self) -> None:
        with self._lock:
            self._turns_total += 1

    def record_intent(self, intent: str) -> None:
        with self._lock:
            self._intents[intent] = self._intents.get(intent, 0) + 1

    def record_clarification(self) -> None:
        with self._lock:
            self._clarifications += 1

    def record_classifier_fallback(self) -> None:
        """Record a classifier fault that degraded to UNKNOWN."""
        with self._lock:
            self._classifier_fallbacks += 1

    def record_history_write_failure(self) -> None:
        with self._lock:
            self._history_write_failures += 1

    def record_dispatch_failure(self, intent: str) -> None:
        with self._lock:
            self._dispatch_failures[intent] = self._dispatch_failures.get(intent, 0) + 1

    def record_quota_rejection(self) -> None:
        with self._lock:
            self._quota_rejections += 1

    def record_fatal_error(self) -> None:
        with self._lock:
            self._fatal_errors += 1

    def record_onboarding(self, outcome: str) -> None:
        with self._lock:
            self._onboarding_outcomes[outcome] = self._onboarding_outcomes.get(outcome, 0) + 1

    def record_response_latency(self, latency_ms: float) -> None:
        """Record response latency in milliseconds."""
        with self._lock:
            self._response_latencies.append(latency_ms)
            # Keep only recent samples
            if len(self._response_latencies) > self._max_latency_samples:
                self._response_latencies = self._response_latencies[-self._max_latency_samples:]

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            avg_latency = (
                sum(self._response_latencies) / len(self._response_latencies)
                if self._response_latencies else 0.0
            )
            return MetricsSnapshot(
                turns_total=self._turns_total,
                intents=dict(self._intents),
                clarifications=self._clarifications,
                classifier_fallbacks=self._classifier_fallbacks,
                history_write_failures=self._history_write_failures,
                dispatch_failures=dict(self._dispatch_failures),
                quota_rejections=self._quota_rejections,
                fatal_errors=self._fatal_errors,
                onboarding_outcomes=dict(self._onboarding_outcomes),
                avg_response_latency_ms=avg_latency,
            )


_metrics_service = MetricsService()


def get_metrics_service() -> MetricsService:
    return _metrics_service
