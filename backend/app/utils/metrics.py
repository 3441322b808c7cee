"""Prometheus metrics for the plan approval workflow."""

from prometheus_client import Counter, Histogram

# Vote store metrics
vote_store_latency_ms = Histogram(
    "vote_store_latency_ms",
    "Vote store operation latency in milliseconds",
    ["operation", "outcome"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2500],
)

# Workflow metrics
plan_votes_total = Counter(
    "plan_votes_total",
    "Total plan votes by choice and outcome",
    ["vote", "outcome"],
)

plan_unlocks_total = Counter(
    "plan_unlocks_total",
    "Total plan unlock attempts by outcome",
    ["outcome"],
)

plan_state_transitions_total = Counter(
    "plan_state_transitions_total",
    "Total plan lock state transitions",
    ["from_state", "to_state"],
)


class PrometheusApprovalMetrics:
    """Prometheus-based approval metrics implementation."""

    def record_store_latency(self, operation: str, outcome: str, latency_ms: float) -> None:
        """Record vote store latency."""
        vote_store_latency_ms.labels(operation=operation, outcome=outcome).observe(latency_ms)

    def inc_vote(self, vote: str, outcome: str) -> None:
        """Increment vote counter."""
        plan_votes_total.labels(vote=vote, outcome=outcome).inc()

    def inc_unlock(self, outcome: str) -> None:
        """Increment unlock counter."""
        plan_unlocks_total.labels(outcome=outcome).inc()

    def inc_transition(self, from_state: str, to_state: str) -> None:
        """Increment state transition counter."""
        plan_state_transitions_total.labels(from_state=from_state, to_state=to_state).inc()
