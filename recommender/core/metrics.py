"""
Engine-level Prometheus metrics.
HTTP metrics come from prometheus-fastapi-instrumentator; these cover what
happens inside a request: strategy outcomes, cache rebuilds, degraded serving.
All collectors register on the default registry exposed at /metrics.
"""
from prometheus_client import Counter, Gauge, Histogram

strategy_outcomes_total = Counter(
    "recommender_strategy_outcomes_total",
    "Strategy executions by outcome (ok, timeout, circuit_open, error, deadline)",
    ["strategy", "outcome"],
)

strategy_latency_seconds = Histogram(
    "recommender_strategy_latency_seconds",
    "Wall time of a single strategy execution",
    ["strategy"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.2, 0.5),
)

strategy_circuit_state = Gauge(
    "recommender_strategy_circuit_open",
    "1 while the strategy's circuit breaker is open or half-open",
    ["breaker"],
)

cache_rebuilds_total = Counter(
    "recommender_cache_rebuilds_total",
    "Derived-state recomputations",
    ["cache"],
)

non_personalized_total = Counter(
    "recommender_non_personalized_total",
    "Requests served from the trending-only path",
    ["reason"],
)


def record_strategy_outcome(strategy: str, outcome: str, elapsed_sec: float) -> None:
    strategy_outcomes_total.labels(strategy=strategy, outcome=outcome).inc()
    strategy_latency_seconds.labels(strategy=strategy).observe(elapsed_sec)
