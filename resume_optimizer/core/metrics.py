"""
Prometheus metrics for the optimization pipeline.
Served in text exposition format by the /metrics endpoint.
"""
from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

OPTIMIZATION_RUNS = Counter(
    "optimization_runs_total",
    "Optimization runs by terminal outcome",
    ["outcome"],
)

OPTIMIZATION_STEP_SECONDS = Histogram(
    "optimization_step_seconds",
    "Wall-clock duration of each pipeline step",
    ["step"],
    buckets=(0.5, 1, 2.5, 5, 10, 20, 30, 60, 120, 240),
)

OPTIMIZATION_RETRIES = Counter(
    "optimization_recovery_attempts_total",
    "Recovery passes of the optimization step",
    ["result"],
)

# Successful runs whose result could not be written to storage.
# Users still see "completed"; operators alert on this counter.
UNPERSISTED_COMPLETIONS = Counter(
    "optimization_completed_unpersisted_total",
    "Runs that completed but failed to persist the optimized resume",
)

SCORING_DEGRADED = Counter(
    "match_scoring_degraded_total",
    "Match scoring calls that fell back to the zero score",
)


def get_metrics_response() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
