"""Prometheus metrics for pipeline runs."""

from prometheus_client import Counter, Histogram

pipeline_runs = Counter(
    "legal_research_pipeline_runs_total",
    "Pipeline runs by outcome",
    ["outcome"],
)

stage_duration = Histogram(
    "legal_research_stage_duration_seconds",
    "Duration of each agent stage",
    ["agent", "outcome"],
)
