"""Prometheus metrics for SeaWatch."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Analysis pipeline
analysis_requests_total = Counter(
    "seawatch_analysis_requests_total",
    "Total analysis requests by outcome",
    ["result"],
)

analysis_duration_seconds = Histogram(
    "seawatch_analysis_duration_seconds",
    "Time spent computing a fresh analysis",
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

analysis_degradations_total = Counter(
    "seawatch_analysis_degradations_total",
    "Confidence caps applied to analyses",
    ["reason"],
)

# LLM
llm_requests_total = Counter(
    "seawatch_llm_requests_total",
    "Total text generation requests",
    ["success"],
)

llm_available = Gauge(
    "seawatch_llm_available",
    "Whether the text generation service is reachable (0 or 1)",
)

# Simulator
simulator_events_total = Counter(
    "seawatch_simulator_events_total",
    "Synthetic anomaly events written by the simulator",
    ["event_type", "severity"],
)

simulator_samples_total = Counter(
    "seawatch_simulator_samples_total",
    "Telemetry samples written by the simulator",
    ["vessel_id"],
)
