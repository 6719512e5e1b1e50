"""Monitoring configuration for the game."""
from prometheus_client import Counter, Histogram, start_http_server

# Session metrics
sessions_started = Counter(
    "spellrush_sessions_started_total",
    "Total number of game sessions started",
)

sessions_ended = Counter(
    "spellrush_sessions_ended_total",
    "Total number of game sessions ended",
    ["reason"],  # game_over, quit
)

# Round metrics
rounds_resolved = Counter(
    "spellrush_rounds_total",
    "Total number of rounds resolved",
    ["outcome"],  # success, failure, timeout
)

level_ups = Counter(
    "spellrush_level_ups_total",
    "Total number of level-up transitions",
)

response_time = Histogram(
    "spellrush_response_time_seconds",
    "Time from obstacle start to a correct submission",
    buckets=[0.5, 1.0, 2.0, 3.0, 4.0, 5.0],
)

points_awarded = Counter(
    "spellrush_points_total",
    "Total number of points awarded",
)

# Error metrics
error_count = Counter(
    "spellrush_errors_total",
    "Total number of errors encountered",
    ["error_type"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
