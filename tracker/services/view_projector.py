"""Pure view-model derivations from a log collection.

Nothing here does I/O or reads the clock; the same logs always project to
the same output.
"""

import csv
import io
from datetime import date, datetime
from typing import Sequence

from tracker.models.schemas import AggregateStats, ChartPoint, StatCards, UsageLog

CSV_HEADER = [
    "Timestamp",
    "Model",
    "Prompt Tokens",
    "Completion Tokens",
    "Total Tokens",
    "Cost",
    "Response Time",
]

# Costs are fractions of a cent; plot them in micro-dollars
COST_SCALE = 1_000_000


def project_chart_series(logs: Sequence[UsageLog], window_size: int = 10) -> list[ChartPoint]:
    """The ``window_size`` most recent logs, oldest first for plotting."""
    if window_size <= 0:
        return []
    recent = sorted(logs, key=lambda log: log.timestamp, reverse=True)[:window_size]
    return [
        ChartPoint(
            label=log.timestamp.strftime("%H:%M"),
            timestamp=log.timestamp,
            tokens=log.total_tokens,
            scaled_cost=log.estimated_cost * COST_SCALE,
            response_time_ms=log.response_time_ms,
        )
        for log in reversed(recent)
    ]


def project_recent_activity(logs: Sequence[UsageLog], limit: int = 5) -> list[UsageLog]:
    return list(logs[:max(limit, 0)])


def serialize_csv(logs: Sequence[UsageLog]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for log in logs:
        writer.writerow([
            log.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            log.model_used,
            log.prompt_tokens,
            log.completion_tokens,
            log.total_tokens,
            f"${log.estimated_cost:.6f}",
            f"{log.response_time_ms}ms",
        ])
    return buffer.getvalue()


def export_filename(day: date) -> str:
    if isinstance(day, datetime):
        day = day.date()
    return f"token-usage-{day.isoformat()}.csv"


def project_stat_cards(stats: AggregateStats, logs: Sequence[UsageLog]) -> StatCards:
    return StatCards(
        total_tokens=f"{stats.total_tokens:,}",
        total_cost=f"${stats.total_cost:.6f}",
        total_requests=f"{stats.total_requests:,}",
        avg_response_time=f"{round(stats.avg_response_time_ms)}ms",
        loaded_logs=len(logs),
    )
