"""Alert log projection: ordering, filtering and CSV export.

The log itself is append-only and written by whatever rule detects a
breach; this module only reads it.
"""

import csv
import io
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from fleetwatch.lib.config import AlertKind
from fleetwatch.lib.models import AlertRecord
from fleetwatch.logging import get_logger

logger = get_logger("lib.alertlog")

CSV_HEADER = "ID,Node,Type,Value,Threshold,Timestamp,Message"

ALL_KINDS = "All"


def project(raw: Mapping[str, Any] | None) -> list[AlertRecord]:
    """Turn the raw keyed log into records sorted newest first.

    Records without a timestamp sort as the oldest.
    """
    if not isinstance(raw, Mapping):
        return []

    records = []
    for record_id, value in raw.items():
        if not isinstance(value, Mapping):
            logger.warning("Skipping malformed alert record %s", record_id)
            continue
        records.append(AlertRecord.from_raw(record_id, value))

    records.sort(key=lambda record: record.timestamp or 0, reverse=True)
    return records


def filter_alerts(
    alerts: Iterable[AlertRecord], kind: AlertKind | str | None = None
) -> list[AlertRecord]:
    """Keep only alerts of the given kind; None or 'All' keeps everything."""
    if kind is None or kind == ALL_KINDS:
        return list(alerts)
    return [alert for alert in alerts if alert.kind == kind]


def format_timestamp(timestamp: int | None) -> str:
    """Render epoch milliseconds as ISO-8601 UTC, e.g. 2024-06-15T12:00:00.000Z.

    Missing or unrepresentable timestamps render as an empty string.
    """
    if not timestamp:
        return ""
    try:
        moment = datetime.fromtimestamp(timestamp / 1000, UTC)
    except (ValueError, OverflowError, OSError):
        logger.warning("Timestamp out of range: %s", timestamp)
        return ""
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _cell(value: object) -> str:
    return "" if value is None else str(value)


def _quote(message: str | None) -> str:
    escaped = (message or "").replace('"', '""')
    return f'"{escaped}"'


def _row(alert: AlertRecord) -> str:
    # Cells are quoted only when needed; the message is always quoted
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="")
    writer.writerow(
        [
            _cell(alert.id),
            _cell(alert.unit_id),
            _cell(alert.kind),
            _cell(alert.value),
            _cell(alert.threshold),
            format_timestamp(alert.timestamp),
        ]
    )
    return f"{output.getvalue()},{_quote(alert.message)}"


def to_csv(alerts: Iterable[AlertRecord]) -> str:
    """Export alerts as CSV; the message column is always quoted."""
    return CSV_HEADER + "\n" + "\n".join(_row(alert) for alert in alerts)
