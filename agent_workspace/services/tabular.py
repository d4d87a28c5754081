"""
Tabular analysis: CSV file → line-chart spec + one-line insight.

Axis detection looks only at the first data row:
  x → first column whose value is not numeric (else the first column)
  y → first numeric column other than x (else the next column, else x)

Errors are reported in the result rather than raised, so the caller can
turn them into a user-facing answer.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path

from agent_workspace.processing.extractor import decode_bytes, parse_csv_text

logger = logging.getLogger(__name__)

EMPTY_CSV_ERROR = "CSV empty or unreadable"


@dataclass
class TabularAnalysis:
    chart:    dict | None = None
    insights: str | None = None
    error:    str | None = None
    meta:     dict = field(default_factory=dict)


def _to_number(value) -> float | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def pick_axes(columns: list[str], first_row: dict) -> tuple[str, str]:
    x_key = next((c for c in columns if _to_number(first_row.get(c)) is None), None)
    x_key = x_key or columns[0]

    y_key = next(
        (c for c in columns if c != x_key and _to_number(first_row.get(c)) is not None),
        None,
    )
    if y_key is None:
        y_key = next((c for c in columns if c != x_key), columns[0])
    return x_key, y_key


def analyze_rows(rows: list[dict]) -> TabularAnalysis:
    if not rows:
        return TabularAnalysis(error=EMPTY_CSV_ERROR)

    columns = list(rows[0].keys())
    if not columns:
        return TabularAnalysis(error=EMPTY_CSV_ERROR)

    x_key, y_key = pick_axes(columns, rows[0])
    data = [
        {x_key: row.get(x_key, ""), y_key: _to_number(row.get(y_key)) or 0.0}
        for row in rows
    ]

    total = sum(point[y_key] for point in data)
    avg   = total / len(data)
    chart = {
        "type":      "chart",
        "chartType": "line",
        "title":     f"{y_key} by {x_key}",
        "xKey":      x_key,
        "yKey":      y_key,
        "data":      data,
    }
    insights = (
        f'Detected x="{x_key}", y="{y_key}". Rows={len(data)}. '
        f"Sum={total:.2f}, Avg={avg:.2f}."
    )
    return TabularAnalysis(chart=chart, insights=insights, meta={"rows": len(data)})


def _read_rows(path: str) -> list[dict]:
    return parse_csv_text(decode_bytes(Path(path).read_bytes()))


class TabularAnalyzer:
    """
    Usage:
        analyzer = TabularAnalyzer()
        result   = await analyzer.analyze("/srv/uploads/1700000000000-sales.csv")
    """

    async def analyze(self, path: str) -> TabularAnalysis:
        loop = asyncio.get_event_loop()
        try:
            rows = await loop.run_in_executor(None, _read_rows, path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("TabularAnalyzer | read failed path=%s: %s", path, exc)
            return TabularAnalysis(error=EMPTY_CSV_ERROR)

        result = analyze_rows(rows)
        logger.info(
            "TabularAnalyzer | path=%s rows=%d error=%s",
            path, len(rows), result.error,
        )
        return result
