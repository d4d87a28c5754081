"""
Unit Tests — Tabular analysis
══════════════════════════════
Tests for pick_axes(), analyze_rows() and TabularAnalyzer.analyze().
"""

from __future__ import annotations

import pytest

from agent_workspace.services.tabular import (
    EMPTY_CSV_ERROR,
    TabularAnalyzer,
    analyze_rows,
    pick_axes,
)


@pytest.mark.unit
class TestPickAxes:

    def test_text_x_numeric_y(self):
        assert pick_axes(["month", "revenue"], {"month": "Jan", "revenue": "10"}) == ("month", "revenue")

    def test_numeric_column_first(self):
        """x is the first non-numeric column even when it is not the first column."""
        columns = ["revenue", "month", "units"]
        row     = {"revenue": "10", "month": "Jan", "units": "3"}

        assert pick_axes(columns, row) == ("month", "revenue")

    def test_all_numeric(self):
        assert pick_axes(["a", "b"], {"a": "1", "b": "2"}) == ("a", "b")

    def test_all_text(self):
        assert pick_axes(["name", "city"], {"name": "x", "city": "y"}) == ("name", "city")

    def test_single_column(self):
        assert pick_axes(["only"], {"only": "x"}) == ("only", "only")


@pytest.mark.unit
class TestAnalyzeRows:

    def test_chart_and_insights(self):
        rows = [
            {"month": "Jan", "revenue": "100"},
            {"month": "Feb", "revenue": "n/a"},
            {"month": "Mar", "revenue": "200"},
        ]

        result = analyze_rows(rows)

        assert result.error is None
        assert result.chart == {
            "type":      "chart",
            "chartType": "line",
            "title":     "revenue by month",
            "xKey":      "month",
            "yKey":      "revenue",
            "data": [
                {"month": "Jan", "revenue": 100.0},
                {"month": "Feb", "revenue": 0.0},
                {"month": "Mar", "revenue": 200.0},
            ],
        }
        assert result.insights == 'Detected x="month", y="revenue". Rows=3. Sum=300.00, Avg=100.00.'

    def test_infinite_values_count_as_zero(self):
        result = analyze_rows([{"k": "a", "v": "1"}, {"k": "b", "v": "inf"}])

        assert result.chart["data"][1]["v"] == 0.0

    def test_no_rows(self):
        assert analyze_rows([]).error == EMPTY_CSV_ERROR


@pytest.mark.unit
class TestTabularAnalyzer:

    async def test_reads_file(self, write_csv):
        path = write_csv("sales.csv", "\ufeffregion,total\nnorth,5\nsouth,7\n")

        result = await TabularAnalyzer().analyze(path)

        assert result.chart["xKey"] == "region"
        assert result.meta == {"rows": 2}

    async def test_missing_file(self, tmp_path):
        result = await TabularAnalyzer().analyze(str(tmp_path / "missing.csv"))

        assert result.error == EMPTY_CSV_ERROR
        assert result.chart is None

    async def test_header_only(self, write_csv):
        result = await TabularAnalyzer().analyze(write_csv("h.csv", "a,b\n\n"))

        assert result.error == EMPTY_CSV_ERROR
