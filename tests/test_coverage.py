from __future__ import annotations

import json
from pathlib import Path

import pytest

from core.coverage import (
    aggregate,
    clean_output,
    coverage_emoji,
    extract_cover_summary,
    overall_percent,
    parse_type_coverage_percent,
    read_code_coverage,
    render_cover_summary,
    report_json,
    summary_lines,
)
from core.models import CoverageMetric
from runner.errors import ConfigurationError

ISTANBUL = {
    "/repo/src/a.ts": {
        "s": {"0": 1, "1": 0, "2": 3},
        "b": {"0": [1, 0], "1": [2, 2]},
        "f": {"0": 1, "1": 0},
        "statementMap": {
            "0": {"start": {"line": 1, "column": 0}, "end": {"line": 1, "column": 9}},
            "1": {"start": {"line": 1, "column": 10}, "end": {"line": 1, "column": 20}},
            "2": {"start": {"line": 4, "column": 0}, "end": {"line": 4, "column": 5}},
        },
    },
    "/repo/src/b.ts": {
        "s": {"0": 0},
        "b": {},
        "f": {},
        "statementMap": {"0": {"start": {"line": 2, "column": 0}, "end": {"line": 2, "column": 1}}},
    },
}


def _write(tmp_path: Path, data: object) -> Path:
    path = tmp_path / "coverage-final.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_read_code_coverage_aggregates_all_metrics(tmp_path: Path) -> None:
    report = read_code_coverage(_write(tmp_path, ISTANBUL))

    assert report.statements == CoverageMetric(2, 4)
    assert report.branches == CoverageMetric(3, 4)
    assert report.functions == CoverageMetric(1, 2)
    # Line 1 has one covered statement, line 4 is covered, line 2 is not.
    assert report.lines == CoverageMetric(2, 3)
    assert report.statements.percent == "50.00"
    assert report.lines.percent == "66.67"


def test_empty_totals_report_zero_percent() -> None:
    report = aggregate({})

    assert report.branches.percent == "0.00"
    assert overall_percent(report, None) == "0.00"


def test_read_code_coverage_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        read_code_coverage(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        read_code_coverage(bad)


def test_parse_type_coverage_percent_uses_first_percent_line() -> None:
    output = "\n> type-coverage\n(1234 / 1250) 98.72%\ntype-coverage success 50.00%\n"

    assert parse_type_coverage_percent(output) == pytest.approx(98.72)
    assert parse_type_coverage_percent("no percentages here") is None


def test_overall_includes_types_when_present(tmp_path: Path) -> None:
    report = read_code_coverage(_write(tmp_path, ISTANBUL))

    without = float(overall_percent(report, None))
    with_types = float(overall_percent(report, 100.0))

    assert without == pytest.approx((50 + 75 + 50 + 66.67) / 4, abs=0.01)
    assert with_types > without


@pytest.mark.parametrize(
    ("value", "emoji"),
    [(100.0, "🚀"), (96.0, "🎯"), (91.0, "✨"), (85.0, "💪"), (55.0, "🔨"), (3.0, "⚠️")],
)
def test_coverage_emoji_thresholds(value: float, emoji: str) -> None:
    assert coverage_emoji(value) == emoji


def test_report_json_shape(tmp_path: Path) -> None:
    report = read_code_coverage(_write(tmp_path, ISTANBUL))

    data = json.loads(report_json(report, 90.5))

    assert data["statements"] == {"percent": "50.00", "covered": 2, "total": 4}
    assert data["types"] == {"percent": "90.50"}
    assert set(data) == {"statements", "branches", "functions", "lines", "types", "overall"}


def test_summary_lines_end_with_overall(tmp_path: Path) -> None:
    report = read_code_coverage(_write(tmp_path, ISTANBUL))

    lines = summary_lines(report, None)

    assert lines[0] == "Coverage Summary:"
    assert lines[1] == "  Statements: 50.00% (2/4)"
    assert lines[-1].startswith("Current coverage: ")
    assert lines[-1].endswith("overall! ⚡")


VITEST_OUTPUT = (
    "\x1b[32m✓\x1b[39m test/a.test.ts (3 tests)\n"
    "\n"
    " Test Files  4 passed (4)\n"
    "      Tests  12 passed (12)\n"
    "   Start at  10:00:00\n"
    "   Duration  1.52s (transform 10ms)\n"
    "\n"
    " % Coverage report from v8\n"
    "----------|---------|\n"
    "File      | % Stmts |\n"
    "----------|---------|\n"
    "All files |   88.5 |  80 | 90 | 88.5 |\n"
    " a.ts     |   88.5 |\n"
    "----------|---------|\n"
)


def test_extract_and_render_cover_summary() -> None:
    summary = extract_cover_summary(VITEST_OUTPUT, "(900 / 1000) 90.00%\n")

    assert summary.test_summary is not None
    assert summary.test_summary.startswith("Test Files  4 passed")
    assert summary.border == "----------|---------|"
    assert summary.header == "File      | % Stmts |"
    assert summary.code_percent == pytest.approx(88.5)
    assert summary.type_percent == pytest.approx(90.0)
    assert summary.cumulative == "89.25"

    lines = render_cover_summary(summary)
    assert " Type Coverage: 90.00%" in lines
    assert " Code Coverage: 88.50%" in lines
    assert " Cumulative:    89.25%" in lines


def test_extract_cover_summary_without_table() -> None:
    summary = extract_cover_summary("boom\n", "")

    assert not summary.has_table
    assert summary.cumulative is None
    assert render_cover_summary(summary) == []


def test_clean_output_strips_ansi_codes() -> None:
    assert clean_output("\x1b[31mred\x1b[0m text ") == "red text"
