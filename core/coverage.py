from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from core.models import CoverageMetric, CoverageReport, MetricName
from runner.errors import ConfigurationError

METRICS: Final[tuple[MetricName, ...]] = ("statements", "branches", "functions", "lines")

EMOJI_THRESHOLDS: Final[tuple[tuple[float, str], ...]] = (
    (99, "🚀"),
    (95, "🎯"),
    (90, "✨"),
    (80, "💪"),
    (70, "📈"),
    (60, "⚡"),
    (50, "🔨"),
    (0, "⚠️"),
)

_ANSI_RE = re.compile("\x1b\\[[0-9;]*m")
_SPINNER_RE = re.compile("(?:✧|︎|⚡)\\s*")
_TEST_SUMMARY_RE = re.compile(r"Test Files\s+\d+[^\n]*\n[\s\S]*?Duration\s+[\d.]+m?s[^\n]*")
_COVERAGE_HEADER_RE = re.compile(r" % Coverage report from v8\n([-|]+)\n([^\n]+)\n\1")
_ALL_FILES_RE = re.compile(r"All files\s+\|\s+([\d.]+)\s+\|[^\n]*")
_TYPE_COVERAGE_RE = re.compile(r"\([\d\s/]+\)\s+([\d.]+)%")
_PERCENT_RE = re.compile(r"(\d+\.\d+)%")


class _Position(BaseModel):
    line: int


class _Location(BaseModel):
    start: _Position


class FileCoverage(BaseModel):
    """One entry of an istanbul ``coverage-final.json``."""

    model_config = ConfigDict(populate_by_name=True)

    s: dict[str, int] = Field(default_factory=dict)
    b: dict[str, list[int]] = Field(default_factory=dict)
    f: dict[str, int] = Field(default_factory=dict)
    statement_map: dict[str, _Location] = Field(
        default_factory=dict, alias="statementMap"
    )


_COVERAGE_FILE = TypeAdapter(dict[str, FileCoverage])


def _count_covered(counts: list[int]) -> int:
    return sum(1 for count in counts if count > 0)


def aggregate(files: Mapping[str, FileCoverage]) -> CoverageReport:
    """Sum statement, branch, function and line coverage over all files.

    Lines are derived from statement start lines: a line is covered when any
    statement starting on it ran.
    """
    covered = dict.fromkeys(METRICS, 0)
    total = dict.fromkeys(METRICS, 0)
    for cov in files.values():
        covered["statements"] += _count_covered(list(cov.s.values()))
        total["statements"] += len(cov.s)
        for branch in cov.b.values():
            covered["branches"] += _count_covered(branch)
            total["branches"] += len(branch)
        covered["functions"] += _count_covered(list(cov.f.values()))
        total["functions"] += len(cov.f)

        lines_total: set[int] = set()
        lines_covered: set[int] = set()
        for stmt_id, loc in cov.statement_map.items():
            lines_total.add(loc.start.line)
            if cov.s.get(stmt_id, 0) > 0:
                lines_covered.add(loc.start.line)
        covered["lines"] += len(lines_covered)
        total["lines"] += len(lines_total)

    return CoverageReport(
        statements=CoverageMetric(covered["statements"], total["statements"]),
        branches=CoverageMetric(covered["branches"], total["branches"]),
        functions=CoverageMetric(covered["functions"], total["functions"]),
        lines=CoverageMetric(covered["lines"], total["lines"]),
    )


def read_code_coverage(path: Path) -> CoverageReport:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Coverage data not found: {path}") from exc
    try:
        files = _COVERAGE_FILE.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ConfigurationError(f"Error reading coverage data: {exc}") from exc
    return aggregate(files)


def parse_type_coverage_percent(output: str) -> float | None:
    """Percentage from the first output line containing ``%``."""
    line = next((ln for ln in output.split("\n") if "%" in ln), None)
    if line is None:
        return None
    m = _PERCENT_RE.search(line)
    return float(m.group(1)) if m else None


def overall_percent(report: CoverageReport, type_percent: float | None) -> str:
    values = [float(report.metric(name).percent) for name in METRICS]
    if type_percent is not None:
        values.append(type_percent)
    return f"{sum(values) / len(values):.2f}"


def coverage_emoji(overall: float) -> str:
    for threshold, emoji in EMOJI_THRESHOLDS:
        if overall >= threshold:
            return emoji
    return ""


def report_json(report: CoverageReport, type_percent: float | None) -> str:
    data: dict[str, object] = {}
    for name in METRICS:
        metric = report.metric(name)
        data[name] = {
            "percent": metric.percent,
            "covered": metric.covered,
            "total": metric.total,
        }
    if type_percent is not None:
        data["types"] = {"percent": f"{type_percent:.2f}"}
    data["overall"] = overall_percent(report, type_percent)
    return json.dumps(data, indent=2, ensure_ascii=False)


def summary_lines(report: CoverageReport, type_percent: float | None) -> list[str]:
    lines = ["Coverage Summary:"]
    for name in METRICS:
        metric = report.metric(name)
        label = f"{name.capitalize()}:".ljust(11)
        lines.append(f"  {label} {metric.percent}% ({metric.covered}/{metric.total})")
    if type_percent is not None:
        lines.append(f"  {'Types:'.ljust(11)} {type_percent:.2f}%")
    overall = overall_percent(report, type_percent)
    lines.append("")
    lines.append(
        f"Current coverage: {overall}% overall! {coverage_emoji(float(overall))}"
    )
    return lines


# -- vitest / type-coverage console output ---------------------------------------


def clean_output(text: str) -> str:
    """Drop ANSI colour codes and spinner glyphs."""
    return _SPINNER_RE.sub("", _ANSI_RE.sub("", text)).strip()


@dataclass(frozen=True)
class CoverSummary:
    test_summary: str | None
    border: str | None
    header: str | None
    all_files_row: str | None
    code_percent: float | None
    type_percent: float | None

    @property
    def has_table(self) -> bool:
        return self.border is not None and self.all_files_row is not None

    @property
    def cumulative(self) -> str | None:
        if self.code_percent is None or self.type_percent is None:
            return None
        return f"{(self.code_percent + self.type_percent) / 2:.2f}"


def extract_cover_summary(test_output: str, type_output: str) -> CoverSummary:
    output = clean_output(test_output)
    summary = _TEST_SUMMARY_RE.search(output)
    header = _COVERAGE_HEADER_RE.search(output)
    all_files = _ALL_FILES_RE.search(output)
    type_match = _TYPE_COVERAGE_RE.search(type_output.strip())
    return CoverSummary(
        test_summary=summary.group(0) if summary else None,
        border=header.group(1) if header else None,
        header=header.group(2) if header else None,
        all_files_row=all_files.group(0) if all_files else None,
        code_percent=float(all_files.group(1)) if all_files else None,
        type_percent=float(type_match.group(1)) if type_match else None,
    )


def render_cover_summary(summary: CoverSummary) -> list[str]:
    lines: list[str] = []
    if summary.test_summary is not None:
        lines.extend(["", summary.test_summary, ""])
    if summary.has_table:
        border = summary.border or ""
        lines.extend(
            [
                " % Coverage report from v8",
                border,
                summary.header or "",
                border,
                summary.all_files_row or "",
                border,
                "",
            ]
        )
        code, types = summary.code_percent, summary.type_percent
        cumulative = summary.cumulative
        if cumulative is not None and code is not None and types is not None:
            rule = " " + "─" * 31
            lines.extend(
                [
                    " Coverage Summary",
                    rule,
                    f" Type Coverage: {types:.2f}%",
                    f" Code Coverage: {code:.2f}%",
                    rule,
                    f" Cumulative:    {cumulative}%",
                    "",
                ]
            )
    return lines
