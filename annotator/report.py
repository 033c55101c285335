"""
Changeset-wide coverage report.

Rolls per-file results up into one percentage, a pass/fail verdict, and the
title/summary/table shown on the check run.

Percentage policy: the overall figure is covered relevant lines over all
relevant lines across non-skipped files, rounded half-up to a whole
percent. When no changed line is executable (docs, comments, config) there
is nothing the suite could have missed, so the change passes at 100%.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

from .coverage_data import CoverageMap
from .diff_parser import ChangedFile
from .file_coverage import Annotation, FileCoverage
from .ranges import compact_sequence, format_ranges

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileSummary:
    """One row of the per-file breakdown."""

    path: str
    skipped: bool
    skip_reason: Optional[str]
    changed_lines: int
    missed_lines: int
    missed_ranges: str
    coverage_percent: Optional[float]

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "skipped": self.skipped,
            "skip_reason": self.skip_reason,
            "changed_lines": self.changed_lines,
            "missed_lines": self.missed_lines,
            "missed_ranges": self.missed_ranges,
            "coverage_percent": self.coverage_percent,
        }

    @classmethod
    def from_file(cls, file: FileCoverage) -> "FileSummary":
        if file.skipped:
            return cls(
                path=file.path,
                skipped=True,
                skip_reason=file.skip_reason.value,
                changed_lines=len(file.changed_lines),
                missed_lines=0,
                missed_ranges="",
                coverage_percent=None,
            )
        missed = file.relevant_missed_lines
        return cls(
            path=file.path,
            skipped=False,
            skip_reason=None,
            changed_lines=len(file.changed_lines),
            missed_lines=len(missed),
            missed_ranges=format_ranges(compact_sequence(missed)),
            coverage_percent=file.coverage_percent,
        )


@dataclass(frozen=True)
class Report:
    """Coverage of one changeset. Built once by build_report()."""

    coverage_percent: int
    total_changed_lines: int
    relevant_lines: int
    covered_lines: int
    analyzed_files: int
    per_file: tuple[FileSummary, ...]
    skipped_files: tuple[str, ...]
    annotations: tuple[Annotation, ...]

    def passed(self, threshold: int) -> bool:
        return passed(self.coverage_percent, threshold)

    def to_dict(self) -> dict:
        return {
            "coverage_percent": self.coverage_percent,
            "total_changed_lines": self.total_changed_lines,
            "relevant_lines": self.relevant_lines,
            "covered_lines": self.covered_lines,
            "analyzed_files": self.analyzed_files,
            "skipped_files": list(self.skipped_files),
            "per_file": [row.to_dict() for row in self.per_file],
            "annotations": [a.to_dict() for a in self.annotations],
        }


@dataclass(frozen=True)
class Summary:
    """Text shown on the check run."""

    title: str
    summary: str
    details: str

    def as_text(self) -> str:
        return "\n\n".join([self.title, self.summary, self.details])


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_percent(percentage: float, dp: int = 1) -> str:
    """Format a percentage for display: 12.34567 -> "12.3%"."""
    scaled = round_half_up(percentage * 10 ** dp) / 10 ** dp
    if dp == 0:
        return f"{int(scaled)}%"
    return f"{scaled:g}%"


def passed(coverage_percent: float, threshold: int) -> bool:
    return coverage_percent >= threshold


def build_report(files: Iterable[FileCoverage]) -> Report:
    """
    Aggregate per-file coverage into a Report.

    Skipped files appear in the breakdown and the skipped list but add
    nothing to the totals.
    """
    files = list(files)
    relevant_files = [f for f in files if not f.skipped]

    relevant_lines = sum(len(f.relevant_lines) for f in relevant_files)
    covered_lines = sum(len(f.relevant_executed_lines) for f in relevant_files)
    if relevant_lines > 0:
        coverage_percent = round_half_up(covered_lines / relevant_lines * 100)
    else:
        coverage_percent = 100

    annotations: list[Annotation] = []
    for f in relevant_files:
        annotations.extend(f.annotations())

    return Report(
        coverage_percent=coverage_percent,
        total_changed_lines=sum(len(f.changed_lines) for f in relevant_files),
        relevant_lines=relevant_lines,
        covered_lines=covered_lines,
        analyzed_files=len(relevant_files),
        per_file=tuple(FileSummary.from_file(f) for f in files),
        skipped_files=tuple(f.path for f in files if f.skipped),
        annotations=tuple(annotations),
    )


def summarize(report: Report) -> Summary:
    """
    Render the check run text.

    title = shown next to the check, very short
    summary = shown at the top of the check page
    details = markdown table with every changed file
    """
    title = f"Coverage for changed lines: {format_percent(report.coverage_percent)}"
    summary = (
        f"Based on {report.relevant_lines} lines changed "
        f"in {report.analyzed_files} files."
    )
    details = [
        "| File | Skipped | Changed Lines | Missed Lines | Coverage |",
        "|------|---------|---------------|--------------|----------|",
    ]
    for row in report.per_file:
        if row.skipped:
            details.append(f"| {row.path} | ✓ ({row.skip_reason}) | {row.changed_lines} | - | - |")
        else:
            missed = str(row.missed_lines)
            if row.missed_ranges:
                missed += f" ({row.missed_ranges})"
            details.append(
                f"| {row.path} | - | {row.changed_lines} | {missed} | "
                f"{format_percent(row.coverage_percent)} |"
            )
    return Summary(title=title, summary=summary, details="\n".join(details))


def map_to_files(
    coverage: CoverageMap,
    changed_files: Iterable[ChangedFile],
) -> list[FileCoverage]:
    """Pair each changed file with its coverage array, if the suite has one."""
    files = []
    for changed in changed_files:
        file = FileCoverage(
            path=changed.path,
            changed_lines=changed.changed_lines,
            coverage_data=coverage.get(changed.path),
            renamed=changed.renamed_only,
        )
        if file.skip_reason is not None:
            logger.info(f"Skipping {file.path}: {file.skip_reason.value}")
        files.append(file)
    return files


def analyze_changes(
    coverage: CoverageMap,
    changed_files: Iterable[ChangedFile],
) -> Report:
    """
    Main entry point: coverage of a changeset.

    Args:
        coverage: Per-file coverage arrays from the test suite
        changed_files: Files touched by the change, with their added lines

    Returns:
        The aggregated Report

    Example:
        >>> report = analyze_changes(coverage, changed_files)
        >>> report.passed(threshold=90)
        True
    """
    return build_report(map_to_files(coverage, changed_files))
