"""
Per-file coverage of changed lines.

A FileCoverage pairs the lines a change touched with the per-line execution
counts the test suite produced for that file, and answers two questions:
how much of the change ran, and where the gaps are.

Coverage arrays are indexed from zero for line 1:
    None  -> not executable (blank line, comment, closing brace)
    0     -> executable, never executed
    n > 0 -> executed n times
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence

from .ranges import Mark, compact_marked_spans, mark_for

ANNOTATION_LEVEL = "warning"
WHOLE_FILE_MESSAGE = "File has no coverage"

CoverageArray = Sequence[Optional[int]]


class SkipReason(Enum):
    """Why a changed file was left out of the analysis."""

    RENAMED = "renamed"
    NOT_TRACKED = "not tracked by suite"


@dataclass(frozen=True)
class Annotation:
    """A span of uncovered lines, shaped like a GitHub check run annotation."""

    path: str
    start_line: int
    end_line: int
    message: str
    annotation_level: str = ANNOTATION_LEVEL

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "annotation_level": self.annotation_level,
            "message": self.message,
        }


class FileCoverage:
    """Coverage of one changed file."""

    def __init__(
        self,
        path: str,
        changed_lines: Iterable[int],
        coverage_data: Optional[CoverageArray] = None,
        renamed: bool = False,
    ):
        self.path = path
        self.changed_lines: tuple[int, ...] = tuple(sorted(set(changed_lines)))
        self.coverage_data: tuple[Optional[int], ...] = tuple(coverage_data or ())
        self.renamed = renamed
        self._changed_set = frozenset(self.changed_lines)

    def __repr__(self) -> str:
        return (
            f"FileCoverage(path={self.path!r}, changed={len(self.changed_lines)}, "
            f"skip_reason={self.skip_reason})"
        )

    @property
    def skip_reason(self) -> Optional[SkipReason]:
        if self.renamed:
            return SkipReason.RENAMED
        if not self.part_of_test_suite:
            return SkipReason.NOT_TRACKED
        return None

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None

    @property
    def part_of_test_suite(self) -> bool:
        return len(self.coverage_data) > 0

    @property
    def line_count(self) -> int:
        return len(self.coverage_data)

    def _lines_where(self, predicate) -> list[int]:
        return [
            index + 1
            for index, count in enumerate(self.coverage_data)
            if predicate(count)
        ]

    @property
    def executable_lines(self) -> list[int]:
        return self._lines_where(lambda count: count is not None)

    @property
    def executed_lines(self) -> list[int]:
        return self._lines_where(lambda count: count is not None and count > 0)

    @property
    def missed_lines(self) -> list[int]:
        return self._lines_where(lambda count: count == 0)

    @property
    def relevant_lines(self) -> list[int]:
        """Changed lines that the suite could have executed."""
        executable = set(self.executable_lines)
        return [line for line in self.changed_lines if line in executable]

    @property
    def relevant_missed_lines(self) -> list[int]:
        """Changed lines that the suite could have executed, but didn't."""
        missed = set(self.missed_lines)
        return [line for line in self.changed_lines if line in missed]

    @property
    def relevant_executed_lines(self) -> list[int]:
        executed = set(self.executed_lines)
        return [line for line in self.changed_lines if line in executed]

    @property
    def coverage_percent(self) -> float:
        relevant = len(self.relevant_lines)
        if relevant == 0:
            return 100.0
        return len(self.relevant_executed_lines) / relevant * 100

    @property
    def whole_file_unexecuted(self) -> bool:
        return self.part_of_test_suite and not self.executed_lines

    def changed_line_marks(self) -> list[Mark]:
        """One Mark per line, with everything outside the change masked out."""
        return [
            mark_for(count, changed=(index + 1) in self._changed_set)
            for index, count in enumerate(self.coverage_data)
        ]

    def annotations(self) -> list[Annotation]:
        """
        Warnings for the uncovered parts of the change.

        Spans may bridge non-executable lines, but always start and end on
        a missed line. A tracked file the suite never touched at all gets a
        single whole-file annotation instead.
        """
        if self.skipped or not self.relevant_missed_lines:
            return []

        if self.whole_file_unexecuted:
            return [Annotation(
                path=self.path,
                start_line=1,
                end_line=self.line_count,
                message=WHOLE_FILE_MESSAGE,
            )]

        annotations = []
        for line_range in compact_marked_spans(self.changed_line_marks()):
            if line_range.is_single_line:
                message = f"Line {line_range.label} has no coverage"
            else:
                message = f"Lines {line_range.label} have no coverage"
            annotations.append(Annotation(
                path=self.path,
                start_line=line_range.start,
                end_line=line_range.end,
                message=message,
            ))
        return annotations
