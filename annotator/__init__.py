"""
Coverage Annotator

Tells you which of the lines you just changed the test suite never ran.

Core components:
- parse_patch: Reads added line numbers out of unified diff hunks
- compact_sequence / compact_marked_spans: Squash lines into readable ranges
- FileCoverage: Changed lines of one file vs. its per-line execution counts
- build_report: Rolls files up into a percentage and pass/fail verdict

Usage:
    from annotator import CoverageParser, analyze_changes, split_unified_diff

    coverage = CoverageParser().parse("coverage.json")
    report = analyze_changes(coverage, split_unified_diff(diff_text))
    print(report.coverage_percent, report.passed(threshold=90))
"""

from .coverage_data import CoverageMap, CoverageParser
from .diff_parser import ChangedFile, is_renamed_only, parse_patch, split_unified_diff
from .errors import AnnotatorError, CoverageFileError, GitHubError
from .file_coverage import Annotation, FileCoverage, SkipReason
from .ranges import LineRange, Mark, compact_marked_spans, compact_sequence
from .report import Report, Summary, analyze_changes, build_report, passed, summarize

__all__ = [
    # Main entry point
    "analyze_changes",
    "build_report",
    "passed",
    "summarize",
    # Diffs and ranges
    "parse_patch",
    "split_unified_diff",
    "is_renamed_only",
    "compact_sequence",
    "compact_marked_spans",
    # Data structures
    "Annotation",
    "ChangedFile",
    "CoverageMap",
    "CoverageParser",
    "FileCoverage",
    "LineRange",
    "Mark",
    "Report",
    "SkipReason",
    "Summary",
    # Errors
    "AnnotatorError",
    "CoverageFileError",
    "GitHubError",
]
