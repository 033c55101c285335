"""
MCP Tool Handler for coverage_annotator.check

Wraps the annotator engine to provide an MCP-compatible interface.
Accepts coverage as inline JSON or artifact reference, and the change as
either a list of changed files (GitHub API shape) or raw diff text.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

# Import from the engine (sibling package)
from annotator import (
    ChangedFile,
    CoverageFileError,
    CoverageMap,
    CoverageParser,
    Report,
    analyze_changes,
    split_unified_diff,
    summarize,
)

DEFAULT_THRESHOLD = 90


def handle(
    request: dict[str, Any],
    *,
    artifact_resolver: Optional[Callable[[str], bytes]] = None,
) -> dict[str, Any]:
    """
    MCP tool handler for coverage_annotator.check.

    Args:
        request: Request dict matching the request schema.
        artifact_resolver: Optional callable to resolve artifact_id -> bytes.
            If not provided, falls back to locator-as-path.

    Returns:
        Response dict matching the response schema.
    """
    # 1. Validate threshold
    threshold = request.get("threshold", DEFAULT_THRESHOLD)
    if isinstance(threshold, bool) or not isinstance(threshold, int) or not 0 <= threshold <= 100:
        return _error_response(f"threshold must be an integer between 0 and 100, got {threshold!r}")

    # 2. Load coverage data
    try:
        coverage = _load_coverage(
            request.get("coverage"),
            strip_prefix=request.get("strip_prefix"),
            artifact_resolver=artifact_resolver,
        )
    except CoverageFileError as e:
        return _error_response(str(e))
    except FileNotFoundError as e:
        return _error_response(f"Coverage file not found: {e}")
    except json.JSONDecodeError as e:
        return _error_response(f"Invalid JSON in coverage data: {e}")
    except ValueError as e:
        return _error_response(str(e))
    except Exception as e:
        return _error_response(f"Failed to load coverage: {e}")

    # 3. Collect the changed files
    try:
        changed_files = _load_changes(request)
    except (KeyError, TypeError, ValueError) as e:
        return _error_response(f"Invalid changes: {e}")

    # 4. Analyze
    try:
        report = analyze_changes(coverage, changed_files)
    except Exception as e:
        return _error_response(f"Analysis failed: {e}")
    success = report.passed(threshold)

    # 5. Build response
    response: dict[str, Any] = {
        "exit_code": 0 if success else 2,
        "result": {**report.to_dict(), "threshold": threshold, "passed": success},
        "warnings": _skip_warnings(report),
    }

    # 6. Add text output if requested
    if request.get("format") == "text":
        response["text"] = summarize(report).as_text()

    return response


def _load_coverage(
    coverage: Any,
    *,
    strip_prefix: Optional[str] = None,
    artifact_resolver: Optional[Callable[[str], bytes]] = None,
) -> CoverageMap:
    """
    Load coverage data from inline dict or artifact reference.

    Args:
        coverage: Either coverage data or an artifact reference.
        strip_prefix: Optional prefix to strip from coverage paths.
        artifact_resolver: Optional callable to resolve artifact_id -> bytes.

    Returns:
        Parsed CoverageMap.

    Raises:
        ValueError: If the artifact reference cannot be resolved.
        CoverageFileError: If the coverage data is malformed.
        FileNotFoundError: If locator path doesn't exist.
        json.JSONDecodeError: If content is not valid JSON.
    """
    parser = CoverageParser(strip_prefix=strip_prefix)
    if not isinstance(coverage, dict):
        raise ValueError("coverage must be an object")

    # Check if it's an artifact reference
    if "artifact_id" in coverage:
        # Try artifact resolver first
        if artifact_resolver is not None:
            raw = artifact_resolver(coverage["artifact_id"])
            return parser.parse_data(json.loads(raw.decode("utf-8")))

        # Fall back to locator as file path
        locator = coverage.get("locator")
        if not locator:
            raise ValueError(
                "artifact reference requires either artifact_resolver or locator"
            )

        with open(locator, "r", encoding="utf-8") as f:
            return parser.parse_data(json.load(f))

    # Otherwise treat as inline coverage data
    return parser.parse_data(coverage)


def _load_changes(request: dict[str, Any]) -> list[ChangedFile]:
    """Changed files from `changed_files` (GitHub API shape) or `diff` text."""
    if "diff" in request:
        diff = request["diff"]
        if not isinstance(diff, str):
            raise TypeError("diff must be a string")
        return split_unified_diff(diff)

    items = request.get("changed_files")
    if not isinstance(items, list):
        raise ValueError("request needs either 'changed_files' or 'diff'")
    return [ChangedFile.from_github(item) for item in items]


def _skip_warnings(report: Report) -> list[str]:
    return sorted(
        f"Skipped {row.path}: {row.skip_reason}"
        for row in report.per_file
        if row.skipped
    )


def _error_response(message: str) -> dict[str, Any]:
    """Build an error response."""
    return {
        "exit_code": 1,
        "result": {
            "coverage_percent": 0,
            "total_changed_lines": 0,
            "relevant_lines": 0,
            "covered_lines": 0,
            "analyzed_files": 0,
            "skipped_files": [],
            "per_file": [],
            "annotations": [],
            "passed": False,
        },
        "warnings": [message],
    }
