"""
Coverage data loading.

The native format is a JSON object mapping file paths to per-line arrays:

    {"src/app.py": [null, 1, 0, 4, null]}

coverage.py's own `coverage.json` (pytest --cov-report=json) is accepted
too and converted on the way in. It only records whether a line ran, not
how often, so executed lines come through with a count of 1.
"""

import json
import logging
from typing import Any, Optional

from .errors import CoverageFileError
from .file_coverage import CoverageArray

logger = logging.getLogger(__name__)


class CoverageMap:
    """Per-file coverage arrays keyed by repository-relative path."""

    def __init__(self, files: dict[str, list[Optional[int]]]):
        self.files = files

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, path: str) -> bool:
        return path in self.files

    def get(self, path: str) -> Optional[CoverageArray]:
        return self.files.get(path)


class CoverageParser:
    """Parse coverage JSON into a CoverageMap."""

    def __init__(self, strip_prefix: Optional[str] = None):
        self.strip_prefix = strip_prefix

    def parse(self, json_path: str) -> CoverageMap:
        """
        Parse a coverage file.

        Args:
            json_path: Path to the coverage JSON file

        Returns:
            CoverageMap of the files the suite tracked

        Raises:
            CoverageFileError: If the file is missing, unreadable, not JSON,
                or not shaped like coverage data
        """
        try:
            with open(json_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise CoverageFileError(f"Could not read coverage file {json_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise CoverageFileError(f"Invalid JSON in coverage file {json_path}: {e}") from e

        coverage = self.parse_data(data)
        logger.debug(f"Loaded coverage for {len(coverage)} files from {json_path}")
        return coverage

    def parse_data(self, data: Any) -> CoverageMap:
        """Validate already-decoded coverage data."""
        if not isinstance(data, dict):
            raise CoverageFileError("coverage data must be an object")

        if _is_coverage_py_report(data):
            files = {
                path: _lines_to_array(file_data)
                for path, file_data in data["files"].items()
            }
        else:
            files = {}
            for path, counts in data.items():
                _check_array(path, counts)
                files[path] = list(counts)

        return CoverageMap({self._normalize(path): counts for path, counts in files.items()})

    def _normalize(self, path: str) -> str:
        if self.strip_prefix and path.startswith(self.strip_prefix):
            path = path[len(self.strip_prefix):]
        return path.lstrip("/") if self.strip_prefix else path


def _is_coverage_py_report(data: dict) -> bool:
    files = data.get("files")
    return isinstance(files, dict) and all(isinstance(v, dict) for v in files.values())


def _check_array(path: str, counts: Any) -> None:
    if not isinstance(counts, list):
        raise CoverageFileError(f"coverage for {path} must be an array")
    for count in counts:
        # bool is an int subclass, but true/false is not a count
        if count is None:
            continue
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise CoverageFileError(
                f"coverage for {path} contains {count!r}; expected null or a non-negative integer"
            )


def _lines_to_array(file_data: dict) -> list[Optional[int]]:
    """Convert coverage.py executed/missing line lists to a per-line array."""
    executed = set(file_data.get("executed_lines", []))
    missing = set(file_data.get("missing_lines", []))
    last_line = max(executed | missing, default=0)

    counts: list[Optional[int]] = [None] * last_line
    for line in executed:
        counts[line - 1] = 1
    for line in missing:
        counts[line - 1] = 0
    return counts
