"""
Unified diff parsing.

Turns the `patch` text GitHub attaches to each changed file (or the output of
`git diff`) into the line numbers that were added, numbered as in the new
version of the file.
"""

import logging
import re
from dataclasses import dataclass, field
from functools import reduce
from typing import Any, Iterable, Mapping, NamedTuple, Optional

from .ranges import compact_sequence, format_ranges

logger = logging.getLogger(__name__)

# Lengths are optional: git writes "+7" rather than "+7,1" for one-line hunks
HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
DIFF_GIT_RE = re.compile(r"^diff --git a/(.+) b/(.+)$")
NO_NEWLINE_MARKER = "\\ No newline at end of file"


class _Cursor(NamedTuple):
    """Fold state: the next new-file line number, None inside a bad hunk."""

    line_no: Optional[int]
    changed: list[int]


@dataclass(frozen=True)
class ChangedFile:
    """A file touched by the changeset under review."""

    path: str
    changed_lines: tuple[int, ...] = ()
    previous_path: Optional[str] = None
    patch: Optional[str] = field(default=None, repr=False)

    @property
    def renamed_only(self) -> bool:
        return is_renamed_only(self.previous_path, self.patch)

    @classmethod
    def from_patch(
        cls,
        path: str,
        patch: Optional[str],
        previous_path: Optional[str] = None,
    ) -> "ChangedFile":
        return cls(
            path=path,
            changed_lines=tuple(parse_patch(patch)),
            previous_path=previous_path,
            patch=patch,
        )

    @classmethod
    def from_github(cls, item: Mapping[str, Any]) -> "ChangedFile":
        """
        Build from an entry of GitHub's pull request / compare `files` list.

        Raises:
            KeyError: If the entry has no filename.
            TypeError: If filename, patch or previous_filename is not a string.
        """
        path = item["filename"]
        patch = item.get("patch")
        previous_path = item.get("previous_filename")
        if not isinstance(path, str):
            raise TypeError(f"filename must be a string, got {path!r}")
        for name, value in (("patch", patch), ("previous_filename", previous_path)):
            if value is not None and not isinstance(value, str):
                raise TypeError(f"{name} of {path} must be a string, got {value!r}")

        return cls.from_patch(path=path, patch=patch, previous_path=previous_path)


def is_renamed_only(previous_path: Optional[str], patch: Optional[str]) -> bool:
    """A file with a previous name but no patch was moved, not edited."""
    return bool(previous_path) and not patch


def _step(cursor: _Cursor, line: str) -> _Cursor:
    if line.startswith("@@"):
        match = HUNK_HEADER_RE.match(line)
        if match is None:
            logger.debug(f"Unparseable hunk header, skipping hunk: {line!r}")
            return _Cursor(None, cursor.changed)
        return _Cursor(int(match.group(3)), cursor.changed)

    if cursor.line_no is None:
        # before the first hunk, or inside one we could not place
        return cursor

    if line.startswith(NO_NEWLINE_MARKER):
        return cursor

    # inside a hunk even "+++..." is content; file headers never get here
    if line.startswith("+"):
        cursor.changed.append(cursor.line_no)

    if line.startswith("-"):
        # deleted lines do not exist in the new file
        return cursor
    return cursor._replace(line_no=cursor.line_no + 1)


def parse_patch(patch: Optional[str]) -> list[int]:
    """
    Extract added line numbers from unified diff text.

    Args:
        patch: Diff hunks for a single file. None or "" for pure renames and
            binary files.

    Returns:
        Added line numbers in new-file numbering, hunk by hunk.
    """
    if not patch:
        return []

    return reduce(_step, diff_lines(patch), _Cursor(None, [])).changed


def diff_lines(text: str) -> list[str]:
    """
    Split diff text on newlines only.

    str.splitlines() would also break on form feeds and Unicode separators
    that can appear inside source lines, shifting every later line number.
    """
    return [line.removesuffix("\r") for line in text.split("\n")]


class _FileBlock:
    """Accumulates one `diff --git` section of a multi-file diff."""

    def __init__(self, previous_path: str, path: str):
        self.previous_path = previous_path
        self.path = path
        self.hunk_lines: list[str] = []

    def feed(self, line: str) -> None:
        if self.hunk_lines:
            self.hunk_lines.append(line)
        elif line.startswith("@@"):
            self.hunk_lines.append(line)
        elif line.startswith("rename from "):
            self.previous_path = line[len("rename from "):]
        elif line.startswith("rename to "):
            self.path = line[len("rename to "):]
        elif line.startswith("+++ b/"):
            self.path = line[len("+++ b/"):]

    def to_changed_file(self) -> ChangedFile:
        patch = "\n".join(self.hunk_lines) or None
        previous_path = self.previous_path if self.previous_path != self.path else None
        changed = ChangedFile.from_patch(self.path, patch, previous_path)
        logger.debug(
            f"{self.path}: added lines "
            f"{format_ranges(compact_sequence(sorted(changed.changed_lines))) or 'none'}"
        )
        return changed


def split_unified_diff(diff_text: str) -> list[ChangedFile]:
    """
    Split multi-file `git diff` output into ChangedFile entries.

    Renames without content changes come back with no patch, so they are
    reported as pure renames. Binary files and deletions yield no added lines.
    """
    blocks: list[_FileBlock] = []

    for line in diff_lines(diff_text):
        header = DIFF_GIT_RE.match(line)
        if header:
            blocks.append(_FileBlock(header.group(1), header.group(2)))
        elif blocks:
            blocks[-1].feed(line)

    return [block.to_changed_file() for block in blocks]


def changed_files_from_api(items: Iterable[Mapping[str, Any]]) -> list[ChangedFile]:
    """Map the `files` list of a GitHub pull request or commit comparison."""
    return [ChangedFile.from_github(item) for item in items]
