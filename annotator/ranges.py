"""
Line range compaction.

Two flavours of the same idea - turn scattered line numbers into the fewest
contiguous ranges worth showing to a human:

1. compact_sequence: plain sorted integers, e.g. [1, 2, 3, 5, 6] -> 1-3, 5-6
2. compact_marked_spans: a whole file's worth of per-line marks, where
   uncovered spans are allowed to bridge over blank lines and comments

The second one is what keeps annotations readable. Without it every closing
brace or comment inside an untested block splits the block into a new
annotation, which gets very noisy very quickly.

Example:
    >>> [r.label for r in compact_sequence([1, 2, 3, 5, 6, 8])]
    ['1-3', '5-6', '8']
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence


@dataclass(frozen=True)
class LineRange:
    """An inclusive, 1-indexed range of lines."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"start ({self.start}) must not exceed end ({self.end})")

    @property
    def label(self) -> str:
        if self.start == self.end:
            return str(self.start)
        return f"{self.start}-{self.end}"

    @property
    def is_single_line(self) -> bool:
        return self.start == self.end

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end, "label": self.label}


class Mark(Enum):
    """What a single line means once restricted to the changeset."""

    NOT_CHANGED = "not_changed"  # outside the diff, whatever its count
    IGNORED = "ignored"  # blank, comment, or otherwise not executable
    ZERO = "zero"  # changed, executable, never run
    POSITIVE = "positive"  # changed, executable, run at least once


# A span may never run past one of these.
_BOUNDARY_MARKS = frozenset({Mark.NOT_CHANGED, Mark.POSITIVE})


class _ScanState(Enum):
    SEEKING_START = 0
    SEEKING_END = 1


def mark_for(count: Optional[int], changed: bool = True) -> Mark:
    """Classify one coverage marker."""
    if not changed:
        return Mark.NOT_CHANGED
    if count is None:
        return Mark.IGNORED
    if count == 0:
        return Mark.ZERO
    return Mark.POSITIVE


def compact_sequence(numbers: Sequence[int]) -> list[LineRange]:
    """
    Collapse sorted integers into runs of consecutive values.

    Args:
        numbers: Ascending line numbers without duplicates.

    Returns:
        One LineRange per maximal run, in input order.
    """
    if not numbers:
        return []

    ranges: list[LineRange] = []
    start = end = numbers[0]

    for current in numbers[1:]:
        if current == end + 1:
            end = current
        else:
            ranges.append(LineRange(start, end))
            start = end = current

    ranges.append(LineRange(start, end))
    return ranges


def compact_marked_spans(marks: Sequence[Mark]) -> list[LineRange]:
    """
    Find the minimal spans covering every ZERO mark.

    A span starts on a ZERO line and keeps going through IGNORED and ZERO
    lines until it hits a POSITIVE or NOT_CHANGED line (or the end of the
    file). It is then trimmed back to its last ZERO line, so it never ends
    on a blank line or comment. Scanning resumes at the line that stopped
    the span.

    Args:
        marks: One Mark per source line, index 0 being line 1.

    Returns:
        LineRanges in 1-indexed line numbers, in file order.
    """
    ranges: list[LineRange] = []
    state = _ScanState.SEEKING_START
    start = 0
    index = 0
    length = len(marks)

    while index < length:
        if state is _ScanState.SEEKING_START:
            if marks[index] is Mark.ZERO:
                start = index
                state = _ScanState.SEEKING_END
            index += 1
            continue

        # scan ahead for the line that stops the span
        boundary = index
        while boundary < length and marks[boundary] not in _BOUNDARY_MARKS:
            boundary += 1

        # then walk back to the last uncovered line; never passes start
        end = boundary - 1
        while marks[end] is not Mark.ZERO:
            end -= 1

        ranges.append(LineRange(start + 1, end + 1))
        state = _ScanState.SEEKING_START
        index = boundary

    # a ZERO on the very last line never got a look-ahead
    if state is _ScanState.SEEKING_END:
        ranges.append(LineRange(start + 1, start + 1))

    return ranges


def format_ranges(ranges: Iterable[LineRange]) -> str:
    """Render ranges the way people write them: "1-3, 5, 8-9"."""
    return ", ".join(r.label for r in ranges)
