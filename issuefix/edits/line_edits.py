"""Line-indexed edit application over in-memory text.

All line numbers in an edit batch refer to the original, unmodified file.
The batch is validated as a whole (kinds, ranges, overlaps) and then applied
to a copy of the buffer from the highest start line down, so an applied edit
never shifts the lines a pending edit points at.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from issuefix.errors import InvalidRangeError, OverlappingEditError, UnknownEditKindError
from issuefix.models import FileEdit


class EditKind(str, Enum):
    REPLACE = "replace"
    INSERT = "insert"
    DELETE = "delete"


@dataclass(frozen=True)
class _Planned:
    kind: EditKind
    start: int
    end: int
    new_lines: List[str]
    position: int

    @property
    def span(self) -> tuple[int, int]:
        if self.kind is EditKind.INSERT:
            return self.start, self.start
        return self.start, self.end

    def describe(self) -> str:
        lo, hi = self.span
        return f"{self.kind.value} #{self.position + 1} (lines {lo}-{hi})"


def split_lines(text: Optional[str]) -> List[str]:
    """Split on ``\\n`` only; a terminal newline does not add an empty line."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def render_lines(lines: Sequence[str]) -> str:
    """Join lines so the result ends with exactly one line terminator.

    An empty list renders as a lone ``\\n``.
    """
    return "\n".join(lines) + "\n"


def _kind(raw: str, position: int) -> EditKind:
    try:
        return EditKind(raw)
    except ValueError:
        raise UnknownEditKindError(
            f"Unknown edit kind {raw!r} in edit #{position + 1}; "
            f"expected one of: {', '.join(k.value for k in EditKind)}"
        ) from None


def _plan(edit: FileEdit, position: int, line_count: int) -> _Planned:
    kind = _kind(edit.type, position)
    start = edit.start_line
    end = edit.last_line

    if start < 1:
        raise InvalidRangeError(f"Edit #{position + 1}: start line {start} is below 1")
    if start > line_count + 1:
        raise InvalidRangeError(
            f"Edit #{position + 1}: start line {start} is past the end of a {line_count}-line file"
        )
    if kind is not EditKind.INSERT and start > end:
        raise InvalidRangeError(f"Edit #{position + 1}: start line {start} is after end line {end}")

    new_lines = [] if kind is EditKind.DELETE else split_lines(edit.content)
    return _Planned(kind=kind, start=start, end=end, new_lines=new_lines, position=position)


def _check_overlaps(planned: List[_Planned]) -> None:
    ordered = sorted(planned, key=lambda p: p.span)
    for previous, current in zip(ordered, ordered[1:]):
        if current.span[0] <= previous.span[1]:
            raise OverlappingEditError(
                f"{previous.describe()} overlaps {current.describe()}"
            )


def apply_edits(lines: Sequence[str], edits: Sequence[FileEdit]) -> List[str]:
    """Return a new line list with every edit applied.

    Raises:
        UnknownEditKindError: an edit kind is not replace/insert/delete
        InvalidRangeError: a line range is impossible for this file
        OverlappingEditError: two edits touch the same original lines
    """
    planned = [_plan(edit, i, len(lines)) for i, edit in enumerate(edits)]
    _check_overlaps(planned)

    result = list(lines)
    for item in sorted(planned, key=lambda p: p.start, reverse=True):
        lo = item.start - 1
        if item.kind is EditKind.INSERT:
            result[lo:lo] = item.new_lines
        else:
            result[lo:item.end] = item.new_lines
    return result


def apply_edits_to_text(text: str, edits: Sequence[FileEdit]) -> str:
    return render_lines(apply_edits(split_lines(text), edits))
