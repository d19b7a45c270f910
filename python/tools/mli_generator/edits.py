#!/usr/bin/env python3
"""
Application of LSP text edits to in-memory documents.

Positions use UTF-16 code units for the character offset, which is the
protocol's default position encoding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence


@dataclass(frozen=True, slots=True, order=True)
class Position:
    line: int
    character: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Position:
        return cls(line=int(data["line"]), character=int(data["character"]))


@dataclass(frozen=True, slots=True)
class Range:
    start: Position
    end: Position

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Range:
        return cls(
            start=Position.from_dict(data["start"]),
            end=Position.from_dict(data["end"]),
        )


@dataclass(frozen=True, slots=True)
class TextEdit:
    range: Range
    new_text: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TextEdit:
        return cls(range=Range.from_dict(data["range"]), new_text=data["newText"])


def _line_starts(text: str) -> List[int]:
    """Offsets at which each line begins; \\n, \\r\\n and \\r end a line."""
    starts = [0]
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if ch == "\r":
            if i + 1 < length and text[i + 1] == "\n":
                i += 1
            starts.append(i + 1)
        elif ch == "\n":
            starts.append(i + 1)
        i += 1
    return starts


def _line_end(text: str, starts: Sequence[int], line: int) -> int:
    """Offset of the end of a line, excluding its terminator."""
    end = starts[line + 1] if line + 1 < len(starts) else len(text)
    while end > starts[line] and text[end - 1] in "\r\n":
        end -= 1
    return end


def position_to_offset(text: str, starts: Sequence[int], position: Position) -> int:
    """
    Convert a position to a string offset.

    Lines past the end map to the end of the document and characters past
    the end of a line map to the end of that line.
    """
    if position.line >= len(starts):
        return len(text)

    offset = starts[position.line]
    end = _line_end(text, starts, position.line)
    units = 0
    while offset < end and units < position.character:
        units += 2 if ord(text[offset]) > 0xFFFF else 1
        offset += 1
    return offset


def apply_text_edits(text: str, edits: Iterable[TextEdit | Dict[str, Any]]) -> str:
    """
    Apply text edits that all refer to the original document.

    Edits are applied in document order; edits sharing a start position keep
    the order given. Overlapping ranges are clipped to the preceding edit.
    """
    parsed = [e if isinstance(e, TextEdit) else TextEdit.from_dict(e) for e in edits]
    if not parsed:
        return text

    starts = _line_starts(text)
    spans = []
    for index, edit in enumerate(parsed):
        start = position_to_offset(text, starts, edit.range.start)
        end = max(start, position_to_offset(text, starts, edit.range.end))
        spans.append((start, index, end, edit.new_text))

    pieces: List[str] = []
    cursor = 0
    for start, _, end, new_text in sorted(spans):
        start = max(start, cursor)
        end = max(end, start)
        pieces.append(text[cursor:start])
        pieces.append(new_text)
        cursor = end
    pieces.append(text[cursor:])
    return "".join(pieces)
