"""Semantic backend and document abstractions.

Backends (a language server, a recorded transcript, a test double) return
loosely shaped data: hover contents may be plain strings, ``{"value": ...}``
markup objects or ``{"language", "value"}`` marked strings; definition
requests may return ``Location`` or ``LocationLink`` shapes.  Everything is
decoded once here into :class:`HoverContent`, :class:`ResolvedLocation` and
:class:`InlayHintLabel` so nothing downstream branches on response shape.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from .models import Position, Range

_WORD_CHAR_RE = re.compile(r"[A-Za-z0-9_]")


# ===================================================================
# Decoded response variants
# ===================================================================

@dataclass(frozen=True)
class HoverContent:
    text: str


@dataclass(frozen=True)
class ResolvedLocation:
    uri: str
    range: Range


@dataclass(frozen=True)
class InlayHintLabel:
    position: Position
    label: str


# ===================================================================
# Abstract interfaces
# ===================================================================

class SemanticBackend(ABC):
    """Asynchronous semantic query backend.

    Implementations may return raw, loosely shaped results; callers decode them
    with :func:`decode_hover`, :func:`decode_locations` and
    :func:`decode_inlay_hints`.
    """

    @abstractmethod
    async def hover(self, uri: str, position: Position) -> Any:
        ...

    @abstractmethod
    async def type_definition(self, uri: str, position: Position) -> Any:
        ...

    @abstractmethod
    async def definition(self, uri: str, position: Position) -> Any:
        ...

    @abstractmethod
    async def inlay_hints(self, uri: str, line_range: Range) -> Any:
        ...

    async def read_text(self, uri: str, text_range: Range) -> Optional[str]:
        """Source text at a resolved location; None when the backend cannot read it."""
        return None


class Document(ABC):
    """Read-only view of one versioned source document."""

    @property
    @abstractmethod
    def uri(self) -> str:
        ...

    @property
    @abstractmethod
    def version(self) -> int:
        ...

    @property
    @abstractmethod
    def line_count(self) -> int:
        ...

    @abstractmethod
    def line_at(self, line: int) -> str:
        ...

    def get_text(self, text_range: Range) -> str:
        start, end = text_range.start, text_range.end
        if start.line == end.line:
            return self.line_at(start.line)[start.character:end.character]
        pieces = [self.line_at(start.line)[start.character:]]
        for line in range(start.line + 1, end.line):
            pieces.append(self.line_at(line))
        pieces.append(self.line_at(end.line)[:end.character])
        return "\n".join(pieces)

    def word_range_at_position(self, position: Position) -> Optional[Range]:
        if not 0 <= position.line < self.line_count:
            return None
        text = self.line_at(position.line)
        start = end = min(position.character, len(text))
        while start > 0 and _WORD_CHAR_RE.match(text[start - 1]):
            start -= 1
        while end < len(text) and _WORD_CHAR_RE.match(text[end]):
            end += 1
        if start == end:
            return None
        return Range.from_coords(position.line, start, position.line, end)


class TextDocument(Document):
    """In-memory document."""

    def __init__(self, uri: str, text: str, version: int = 1) -> None:
        self._uri = uri
        self._version = version
        self._lines = [line.rstrip("\r") for line in text.split("\n")]

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def version(self) -> int:
        return self._version

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def line_at(self, line: int) -> str:
        if line < 0:
            raise IndexError(f"line {line} is out of range")
        return self._lines[line]

    def with_text(self, text: str) -> "TextDocument":
        """A new version of this document with *text*."""
        return TextDocument(self._uri, text, self._version + 1)


# ===================================================================
# Decoding
# ===================================================================

def _field(obj: Any, *names: str) -> Any:
    for name in names:
        if isinstance(obj, dict):
            if name in obj:
                return obj[name]
        elif hasattr(obj, name):
            return getattr(obj, name)
    return None


def _as_list(raw: Any) -> List[Any]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return [raw]


def decode_position(raw: Any) -> Optional[Position]:
    if isinstance(raw, Position):
        return raw
    line = _field(raw, "line")
    character = _field(raw, "character")
    if isinstance(line, int) and isinstance(character, int):
        return Position(line, character)
    return None


def decode_range(raw: Any) -> Optional[Range]:
    if isinstance(raw, Range):
        return raw
    start = decode_position(_field(raw, "start"))
    end = decode_position(_field(raw, "end"))
    if start is None or end is None:
        return None
    return Range(start, end)


def _content_text(content: Any) -> Optional[str]:
    if isinstance(content, str):
        return content
    value = _field(content, "value")
    if not isinstance(value, str):
        return None
    language = _field(content, "language")
    if isinstance(language, str) and language:
        return f"```{language}\n{value}\n```"
    return value


def decode_hover(raw: Any) -> List[HoverContent]:
    """Flatten hover results into text blocks, in backend order."""
    decoded: List[HoverContent] = []
    for hover in _as_list(raw):
        if hover is None:
            continue
        contents = hover if isinstance(hover, str) else _field(hover, "contents")
        for content in _as_list(contents):
            text = _content_text(content)
            if text:
                decoded.append(HoverContent(text))
    return decoded


def decode_locations(raw: Any) -> List[ResolvedLocation]:
    """Decode ``Location`` or ``LocationLink`` results."""
    decoded: List[ResolvedLocation] = []
    for item in _as_list(raw):
        target_uri = _field(item, "targetUri", "target_uri")
        if target_uri is not None:
            uri = target_uri
            text_range = decode_range(
                _field(item, "targetSelectionRange", "target_selection_range")
            ) or decode_range(_field(item, "targetRange", "target_range"))
        else:
            uri = _field(item, "uri")
            text_range = decode_range(_field(item, "range"))
        if uri is None or text_range is None:
            continue
        decoded.append(ResolvedLocation(uri=str(uri), range=text_range))
    return decoded


def _label_text(label: Any) -> Optional[str]:
    if isinstance(label, str):
        return label
    parts: Iterable[Any] = _as_list(label)
    pieces = []
    for part in parts:
        text = part if isinstance(part, str) else _field(part, "value")
        if isinstance(text, str):
            pieces.append(text)
    return "".join(pieces) if pieces else None


def decode_inlay_hints(raw: Any) -> List[InlayHintLabel]:
    decoded: List[InlayHintLabel] = []
    for hint in _as_list(raw):
        position = decode_position(_field(hint, "position"))
        label = _label_text(_field(hint, "label"))
        if position is None or not label:
            continue
        decoded.append(InlayHintLabel(position=position, label=label))
    return decoded
