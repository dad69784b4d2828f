"""Type queries against the semantic backend.

Two entry points:

- :meth:`TypeQueryService.resolve_type` -- hover only.  This is the path used
  by chain propagation; type-definition and definition requests return the
  unspecialized generic signature and are skipped for accuracy.
- :meth:`TypeQueryService.find_type_info` -- "find any type info", trying type
  definition, definition, inlay hints and finally hover.

Every backend request races a timeout.  A timed-out request is abandoned (the
backend call itself keeps running and its late result is dropped) and treated
as a failure; nothing is retried.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .backend import (
    Document,
    SemanticBackend,
    decode_hover,
    decode_inlay_hints,
    decode_locations,
)
from .config import DEFAULT_QUERY_TIMEOUT_MS
from .errors import BackendQueryFailure, BackendQueryTimeout
from .models import Position, Range
from .type_parser import _DepthTracker, _find_closing, split_type_parameters

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\n(.*?)```", re.DOTALL)
_FOOTNOTE_RE = re.compile(r"`([A-Z][A-Za-z0-9_]*)`\s*=\s*`([^`]+)`")
_WHERE_RE = re.compile(r"\bwhere\b(.*?)(?://|\Z)", re.DOTALL)
_LOCATION_BINDING_RE = re.compile(r"Location\s*=\s*([A-Z]\w*)")
_LOCATION_BOUND_RE = re.compile(r"\b([A-Z]\w*)\s*:\s*Location<")
_TYPE_PARAM_RE = re.compile(r"\b[A-Z]\w*\b")
_BINDING_RE = re.compile(r"(?<![`\w])([A-Z][A-Za-z0-9_]*)\s*=(?!=)\s*")
_IMPL_FOR_RE = re.compile(r"\bimpl\b[^\n]*?\bfor\s+(\w+)<")
_IMPL_DIRECT_RE = re.compile(r"\bimpl\s*(?:<.*?>)?\s+(\w+)<")
_WHITESPACE_RE = re.compile(r"\s+")


# ===================================================================
# Hover text parsing
# ===================================================================

def code_blocks(content: str) -> List[str]:
    """Bodies of the fenced code blocks in *content*, in order."""
    return [match.group(1).strip() for match in _FENCE_RE.finditer(content)]


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def _signature_return_type(block: str) -> Optional[str]:
    """Text after the signature's top-level ``->``, stopping at ``where``, ``{`` or end of line."""
    depth = _DepthTracker(block)
    arrow = None
    for i, char in enumerate(block):
        if char == "-" and block.startswith("->", i) and depth.at_top_level:
            arrow = i + 2
            break
        depth.feed(block, i)
    if arrow is None:
        return None

    depth = _DepthTracker(block)
    end = len(block)
    for i in range(arrow, len(block)):
        char = block[i]
        if depth.at_top_level:
            if char in "\n{;":
                end = i
                break
            if block.startswith("where", i) and (i == 0 or not block[i - 1].isalnum()):
                after = block[i + 5:i + 6]
                if not after or not (after.isalnum() or after == "_"):
                    end = i
                    break
        depth.feed(block, i)

    return _collapse(block[arrow:end]) or None


def footnotes(content: str) -> Dict[str, str]:
    """Backtick footnote pairs such as ``\\`L\\` = \\`Tick<Process<'a, Leader>>\\```."""
    pairs: Dict[str, str] = {}
    for match in _FOOTNOTE_RE.finditer(content):
        pairs.setdefault(match.group(1), match.group(2).strip())
    return pairs


def _substitute_type_params(return_type: str, pairs: Dict[str, str]) -> str:
    if not pairs:
        return return_type
    return _TYPE_PARAM_RE.sub(lambda m: pairs.get(m.group(0), m.group(0)), return_type)


def _read_binding_value(text: str, start: int) -> str:
    depth = _DepthTracker(text[start:start + 80])
    for i in range(start, len(text)):
        if depth.at_top_level and text[i] in ",}\n`":
            return text[start:i].strip()
        depth.feed(text, i)
    return text[start:].strip()


def metadata_bindings(content: str) -> Dict[str, str]:
    """Un-fenced ``T = SequencedKv<K, V>, L = Tick<Cluster<'a, Replica>>`` style bindings."""
    bindings: Dict[str, str] = {}
    for match in _BINDING_RE.finditer(content):
        value = _read_binding_value(content, match.end())
        if value:
            bindings.setdefault(match.group(1), value)
    return bindings


def _substitute_location_bounds(return_type: str, where_clause: str, content: str) -> str:
    bindings = None
    for match in _LOCATION_BOUND_RE.finditer(where_clause):
        param = match.group(1)
        param_re = re.compile(rf"\b{re.escape(param)}\b")
        if not param_re.search(return_type):
            continue
        if bindings is None:
            bindings = metadata_bindings(content)
        value = bindings.get(param)
        if value:
            return_type = param_re.sub(lambda _m: value, return_type)
            logger.debug("Substituted location param %s -> %s", param, value)
        else:
            logger.debug("Could not find concrete type for %s in hover content", param)
    return return_type


def _resolve_bare_self(block: str, content: str) -> Optional[str]:
    """Rebuild ``Self`` from the impl header, e.g. ``impl<T, L> Stream<T, L>`` with bindings for T and L."""
    header = _IMPL_FOR_RE.search(block) or _IMPL_DIRECT_RE.search(block)
    if header is None:
        return None
    open_index = header.end() - 1
    closing = _find_closing(block, open_index)
    if closing is None:
        return None
    names = split_type_parameters(block[open_index + 1:closing])
    bindings = metadata_bindings(content)
    concrete = [bindings.get(name, name) for name in names]
    return f"{header.group(1)}<{', '.join(concrete)}>"


def extract_return_type(content: str) -> Optional[str]:
    """Return type of the method signature in a hover, with type parameters resolved."""
    pairs = footnotes(content)
    for block in code_blocks(content):
        return_type = _signature_return_type(block)
        if not return_type:
            continue

        where = _WHERE_RE.search(block)
        where_clause = where.group(1) if where else ""

        # <Self as Trait<...>>::Name -> the concrete type bound to Location in the where clause
        if "<Self as " in return_type and ">::" in return_type and where_clause:
            binding = _LOCATION_BINDING_RE.search(where_clause)
            if binding and binding.group(1) in pairs:
                return_type = pairs[binding.group(1)]

        if return_type == "Self" and "Self" not in pairs:
            return_type = _resolve_bare_self(block, content) or return_type

        return_type = _substitute_type_params(return_type, pairs)
        if where_clause:
            return_type = _substitute_location_bounds(return_type, where_clause, content)
        return return_type
    return None


def _top_level_colon(text: str) -> Optional[int]:
    depth = _DepthTracker(text)
    for i, char in enumerate(text):
        if char == ":" and depth.at_top_level:
            path_sep = (i + 1 < len(text) and text[i + 1] == ":") or (i > 0 and text[i - 1] == ":")
            if not path_sep:
                return i
        depth.feed(text, i)
    return None


def extract_binding_type(content: str) -> Optional[str]:
    """Declared type from the first code block, e.g. ``let p1: &Process<'a, P1>`` -> ``&Process<'a, P1>``."""
    blocks = code_blocks(content)
    if not blocks:
        return None
    declaration = blocks[0]
    if not declaration:
        return None
    colon = _top_level_colon(declaration)
    if colon is None:
        return declaration
    binding_type = _collapse(declaration[colon + 1:])
    return binding_type or declaration


def is_method_call(document: Document, position: Position) -> bool:
    text = document.line_at(position.line)
    return 0 < position.character <= len(text) and text[position.character - 1] == "."


def position_in_bounds(document: Document, position: Position) -> bool:
    """Whether *position* addresses an existing line and column of *document*."""
    if not 0 <= position.line < document.line_count:
        logger.warning(
            "Position line %d is out of bounds (document has %d lines)",
            position.line, document.line_count,
        )
        return False
    length = len(document.line_at(position.line))
    if not 0 <= position.character <= length:
        logger.warning(
            "Position char %d is out of bounds (line length: %d)",
            position.character, length,
        )
        return False
    return True


# ===================================================================
# Service
# ===================================================================

def _drop_late_result(task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned backend query finished with error: %s", exc)


class TypeQueryService:
    """Queries a :class:`~locgraph_cli.backend.SemanticBackend` for type strings."""

    def __init__(
        self,
        backend: SemanticBackend,
        default_timeout_ms: float = DEFAULT_QUERY_TIMEOUT_MS,
    ) -> None:
        self.backend = backend
        self.default_timeout_ms = default_timeout_ms

    # ------------------------------------------------------------------
    # Timeout racing
    # ------------------------------------------------------------------

    async def _race(
        self,
        operation: str,
        request: Callable[[], Awaitable[Any]],
        timeout_ms: float,
    ) -> Any:
        try:
            task = asyncio.ensure_future(request())
        except Exception as exc:
            raise BackendQueryFailure(operation, exc) from exc

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError as exc:
            task.add_done_callback(_drop_late_result)
            raise BackendQueryTimeout(operation, timeout_ms) from exc
        except asyncio.CancelledError:
            task.add_done_callback(_drop_late_result)
            raise
        except Exception as exc:
            raise BackendQueryFailure(operation, exc) from exc

    def _timeout(self, timeout_ms: Optional[float]) -> float:
        return self.default_timeout_ms if timeout_ms is None else timeout_ms

    @staticmethod
    def _log_failure(exc: Exception, position: Position) -> None:
        if isinstance(exc, BackendQueryTimeout):
            logger.warning("%s at %d:%d", exc, position.line, position.character)
        else:
            logger.error("Backend query error at %d:%d: %s", position.line, position.character, exc)
            cause = getattr(exc, "cause", None)
            if cause is not None:
                logger.debug("Backend failure detail", exc_info=cause)

    # ------------------------------------------------------------------
    # Hover only
    # ------------------------------------------------------------------

    async def _hover_type(
        self,
        document: Document,
        position: Position,
        method_call: bool,
        timeout_ms: float,
    ) -> Optional[str]:
        raw = await self._race("hover", lambda: self.backend.hover(document.uri, position), timeout_ms)
        contents = decode_hover(raw)
        if not contents:
            return None
        for content in contents:
            if method_call:
                found = extract_return_type(content.text)
            else:
                found = extract_binding_type(content.text)
            if found:
                return found
        return None

    async def resolve_type(
        self,
        document: Document,
        position: Position,
        is_method_call: bool = False,
        timeout_ms: Optional[float] = None,
    ) -> Optional[str]:
        """Type string from hover at *position*, or None."""
        if not position_in_bounds(document, position):
            return None
        try:
            result = await self._hover_type(document, position, is_method_call, self._timeout(timeout_ms))
        except (BackendQueryTimeout, BackendQueryFailure) as exc:
            self._log_failure(exc, position)
            return None
        logger.debug("Hover type at %d:%d: %s", position.line, position.character, result)
        return result

    # ------------------------------------------------------------------
    # Multi-strategy
    # ------------------------------------------------------------------

    async def _location_text(
        self,
        operation: str,
        request: Callable[[], Awaitable[Any]],
        timeout_ms: float,
    ) -> Optional[str]:
        locations = decode_locations(await self._race(operation, request, timeout_ms))
        for location in locations:
            text = await self._race(
                "readText",
                lambda loc=location: self.backend.read_text(loc.uri, loc.range),
                timeout_ms,
            )
            if isinstance(text, str) and text.strip():
                return _collapse(text)
        return None

    async def _inlay_hint_type(
        self,
        document: Document,
        position: Position,
        timeout_ms: float,
    ) -> Optional[str]:
        line_text = document.line_at(position.line)
        line_range = Range.from_coords(position.line, 0, position.line, len(line_text))
        raw = await self._race(
            "inlayHints", lambda: self.backend.inlay_hints(document.uri, line_range), timeout_ms,
        )
        candidates = [
            hint for hint in decode_inlay_hints(raw)
            if hint.position.line == position.line and hint.position.character >= position.character
        ]
        if not candidates:
            return None
        nearest = min(candidates, key=lambda hint: hint.position.character)
        label = nearest.label.strip().lstrip(":").strip()
        return label or None

    async def find_type_info(
        self,
        document: Document,
        position: Position,
        timeout_ms: Optional[float] = None,
    ) -> Optional[str]:
        """Try type definition, definition, inlay hints, then hover; first non-null wins."""
        if not position_in_bounds(document, position):
            return None
        timeout = self._timeout(timeout_ms)
        uri = document.uri

        strategies = [
            ("typeDefinition", lambda: self._location_text(
                "typeDefinition", lambda: self.backend.type_definition(uri, position), timeout)),
            ("definition", lambda: self._location_text(
                "definition", lambda: self.backend.definition(uri, position), timeout)),
            ("inlayHints", lambda: self._inlay_hint_type(document, position, timeout)),
            ("hover", lambda: self._hover_type(
                document, position, is_method_call(document, position), timeout)),
        ]

        for name, strategy in strategies:
            try:
                result = await strategy()
            except (BackendQueryTimeout, BackendQueryFailure) as exc:
                self._log_failure(exc, position)
                continue
            if result:
                logger.debug("Type info at %d:%d from %s: %s", position.line, position.character, name, result)
                return result
        return None
