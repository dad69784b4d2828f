"""Location type parser for dataflow collection types.

Turns type strings reported by the semantic backend, such as::

    Stream<(String, i32), Tick<Process<'a, Leader>>, Bounded>
    KeyedSingleton<K, V, Cluster<'_, Proposer>, Unbounded>
    &Tick<Tick<Process<'a, Leader>>>

into a :class:`~locgraph_cli.models.LocationDescriptor`.  The grammar is
handled by a small depth-aware scanner rather than regex splitting so that
deeply nested generics and tuple parameters stay intact.

Parsing is total: malformed input is logged and yields ``None``.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence, Tuple

from .errors import MalformedTypeString
from .models import LocationDescriptor, LocationKind

logger = logging.getLogger(__name__)

CONTAINER_TYPES: Tuple[str, ...] = (
    "Stream",
    "KeyedStream",
    "Optional",
    "Singleton",
    "KeyedSingleton",
)
BATCH_SCOPE_MARKER = "Tick"
MAX_NESTING = 64

_REFERENCE_RE = re.compile(r"^&(?:mut\s+)?")
_CONTAINER_RE = re.compile(r"^(KeyedStream|KeyedSingleton|Stream|Optional|Singleton)<")
_LOCATION_RE = re.compile(r"(?<![A-Za-z0-9_])(Process|Cluster|External)<")
_GENERIC_RE = re.compile(r"^[^<]+<")


# ===================================================================
# Depth-aware scanning
# ===================================================================

class _DepthTracker:
    """Angle-bracket and parenthesis depth counters that never go negative."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.angle = 0
        self.paren = 0

    @property
    def at_top_level(self) -> bool:
        return self.angle == 0 and self.paren == 0

    def feed(self, text: str, index: int) -> None:
        char = text[index]
        if char == "<":
            self.angle += 1
        elif char == ">":
            # `->` in closure / fn pointer types is not a bracket
            if index > 0 and text[index - 1] == "-":
                return
            self.angle -= 1
            if self.angle < 0:
                logger.warning("Mismatched angle brackets in type parameters: %s", self.source)
                self.angle = 0
        elif char == "(":
            self.paren += 1
        elif char == ")":
            self.paren -= 1
            if self.paren < 0:
                logger.warning("Mismatched parentheses in type parameters: %s", self.source)
                self.paren = 0

    def report_unclosed(self) -> None:
        if self.angle:
            logger.warning(
                "Unclosed angle brackets in type parameters: %s (depth: %d)",
                self.source, self.angle,
            )
        if self.paren:
            logger.warning(
                "Unclosed parentheses in type parameters: %s (depth: %d)",
                self.source, self.paren,
            )


def split_type_parameters(params: str) -> List[str]:
    """Split a generic parameter list at top-level commas.

    ``"T, Process<'a, Leader>, Unbounded"`` -> ``["T", "Process<'a, Leader>", "Unbounded"]``
    ``"(String, i32), Process<'a, Leader>"`` -> ``["(String, i32)", "Process<'a, Leader>"]``
    """
    if not isinstance(params, str):
        return []

    result: List[str] = []
    depth = _DepthTracker(params)
    start = 0
    for i, char in enumerate(params):
        if char == "," and depth.at_top_level:
            piece = params[start:i].strip()
            if piece:
                result.append(piece)
            start = i + 1
            continue
        depth.feed(params, i)

    piece = params[start:].strip()
    if piece:
        result.append(piece)

    depth.report_unclosed()
    return result


def _find_closing(text: str, open_index: int) -> Optional[int]:
    """Index of the ``>`` matching the ``<`` at *open_index*, or None if unclosed."""
    depth = _DepthTracker(text)
    for i in range(open_index, len(text)):
        depth.feed(text, i)
        if text[i] == ">" and depth.angle == 0 and (i == 0 or text[i - 1] != "-"):
            return i
    return None


# ===================================================================
# Grammar steps
# ===================================================================

def _strip_reference(text: str) -> str:
    return _REFERENCE_RE.sub("", text, count=1)


def _container_location_param(text: str) -> Optional[str]:
    match = _CONTAINER_RE.match(text)
    if not match or not text.endswith(">"):
        return None
    container = match.group(1)
    params = split_type_parameters(text[match.end():-1])
    index = 2 if container.startswith("Keyed") else 1
    if len(params) > index:
        return params[index]
    return None


def _strip_batch_scopes(text: str) -> Tuple[str, int]:
    prefix = f"{BATCH_SCOPE_MARKER}<"
    depth = 0
    current = text
    while current.startswith(prefix) and current.endswith(">"):
        closing = _find_closing(current, len(prefix) - 1)
        if closing is not None and closing != len(current) - 1:
            break
        inner = current[len(prefix):-1].strip()
        if not inner:
            break
        depth += 1
        if depth > MAX_NESTING:
            raise MalformedTypeString(text, f"more than {MAX_NESTING} {BATCH_SCOPE_MARKER} layers")
        current = inner
    return current, depth


def _location_arguments(text: str, open_index: int) -> List[str]:
    closing = _find_closing(text, open_index)
    if closing is None:
        logger.warning("Unclosed location type parameters: %s", text)
        body = text[open_index + 1:]
    else:
        body = text[open_index + 1:closing]
    return split_type_parameters(body)


def _match_location(text: str) -> Optional[Tuple[LocationKind, str]]:
    matches = list(_LOCATION_RE.finditer(text))

    # Kind<'lifetime, Param>, or Kind<Param> without a lifetime
    for match in matches:
        params = _location_arguments(text, match.end() - 1)
        if len(params) >= 2 and params[0].startswith("'"):
            return LocationKind(match.group(1)), params[1]
        if len(params) == 1 and not params[0].startswith("'"):
            return LocationKind(match.group(1)), params[0]

    # Bare Kind< with nothing extractable
    if matches:
        kind = LocationKind(matches[0].group(1))
        return kind, kind.value
    return None


def _parse(text: str, nesting: int) -> Optional[LocationDescriptor]:
    if nesting > MAX_NESTING:
        raise MalformedTypeString(text, "container nesting too deep")

    unwrapped = _strip_reference(text.strip())

    location_param = _container_location_param(unwrapped)
    if location_param is not None:
        return _parse(location_param, nesting + 1)

    inner, tick_depth = _strip_batch_scopes(unwrapped)
    matched = _match_location(inner)
    if matched is None:
        return None
    kind, label = matched
    return LocationDescriptor(kind=kind, label=label, tick_depth=tick_depth)


def parse_location_type(type_string: str) -> Optional[LocationDescriptor]:
    """Parse a full type string into a location descriptor.

    Examples:
        ``"Stream<T, Process<'a, Leader>, Unbounded>"`` -> Process / Leader / 0
        ``"Optional<(), Tick<Cluster<'_, Proposer>>, Bounded>"`` -> Cluster / Proposer / 1
        ``"Tick<Tick<Process<'a, Leader>>>"`` -> Process / Leader / 2
        ``"i32"`` -> None
    """
    if not isinstance(type_string, str) or not type_string.strip():
        return None
    try:
        return _parse(type_string, 0)
    except Exception as exc:
        logger.warning("Error parsing location type from '%s': %s", type_string, exc)
        return None


class LocationTypeParser:
    """Object wrapper around :func:`parse_location_type` for injection into services."""

    def parse(self, type_string: str) -> Optional[LocationDescriptor]:
        return parse_location_type(type_string)


# ===================================================================
# Collection type parameters (boundedness / ordering)
# ===================================================================

def parse_collection_type_parameters(type_string: str) -> List[str]:
    """Parameters of the outermost generic in *type_string*.

    ``"Singleton<(String, u32), Tick<Process<'a>>, Bounded>"``
    -> ``["(String, u32)", "Tick<Process<'a>>", "Bounded"]``
    """
    if not isinstance(type_string, str):
        return []
    text = type_string.strip()
    match = _GENERIC_RE.match(text)
    if not match or not text.endswith(">") or len(text) <= match.end() + 1:
        return []
    return split_type_parameters(text[match.end():-1])


def extract_boundedness(type_params: Sequence[str]) -> Optional[str]:
    """First boundedness marker among *type_params*; a generic ``B`` counts as Unbounded."""
    for param in type_params:
        trimmed = param.strip()
        if trimmed.startswith("Bounded"):
            return "Bounded"
        if trimmed.startswith("Unbounded"):
            return "Unbounded"
        if re.match(r"^B\b", trimmed):
            return "Unbounded"
    return None


_ASSOCIATED_ORDER_RE = re.compile(r"<[^>]*as[^>]*<([^>]*)>[^>]*>::")


def extract_ordering(type_params: Sequence[str]) -> Optional[str]:
    """First ordering marker among *type_params*; a generic ``O`` counts as NoOrder."""
    for param in type_params:
        trimmed = param.strip()
        if "TotalOrder" in trimmed:
            return "TotalOrder"
        if "NoOrder" in trimmed:
            return "NoOrder"
        if re.match(r"^O\b", trimmed):
            return "NoOrder"
        associated = _ASSOCIATED_ORDER_RE.search(trimmed)
        if associated:
            inner = associated.group(1)
            if "TotalOrder" in inner:
                return "TotalOrder"
            if "NoOrder" in inner:
                return "NoOrder"
    return None
