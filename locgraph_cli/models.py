"""Core data models shared by type parsing, chain tracking, caching and edge classification."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Generic, Optional, Set, TypeVar

T = TypeVar("T")


class LocationKind(str, Enum):
    PROCESS = "Process"
    CLUSTER = "Cluster"
    EXTERNAL = "External"


@dataclass(frozen=True, order=True)
class Position:
    line: int
    character: int


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    @classmethod
    def from_coords(cls, start_line: int, start_char: int, end_line: int, end_char: int) -> "Range":
        return cls(Position(start_line, start_char), Position(end_line, end_char))


@dataclass(frozen=True)
class LocationDescriptor:
    """Placement of an operator: a location kind, its label and Tick nesting depth."""

    kind: LocationKind
    label: str
    tick_depth: int = 0

    def __post_init__(self) -> None:
        if self.tick_depth < 0:
            raise ValueError(f"tick_depth must be >= 0, got {self.tick_depth}")

    @property
    def has_parameter(self) -> bool:
        return self.label != self.kind.value

    @property
    def location_kind(self) -> str:
        """Display form, e.g. ``Tick<Process<Leader>>`` or ``Cluster``."""
        inner = f"{self.kind.value}<{self.label}>" if self.has_parameter else self.kind.value
        return _wrap_ticks(inner, self.tick_depth)

    def to_type_string(self) -> str:
        """Canonical type form that parses back to an equal descriptor."""
        if self.has_parameter:
            inner = f"{self.kind.value}<'_, {self.label}>"
        else:
            inner = f"{self.kind.value}<'_>"
        return _wrap_ticks(inner, self.tick_depth)

    def base(self) -> "LocationDescriptor":
        return self.with_tick_depth(0)

    def with_tick_depth(self, depth: int) -> "LocationDescriptor":
        return replace(self, tick_depth=depth)

    def __str__(self) -> str:
        return self.to_type_string()


def _wrap_ticks(inner: str, depth: int) -> str:
    for _ in range(depth):
        inner = f"Tick<{inner}>"
    return inner


@dataclass(frozen=True)
class OperatorSite:
    position: Position
    operator_name: str


@dataclass(frozen=True)
class LocationInfo:
    operator_name: str
    source_range: Range
    raw_type_string: str
    descriptor: LocationDescriptor
    full_return_type: Optional[str] = None

    @property
    def location_kind(self) -> str:
        return self.descriptor.location_kind


@dataclass
class ChainState:
    last_location: Optional[LocationDescriptor] = None
    in_chain: bool = False

    def reset(self) -> None:
        self.last_location = None
        self.in_chain = False


@dataclass
class CacheEntry(Generic[T]):
    value: T
    timestamp: float
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class CacheStats:
    entries: int
    hits: int
    misses: int
    hit_rate: float
    max_size: int

    @property
    def hit_rate_percent(self) -> str:
        return f"{self.hit_rate * 100:.1f}"


@dataclass(frozen=True)
class CacheKeyParts:
    document_uri: str
    document_version: int
    scope_type: str
    active_file_path: Optional[str] = None


@dataclass(frozen=True)
class GraphNode:
    id: str
    short_label: str


@dataclass
class GraphEdge:
    id: str
    source: str
    target: str
    semantic_tags: Set[str] = field(default_factory=set)


@dataclass
class ClassificationSummary:
    edges_examined: int = 0
    network_edges: int = 0
