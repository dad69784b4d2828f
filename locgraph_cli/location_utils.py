"""Helpers for location-kind display strings and stable location identities."""

from __future__ import annotations

import re
from typing import Optional, Union

from .models import LocationDescriptor

_TICK_PREFIX = "Tick<"
_LABEL_RE = re.compile(r"^(?:Process|Cluster|External)<([^>]+)>")
_KIND_RE = re.compile(r"^(Process|Cluster|External)")


def count_tick_depth(location_kind: str) -> int:
    """Number of ``Tick<...>`` wrappers around *location_kind*."""
    depth = 0
    current = location_kind.strip()
    while current.startswith(_TICK_PREFIX) and current.endswith(">"):
        depth += 1
        current = current[len(_TICK_PREFIX):-1].strip()
    return depth


def normalize_location_kind(location_kind: str) -> str:
    """Strip Tick wrappers so ``Tick<Process<Leader>>`` groups with ``Process<Leader>``."""
    normalized = location_kind
    while normalized.startswith(_TICK_PREFIX) and normalized.endswith(">"):
        normalized = normalized[len(_TICK_PREFIX):-1]
    return normalized


def extract_location_label(location_kind: Optional[str]) -> str:
    """Human-readable label: ``Tick<Process<Proposer>>`` -> ``Proposer``."""
    if not location_kind:
        return "(unknown location)"

    unwrapped = normalize_location_kind(location_kind)
    param = _LABEL_RE.match(unwrapped)
    if param:
        return re.sub(r"^'[a-z_]+,\s*", "", param.group(1).strip())

    base = _KIND_RE.match(unwrapped)
    if base:
        return base.group(1)
    return location_kind


def location_key(location: Union[LocationDescriptor, str]) -> str:
    """Tick-independent canonical key for a location."""
    if isinstance(location, LocationDescriptor):
        return location.base().location_kind
    return normalize_location_kind(location.strip())


def location_id(location: Union[LocationDescriptor, str]) -> int:
    """Stable non-negative 32-bit identity for a location, ignoring Tick depth."""
    value = 0
    for char in location_key(location):
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)
