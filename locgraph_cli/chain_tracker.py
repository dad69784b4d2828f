"""Chain propagation of operator locations.

Walks the operator sites of one document in source order, resolving each via
hover and falling back to the location of the previous operator in the same
dot-chain when the backend has nothing useful to say::

    let words = p1.source_iter(q!(vec!["a"]))   // Process<P1>, starts chain
        .map(q!(|s| s.len()))                    // hover resolves, InChain
        .inspect(q!(|n| println!("{}", n)));     // no hover -> inherits Process<P1>

The heuristic can mis-attribute a location when an operator silently changes
location without observable type information.  That is accepted behavior.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from .backend import Document
from .config import DEFAULT_QUERY_TIMEOUT_MS
from .models import ChainState, LocationDescriptor, LocationInfo, OperatorSite, Range
from .operators import OperatorRegistry
from .type_parser import LocationTypeParser
from .type_query import TypeQueryService, is_method_call, position_in_bounds

logger = logging.getLogger(__name__)

_SELF_RE = re.compile(r"^&?(?:mut\s+)?Self$")
_UNIT_TYPE = "()"
_TRUNCATION_MARKER = "…"


def is_continuation_line(document: Document, line: int) -> bool:
    """A line whose first non-blank character is ``.``."""
    return document.line_at(line).lstrip().startswith(".")


def _is_placeholder_label(label: str) -> bool:
    # unresolved generic (`L`) or a label truncated by the backend
    return (len(label) == 1 and label.isupper()) or _TRUNCATION_MARKER in label


class ChainPropagationTracker:
    """Resolves a location for every operator site of a document pass."""

    def __init__(
        self,
        query_service: TypeQueryService,
        registry: OperatorRegistry,
        parser: Optional[LocationTypeParser] = None,
        timeout_ms: float = DEFAULT_QUERY_TIMEOUT_MS,
    ) -> None:
        self.query_service = query_service
        self.registry = registry
        self.parser = parser or LocationTypeParser()
        self.timeout_ms = timeout_ms

    def _source_range(self, document: Document, site: OperatorSite) -> Range:
        word = document.word_range_at_position(site.position)
        if word is not None:
            return word
        start = site.position
        return Range.from_coords(start.line, start.character, start.line, start.character + len(site.operator_name))

    def _can_inherit(self, state: ChainState, operator_name: str) -> bool:
        return (
            state.in_chain
            and state.last_location is not None
            and self.registry.is_known_dataflow_operator(operator_name)
        )

    def _inherited(
        self,
        document: Document,
        site: OperatorSite,
        location: LocationDescriptor,
        type_text: Optional[str],
    ) -> LocationInfo:
        logger.debug(
            "Inherited %s for '%s' at line %d",
            location.location_kind, site.operator_name, site.position.line,
        )
        return LocationInfo(
            operator_name=site.operator_name,
            source_range=self._source_range(document, site),
            raw_type_string=type_text or location.to_type_string(),
            descriptor=location,
            full_return_type=type_text,
        )

    async def track(self, document: Document, sites: Iterable[OperatorSite]) -> List[LocationInfo]:
        """Resolve *sites* one at a time in ``(line, character)`` order."""
        ordered = sorted(sites, key=lambda s: (s.position.line, s.position.character))
        state = ChainState()
        results: List[LocationInfo] = []

        for site in ordered:
            position = site.position
            if not position_in_bounds(document, position):
                logger.debug("Skipping stale site '%s' at %d:%d", site.operator_name, position.line, position.character)
                continue
            continuation = is_continuation_line(document, position.line)

            if not continuation and state.in_chain:
                logger.debug("Chain ended before '%s' at line %d", site.operator_name, position.line)
                state.reset()

            type_text = await self.query_service.resolve_type(
                document,
                position,
                is_method_call(document, position),
                self.timeout_ms,
            )

            if type_text is None or _SELF_RE.match(type_text.strip()):
                if self._can_inherit(state, site.operator_name):
                    results.append(self._inherited(document, site, state.last_location, type_text))
                else:
                    logger.debug("No type info for '%s' at line %d", site.operator_name, position.line)
                continue

            descriptor = self.parser.parse(type_text)
            if descriptor is None:
                if (
                    type_text.strip() == _UNIT_TYPE
                    and self.registry.is_sink_operator(site.operator_name)
                    and self._can_inherit(state, site.operator_name)
                ):
                    results.append(self._inherited(document, site, state.last_location, type_text))
                else:
                    logger.debug("No location in type for '%s': %s", site.operator_name, type_text)
                continue

            if _is_placeholder_label(descriptor.label):
                logger.debug(
                    "Discarding placeholder location %s for '%s'",
                    descriptor.location_kind, site.operator_name,
                )
                continue

            results.append(
                LocationInfo(
                    operator_name=site.operator_name,
                    source_range=self._source_range(document, site),
                    raw_type_string=type_text,
                    descriptor=descriptor,
                    full_return_type=type_text,
                )
            )

            if continuation:
                state.in_chain = True
                state.last_location = descriptor
            else:
                state.reset()

        logger.debug("Resolved %d of %d operator sites in %s", len(results), len(ordered), document.uri)
        return results
