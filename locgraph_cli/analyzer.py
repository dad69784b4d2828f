"""Per-session document analysis driver.

An :class:`AnalysisSession` owns every stateful piece of the engine (result
cache, query service, chain tracker, edge classifier) for one backend.  Create
one per editor/workspace session and drop it when the session ends::

    session = AnalysisSession(backend, load_analysis_settings(),
                              OperatorRegistry(load_operator_config()))
    infos = await session.analyze_positions(document, sites)
"""

from __future__ import annotations

import logging
import re
import time
from typing import Dict, Iterable, List, Optional, Sequence

from .backend import Document, SemanticBackend
from .cache import ResultCache, create_graph_cache_key, document_key_prefix
from .chain_tracker import ChainPropagationTracker
from .config import SCOPE_FUNCTION
from .config_manager import AnalysisSettings
from .edge_classifier import GraphEdgeClassifier
from .models import CacheStats, GraphEdge, GraphNode, LocationDescriptor, LocationInfo, OperatorSite, Range
from .operators import OperatorRegistry
from .type_query import TypeQueryService

logger = logging.getLogger(__name__)


class AnalysisSession:
    """Resolves, caches and classifies operator locations for one backend."""

    def __init__(
        self,
        backend: SemanticBackend,
        settings: Optional[AnalysisSettings] = None,
        registry: Optional[OperatorRegistry] = None,
    ) -> None:
        self.settings = settings or AnalysisSettings()
        self.registry = registry or OperatorRegistry()
        self.cache: ResultCache[List[LocationInfo]] = ResultCache(self.settings.cache_size)
        self.query_service = TypeQueryService(backend, self.settings.query_timeout_ms)
        self.tracker = ChainPropagationTracker(
            self.query_service,
            self.registry,
            timeout_ms=self.settings.query_timeout_ms,
        )
        self.classifier = GraphEdgeClassifier(self.registry)

    # ===================================================================
    # Location analysis
    # ===================================================================

    async def analyze_positions(
        self,
        document: Document,
        sites: Iterable[OperatorSite],
        scope_type: str = SCOPE_FUNCTION,
        active_file_path: Optional[str] = None,
    ) -> List[LocationInfo]:
        """Resolve the location of every site in *document*.

        Args:
            document: Source document; its URI and version form the cache key.
            sites: Candidate operator sites, in any order.
            scope_type: Scope kind recorded in the cache key.
            active_file_path: Optional path recorded in the cache key.

        Returns:
            Location records in source order, followed by struct definition
            records. Empty when analysis is disabled, the document is too
            large, or the pass failed.
        """
        if not self.settings.enabled:
            logger.debug("Location analysis is disabled")
            return []

        if document.line_count > self.settings.max_file_lines:
            logger.warning(
                "Skipping %s: %d lines exceeds max_file_lines (%d)",
                document.uri, document.line_count, self.settings.max_file_lines,
            )
            return []

        key = create_graph_cache_key(document.uri, document.version, scope_type, active_file_path)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return list(cached)

        started = time.time()
        try:
            infos = await self.tracker.track(document, list(sites))
            infos.extend(self._struct_definitions(document, infos))
        except Exception:
            logger.exception("Location analysis failed for %s", document.uri)
            return []

        self.cache.set(key, infos, {"version": document.version, "count": len(infos)})
        logger.info(
            "Found %d location-typed identifiers in %s (%.0fms)",
            len(infos), document.uri, (time.time() - started) * 1000,
        )
        return list(infos)

    @staticmethod
    def _struct_definitions(document: Document, infos: Sequence[LocationInfo]) -> List[LocationInfo]:
        """Location records for ``struct <Label>`` declarations of resolved labels."""
        descriptors: Dict[str, LocationDescriptor] = {}
        for info in infos:
            if info.descriptor.has_parameter:
                descriptors.setdefault(info.descriptor.label, info.descriptor)

        found: List[LocationInfo] = []
        for label, descriptor in descriptors.items():
            pattern = re.compile(rf"\bstruct\s+{re.escape(label)}\b")
            for line_number in range(document.line_count):
                text = document.line_at(line_number)
                match = pattern.search(text)
                if match is None:
                    continue
                start = match.end() - len(label)
                found.append(
                    LocationInfo(
                        operator_name=label,
                        source_range=Range.from_coords(line_number, start, line_number, start + len(label)),
                        raw_type_string=descriptor.to_type_string(),
                        descriptor=descriptor,
                    )
                )
                break
        return found

    # ===================================================================
    # Edges
    # ===================================================================

    def classify_edges(self, edges: Sequence[GraphEdge], nodes: Sequence[GraphNode]) -> List[GraphEdge]:
        return self.classifier.classify(edges, nodes)

    # ===================================================================
    # Cache management
    # ===================================================================

    def invalidate(self, document_uri: Optional[str] = None) -> int:
        """Drop cached results for one document (every version and scope) or for all documents.

        Returns:
            Number of cache entries removed.
        """
        if document_uri is None:
            removed = self.cache.size()
            self.cache.clear()
            logger.debug("Cleared all %d cached results", removed)
            return removed

        prefix = document_key_prefix(document_uri)
        stale = [key for key in self.cache.keys() if key.startswith(prefix)]
        for key in stale:
            self.cache.clear(key)
        logger.debug("Cleared %d cached results for %s", len(stale), document_uri)
        return len(stale)

    def get_cache_stats(self) -> CacheStats:
        return self.cache.get_stats()
