"""Network edge classification for dataflow graphs.

An edge is a network edge when either endpoint is a networking operator
(``send_bincode``, ``recv_bincode``, ...).  Tags added:

- ``network`` on every network edge
- ``network-source`` / ``remote-sender`` when only the source is networking
- ``network-target`` / ``remote-receiver`` when only the target is networking
- ``network-to-network`` when both are
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from .errors import InvalidGraphPayload
from .models import ClassificationSummary, GraphEdge, GraphNode
from .operators import OperatorRegistry

logger = logging.getLogger(__name__)

TAG_NETWORK = "network"
TAG_NETWORK_SOURCE = "network-source"
TAG_NETWORK_TARGET = "network-target"
TAG_REMOTE_SENDER = "remote-sender"
TAG_REMOTE_RECEIVER = "remote-receiver"
TAG_NETWORK_TO_NETWORK = "network-to-network"


class GraphEdgeClassifier:
    """Tags edges that cross a network boundary."""

    def __init__(self, registry: OperatorRegistry) -> None:
        self.registry = registry
        self.last_summary = ClassificationSummary()

    def _network_tags(self, source: GraphNode, target: GraphNode) -> List[str]:
        source_is_network = self.registry.is_networking_operator(source.short_label)
        target_is_network = self.registry.is_networking_operator(target.short_label)

        if source_is_network and target_is_network:
            logger.debug("Network edge: %s -> %s (both network ops)", source.short_label, target.short_label)
            return [TAG_NETWORK, TAG_NETWORK_TO_NETWORK]
        if source_is_network:
            logger.debug("Network edge: %s -> %s (network source)", source.short_label, target.short_label)
            return [TAG_NETWORK, TAG_NETWORK_SOURCE, TAG_REMOTE_SENDER]
        if target_is_network:
            logger.debug("Network edge: %s -> %s (network target)", source.short_label, target.short_label)
            return [TAG_NETWORK, TAG_NETWORK_TARGET, TAG_REMOTE_RECEIVER]
        return []

    def classify(self, edges: Sequence[GraphEdge], nodes: Sequence[GraphNode]) -> List[GraphEdge]:
        """Return *edges* with network tags added.

        Edges whose endpoints are not both in *nodes*, and edges between two
        non-networking operators, are returned as the same objects.  Tagged
        edges are new objects; the inputs are never mutated.
        """
        node_map: Dict[str, GraphNode] = {node.id: node for node in nodes}
        summary = ClassificationSummary()
        classified: List[GraphEdge] = []

        for edge in edges:
            summary.edges_examined += 1
            source = node_map.get(edge.source)
            target = node_map.get(edge.target)
            if source is None or target is None:
                classified.append(edge)
                continue

            tags = self._network_tags(source, target)
            if not tags:
                classified.append(edge)
                continue

            summary.network_edges += 1
            classified.append(
                GraphEdge(
                    id=edge.id,
                    source=edge.source,
                    target=edge.target,
                    semantic_tags=set(edge.semantic_tags) | set(tags),
                )
            )

        self.last_summary = summary
        logger.info(
            "Analyzed %d edges, found %d network edges",
            summary.edges_examined, summary.network_edges,
        )
        return classified

    # ------------------------------------------------------------------
    # JSON payloads
    # ------------------------------------------------------------------

    def classify_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Classify a ``{"nodes": [...], "edges": [...]}`` graph payload.

        Extra node and edge fields are passed through untouched; each edge's
        ``semanticTags`` is rewritten as a sorted list.

        Raises:
            InvalidGraphPayload: if the payload is not a graph object.
        """
        raw_nodes, raw_edges = _payload_lists(payload)
        nodes = [_decode_node(raw, index) for index, raw in enumerate(raw_nodes)]
        edges = [_decode_edge(raw, index) for index, raw in enumerate(raw_edges)]

        classified = self.classify(edges, nodes)

        out_edges = []
        for raw, edge in zip(raw_edges, classified):
            encoded = dict(raw)
            encoded["semanticTags"] = sorted(edge.semantic_tags)
            out_edges.append(encoded)

        result = dict(payload)
        result["edges"] = out_edges
        return result


def _payload_lists(payload: Any):
    if not isinstance(payload, dict):
        raise InvalidGraphPayload(f"graph payload must be an object, got {type(payload).__name__}")
    nodes = payload.get("nodes")
    edges = payload.get("edges")
    if not isinstance(nodes, list):
        raise InvalidGraphPayload("graph payload is missing a 'nodes' list")
    if not isinstance(edges, list):
        raise InvalidGraphPayload("graph payload is missing an 'edges' list")
    return nodes, edges


def _require_str(raw: Dict[str, Any], key: str, what: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str):
        raise InvalidGraphPayload(f"{what} is missing string field '{key}'")
    return value


def _decode_node(raw: Any, index: int) -> GraphNode:
    what = f"node #{index}"
    if not isinstance(raw, dict):
        raise InvalidGraphPayload(f"{what} must be an object")
    return GraphNode(id=_require_str(raw, "id", what), short_label=_require_str(raw, "shortLabel", what))


def _decode_edge(raw: Any, index: int) -> GraphEdge:
    what = f"edge #{index}"
    if not isinstance(raw, dict):
        raise InvalidGraphPayload(f"{what} must be an object")
    tags = raw.get("semanticTags", [])
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise InvalidGraphPayload(f"{what} has invalid 'semanticTags' (expected a list of strings)")
    return GraphEdge(
        id=_require_str(raw, "id", what),
        source=_require_str(raw, "source", what),
        target=_require_str(raw, "target", what),
        semantic_tags=set(tags),
    )
