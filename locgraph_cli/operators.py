"""Operator taxonomy used to classify dataflow operators.

A registry is an ordinary object built from an :class:`OperatorConfig`; each
analysis session owns its own instance.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, List

DEFAULT_NETWORKING_OPERATORS: List[str] = [
    "send_bincode",
    "recv_bincode",
    "broadcast_bincode",
    "demux_bincode",
    "round_robin_bincode",
    "send_bincode_external",
    "recv_bincode_external",
    "send_bytes",
    "recv_bytes",
    "broadcast_bytes",
    "demux_bytes",
    "send_bytes_external",
    "recv_bytes_external",
    "connect",
    "disconnect",
]

DEFAULT_CORE_DATAFLOW_OPERATORS: List[str] = [
    "map", "flat_map", "filter", "filter_map", "scan", "enumerate", "inspect",
    "unique", "sort", "fold", "reduce", "fold_keyed", "reduce_keyed",
    "reduce_watermark_commutative", "fold_commutative", "reduce_commutative",
    "fold_early_stop", "into_singleton", "into_stream", "into_keyed", "keys",
    "values", "entries", "collect_vec", "collect_ready", "all_ticks",
    "all_ticks_atomic", "join", "cross_product", "cross_singleton",
    "difference", "anti_join", "chain", "chain_first", "union", "concat", "zip",
    "defer_tick", "persist", "snapshot", "snapshot_atomic", "sample_every",
    "sample_eager", "timeout", "batch", "yield_concat", "source_iter",
    "source_stream", "source_stdin", "for_each", "dest_sink", "assert",
    "assert_eq", "dest_file", "tee", "clone", "unwrap", "unwrap_or",
    "filter_if_some", "filter_if_none", "resolve_futures",
    "resolve_futures_ordered", "tick", "atomic", "complete",
    "complete_next_tick", "first", "last",
]

DEFAULT_SINK_OPERATORS: List[str] = ["for_each", "dest_sink", "assert", "assert_eq", "dest_file"]


@dataclass
class OperatorConfig:
    networking_operators: List[str] = field(default_factory=lambda: list(DEFAULT_NETWORKING_OPERATORS))
    core_dataflow_operators: List[str] = field(default_factory=lambda: list(DEFAULT_CORE_DATAFLOW_OPERATORS))
    sink_operators: List[str] = field(default_factory=lambda: list(DEFAULT_SINK_OPERATORS))


def _copied(config: OperatorConfig) -> OperatorConfig:
    return replace(
        config,
        networking_operators=list(config.networking_operators),
        core_dataflow_operators=list(config.core_dataflow_operators),
        sink_operators=list(config.sink_operators),
    )


class OperatorRegistry:
    """Classifies operators by name against a configured taxonomy."""

    def __init__(self, config: OperatorConfig | None = None) -> None:
        self._config = _copied(config or OperatorConfig())

    @property
    def config(self) -> OperatorConfig:
        """A copy of the current taxonomy; mutating it does not affect the registry."""
        return _copied(self._config)

    def update_config(self, **changes: Any) -> None:
        self._config = _copied(replace(self._config, **changes))

    def is_networking_operator(self, operator_name: str) -> bool:
        return operator_name in self._config.networking_operators

    def is_known_dataflow_operator(self, operator_name: str) -> bool:
        """Networking or core dataflow operator."""
        return (
            self.is_networking_operator(operator_name)
            or operator_name in self._config.core_dataflow_operators
        )

    def is_sink_operator(self, operator_name: str) -> bool:
        return operator_name in self._config.sink_operators
