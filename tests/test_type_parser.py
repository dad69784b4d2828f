"""Tests for the location type parser."""

import logging

import pytest

from locgraph_cli.models import LocationDescriptor, LocationKind
from locgraph_cli.type_parser import (
    LocationTypeParser,
    extract_boundedness,
    extract_ordering,
    parse_collection_type_parameters,
    parse_location_type,
    split_type_parameters,
)


class TestParseLocationType:
    """Tests for parse_location_type."""

    def test_stream_in_tick(self):
        """Tuple element type and a single Tick wrapper."""
        result = parse_location_type("Stream<(String, i32), Tick<Process<'a, Leader>>, Bounded>")

        assert result == LocationDescriptor(LocationKind.PROCESS, "Leader", 1)

    def test_optional_cluster_in_tick(self):
        result = parse_location_type("Optional<(), Tick<Cluster<'_, Proposer>>, Bounded>")

        assert result == LocationDescriptor(LocationKind.CLUSTER, "Proposer", 1)

    def test_plain_stream(self):
        result = parse_location_type("Stream<T, Process<'a, Leader>, Unbounded, TotalOrder>")

        assert result.kind is LocationKind.PROCESS
        assert result.label == "Leader"
        assert result.tick_depth == 0

    def test_keyed_containers_use_third_parameter(self):
        stream = parse_location_type("KeyedStream<u32, String, Cluster<'a, Acceptor>, Unbounded>")
        singleton = parse_location_type("KeyedSingleton<K, (V, u64), Tick<Process<'a, Replica>>, Bounded>")

        assert stream == LocationDescriptor(LocationKind.CLUSTER, "Acceptor", 0)
        assert singleton == LocationDescriptor(LocationKind.PROCESS, "Replica", 1)

    def test_nested_ticks(self):
        result = parse_location_type("Tick<Tick<Process<'a, Leader>>>")

        assert result == LocationDescriptor(LocationKind.PROCESS, "Leader", 2)

    def test_container_with_nested_ticks(self):
        result = parse_location_type("Singleton<usize, Tick<Tick<Tick<External<'a, Client>>>>, Bounded>")

        assert result == LocationDescriptor(LocationKind.EXTERNAL, "Client", 3)

    def test_reference_sigils(self):
        assert parse_location_type("&Process<'a, P1>") == LocationDescriptor(LocationKind.PROCESS, "P1")
        assert parse_location_type("&mut Cluster<'a, Worker>") == LocationDescriptor(LocationKind.CLUSTER, "Worker")

    def test_bare_kind_without_parameter(self):
        """A location with only a lifetime gets the kind name as its label."""
        result = parse_location_type("Process<'a>")

        assert result == LocationDescriptor(LocationKind.PROCESS, "Process")
        assert not result.has_parameter

    def test_nested_generic_label(self):
        result = parse_location_type("Stream<T, Cluster<'a, Shard<Key>>, Bounded>")

        assert result.label == "Shard<Key>"

    def test_closure_parameter_does_not_confuse_depth(self):
        result = parse_location_type("Stream<Box<dyn Fn(u32) -> u32>, Process<'a, Leader>, Bounded>")

        assert result == LocationDescriptor(LocationKind.PROCESS, "Leader")

    @pytest.mark.parametrize("type_string", ["i32", "Vec<String>", "Stream<T>", "", "   "])
    def test_no_location(self, type_string):
        assert parse_location_type(type_string) is None

    def test_non_string_input(self):
        assert parse_location_type(None) is None

    def test_malformed_input_returns_partial_result(self, caplog):
        """Unclosed brackets are logged but do not prevent a result."""
        with caplog.at_level(logging.WARNING, logger="locgraph_cli.type_parser"):
            result = parse_location_type("Process<'a, Leader")

        assert result == LocationDescriptor(LocationKind.PROCESS, "Leader")
        assert any("Unclosed" in record.message for record in caplog.records)

    def test_extra_closing_brackets_are_tolerated(self, caplog):
        with caplog.at_level(logging.WARNING, logger="locgraph_cli.type_parser"):
            result = parse_location_type("Stream<T, Process<'a, Leader>>>, Bounded>")

        assert result is None or result.kind is LocationKind.PROCESS

    def test_excessive_tick_nesting_returns_none(self, caplog):
        type_string = "Tick<" * 70 + "Process<'a, Leader>" + ">" * 70

        with caplog.at_level(logging.WARNING, logger="locgraph_cli.type_parser"):
            assert parse_location_type(type_string) is None
        assert any("Error parsing location type" in record.message for record in caplog.records)

    def test_parser_object(self):
        parser = LocationTypeParser()

        assert parser.parse("Cluster<'_, Proposer>") == LocationDescriptor(LocationKind.CLUSTER, "Proposer")


class TestParserProperties:
    """Idempotence and Tick normalization."""

    @pytest.mark.parametrize(
        "type_string",
        [
            "Stream<(String, i32), Tick<Process<'a, Leader>>, Bounded>",
            "Optional<(), Tick<Cluster<'_, Proposer>>, Bounded>",
            "Tick<Tick<External<'a, Client>>>",
            "Process<'a>",
            "KeyedStream<K, V, Cluster<'a, Shard<Key>>, Unbounded>",
        ],
    )
    def test_canonical_form_reparses_identically(self, type_string):
        descriptor = parse_location_type(type_string)

        assert parse_location_type(descriptor.to_type_string()) == descriptor
        assert parse_location_type(str(descriptor)) == descriptor

    def test_display_form_reparses_identically(self):
        descriptor = parse_location_type("Tick<Process<'a, Leader>>")

        assert descriptor.location_kind == "Tick<Process<Leader>>"
        assert parse_location_type(descriptor.location_kind) == descriptor

    @pytest.mark.parametrize("depth", [0, 1, 2, 5])
    def test_tick_wrapping_only_changes_depth(self, depth):
        inner = "Cluster<'a, Proposer>"
        wrapped = "Tick<" * depth + inner + ">" * depth

        base = parse_location_type(inner)
        result = parse_location_type(f"Stream<T, {wrapped}, Bounded>")

        assert (result.kind, result.label) == (base.kind, base.label)
        assert result.tick_depth == depth


class TestSplitTypeParameters:
    """Tests for top-level comma splitting."""

    def test_simple(self):
        assert split_type_parameters("T, Process<'a, Leader>, Unbounded") == [
            "T",
            "Process<'a, Leader>",
            "Unbounded",
        ]

    def test_tuple_parameter(self):
        assert split_type_parameters("(String, i32), Process<'a, Leader>") == [
            "(String, i32)",
            "Process<'a, Leader>",
        ]

    def test_mismatched_closing_is_clamped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="locgraph_cli.type_parser"):
            result = split_type_parameters("A>, B, C")

        assert result == ["A>", "B", "C"]
        assert any("Mismatched" in record.message for record in caplog.records)

    def test_empty(self):
        assert split_type_parameters("") == []


class TestCollectionParameters:
    """Tests for boundedness and ordering extraction."""

    def test_collection_parameters(self):
        params = parse_collection_type_parameters("Singleton<(String, u32), Tick<Process<'a>>, Bounded>")

        assert params == ["(String, u32)", "Tick<Process<'a>>", "Bounded"]

    def test_non_generic(self):
        assert parse_collection_type_parameters("i32") == []
        assert parse_collection_type_parameters("Stream<>") == []

    def test_boundedness(self):
        assert extract_boundedness(["T", "Process<'a>", "Bounded"]) == "Bounded"
        assert extract_boundedness(["T", "Process<'a>", "Unbounded"]) == "Unbounded"
        assert extract_boundedness(["T", "L", "B"]) == "Unbounded"
        assert extract_boundedness(["T", "Process<'a>"]) is None

    def test_ordering(self):
        assert extract_ordering(["T", "L", "Bounded", "TotalOrder"]) == "TotalOrder"
        assert extract_ordering(["T", "L", "Bounded", "NoOrder"]) == "NoOrder"
        assert extract_ordering(["T", "L", "B", "O"]) == "NoOrder"
        assert extract_ordering(["T", "L", "B", "<Self as MinOrder<TotalOrder>>::Min"]) == "TotalOrder"
        assert extract_ordering(["T", "L"]) is None
