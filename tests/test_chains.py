"""Tests for sldcore.chains."""

import pytest

from sldcore.chains import ChainOrientation, discover_chains, trace_passive_to_bus
from sldcore.config import LayoutPolicy
from sldcore.graph import ElementMap
from sldcore.processing import process_connections
from sldcore.models import Network
from tests.conftest import (
    make_bus,
    make_bus_tie,
    make_cable,
    make_fuse,
    make_switch,
    make_swing,
)


def chains_of(network, warnings=None):
    return discover_chains(
        network.buses, network.branches(), network.passive_elements(), warnings=warnings
    )


class TestTracing:
    def test_follows_prior_hop_through_long_runs(self):
        element_map = ElementMap.build(
            [make_bus("A")],
            [make_cable("C1", "S3", "B")],
            [
                make_switch("S1", "A", "S2"),
                make_switch("S2", "S3", "S1"),   # declared backwards
                make_fuse("S3", "C1", "S2"),
            ],
        )
        trace = trace_passive_to_bus(element_map, "C1", "S3")
        assert trace.bus == "A"
        assert trace.intermediates == ["S3", "S2", "S1"]

    def test_stops_at_branch(self):
        element_map = ElementMap.build(
            [make_bus("A")], [make_cable("C1", "A", "C2"), make_cable("C2", "C1", "A")], []
        )
        trace = trace_passive_to_bus(element_map, "C1", "C2")
        assert trace.bus is None
        assert not trace.cycle
        assert "Branch 'C2'" in trace.error


class TestBranchChains:
    def test_single_cable(self, simple_network):
        chains = chains_of(simple_network)
        assert len(chains) == 1
        chain = chains[0]
        assert (chain.from_bus, chain.to_bus) == ("A", "B")
        assert chain.element_tags == ["C1"]
        assert chain.contains_branch
        assert chain.branch_tag == "C1"
        assert chain.orientation == ChainOrientation.CROSS_TIER

    def test_passive_elements_on_both_sides(self, switched_network):
        chain = chains_of(switched_network)[0]
        assert chain.element_tags == ["S1", "C1", "F1"]
        assert chain.element_types == ["Switch", "Cable", "Fuse"]
        assert chain.slot_heights == [80, 100, 80]
        assert chain.total_slot_height == 260

    def test_custom_policy_slot_heights(self, switched_network):
        policy = LayoutPolicy(branch_slot_height=50, non_branch_slot_height=10)
        chain = discover_chains(
            switched_network.buses,
            switched_network.branches(),
            switched_network.passive_elements(),
            policy=policy,
        )[0]
        assert chain.total_slot_height == 70

    def test_order_from_side_reversed(self):
        network = Network(
            buses=[make_bus("A"), make_bus("B", tier_row=1)],
            cables=[make_cable("C1", "S2", "B")],
            switches=[make_switch("S1", "A", "S2"), make_switch("S2", "S1", "C1")],
        )
        assert chains_of(network)[0].element_tags == ["S1", "S2", "C1"]

    def test_falls_back_to_resolved_bus(self):
        network = Network(
            buses=[make_bus("A"), make_bus("BusB", tier_row=2)],
            cables=[make_cable("C1", "A", "C2"), make_cable("C2", "C1", "BusB")],
        )
        processed = process_connections(network).network
        warnings = []
        chains = chains_of(processed, warnings)

        pairs = {c.branch_tag: (c.from_bus, c.to_bus) for c in chains}
        assert pairs == {"C1": ("A", "C1-to-bus"), "C2": ("C1-to-bus", "BusB")}
        assert warnings == []

    def test_unresolved_side_kept_with_warning(self):
        network = Network(buses=[make_bus("A")], cables=[make_cable("C1", "A", "GONE")])
        warnings = []
        chains = chains_of(network, warnings)
        assert len(chains) == 1
        assert chains[0].to_bus is None
        assert not chains[0].is_resolved
        assert chains[0].orientation == ChainOrientation.CROSS_TIER
        assert any("no to bus" in w for w in warnings)

    def test_cycle_omits_chain(self):
        network = Network(
            buses=[make_bus("B", tier_row=1)],
            cables=[make_cable("C1", "S1", "B")],
            switches=[
                make_switch("S1", "C1", "S2"),
                make_switch("S2", "S1", "S3"),
                make_switch("S3", "S2", "S1"),
            ],
        )
        warnings = []
        chains = chains_of(network, warnings)
        assert chains == []
        assert any("Cycle detected" in w for w in warnings)


class TestPassiveOnlyChains:
    def test_bus_tie_between_buses(self):
        network = Network(
            buses=[make_bus("A"), make_bus("B", tier_column=1)],
            bus_ties=[make_bus_tie("BT1", "A", "B")],
        )
        chains = chains_of(network)
        assert len(chains) == 1
        chain = chains[0]
        assert chain.element_tags == ["BT1"]
        assert not chain.contains_branch
        assert chain.branch_tag is None
        assert chain.orientation == ChainOrientation.SAME_TIER

    def test_passive_run_emitted_once(self):
        network = Network(
            buses=[make_bus("A"), make_bus("B", tier_row=1)],
            switches=[make_switch("S1", "A", "F1")],
            fuses=[make_fuse("F1", "S1", "B")],
        )
        chains = chains_of(network)
        assert len(chains) == 1
        assert chains[0].element_tags == ["S1", "F1"]

    def test_elements_in_branch_chain_not_reused(self, switched_network):
        chains = chains_of(switched_network)
        assert len(chains) == 1

    def test_dangling_passive_skipped(self):
        network = Network(buses=[make_bus("A")], switches=[make_switch("S1", "A", None)])
        warnings = []
        assert chains_of(network, warnings) == []
        assert warnings == [
            "Element 'S1' is not part of any bus-to-bus chain and was not positioned."
        ]


class TestPassiveBetweenBranches:
    @pytest.fixture
    def bridged_network(self):
        """A -- C1 -- S1 -- C2 -- B"""
        return Network(
            buses=[make_swing("A"), make_bus("B", tier_row=1)],
            cables=[make_cable("C1", "A", "S1"), make_cable("C2", "S1", "B")],
            switches=[make_switch("S1", "C1", "C2")],
        )

    def test_switch_kept_in_first_chain(self, bridged_network):
        processed = process_connections(bridged_network).network
        warnings = []
        chains = chains_of(processed, warnings)

        by_branch = {c.branch_tag: c for c in chains}
        assert by_branch["C1"].element_tags == ["C1", "S1"]
        assert (by_branch["C1"].from_bus, by_branch["C1"].to_bus) == ("A", "S1-bus")
        assert by_branch["C2"].element_tags == ["C2"]
        assert (by_branch["C2"].from_bus, by_branch["C2"].to_bus) == ("S1-bus", "B")
        assert warnings == []

    def test_switch_on_from_side(self):
        network = Network(
            buses=[make_swing("A"), make_bus("B", tier_row=1)],
            cables=[make_cable("C1", "S1", "B"), make_cable("C2", "A", "S1")],
            switches=[make_switch("S1", "C2", "C1")],
        )
        processed = process_connections(network).network
        chains = chains_of(processed)
        placed = [tag for c in chains for tag in c.element_tags]
        assert sorted(placed) == ["C1", "C2", "S1"]
        assert placed.count("S1") == 1


class TestParallelGroups:
    def test_same_pair_either_direction(self):
        network = Network(
            buses=[make_swing("BusA"), make_bus("BusB", tier_row=1)],
            cables=[make_cable("C1", "BusA", "BusB"), make_cable("C2", "BusB", "BusA")],
        )
        chains = chains_of(network)
        assert [(c.parallel_index, c.parallel_count) for c in chains] == [(0, 2), (1, 2)]

    def test_single_chain_not_grouped(self, radial_network):
        for chain in chains_of(radial_network):
            assert chain.parallel_count == 1
            assert chain.parallel_index == 0

    @pytest.mark.parametrize("count", [2, 3])
    def test_group_size(self, count):
        network = Network(
            buses=[make_bus("A"), make_bus("B", tier_row=1)],
            cables=[make_cable(f"C{i}", "A", "B") for i in range(count)],
        )
        chains = chains_of(network)
        assert sorted(c.parallel_index for c in chains) == list(range(count))
        assert {c.parallel_count for c in chains} == {count}
