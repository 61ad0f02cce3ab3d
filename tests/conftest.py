"""
Shared test fixtures for the SLD tool test suite.

All fixtures build plain model records; nothing here touches the network.
"""

import json
import sys
from pathlib import Path

# Ensure the project root is on sys.path so `sldcore` and `sld_backend`
# import when running individual test files.
_root_dir = str(Path(__file__).resolve().parent.parent)
if _root_dir not in sys.path:
    sys.path.insert(0, _root_dir)

import pytest
from sldcore.models import Branch, Bus, Load, Network, PassiveElement


def make_bus(tag, tier_row=0, tier_column=0, **kwargs):
    """Helper to create a Bus with minimal boilerplate."""
    return Bus(tag=tag, tier_row=tier_row, tier_column=tier_column, **kwargs)


def make_swing(tag, tier_row=0, tier_column=0, **kwargs):
    return Bus(tag=tag, category="Swing", tier_row=tier_row, tier_column=tier_column, **kwargs)


def make_cable(tag, from_element=None, to_element=None, **kwargs):
    return Branch(tag=tag, category="Cable", from_element=from_element, to_element=to_element, **kwargs)


def make_transformer(tag, from_element=None, to_element=None, **kwargs):
    return Branch(tag=tag, category="Transformer", from_element=from_element, to_element=to_element, **kwargs)


def make_switch(tag, from_element=None, to_element=None):
    return PassiveElement(tag=tag, category="Switch", from_element=from_element, to_element=to_element)


def make_fuse(tag, from_element=None, to_element=None):
    return PassiveElement(tag=tag, category="Fuse", from_element=from_element, to_element=to_element)


def make_bus_tie(tag, from_element=None, to_element=None):
    return PassiveElement(tag=tag, category="BusBarLink", from_element=from_element, to_element=to_element)


def make_load(tag, connected_bus=None, category="Motor"):
    return Load(tag=tag, category=category, connected_bus=connected_bus)


def write_network(path, network):
    """Write a network to a JSON file and return the path as a string."""
    path.write_text(json.dumps(network.to_json_dict()))
    return str(path)


@pytest.fixture
def simple_network():
    """
    A (swing, tier 0) -- C1 -- B (tier 1)
    """
    return Network(
        buses=[make_swing("A"), make_bus("B", tier_row=1)],
        cables=[make_cable("C1", "A", "B")],
    )


@pytest.fixture
def switched_network():
    """
    A (swing) -- S1 -- C1 -- F1 -- B (tier 1), load M1 on B
    """
    return Network(
        buses=[make_swing("A"), make_bus("B", tier_row=1)],
        cables=[make_cable("C1", "S1", "F1")],
        switches=[make_switch("S1", "A", "C1")],
        fuses=[make_fuse("F1", "C1", "B")],
        loads=[make_load("M1", "B")],
    )


@pytest.fixture
def radial_network():
    """
    A (swing, tier 0) -- T1 -- B (tier 1) -- C1 -- D (tier 2)
                                 B (tier 1) -- C2 -- E (tier 2)
    """
    return Network(
        buses=[
            make_swing("A"),
            make_bus("B", tier_row=1),
            make_bus("D", tier_row=2, tier_column=0),
            make_bus("E", tier_row=2, tier_column=1),
        ],
        transformers=[make_transformer("T1", "A", "B", primary_voltage=11000, secondary_voltage=400)],
        cables=[make_cable("C1", "B", "D"), make_cable("C2", "B", "E")],
    )
