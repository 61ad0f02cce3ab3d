"""
Chain discovery - Ordered element paths between pairs of buses.

A chain starts at a bus, passes through zero or more passive elements, at
most one branch, more passive elements, and ends at a bus. Chains are the
unit the layout engine positions.

Discovery:
1. Branch-rooted chains: trace both sides of every branch outward through
   passive elements until a bus.
2. Passive-only chains: passive elements not consumed in step 1 whose both
   sides reach a bus.
3. Parallel groups: chains sharing the same unordered bus pair are numbered.
4. Orientation: same-tier if both buses share a tier row, else cross-tier.

Passive elements left out of every chain are reported as warnings.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .config import DEFAULT_POLICY, LayoutPolicy
from .graph import ElementInfo, ElementMap
from .models import Branch, Bus, ElementKind, PassiveElement

logger = logging.getLogger(__name__)


class ChainOrientation(str, Enum):
    CROSS_TIER = "cross_tier"
    SAME_TIER = "same_tier"


@dataclass
class Chain:
    """An ordered chain of elements between two buses."""
    from_bus: Optional[str]
    to_bus: Optional[str]
    element_tags: list[str] = field(default_factory=list)
    element_types: list[str] = field(default_factory=list)
    slot_heights: list[float] = field(default_factory=list)
    contains_branch: bool = False
    branch_tag: Optional[str] = None
    orientation: ChainOrientation = ChainOrientation.CROSS_TIER
    parallel_index: int = 0
    parallel_count: int = 1

    @property
    def total_slot_height(self) -> float:
        return sum(self.slot_heights)

    @property
    def is_resolved(self) -> bool:
        return bool(self.from_bus) and bool(self.to_bus)

    @property
    def bus_pair(self) -> tuple[str, str]:
        """Unordered bus pair as a sorted tuple."""
        return tuple(sorted((self.from_bus or "", self.to_bus or "")))

    def to_dict(self) -> dict:
        return {
            "from_bus": self.from_bus,
            "to_bus": self.to_bus,
            "element_tags": list(self.element_tags),
            "contains_branch": self.contains_branch,
            "branch_tag": self.branch_tag,
            "orientation": self.orientation.value,
            "total_slot_height": self.total_slot_height,
            "parallel_index": self.parallel_index,
            "parallel_count": self.parallel_count,
        }


@dataclass
class SideTrace:
    """Result of tracing one side of an element to a bus."""
    bus: Optional[str] = None
    intermediates: list[str] = field(default_factory=list)
    error: Optional[str] = None
    cycle: bool = False


def slot_height(element: ElementInfo, policy: LayoutPolicy = DEFAULT_POLICY) -> float:
    """Layout weight of one element."""
    if element.kind == ElementKind.BRANCH:
        return policy.branch_slot_height
    return policy.non_branch_slot_height


def trace_passive_to_bus(element_map: ElementMap, start_tag: str, first_tag: Optional[str]) -> SideTrace:
    """
    Follow passive elements from `start_tag` through `first_tag` until a bus.

    The "other side" of each element is chosen relative to the immediately
    prior hop. The trace stops on a cycle, an unknown tag, a branch, an
    element that does not reference the prior hop, or a dead end.
    """
    trace = SideTrace()
    visited = {start_tag}
    previous = start_tag
    current = first_tag

    while current:
        if element_map.is_bus(current):
            trace.bus = current
            return trace

        if current in visited:
            trace.cycle = True
            trace.error = f"Cycle detected at '{current}' while tracing from '{start_tag}'."
            return trace

        element = element_map.get(current)
        if element is None:
            trace.error = f"Element '{current}' not found while tracing from '{start_tag}'."
            return trace

        if element.kind == ElementKind.BRANCH:
            trace.error = f"Branch '{current}' encountered while tracing passive elements from '{start_tag}'."
            return trace

        if not element.references(previous):
            trace.error = f"Element '{current}' does not reference '{previous}' on either end."
            return trace

        visited.add(current)
        trace.intermediates.append(current)
        previous, current = current, element.other_side(previous)

    trace.error = f"Trace from '{start_tag}' ended without reaching a bus. Last element: '{previous}'."
    return trace


class _ChainBuilder:

    def __init__(self, element_map: ElementMap, branches: dict[str, Branch],
                 policy: LayoutPolicy, warnings: list[str]):
        self.element_map = element_map
        self.branches = branches
        self.policy = policy
        self.warnings = warnings
        # passive elements already placed in a branch-rooted chain
        self.claimed: set[str] = set()

    def make_chain(self, from_bus, to_bus, tags: list[str], branch_tag=None) -> Chain:
        elements = [self.element_map.get(t) for t in tags]
        return Chain(
            from_bus=from_bus,
            to_bus=to_bus,
            element_tags=list(tags),
            element_types=[e.type for e in elements],
            slot_heights=[slot_height(e, self.policy) for e in elements],
            contains_branch=branch_tag is not None,
            branch_tag=branch_tag,
        )

    def side_of_branch(self, branch: ElementInfo, side: str) -> Optional[SideTrace]:
        """Trace one side; falls back to the resolved bus. None means a cycle."""
        reference = branch.from_element if side == "from" else branch.to_element
        trace = trace_passive_to_bus(self.element_map, branch.tag, reference)
        if trace.bus:
            return trace

        if trace.cycle:
            self.warnings.append(f"Chain from branch '{branch.tag}' omitted: {trace.error}")
            return None

        record = self.branches.get(branch.tag)
        resolved = None
        if record is not None:
            resolved = record.from_bus if side == "from" else record.to_bus
        if self.element_map.is_bus(resolved):
            logger.debug("Branch '%s' %s side: using resolved bus '%s' (%s)",
                         branch.tag, side, resolved, trace.error)
            # A passive element bridging two branches goes to the first chain only
            kept = [t for t in trace.intermediates if t not in self.claimed]
            return SideTrace(bus=resolved, intermediates=kept)

        self.warnings.append(f"Chain from branch '{branch.tag}' has no {side} bus: {trace.error}")
        return trace

    def from_branch(self, branch: ElementInfo) -> Optional[Chain]:
        from_side = self.side_of_branch(branch, "from")
        to_side = self.side_of_branch(branch, "to")
        if from_side is None or to_side is None:
            return None

        tags = list(reversed(from_side.intermediates)) + [branch.tag] + to_side.intermediates
        self.claimed.update(from_side.intermediates + to_side.intermediates)
        return self.make_chain(from_side.bus, to_side.bus, tags, branch_tag=branch.tag)

    def passive_only(self, element: ElementInfo, used: set[str]) -> Optional[Chain]:
        from_side = trace_passive_to_bus(self.element_map, element.tag, element.from_element)
        to_side = trace_passive_to_bus(self.element_map, element.tag, element.to_element)

        for trace in (from_side, to_side):
            if trace.cycle:
                self.warnings.append(f"Chain through '{element.tag}' omitted: {trace.error}")
                return None

        if not from_side.bus or not to_side.bus:
            return None

        if any(t in used for t in from_side.intermediates + to_side.intermediates):
            return None

        tags = list(reversed(from_side.intermediates)) + [element.tag] + to_side.intermediates
        return self.make_chain(from_side.bus, to_side.bus, tags)


def assign_parallel_indices(chains: list[Chain]):
    """Number chains that share the same unordered bus pair."""
    groups: dict[tuple[str, str], list[Chain]] = {}
    for chain in chains:
        if chain.is_resolved:
            groups.setdefault(chain.bus_pair, []).append(chain)

    for group in groups.values():
        if len(group) < 2:
            continue
        for i, chain in enumerate(group):
            chain.parallel_index = i
            chain.parallel_count = len(group)


def classify_orientations(chains: list[Chain], buses: Iterable[Bus]):
    """Same-tier if both terminal buses share a tier row, else cross-tier."""
    tiers = {b.tag: b.tier_row for b in buses}
    for chain in chains:
        from_tier = tiers.get(chain.from_bus) if chain.from_bus else None
        to_tier = tiers.get(chain.to_bus) if chain.to_bus else None
        if from_tier is not None and to_tier is not None and from_tier == to_tier:
            chain.orientation = ChainOrientation.SAME_TIER
        else:
            chain.orientation = ChainOrientation.CROSS_TIER


def discover_chains(
    buses: Iterable[Bus],
    branches: Iterable[Branch],
    passive_elements: Iterable[PassiveElement],
    policy: LayoutPolicy = DEFAULT_POLICY,
    warnings: Optional[list[str]] = None,
) -> list[Chain]:
    """
    Discover all bus-to-bus chains.

    Args:
        buses: Buses (after evaluation, so synthetic buses are present)
        branches: Branches, with resolved buses where available
        passive_elements: Switches, fuses and bus bar links
        policy: Slot heights used for each element
        warnings: Optional list that receives trace diagnostics

    Returns:
        Chains with parallel indices and orientation assigned
    """
    buses = list(buses or [])
    branches = list(branches or [])
    if warnings is None:
        warnings = []

    element_map = ElementMap.build(buses, branches, passive_elements)
    builder = _ChainBuilder(element_map, {b.tag: b for b in branches}, policy, warnings)

    chains: list[Chain] = []
    for branch in element_map.of_kind(ElementKind.BRANCH):
        chain = builder.from_branch(branch)
        if chain is not None:
            chains.append(chain)

    used: set[str] = set()
    for chain in chains:
        used.update(chain.element_tags)

    for element in element_map.of_kind(ElementKind.NON_BRANCH):
        if element.tag in used:
            continue
        chain = builder.passive_only(element, used)
        if chain is not None:
            chains.append(chain)
            used.update(chain.element_tags)

    for element in element_map.of_kind(ElementKind.NON_BRANCH):
        if element.tag not in used:
            warnings.append(
                f"Element '{element.tag}' is not part of any bus-to-bus chain and was not positioned."
            )

    assign_parallel_indices(chains)
    classify_orientations(chains, buses)

    logger.info("Discovered %d chains (%d warnings)", len(chains), len(warnings))
    return chains
