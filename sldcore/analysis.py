"""
Network analysis - Connectivity tracing and summarization utilities.

Provides analysis functions used by the API, the CLI and the MCP tools:
- Tracing an element's side out to its terminating bus
- Tracing upstream to the source (swing) buses
- Listing the elements that can legally be attached to an element's side
- Independent networks (connected components of the bus graph)
- Structural summary of a network
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .chains import Chain, discover_chains
from .config import DEFAULT_POLICY, LayoutPolicy
from .graph import ElementInfo, ElementMap
from .models import Branch, Bus, ElementKind, Network, PassiveElement

logger = logging.getLogger(__name__)


def normalize_side(side: str) -> str:
    """Accept "From"/"from"/"To"/"to"."""
    value = (side or "").lower()
    if value not in ("from", "to"):
        raise ValueError(f"Side must be 'from' or 'to', got {side!r}")
    return value


@dataclass
class TraceStep:
    tag: str
    type: str
    kind: ElementKind

    def to_dict(self) -> dict:
        return {"tag": self.tag, "type": self.type, "kind": self.kind.value}


@dataclass
class TraceResult:
    """Result of tracing from an element's side to the terminating bus."""
    start_element: str
    direction: str
    success: bool = False
    error_message: Optional[str] = None
    terminating_bus: Optional[str] = None
    # Ordered from the start element outward, bus excluded
    steps: list[TraceStep] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "start_element": self.start_element,
            "direction": self.direction,
            "success": self.success,
            "error_message": self.error_message,
            "terminating_bus": self.terminating_bus,
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass
class ConnectionCandidate:
    """An element that can be connected to a given side."""
    tag: str
    type: str
    kind: ElementKind
    available_side: str   # "from", "to", or "any" for buses
    reason: str

    def to_dict(self) -> dict:
        return {
            "tag": self.tag,
            "type": self.type,
            "kind": self.kind.value,
            "available_side": self.available_side,
            "reason": self.reason,
        }


def free_ends(element: ElementInfo) -> list[str]:
    """Unconnected sides of an element. Buses have none."""
    if element.kind == ElementKind.BUS:
        return []
    ends = []
    if not element.from_element:
        ends.append("from")
    if not element.to_element:
        ends.append("to")
    return ends


class ConnectivityAnalyzer:
    """
    Connectivity queries over one network snapshot.

    Chains are discovered lazily, only for upstream tracing.
    """

    def __init__(
        self,
        buses: Iterable[Bus],
        branches: Iterable[Branch],
        passive_elements: Iterable[PassiveElement],
        policy: LayoutPolicy = DEFAULT_POLICY,
    ):
        self.buses = list(buses or [])
        self.branches = list(branches or [])
        self.passive_elements = list(passive_elements or [])
        self.policy = policy
        self.element_map = ElementMap.build(self.buses, self.branches, self.passive_elements)
        self._chains: Optional[list[Chain]] = None

    @classmethod
    def from_network(cls, network: Network, policy: LayoutPolicy = DEFAULT_POLICY) -> "ConnectivityAnalyzer":
        return cls(network.buses, network.branches(), network.passive_elements(), policy)

    @property
    def chains(self) -> list[Chain]:
        if self._chains is None:
            self._chains = discover_chains(
                self.buses, self.branches, self.passive_elements, policy=self.policy
            )
        return self._chains

    # --- Tracing ---

    def trace_chain(self, element_tag: str, direction: str) -> TraceResult:
        """
        Trace from an element's From or To side outward to the terminating bus.

        Args:
            element_tag: Tag of the starting element
            direction: "from" or "to"

        Returns:
            TraceResult with the ordered intermediate elements and the bus
        """
        direction = normalize_side(direction)
        result = TraceResult(start_element=element_tag, direction=direction)

        start = self.element_map.get(element_tag)
        if start is None:
            result.error_message = f"Element '{element_tag}' not found."
            return result

        next_tag = start.from_element if direction == "from" else start.to_element
        visited = {element_tag}
        previous = element_tag

        while next_tag:
            if self.element_map.is_bus(next_tag):
                result.terminating_bus = next_tag
                result.success = True
                return result

            if next_tag in visited:
                result.error_message = f"Cycle detected at '{next_tag}'."
                return result

            current = self.element_map.get(next_tag)
            if current is None:
                result.error_message = f"Element '{next_tag}' referenced but not found."
                return result

            visited.add(next_tag)
            result.steps.append(TraceStep(tag=current.tag, type=current.type, kind=current.kind))

            if not current.references(previous):
                result.error_message = (
                    f"Element '{current.tag}' does not reference '{previous}' on either end."
                )
                return result

            previous, next_tag = next_tag, current.other_side(previous)

        result.error_message = f"Trace ended without reaching a bus. Last element: '{previous}'."
        return result

    def resolve_end_to_bus(self, element_tag: str, side: str) -> Optional[str]:
        """Terminating bus of one side, or None if it can't be resolved."""
        trace = self.trace_chain(element_tag, side)
        return trace.terminating_bus if trace.success else None

    def trace_to_source(self, element_tag: str) -> list[TraceResult]:
        """
        Trace upstream from an element to the source (swing) buses.

        Goes out of the "from" side; at each non-swing bus reached, continues
        from the branch of every chain that ends at that bus.
        """
        bus_index = {b.tag: b for b in self.buses}
        results: list[TraceResult] = []
        visited: set[str] = set()
        pending = [element_tag]

        while pending:
            tag = pending.pop(0)
            if tag in visited:
                continue
            visited.add(tag)

            trace = self.trace_chain(tag, "from")
            results.append(trace)
            if not trace.success:
                continue

            bus = bus_index.get(trace.terminating_bus)
            if bus is None or bus.is_swing:
                continue

            for chain in self.chains:
                if chain.to_bus == bus.tag and chain.branch_tag and chain.branch_tag not in visited:
                    pending.append(chain.branch_tag)

        return results

    # --- Candidates ---

    def valid_candidates(self, element_tag: str, side: str) -> list[ConnectionCandidate]:
        """
        Elements that can legally be connected to the given side of an element.

        Rules:
        - Buses accept any number of connections, but not from another bus
          and not the bus already reached on the element's other side
        - A branch can never connect directly to a branch
        - Connecting must not create branch -> passive -> branch without a bus

        Args:
            element_tag: Tag of the element being connected
            side: "from" or "to"

        Returns:
            List of ConnectionCandidate
        """
        side = normalize_side(side)
        candidates: list[ConnectionCandidate] = []

        source = self.element_map.get(element_tag)
        if source is None:
            return candidates

        other_side = "to" if side == "from" else "from"
        other_side_bus = self.resolve_end_to_bus(element_tag, other_side)

        for candidate in self.element_map:
            if candidate.tag == element_tag:
                continue

            if candidate.kind == ElementKind.BUS:
                if candidate.tag == other_side_bus or source.kind == ElementKind.BUS:
                    continue
                candidates.append(ConnectionCandidate(
                    tag=candidate.tag, type=candidate.type, kind=candidate.kind,
                    available_side="any", reason="Bus (unlimited connections)",
                ))

            elif candidate.kind == ElementKind.BRANCH:
                if source.kind == ElementKind.BRANCH:
                    continue
                for end in free_ends(candidate):
                    if (source.kind == ElementKind.NON_BRANCH
                            and self._would_create_branch_to_branch(source, side, candidate)):
                        continue
                    candidates.append(ConnectionCandidate(
                        tag=candidate.tag, type=candidate.type, kind=candidate.kind,
                        available_side=end, reason=f"Branch with free {end} end",
                    ))

            elif candidate.kind == ElementKind.NON_BRANCH:
                for end in free_ends(candidate):
                    if source.kind == ElementKind.BRANCH:
                        far_end = candidate.to_element if end == "from" else candidate.from_element
                        if far_end and self._resolves_to_branch(far_end, candidate.tag):
                            continue
                    candidates.append(ConnectionCandidate(
                        tag=candidate.tag, type=candidate.type, kind=candidate.kind,
                        available_side=end, reason=f"Non-branch with free {end} end",
                    ))

        return candidates

    def _would_create_branch_to_branch(self, source: ElementInfo, side: str, target: ElementInfo) -> bool:
        other_tag = source.to_element if side == "from" else source.from_element
        if not other_tag:
            return False
        return target.kind == ElementKind.BRANCH and self._resolves_to_branch(other_tag, source.tag)

    def _resolves_to_branch(self, start_tag: str, caller_tag: str) -> bool:
        """True if following from `start_tag` reaches a branch before a bus."""
        visited = {caller_tag}
        current = start_tag
        previous = caller_tag

        while current:
            if self.element_map.is_bus(current) or current in visited:
                return False
            element = self.element_map.get(current)
            if element is None:
                return False
            if element.kind == ElementKind.BRANCH:
                return True
            visited.add(current)
            previous, current = current, element.other_side(previous)

        return False


# --- Independent networks ---

@dataclass
class NetworkComponent:
    """A set of buses connected to each other."""
    number: int
    bus_tags: list[str] = field(default_factory=list)
    swing_buses: list[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.bus_tags)


def find_networks(buses: list[Bus]) -> list[NetworkComponent]:
    """
    Find independent networks using BFS over bus adjacency.

    Adjacency is treated as undirected. Each bus's `network` field is set to
    its component number (1-based, in bus order).

    Args:
        buses: Buses with `connected_buses` filled in (after evaluation)

    Returns:
        List of NetworkComponent
    """
    index = {b.tag: b for b in buses}
    adjacency: dict[str, set[str]] = {b.tag: set() for b in buses}
    for bus in buses:
        for other in bus.connected_buses:
            if other in adjacency and other != bus.tag:
                adjacency[bus.tag].add(other)
                adjacency[other].add(bus.tag)

    visited: set[str] = set()
    components: list[NetworkComponent] = []

    for bus in buses:
        if bus.tag in visited:
            continue

        component = NetworkComponent(number=len(components) + 1)
        queue = [bus.tag]
        visited.add(bus.tag)

        while queue:
            current = queue.pop(0)
            component.bus_tags.append(current)
            index[current].network = component.number
            if index[current].is_swing:
                component.swing_buses.append(current)
            for neighbor in sorted(adjacency[current]):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        components.append(component)

    return components


@dataclass
class NetworkSummary:
    """Structural summary of a network."""
    name: str
    total_buses: int
    total_loads: int
    branches_by_category: dict[str, int]
    passive_by_category: dict[str, int]
    swing_buses: list[str]
    synthetic_buses: list[str]
    independent_networks: int
    most_connected_buses: list[tuple[str, int]]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "total_buses": self.total_buses,
            "total_loads": self.total_loads,
            "branches_by_category": self.branches_by_category,
            "passive_by_category": self.passive_by_category,
            "swing_buses": self.swing_buses,
            "synthetic_buses": self.synthetic_buses,
            "independent_networks": self.independent_networks,
            "most_connected_buses": [
                {"tag": tag, "connections": count} for tag, count in self.most_connected_buses
            ],
        }


def summarize_network(network: Network, top_n: int = 5) -> NetworkSummary:
    """
    Generate a summary of a network.

    Args:
        network: The network to summarize (a processed one for adjacency)
        top_n: Number of most connected buses to include

    Returns:
        NetworkSummary
    """
    branch_counts: dict[str, int] = defaultdict(int)
    for branch in network.branches():
        branch_counts[branch.category] += 1

    passive_counts: dict[str, int] = defaultdict(int)
    for element in network.passive_elements():
        passive_counts[element.category] += 1

    buses = [b.model_copy(deep=True) for b in network.buses]
    components = find_networks(buses)

    ranked = sorted(buses, key=lambda b: len(b.connected_buses), reverse=True)
    most_connected = [(b.tag, len(b.connected_buses)) for b in ranked[:top_n] if b.connected_buses]

    return NetworkSummary(
        name=network.name,
        total_buses=len(buses),
        total_loads=len(network.loads),
        branches_by_category=dict(branch_counts),
        passive_by_category=dict(passive_counts),
        swing_buses=[b.tag for b in buses if b.is_swing],
        synthetic_buses=[b.tag for b in buses if b.is_auto_generated],
        independent_networks=len(components),
        most_connected_buses=most_connected,
    )
