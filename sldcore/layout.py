"""
SLD layout - Pixel coordinates for buses, chain elements and loads.

Steps:
- Tier gaps: each gap between tier t and t+1 is sized from the tallest
  cross-tier chain spanning it (never below the minimum gap)
- Tier Y: prefix sum of the gaps from the top margin
- Buses: Y from the tier, X from cumulative length units along the tier
- Cross-tier chains: stacked vertically between the two buses, stretched
  (never compressed) to fill the span, parallel chains offset in X
- Same-tier chains: laid out horizontally above the tier line, parallel
  chains offset in Y
- Loads: spread under their bus
- Saved coordinates: applied last, overriding computed values

All layout functions work on copies and return new records.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .chains import Chain, ChainOrientation, discover_chains
from .config import DEFAULT_POLICY, LayoutPolicy, SpacingConfig
from .models import Bus, Load, Network, SavedCoordinate
from .overrides import apply_saved_coordinates

logger = logging.getLogger(__name__)


Point = tuple[float, float]


@dataclass
class LayoutResult:
    """Full result from the layout engine."""
    success: bool = False
    message: str = ""
    buses: list[Bus] = field(default_factory=list)
    chains: list[Chain] = field(default_factory=list)
    element_coordinates: dict[str, Point] = field(default_factory=dict)
    load_coordinates: dict[str, Point] = field(default_factory=dict)
    tier_gaps: dict[tuple[int, int], float] = field(default_factory=dict)
    tier_y: dict[int, float] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "message": self.message,
            "buses": [b.model_dump(mode="json") for b in self.buses],
            "chains": [c.to_dict() for c in self.chains],
            "element_coordinates": {
                tag: {"x": x, "y": y} for tag, (x, y) in self.element_coordinates.items()
            },
            "load_coordinates": {
                tag: {"x": x, "y": y} for tag, (x, y) in self.load_coordinates.items()
            },
            "tier_gaps": {f"{a}-{b}": gap for (a, b), gap in self.tier_gaps.items()},
            "tier_y": {str(t): y for t, y in self.tier_y.items()},
            "warnings": list(self.warnings),
        }


def compute_tier_gaps(
    chains: list[Chain],
    buses: dict[str, Bus],
    max_tier: int,
    policy: LayoutPolicy = DEFAULT_POLICY,
) -> dict[tuple[int, int], float]:
    """
    Vertical gap for each adjacent tier pair (t, t+1).

    Args:
        chains: Discovered chains (orientation assigned)
        buses: Bus index by tag
        max_tier: Highest tier row
        policy: Layout policy

    Returns:
        Mapping (t, t+1) -> gap in pixels
    """
    gaps: dict[tuple[int, int], float] = {}

    for t in range(max_tier):
        heights = []
        for chain in chains:
            if chain.orientation != ChainOrientation.CROSS_TIER or not chain.is_resolved:
                continue
            from_bus = buses.get(chain.from_bus)
            to_bus = buses.get(chain.to_bus)
            if from_bus is None or to_bus is None:
                continue
            low = min(from_bus.tier_row, to_bus.tier_row)
            high = max(from_bus.tier_row, to_bus.tier_row)
            if low <= t and high >= t + 1:
                heights.append(chain.total_slot_height)

        if not heights:
            gaps[(t, t + 1)] = policy.min_tier_gap
        else:
            gaps[(t, t + 1)] = max(policy.min_tier_gap, max(heights) + 2 * policy.chain_padding_y)

    return gaps


def compute_tier_y(
    tier_gaps: dict[tuple[int, int], float],
    max_tier: int,
    top_spacing: float,
    policy: LayoutPolicy = DEFAULT_POLICY,
) -> dict[int, float]:
    """Absolute Y of each tier: prefix sum of the gaps from the top margin."""
    tier_y = {0: top_spacing}
    for t in range(1, max_tier + 1):
        tier_y[t] = tier_y[t - 1] + tier_gaps.get((t - 1, t), policy.min_tier_gap)
    return tier_y


def assign_bus_coordinates(
    buses: list[Bus],
    tier_y: dict[int, float],
    spacing: SpacingConfig,
    policy: LayoutPolicy = DEFAULT_POLICY,
):
    """Set x, y and length on every bus (in place)."""
    for bus in buses:
        if bus.tier_row in tier_y:
            bus.y = tier_y[bus.tier_row]
        else:
            bus.y = spacing.top_spacing + bus.tier_row * policy.min_tier_gap

        units = sum(
            b.length_units for b in buses
            if b.tier_row == bus.tier_row and b.tier_column <= bus.tier_column
        )
        bus.x = spacing.left_spacing + units * spacing.x_grid_spacing
        bus.length = 0.5 * spacing.x_grid_spacing * (bus.length_units - 0.5)


def _cross_tier(chain: Chain, from_bus: Bus, to_bus: Bus, policy: LayoutPolicy,
                coords: dict[str, Point]):
    top, bottom = (from_bus, to_bus) if from_bus.y <= to_bus.y else (to_bus, from_bus)

    centre_x = (top.x + bottom.x) / 2
    if chain.parallel_count > 1:
        centre_x += (chain.parallel_index - (chain.parallel_count - 1) / 2) * policy.parallel_x_offset

    start_y = top.y + policy.chain_padding_y
    end_y = bottom.y - policy.chain_padding_y
    available = end_y - start_y

    total = chain.total_slot_height
    scale = available / total if total > 0 else 1.0
    # Only ever stretch
    scale = max(scale, 1.0)

    slots = list(zip(chain.element_tags, chain.slot_heights))
    if top is not from_bus:
        slots.reverse()

    current_y = start_y
    for tag, height in slots:
        coords[tag] = (centre_x, current_y + height * scale / 2)
        current_y += height * scale


def _same_tier(chain: Chain, from_bus: Bus, to_bus: Bus, policy: LayoutPolicy,
               coords: dict[str, Point]):
    mid_x = (from_bus.x + to_bus.x) / 2
    base_y = from_bus.y - policy.same_tier_y_offset
    if chain.parallel_count > 1:
        base_y -= chain.parallel_index * policy.same_tier_parallel_offset

    count = len(chain.element_tags)
    step = policy.element_draw_height + policy.element_gap
    total_width = count * step - policy.element_gap
    start_x = mid_x - total_width / 2

    for i, tag in enumerate(chain.element_tags):
        coords[tag] = (start_x + i * step + policy.element_draw_height / 2, base_y)


def assign_chain_coordinates(
    chains: list[Chain],
    buses: dict[str, Bus],
    policy: LayoutPolicy = DEFAULT_POLICY,
) -> dict[str, Point]:
    """Coordinates for every element of every resolved chain."""
    coords: dict[str, Point] = {}
    for chain in chains:
        if not chain.is_resolved:
            continue
        from_bus = buses.get(chain.from_bus)
        to_bus = buses.get(chain.to_bus)
        if from_bus is None or to_bus is None:
            continue

        if chain.orientation == ChainOrientation.SAME_TIER:
            _same_tier(chain, from_bus, to_bus, policy, coords)
        else:
            _cross_tier(chain, from_bus, to_bus, policy, coords)
    return coords


def place_loads(
    loads: Iterable[Load],
    buses: dict[str, Bus],
    policy: LayoutPolicy = DEFAULT_POLICY,
) -> dict[str, Point]:
    """Spread each bus's loads horizontally, centred under the bus."""
    by_bus: dict[str, list[Load]] = {}
    for load in loads or []:
        if load.connected_bus in buses:
            by_bus.setdefault(load.connected_bus, []).append(load)

    coords: dict[str, Point] = {}
    for bus_tag, bus_loads in by_bus.items():
        bus = buses[bus_tag]
        start_x = bus.x - (len(bus_loads) - 1) * policy.load_x_spacing / 2
        for i, load in enumerate(bus_loads):
            coords[load.tag] = (start_x + i * policy.load_x_spacing, bus.y + policy.load_y_offset)
    return coords


def build_layout(
    buses: Iterable[Bus],
    chains: list[Chain],
    spacing: Optional[SpacingConfig] = None,
    policy: LayoutPolicy = DEFAULT_POLICY,
    loads: Optional[Iterable[Load]] = None,
    saved_coordinates: Optional[Iterable[SavedCoordinate]] = None,
    sld_name: Optional[str] = None,
) -> LayoutResult:
    """
    Assign pixel coordinates to buses and chain elements.

    Args:
        buses: Buses with tier row/column and length units
        chains: Chains from `discover_chains`
        spacing: Page spacing (defaults to SpacingConfig())
        policy: Layout policy
        loads: Optional loads to place under their buses
        saved_coordinates: Optional user-saved overrides, applied last
        sld_name: Only apply saved coordinates for this SLD

    Returns:
        LayoutResult (buses are copies carrying coordinates)
    """
    spacing = spacing or SpacingConfig()
    result = LayoutResult(chains=chains)

    bus_list = [b.model_copy(deep=True) for b in buses or []]
    bus_index = {b.tag: b for b in bus_list}

    max_tier = max((b.tier_row for b in bus_list), default=0)
    max_tier = max(max_tier, 0)
    result.tier_gaps = compute_tier_gaps(chains, bus_index, max_tier, policy)
    result.tier_y = compute_tier_y(result.tier_gaps, max_tier, spacing.top_spacing, policy)

    assign_bus_coordinates(bus_list, result.tier_y, spacing, policy)
    result.buses = bus_list

    result.element_coordinates = assign_chain_coordinates(chains, bus_index, policy)
    if loads is not None:
        result.load_coordinates = place_loads(loads, bus_index, policy)

    if saved_coordinates:
        result.warnings.extend(apply_saved_coordinates(
            saved_coordinates, bus_list, result.element_coordinates, sld_name=sld_name
        ))

    result.success = True
    result.message = (
        f"Layout computed: {len(bus_list)} buses, {len(chains)} chains, "
        f"{len(result.element_coordinates)} positioned elements."
    )
    logger.info(result.message)
    return result


def layout_network(
    network: Network,
    spacing: Optional[SpacingConfig] = None,
    policy: LayoutPolicy = DEFAULT_POLICY,
    saved_coordinates: Optional[Iterable[SavedCoordinate]] = None,
) -> LayoutResult:
    """
    Discover chains and lay out an already-processed network.

    Call with `ProcessingResult.network` so that synthetic buses and
    resolved branch buses are present.
    """
    warnings: list[str] = []
    chains = discover_chains(
        network.buses, network.branches(), network.passive_elements(),
        policy=policy, warnings=warnings,
    )
    result = build_layout(
        network.buses, chains, spacing=spacing, policy=policy,
        loads=network.loads, saved_coordinates=saved_coordinates, sld_name=network.name,
    )
    result.warnings[:0] = warnings
    return result
