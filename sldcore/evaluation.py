"""
Connection evaluation - Resolve every branch's FromBus/ToBus.

Only run this after validation has passed. Passive elements are processed
before branches because they frequently sit between a bus and a branch and
must settle that bus before branch resolution consumes it.

Synthetic buses:
- `<element>-bus`         passive element between two branches
- `<branch>-<side>-bus`   branch referencing another branch directly
- `<reference>`           branch referencing an unknown tag (implicit bus)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .models import Branch, Bus, PassiveElement, next_tier_column

logger = logging.getLogger(__name__)


class AlertSeverity(str, Enum):
    """Severity levels for evaluation alerts."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class EndpointKind(Enum):
    UNKNOWN = "unknown"
    BUS = "bus"
    BRANCH = "branch"


@dataclass
class EvaluationAlert:
    """A diagnostic produced while evaluating connections."""
    severity: AlertSeverity
    element_tag: str
    message: str

    def to_dict(self) -> dict:
        return {
            "type": self.severity.value,
            "element_tag": self.element_tag,
            "message": self.message,
        }


@dataclass
class EvaluationResult:
    buses: list[Bus] = field(default_factory=list)
    branches: list[Branch] = field(default_factory=list)
    alerts: list[EvaluationAlert] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(a.severity == AlertSeverity.ERROR for a in self.alerts)

    def to_dict(self) -> dict:
        return {
            "buses": [b.model_dump(mode="json") for b in self.buses],
            "branches": [b.model_dump(mode="json") for b in self.branches],
            "alerts": [a.to_dict() for a in self.alerts],
            "has_errors": self.has_errors,
        }


class BusRegistry:
    """
    Owns the bus list of one evaluation run.

    O(1) lookup by tag. `ensure` appends a synthetic bus only if the tag is
    not registered yet, so evaluating the same input twice yields the same
    buses.
    """

    def __init__(self, buses: list[Bus]):
        self.buses = buses
        self._index: dict[str, Bus] = {b.tag: b for b in buses}

    def __contains__(self, tag: object) -> bool:
        return tag in self._index

    def get(self, tag: Optional[str]) -> Optional[Bus]:
        if not tag:
            return None
        return self._index.get(tag)

    def ensure(self, tag: str, generated_from: str) -> tuple[Bus, bool]:
        """Return (bus, created)."""
        existing = self._index.get(tag)
        if existing is not None:
            return existing, False
        bus = Bus(
            tag=tag,
            tier_column=next_tier_column(self.buses),
            is_auto_generated=True,
            generated_from=generated_from,
        )
        self.buses.append(bus)
        self._index[tag] = bus
        return bus, True

    def connect(self, tag_a: str, tag_b: str):
        """Record undirected adjacency between two registered buses."""
        bus_a = self._index.get(tag_a)
        bus_b = self._index.get(tag_b)
        if bus_a is None or bus_b is None:
            return
        bus_a.connect(tag_b)
        bus_b.connect(tag_a)


class _Evaluation:
    """State of a single evaluation run."""

    def __init__(self, buses: list[Bus], branches: list[Branch]):
        self.registry = BusRegistry(buses)
        self.branches = branches
        self._branch_index: dict[str, Branch] = {b.tag: b for b in branches}
        self.alerts: list[EvaluationAlert] = []

    def alert(self, severity: AlertSeverity, tag: str, message: str):
        self.alerts.append(EvaluationAlert(severity=severity, element_tag=tag, message=message))
        log = logger.error if severity == AlertSeverity.ERROR else logger.info
        log("%s: %s", tag, message)

    def classify(self, tag: Optional[str]) -> EndpointKind:
        if not tag:
            return EndpointKind.UNKNOWN
        if tag in self.registry:
            return EndpointKind.BUS
        if tag in self._branch_index:
            return EndpointKind.BRANCH
        return EndpointKind.UNKNOWN

    def synthesize(self, tag: str, owner: str, message: str):
        _, created = self.registry.ensure(tag, generated_from=owner)
        if created:
            self.alert(AlertSeverity.INFO, owner, message)

    # --- Passive elements ---

    def evaluate_passive(self, element: PassiveElement):
        from_tag, to_tag = element.from_element, element.to_element
        from_kind, to_kind = self.classify(from_tag), self.classify(to_tag)
        logger.debug("Passive %s '%s': from '%s' (%s), to '%s' (%s)", element.category,
                     element.tag, from_tag, from_kind.value, to_tag, to_kind.value)

        if from_kind == EndpointKind.BUS and to_kind == EndpointKind.BUS:
            self.registry.connect(from_tag, to_tag)
            return

        if from_kind == EndpointKind.BRANCH and to_kind == EndpointKind.BRANCH:
            new_bus_tag = f"{element.tag}-bus"
            self.synthesize(
                new_bus_tag, element.tag,
                f"Creating intermediate bus '{new_bus_tag}' between branches "
                f"'{from_tag}' and '{to_tag}'",
            )
            _assign_bus_to_end(self._branch_index[from_tag], element.tag, new_bus_tag)
            _assign_bus_to_end(self._branch_index[to_tag], element.tag, new_bus_tag)
            return

        if {from_kind, to_kind} == {EndpointKind.BUS, EndpointKind.BRANCH}:
            bus_tag = from_tag if from_kind == EndpointKind.BUS else to_tag
            branch_tag = from_tag if from_kind == EndpointKind.BRANCH else to_tag
            _assign_bus_to_end(self._branch_index[branch_tag], element.tag, bus_tag)
            return

        if from_kind == EndpointKind.UNKNOWN and to_kind == EndpointKind.UNKNOWN:
            self.alert(AlertSeverity.ERROR, element.tag,
                       f"Both ends of '{element.tag}' are unknown elements.")

    # --- Branches ---

    def evaluate_branch(self, branch: Branch):
        if not branch.from_bus:
            branch.from_bus = self.resolve(branch, branch.from_element, "from")
        if not branch.to_bus:
            branch.to_bus = self.resolve(branch, branch.to_element, "to")
        logger.debug("Branch '%s': from_bus='%s', to_bus='%s'",
                     branch.tag, branch.from_bus, branch.to_bus)

    def resolve(self, branch: Branch, element_tag: Optional[str], side: str) -> Optional[str]:
        if not element_tag:
            self.alert(AlertSeverity.ERROR, branch.tag,
                       f"Branch '{branch.tag}' has null {side.capitalize()}Element.")
            return None

        kind = self.classify(element_tag)

        if kind == EndpointKind.BUS:
            return element_tag

        if kind == EndpointKind.BRANCH:
            new_bus_tag = f"{branch.tag}-{side}-bus"
            self.synthesize(
                new_bus_tag, branch.tag,
                f"Creating intermediate bus '{new_bus_tag}' (branch-to-branch connection)",
            )
            other = self._branch_index[element_tag]
            if other.from_element == branch.tag and not other.from_bus:
                other.from_bus = new_bus_tag
            elif other.to_element == branch.tag and not other.to_bus:
                other.to_bus = new_bus_tag
            return new_bus_tag

        # Unknown reference is an implicit bus declaration
        self.synthesize(
            element_tag, branch.tag,
            f"Creating new bus '{element_tag}' for {side.capitalize()}Element",
        )
        return element_tag

    # --- Final checks ---

    def check_resolved(self):
        for branch in self.branches:
            if not branch.from_bus:
                self.alert(AlertSeverity.ERROR, branch.tag,
                           f"Branch '{branch.tag}' has no FromBus after evaluation!")
            if not branch.to_bus:
                self.alert(AlertSeverity.ERROR, branch.tag,
                           f"Branch '{branch.tag}' has no ToBus after evaluation!")

    def update_bus_connectivity(self):
        for branch in self.branches:
            if branch.is_resolved:
                self.registry.connect(branch.from_bus, branch.to_bus)


def _assign_bus_to_end(branch: Branch, via_element: str, bus_tag: str):
    """Assign `bus_tag` to the side of `branch` that points at `via_element`."""
    if branch.from_element == via_element:
        if not branch.from_bus:
            branch.from_bus = bus_tag
    elif branch.to_element == via_element:
        if not branch.to_bus:
            branch.to_bus = bus_tag
    elif not branch.from_bus:
        branch.from_bus = bus_tag
    elif not branch.to_bus:
        branch.to_bus = bus_tag


def evaluate_connections(
    buses: Iterable[Bus],
    branches: Iterable[Branch],
    passive_elements: Iterable[PassiveElement],
) -> EvaluationResult:
    """
    Assign FromBus/ToBus on every branch.

    Works on copies: the returned buses include any synthetic buses and
    updated adjacency, the returned branches carry the resolved buses.
    Resolved buses on the input branches are ignored (reset first).

    Args:
        buses: Known buses (including buses created for loads)
        branches: Cables, transformers and bus ducts
        passive_elements: Switches, fuses and bus bar links

    Returns:
        EvaluationResult with buses, branches and alerts
    """
    bus_list = [b.model_copy(deep=True) for b in buses or []]
    branch_list = [b.model_copy(deep=True) for b in branches or []]
    for branch in branch_list:
        branch.from_bus = None
        branch.to_bus = None

    run = _Evaluation(bus_list, branch_list)

    for element in passive_elements or []:
        run.evaluate_passive(element)

    for branch in branch_list:
        run.evaluate_branch(branch)

    run.check_resolved()
    run.update_bus_connectivity()

    logger.info("Evaluation finished: %d buses, %d branches, %d alerts",
                len(run.registry.buses), len(branch_list), len(run.alerts))
    return EvaluationResult(buses=run.registry.buses, branches=branch_list, alerts=run.alerts)
