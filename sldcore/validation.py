"""
Connection validation - Check connectivity declarations before evaluation.

Rule: if element A claims to connect to element B, then B must claim to
connect to A. Buses are endpoints and never claim connections, so a
reference to a bus is always accepted.

Validation never raises for bad data: it returns errors (blocking) and
warnings (non-blocking) for the caller to show to the user.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .graph import ElementInfo, ElementMap
from .models import Branch, Bus, ElementKind, Load, Network, PassiveElement

logger = logging.getLogger(__name__)


# Error codes
BIDIRECTIONAL_MISMATCH = "BIDIRECTIONAL_MISMATCH"
MISSING_FROM_ELEMENT = "MISSING_FROM_ELEMENT"
MISSING_TO_ELEMENT = "MISSING_TO_ELEMENT"
NO_CONNECTIONS = "NO_CONNECTIONS"
SELF_LOOP = "SELF_LOOP"
SAME_BOTH_ENDS = "SAME_BOTH_ENDS"
LOAD_NO_BUS = "LOAD_NO_BUS"

# Warning codes
UNKNOWN_TARGET = "UNKNOWN_TARGET"
LOAD_BUS_CREATED = "LOAD_BUS_CREATED"


def _compact(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class ValidationError:
    """A blocking problem that must be fixed before evaluation."""
    code: str
    source_element: str
    source_type: str
    message: str
    source_side: Optional[str] = None
    target_element: Optional[str] = None
    target_type: Optional[str] = None
    target_from_element: Optional[str] = None
    target_to_element: Optional[str] = None
    expected_in_target: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return _compact({
            "type": "error",
            "code": self.code,
            "source_element": self.source_element,
            "source_type": self.source_type,
            "source_side": self.source_side,
            "target_element": self.target_element,
            "target_type": self.target_type,
            "target_from_element": self.target_from_element,
            "target_to_element": self.target_to_element,
            "expected_in_target": self.expected_in_target,
            "message": self.message,
        })


@dataclass
class ValidationWarning:
    """A non-blocking issue, surfaced to the user."""
    code: str
    source_element: str
    source_type: str
    message: str
    target_element: Optional[str] = None
    side: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({
            "type": "warning",
            "code": self.code,
            "source_element": self.source_element,
            "source_type": self.source_type,
            "target_element": self.target_element,
            "side": self.side,
            "message": self.message,
        })


@dataclass
class LoadValidationResult:
    """Outcome of resolving one load's bus reference."""
    load_tag: str
    original_connected_bus: Optional[str]
    is_valid: bool = False
    requires_new_bus: bool = False
    new_bus_tag: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "load_tag": self.load_tag,
            "original_connected_bus": self.original_connected_bus,
            "is_valid": self.is_valid,
            "requires_new_bus": self.requires_new_bus,
            "new_bus_tag": self.new_bus_tag,
            "error_message": self.error_message,
        }


@dataclass
class ValidationResult:
    """Everything the validation phase produces."""
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)
    load_results: list[LoadValidationResult] = field(default_factory=list)
    synthetic_buses: list[Bus] = field(default_factory=list)
    load_counts: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "load_results": [r.to_dict() for r in self.load_results],
            "synthetic_buses": [b.model_dump(mode="json") for b in self.synthetic_buses],
            "load_counts": dict(self.load_counts),
        }


def validate_connections(
    buses: Iterable[Bus],
    loads: Iterable[Load],
    branches: Iterable[Branch],
    passive_elements: Iterable[PassiveElement],
) -> ValidationResult:
    """
    Validate connectivity declarations and resolve load buses.

    Checks for:
    - Bidirectional consistency (A claims B, B must claim A) - ERROR
    - References to unknown tags (may become a new bus) - WARNING
    - Branch with a missing FromElement/ToElement - ERROR
    - Passive element with no connection at all - ERROR
    - Element referencing itself - ERROR
    - Same reference on both ends - ERROR
    - Load with no bus - ERROR
    - Load referencing an unknown bus (bus `<load>-bus` is created) - WARNING

    Loads referencing an unknown bus have `connected_bus` rewritten in place
    to the synthesized bus tag.

    Args:
        buses: Known buses
        loads: Loads to resolve
        branches: Cables, transformers and bus ducts (category set)
        passive_elements: Switches, fuses and bus bar links (category set)

    Returns:
        ValidationResult; `ok` is True when there are no errors
    """
    buses = list(buses or [])
    result = ValidationResult()

    element_map = ElementMap.build(buses, branches, passive_elements)
    logger.info("Registered %d elements for validation", len(element_map))

    for element in element_map:
        if element.kind == ElementKind.BUS:
            continue
        if element.from_element:
            _check_claim(element, element.from_element, "FromElement", element_map, result)
        if element.to_element:
            _check_claim(element, element.to_element, "ToElement", element_map, result)

    _check_missing_connections(element_map, result)
    _check_self_loops(element_map, result)
    _validate_loads(loads, {b.tag for b in buses}, result)

    _log_report(result)
    return result


def validate_network(network: Network) -> ValidationResult:
    """Validate all records of a network (loads are rewritten in place)."""
    return validate_connections(
        network.buses, network.loads, network.branches(), network.passive_elements()
    )


def _check_claim(
    source: ElementInfo,
    target_tag: str,
    side: str,
    element_map: ElementMap,
    result: ValidationResult,
):
    target = element_map.get(target_tag)

    if target is None:
        result.warnings.append(ValidationWarning(
            code=UNKNOWN_TARGET,
            source_element=source.tag,
            source_type=source.type,
            target_element=target_tag,
            side=side,
            message=(
                f"'{source.tag}' references {side}='{target_tag}' which does not exist. "
                f"A new bus will be created if intentional."
            ),
        ))
        return

    # Buses are endpoints
    if target.kind == ElementKind.BUS:
        return

    if target.references(source.tag):
        return

    result.errors.append(ValidationError(
        code=BIDIRECTIONAL_MISMATCH,
        source_element=source.tag,
        source_type=source.type,
        source_side=side,
        target_element=target.tag,
        target_type=target.type,
        target_from_element=target.from_element,
        target_to_element=target.to_element,
        expected_in_target=source.tag,
        message=(
            f"'{source.tag}' ({source.type}) claims {side}='{target.tag}', "
            f"but '{target.tag}' ({target.type}) does NOT reference '{source.tag}' back. "
            f"'{target.tag}' has: FromElement='{target.from_element or 'null'}', "
            f"ToElement='{target.to_element or 'null'}'. "
            f"Expected: FromElement or ToElement should be '{source.tag}'"
        ),
    ))


def _check_missing_connections(element_map: ElementMap, result: ValidationResult):
    for element in element_map:
        if element.kind == ElementKind.BRANCH:
            if not element.from_element:
                result.errors.append(ValidationError(
                    code=MISSING_FROM_ELEMENT,
                    source_element=element.tag,
                    source_type=element.type,
                    message=f"Branch '{element.tag}' has no FromElement defined.",
                ))
            if not element.to_element:
                result.errors.append(ValidationError(
                    code=MISSING_TO_ELEMENT,
                    source_element=element.tag,
                    source_type=element.type,
                    message=f"Branch '{element.tag}' has no ToElement defined.",
                ))
        elif element.kind == ElementKind.NON_BRANCH:
            if not element.from_element and not element.to_element:
                result.errors.append(ValidationError(
                    code=NO_CONNECTIONS,
                    source_element=element.tag,
                    source_type=element.type,
                    message=f"'{element.tag}' has no connections (both FromElement and ToElement empty).",
                ))


def _check_self_loops(element_map: ElementMap, result: ValidationResult):
    for element in element_map:
        if element.kind == ElementKind.BUS:
            continue

        if element.references(element.tag):
            result.errors.append(ValidationError(
                code=SELF_LOOP,
                source_element=element.tag,
                source_type=element.type,
                message=f"'{element.tag}' references itself.",
            ))

        if element.from_element and element.from_element == element.to_element:
            result.errors.append(ValidationError(
                code=SAME_BOTH_ENDS,
                source_element=element.tag,
                source_type=element.type,
                message=f"'{element.tag}' has FromElement=ToElement='{element.from_element}'.",
            ))


def _validate_loads(loads: Iterable[Load], bus_tags: set[str], result: ValidationResult):
    for load in loads or []:
        outcome = LoadValidationResult(
            load_tag=load.tag,
            original_connected_bus=load.connected_bus,
        )

        if not load.connected_bus:
            result.errors.append(ValidationError(
                code=LOAD_NO_BUS,
                source_element=load.tag,
                source_type="Load",
                message=f"Load '{load.tag}' has no ConnectedBus defined.",
            ))
            outcome.error_message = "No ConnectedBus defined"
            result.load_results.append(outcome)
            continue

        if load.connected_bus not in bus_tags:
            new_bus_tag = f"{load.tag}-bus"
            result.warnings.append(ValidationWarning(
                code=LOAD_BUS_CREATED,
                source_element=load.tag,
                source_type="Load",
                target_element=load.connected_bus,
                message=(
                    f"Load '{load.tag}' references non-existent bus '{load.connected_bus}'. "
                    f"Creating new bus '{new_bus_tag}'."
                ),
            ))
            if new_bus_tag not in bus_tags:
                result.synthetic_buses.append(Bus(
                    tag=new_bus_tag,
                    board_tag=load.connected_bus,
                    is_auto_generated=True,
                    generated_from=load.tag,
                ))
                bus_tags.add(new_bus_tag)

            outcome.is_valid = True
            outcome.requires_new_bus = True
            outcome.new_bus_tag = new_bus_tag
            load.connected_bus = new_bus_tag
        else:
            outcome.is_valid = True

        result.load_counts[load.connected_bus] = result.load_counts.get(load.connected_bus, 0) + 1
        result.load_results.append(outcome)


def _log_report(result: ValidationResult):
    if not result.errors and not result.warnings:
        logger.info("All connections are valid")
    for i, error in enumerate(result.errors, start=1):
        logger.info("[%d] [%s] %s '%s': %s", i, error.code, error.source_type,
                    error.source_element, error.message)
    for warning in result.warnings:
        logger.info("[%s] %s", warning.code, warning.message)
    if result.load_results:
        logger.info(
            "Loads: %d total, %d valid, %d new buses, %d invalid",
            len(result.load_results),
            len([r for r in result.load_results if r.is_valid]),
            len(result.synthetic_buses),
            len([r for r in result.load_results if not r.is_valid]),
        )
    logger.info("Validation %s", "passed" if result.ok else "failed")


def validation_summary(result: ValidationResult) -> dict:
    """
    Create a summary of validation issues.

    Args:
        result: Validation result

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(result.errors) + len(result.warnings),
        "errors": len(result.errors),
        "warnings": len(result.warnings),
        "new_buses": len(result.synthetic_buses),
        "valid": result.ok,
    }
