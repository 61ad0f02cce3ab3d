"""
Connection processing - Validation -> Evaluation in strict order.

This is the single entry point used by the API, the CLI and the layout
pipeline. Evaluation never runs if validation found an error.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .evaluation import EvaluationAlert, evaluate_connections
from .models import Branch, Bus, Load, Network, next_tier_column
from .validation import (
    LoadValidationResult,
    ValidationError,
    ValidationWarning,
    validate_network,
)

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Outcome of validating and evaluating a network."""
    success: bool = False
    message: str = ""
    network: Optional[Network] = None
    buses: list[Bus] = field(default_factory=list)
    branches: list[Branch] = field(default_factory=list)
    loads: list[Load] = field(default_factory=list)
    validation_errors: list[ValidationError] = field(default_factory=list)
    validation_warnings: list[ValidationWarning] = field(default_factory=list)
    load_results: list[LoadValidationResult] = field(default_factory=list)
    new_load_buses: list[Bus] = field(default_factory=list)
    load_counts: dict[str, int] = field(default_factory=dict)
    alerts: list[EvaluationAlert] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "message": self.message,
            "buses": [b.model_dump(mode="json") for b in self.buses],
            "branches": [b.model_dump(mode="json") for b in self.branches],
            "loads": [ld.model_dump(mode="json") for ld in self.loads],
            "validation_errors": [e.to_dict() for e in self.validation_errors],
            "validation_warnings": [w.to_dict() for w in self.validation_warnings],
            "load_results": [r.to_dict() for r in self.load_results],
            "new_load_buses": [b.model_dump(mode="json") for b in self.new_load_buses],
            "load_counts": dict(self.load_counts),
            "alerts": [a.to_dict() for a in self.alerts],
        }


def process_connections(network: Network) -> ProcessingResult:
    """
    Validate, then evaluate (only if validation passed).

    The input network is not modified. On success `result.network` holds an
    updated copy: buses with synthetic additions and adjacency, loads with
    rewritten bus references, and every cable/transformer/bus duct carrying
    its resolved buses.

    Args:
        network: The network records

    Returns:
        ProcessingResult with success=True if all OK, or success=False with
        the blocking errors (validation) or error alerts (evaluation)
    """
    network = network.model_copy(deep=True)
    result = ProcessingResult(network=network, loads=network.loads)

    logger.info("Phase 1: validating connections (bidirectional consistency)")
    validation = validate_network(network)

    result.validation_errors = list(validation.errors)
    result.validation_warnings = list(validation.warnings)
    result.load_results = list(validation.load_results)
    result.new_load_buses = list(validation.synthetic_buses)
    result.load_counts = dict(validation.load_counts)

    if not validation.ok:
        result.message = (
            f"Validation failed with {len(validation.errors)} error(s). "
            "Please fix the errors and try again."
        )
        logger.info("Processing stopped: %s", result.message)
        return result

    if validation.synthetic_buses:
        for bus in validation.synthetic_buses:
            bus.tier_column = next_tier_column(network.buses)
            network.buses.append(bus)
        logger.info("Added %d new buses created for loads", len(validation.synthetic_buses))

    logger.info("Phase 2: evaluating connections (assigning FromBus/ToBus)")
    evaluation = evaluate_connections(
        network.buses, network.branches(), network.passive_elements()
    )

    network.buses = evaluation.buses
    _map_back(evaluation.branches, network)

    result.buses = evaluation.buses
    result.branches = evaluation.branches
    result.alerts = list(evaluation.alerts)

    if evaluation.has_errors:
        result.success = False
        result.message = (
            "Evaluation left branches unresolved; this indicates an invariant failure. "
            "See alerts for details."
        )
        logger.error(result.message)
        return result

    result.success = True
    result.message = "Connection processing completed successfully."
    logger.info(result.message)
    return result


def _map_back(evaluated: list[Branch], network: Network):
    """Copy resolved buses onto the per-category branch records."""
    resolved = {b.tag: b for b in evaluated}
    for records in (network.cables, network.transformers, network.bus_ducts):
        for record in records:
            branch = resolved.get(record.tag)
            if branch is not None:
                record.from_bus = branch.from_bus
                record.to_bus = branch.to_bus
