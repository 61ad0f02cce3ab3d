"""
SLD Core - Topology resolution and layout for single-line diagrams.

This module provides the core functionality used by the backend API, the
CLI and the MCP tools, ensuring a single source of truth for SLD logic.
"""

from .models import (
    # Enums
    ElementKind,
    BusCategory,
    BranchCategory,
    PassiveCategory,
    # Records
    Bus,
    Branch,
    PassiveElement,
    Load,
    SavedCoordinate,
    Network,
)

from .config import LayoutPolicy, SpacingConfig, DEFAULT_POLICY
from .graph import ElementInfo, ElementMap
from .validation import (
    validate_connections,
    validate_network,
    validation_summary,
    ValidationError,
    ValidationWarning,
    ValidationResult,
    LoadValidationResult,
)
from .evaluation import evaluate_connections, EvaluationAlert, EvaluationResult, AlertSeverity
from .processing import process_connections, ProcessingResult
from .chains import Chain, ChainOrientation, discover_chains
from .layout import LayoutResult, build_layout, layout_network
from .overrides import apply_saved_coordinates, saved_coordinates_from_layout
from .analysis import (
    ConnectivityAnalyzer,
    TraceResult,
    TraceStep,
    ConnectionCandidate,
    NetworkComponent,
    NetworkSummary,
    find_networks,
    summarize_network,
)

__all__ = [
    # Enums
    "ElementKind",
    "BusCategory",
    "BranchCategory",
    "PassiveCategory",
    # Models
    "Bus",
    "Branch",
    "PassiveElement",
    "Load",
    "SavedCoordinate",
    "Network",
    # Config
    "LayoutPolicy",
    "SpacingConfig",
    "DEFAULT_POLICY",
    # Element map
    "ElementInfo",
    "ElementMap",
    # Validation
    "validate_connections",
    "validate_network",
    "validation_summary",
    "ValidationError",
    "ValidationWarning",
    "ValidationResult",
    "LoadValidationResult",
    # Evaluation
    "evaluate_connections",
    "EvaluationAlert",
    "EvaluationResult",
    "AlertSeverity",
    # Processing
    "process_connections",
    "ProcessingResult",
    # Chains and layout
    "Chain",
    "ChainOrientation",
    "discover_chains",
    "LayoutResult",
    "build_layout",
    "layout_network",
    # Overrides
    "apply_saved_coordinates",
    "saved_coordinates_from_layout",
    # Analysis
    "ConnectivityAnalyzer",
    "TraceResult",
    "TraceStep",
    "ConnectionCandidate",
    "NetworkComponent",
    "NetworkSummary",
    "find_networks",
    "summarize_network",
]
