"""High-level entrypoints for the dynamic network simplex library."""

from .data import (
    ArcStatus,
    AttributeNames,
    ChangeState,
    FlowResult,
    PricingStrategy,
    ProgressCallback,
    ProgressInfo,
    SolutionStatus,
    SolverOptions,
    build_graph,
)
from .events import (
    AttributeChange,
    AttributeChanged,
    EdgeAdded,
    EdgeRemoved,
    ElementKind,
    GraphCleared,
    NodeAdded,
    NodeRemoved,
)
from .exceptions import (
    BasisCorruptionError,
    ElementNotFoundError,
    InvalidProblemError,
    IterationLimitError,
    NetworkSolverError,
    SolverConfigurationError,
)
from .graph import DynamicGraph, EdgeRecord
from .shortest_path import DynamicShortestPath
from .simplex import NetworkSimplex
from .solver import load_graph, save_result, shortest_path_lengths, solve_min_cost_flow
from .utils import TreePath, ValidationResult, validate_flow

__version__ = "0.1.0"

__all__ = [
    # Main API
    "NetworkSimplex",
    "DynamicShortestPath",
    "DynamicGraph",
    "EdgeRecord",
    "build_graph",
    "load_graph",
    "save_result",
    "solve_min_cost_flow",
    "shortest_path_lengths",
    # Configuration
    "AttributeNames",
    "SolverOptions",
    "PricingStrategy",
    # Solution state
    "ArcStatus",
    "SolutionStatus",
    "ChangeState",
    "FlowResult",
    # Progress tracking
    "ProgressCallback",
    "ProgressInfo",
    # Events
    "NodeAdded",
    "NodeRemoved",
    "EdgeAdded",
    "EdgeRemoved",
    "AttributeChanged",
    "AttributeChange",
    "ElementKind",
    "GraphCleared",
    # Utilities
    "validate_flow",
    "TreePath",
    "ValidationResult",
    # Exceptions
    "NetworkSolverError",
    "InvalidProblemError",
    "ElementNotFoundError",
    "IterationLimitError",
    "SolverConfigurationError",
    "BasisCorruptionError",
    # Version
    "__version__",
]
