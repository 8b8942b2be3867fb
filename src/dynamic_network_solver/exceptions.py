"""Custom exceptions for the dynamic network solver library."""

from __future__ import annotations


class NetworkSolverError(Exception):
    """Base exception for all dynamic network solver errors.

    All custom exceptions in the dynamic_network_solver package inherit from this
    class, allowing users to catch all solver-related errors with a single except
    clause.

    Example:
        try:
            engine.compute()
        except NetworkSolverError as e:
            print(f"Solver error: {e}")
    """


class InvalidProblemError(NetworkSolverError):
    """Raised when a network definition is invalid or malformed.

    This includes:
    - Duplicate node or edge identifiers
    - Edges referencing nodes that do not exist
    - Malformed JSON input

    Example:
        InvalidProblemError("Edge 'AB' references unknown node 'B'")
    """


class ElementNotFoundError(NetworkSolverError, KeyError):
    """Raised when a node, edge or adjacency lookup fails.

    Queries never return a sentinel for elements that do not exist. Asking for
    the flow on an arc between two nodes that are not adjacent fails fast with
    this error.

    Example:
        ElementNotFoundError("No edge from 'A' to 'F'", element=("A", "F"))
    """

    def __init__(self, message: str, element: object | None = None):
        """Initialize with message and the element that was looked up."""
        super().__init__(message)
        self.element = element

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead.
        return str(self.args[0]) if self.args else ""


class IterationLimitError(NetworkSolverError):
    """Raised when compute() exceeds the configured pivot limit.

    The engine has no built-in termination guarantee under degenerate cycling.
    Setting ``SolverOptions.max_pivots`` turns a runaway optimisation into this
    error. The current basis is left intact and the solution stays UNDEFINED,
    so a later call to compute() continues from where this one stopped.

    Example:
        IterationLimitError(
            "Pivot limit reached: 1000 pivots completed",
            iterations=1000,
            objective=123.45,
        )
    """

    def __init__(
        self,
        message: str,
        iterations: int = 0,
        objective: float | None = None,
        status: str = "undefined",
    ):
        """Initialize with message and solution state."""
        super().__init__(message)
        self.iterations = iterations
        self.objective = objective
        self.status = status


class SolverConfigurationError(NetworkSolverError):
    """Raised when solver configuration or usage is invalid.

    This includes:
    - Invalid option values (non-positive tolerance, unknown pricing strategy)
    - Calling compute() or a query before init()
    - A flow attribute name that collides with an input attribute name

    Example:
        SolverConfigurationError("max_pivots must be positive, got -1")
    """


class BasisCorruptionError(NetworkSolverError):
    """Raised when the spanning-tree basis is found in an inconsistent state.

    This is an internal signal. compute() catches it while applying pending
    changes and falls back to a full rebuild from the current graph snapshot,
    trading speed for correctness. It only escapes to callers through explicit
    consistency checks such as ``NetworkSimplex.check_basis()``.

    Example:
        BasisCorruptionError("Node 'C' has 2 tree children after arc removal", node="C")
    """

    def __init__(self, message: str, node: str | None = None):
        """Initialize with message and optional offending node."""
        super().__init__(message)
        self.node = node
