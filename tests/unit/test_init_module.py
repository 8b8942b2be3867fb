"""Unit tests for __init__.py module public API."""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

import dynamic_network_solver  # noqa: E402


def test_version_is_exposed():
    assert dynamic_network_solver.__version__ == "0.1.0"


def test_all_names_are_importable():
    """Every name listed in __all__ resolves on the package."""
    for name in dynamic_network_solver.__all__:
        assert hasattr(dynamic_network_solver, name), name


def test_main_entrypoints_exported():
    exported = set(dynamic_network_solver.__all__)

    assert {
        "NetworkSimplex",
        "DynamicShortestPath",
        "DynamicGraph",
        "solve_min_cost_flow",
        "shortest_path_lengths",
        "load_graph",
        "save_result",
        "validate_flow",
    } <= exported
