"""Example script demonstrating usage of the dynamic network simplex solver."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from dynamic_network_solver import load_graph, save_result, solve_min_cost_flow  # noqa: E402


def main() -> None:
    base_dir = Path(__file__).resolve().parent
    network_path = base_dir / "sample_network.json"
    output_path = base_dir / "sample_solution.json"

    graph = load_graph(network_path)
    result = solve_min_cost_flow(graph)
    save_result(output_path, result)

    print(f"Solved {network_path.name}: status={result.status.value}, objective={result.objective}")

    # Node potentials double as shadow prices of the supplies
    if result.duals:
        print("\nNode potentials:")
        for node_id, dual in sorted(result.duals.items()):
            print(f"  {node_id}: {dual:.6f}")


if __name__ == "__main__":
    main()
