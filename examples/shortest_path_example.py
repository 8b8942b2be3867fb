"""Example of dynamic single-source shortest paths on a small road map."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from dynamic_network_solver import DynamicShortestPath, build_graph  # noqa: E402


def print_paths(engine: DynamicShortestPath, targets: str) -> None:
    for target in targets:
        path = engine.get_path(target)
        if not path.nodes:
            print(f"  {target}: unreachable")
            continue
        print(f"  {target}: {path.length:g} via {' -> '.join(path.nodes)}")


def main() -> None:
    roads = {
        ("A", "B"): 14,
        ("A", "C"): 9,
        ("A", "D"): 7,
        ("B", "C"): 2,
        ("C", "D"): 10,
        ("B", "E"): 9,
        ("C", "F"): 11,
        ("D", "F"): 15,
        ("E", "F"): 6,
    }
    graph = build_graph(
        nodes=[{"id": node_id} for node_id in "ABCDEFG"],
        edges=[
            {"source": source, "target": target, "length": length}
            for (source, target), length in roads.items()
        ],
        directed=False,
    )
    engine = DynamicShortestPath("length", source="A")
    engine.init(graph)
    engine.compute()

    print("Shortest paths from A:")
    print_paths(engine, "BCDEFG")

    graph.set_edge_attribute("AC", "length", 20)
    graph.add_edge("FG", "F", "G", directed=False, length=3)
    engine.compute()
    print("\nAfter A-C got longer and G was connected:")
    print_paths(engine, "BCDEFG")

    engine.set_source("E")
    engine.compute()
    print("\nShortest paths from E:")
    print_paths(engine, "ABCDFG")


if __name__ == "__main__":
    main()
