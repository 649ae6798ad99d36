"""
Profiling script for PyMindMap layout performance analysis.

Each scenario builds a tree, lays it out (or replays edits on it) under
cProfile and reports the time spent per node, so trees of different sizes
can be compared directly.

Usage:
    python scripts/profile_layout.py              # all scenarios
    python scripts/profile_layout.py wide import  # only the named ones
"""

import cProfile
import pstats
import io
from pstats import SortKey
import time
import sys
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
from pymindmap.controller import EditController
from pymindmap.document import dumps, loads
from pymindmap.layout import TreeLayout
from pymindmap.tree import ROOT_ID, TreeStore


def create_tree(n_nodes, max_children=None, seed=42):
    """Grow a random tree of n nodes by attaching to random existing nodes."""
    rng = np.random.default_rng(seed)
    store = TreeStore()
    ids = [ROOT_ID]
    while len(ids) < n_nodes:
        parent = ids[rng.integers(0, len(ids))]
        if max_children is not None and len(store.get_children(parent)) >= max_children:
            continue
        ids.append(store.add_child(parent))
    return store


def lay_out(store, direction='LR'):
    TreeLayout().direction(direction).run(store.nodes(), store.edges())
    return len(store)


def profile_small_tree():
    return lay_out(create_tree(50))


def profile_medium_tree():
    return lay_out(create_tree(300))


def profile_wide_tree():
    """One rank of 499 leaves under the root."""
    store = TreeStore()
    for _ in range(499):
        store.add_child(ROOT_ID)
    return lay_out(store)


def profile_bushy_tree():
    """At most 3 children per node, laid out top to bottom."""
    return lay_out(create_tree(500, max_children=3), 'TB')


def profile_edit_session():
    """200 add-child edits, each followed by a full re-layout."""
    controller = EditController()
    rng = np.random.default_rng(7)
    ids = [ROOT_ID]
    for _ in range(200):
        ids.append(controller.add_child(ids[rng.integers(0, len(ids))]))
    return len(controller.store)


def profile_import():
    """Validate and re-lay-out a 300-node document."""
    text = dumps(create_tree(300))
    return len(loads(text))


SCENARIOS = {
    'small': profile_small_tree,
    'medium': profile_medium_tree,
    'wide': profile_wide_tree,
    'bushy': profile_bushy_tree,
    'edits': profile_edit_session,
    'import': profile_import,
}


def run_scenario(name, top=15):
    """Profile one scenario; returns (profiler, seconds, node count)."""
    func = SCENARIOS[name]
    profiler = cProfile.Profile()

    start = time.perf_counter()
    profiler.enable()
    n_nodes = func()
    profiler.disable()
    elapsed = time.perf_counter() - start

    title = (func.__doc__ or name).strip().splitlines()[0]
    print(f"\n--- {name}: {title}")
    print(f"{n_nodes} nodes in {elapsed:.3f}s ({1000 * elapsed / n_nodes:.3f} ms/node)")

    s = io.StringIO()
    pstats.Stats(profiler, stream=s).sort_stats(SortKey.TIME).print_stats(top)
    print(s.getvalue())
    return profiler, elapsed, n_nodes


def main(names):
    unknown = [n for n in names if n not in SCENARIOS]
    if unknown:
        print(f"Unknown scenario(s): {', '.join(unknown)}; choose from {', '.join(SCENARIOS)}")
        return 2

    summary = []
    for name in names or list(SCENARIOS):
        profiler, elapsed, n_nodes = run_scenario(name)
        filename = f"profile_{name}.prof"
        profiler.dump_stats(filename)
        summary.append((name, n_nodes, elapsed, filename))

    print("scenario   nodes   seconds  profile")
    for name, n_nodes, elapsed, filename in summary:
        print(f"{name:<9} {n_nodes:>6} {elapsed:>9.3f}  {filename}")
    print("\nInspect a profile with: python -m pstats <profile_file>")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
