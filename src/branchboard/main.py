"""branchboard - command line entry point.

Ingests CSV/XLSX files, optionally restores a saved pipeline, evaluates it
and prints a summary of every node.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .core.config import ConfigManager
from .core.ingest import IngestFile
from .core.nodes.tree import build_child_index, calculation_order
from .core.session import AnalysisSession


def _depth(node, parents: dict) -> int:
    depth = 0
    while node.parent_id is not None:
        node = parents[node.parent_id]
        depth += 1
    return depth


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="branchboard", description=__doc__)
    parser.add_argument("files", nargs="*", type=Path, help="CSV or XLSX files to ingest")
    parser.add_argument("--state", type=Path, help="Saved exploration (JSON) to evaluate")
    parser.add_argument("--rows", type=int, default=5, help="Preview rows per node")
    args = parser.parse_args(argv)

    config = ConfigManager()
    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    session = AnalysisSession(config=config)
    session.status.add_listener(lambda event: print(event.format_message(), file=sys.stderr))
    if args.state:
        session.open_exploration(json.loads(args.state.read_text()))
    if args.files:
        outcome = session.ingest(IngestFile.from_path(p) for p in args.files)
        if not outcome.ok:
            print(f"error: {outcome.error}", file=sys.stderr)
            return 1

    nodes = session.nodes
    parents = {n.id: n for n in nodes}
    for node in calculation_order(nodes, build_child_index(nodes)):
        view = session.view(node.id)
        indent = "  " * _depth(node, parents)
        label = node.branch_name or node.title or node.type.value
        print(f"{indent}{node.type.value} {node.id} [{label}] rows={view.row_count} schema={view.schema}")
        for row in view.get_rows(0, args.rows):
            print(f"{indent}  {row}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
