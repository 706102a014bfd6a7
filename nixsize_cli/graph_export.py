"""Report export helpers for CSV and Graphviz DOT outputs."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Dict, Iterable, List

from .config import NIX_STORE_PREFIX
from .graph import Graph
from .report import Report

CSV_COLUMNS = ("path", "exclusive_size", "closure_size", "shared_size")
# Store path basename is "<32 char hash>-<name>"
HASH_PREFIX_LEN = 33
RANK_CHUNK = 20
MIN_NODE_SIZE = 0.2
NODE_SIZE_RANGE = 2.0


def render_csv(report: Report, precision: int = 3) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for row in report:
        writer.writerow([
            row.node_id,
            row.exclusive_size,
            row.closure_size,
            f"{row.shared_size:.{precision}f}",
        ])
    return buffer.getvalue()


def export_csv(report: Report, output_file: Path, precision: int = 3) -> None:
    """Write one row per attribution; ``shared_size`` is rounded only here."""
    output_file.write_text(render_csv(report, precision), encoding="utf-8")


def short_names(paths: Iterable[str]) -> Dict[str, str]:
    """Map store paths to the shortest unambiguous display name.

    ``/nix/store/<hash>-bash-5.2`` becomes ``bash-5.2`` unless another path
    shares that name, in which case both keep their hash.
    """
    by_name: Dict[str, List[str]] = {}
    for path in paths:
        base = path[len(NIX_STORE_PREFIX):] if path.startswith(NIX_STORE_PREFIX) else path
        name = base[HASH_PREFIX_LEN:] if len(base) > HASH_PREFIX_LEN and base[HASH_PREFIX_LEN - 1] == "-" else base
        by_name.setdefault(name, []).append(path)

    names: Dict[str, str] = {}
    for name, owners in by_name.items():
        for path in owners:
            if len(owners) == 1:
                names[path] = name
            else:
                names[path] = path[len(NIX_STORE_PREFIX):] if path.startswith(NIX_STORE_PREFIX) else path
    return names


def format_size(size: float) -> str:
    for unit in ("B", "KiB", "MiB", "GiB"):
        if abs(size) < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TiB"


def _node_scale(size: int, smallest: int, largest: int) -> float:
    if largest == smallest:
        return MIN_NODE_SIZE
    fraction = (size - smallest) / (largest - smallest)
    return MIN_NODE_SIZE + NODE_SIZE_RANGE * min(max(fraction, 0.0), 1.0)


def render_dot(report: Report, graph: Graph) -> str:
    names = short_names(row.node_id for row in report)
    sizes = [row.exclusive_size for row in report]
    smallest, largest = (min(sizes), max(sizes)) if sizes else (0, 0)

    lines = ["digraph Closure {"]
    for row in report:
        scale = _node_scale(row.exclusive_size, smallest, largest)
        label = f"{_esc(names[row.node_id])}\\n{format_size(row.exclusive_size)}"
        lines.append(
            f'  "{_esc(row.node_id)}" [fixedsize=true, height={scale:.3f}, width={scale:.3f}, '
            f'penwidth=2, label="{label}"];'
        )

    for row in report:
        for dep in sorted(graph.nodes[row.node_id].dependencies):
            lines.append(f'  "{_esc(row.node_id)}" -> "{_esc(dep)}" [penwidth=0.5];')

    # Rows of same-level nodes, chained by invisible anchors so levels stack top to bottom.
    levels = graph.levels()
    by_level: Dict[int, List[str]] = {}
    for row in report:
        by_level.setdefault(levels[row.node_id], []).append(row.node_id)

    anchors: List[str] = []
    for level in sorted(by_level):
        members = by_level[level]
        for chunk_no, start in enumerate(range(0, len(members), RANK_CHUNK)):
            anchor = f"lnode{level}_{chunk_no}"
            ids = " ".join(f'"{_esc(n)}";' for n in members[start:start + RANK_CHUNK])
            lines.append(f"  subgraph level_{level}_{chunk_no} {{")
            lines.append(f"    rank = same; {ids}")
            lines.append(f'    {anchor} [style="invis"];')
            lines.append("  }")
            anchors.append(anchor)
    for upper, lower in zip(anchors, anchors[1:]):
        lines.append(f'  {upper} -> {lower} [style="invis"];')

    lines.append("}")
    return "\n".join(lines) + "\n"


def export_dot(report: Report, graph: Graph, output_file: Path) -> None:
    """Write a Graphviz graph: arcs go from dependent to dependency."""
    output_file.write_text(render_dot(report, graph), encoding="utf-8")


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
