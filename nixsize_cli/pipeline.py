"""End-to-end analysis: path records -> graph -> attribution -> report."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable

from .attribution import DEFAULT_POLICY, attribute
from .graph import Graph, build_graph
from .models import Attribution, PathRecord
from .report import Report, SortKey, SortOrder, assemble

logger = logging.getLogger(__name__)


@dataclass
class Analysis:
    graph: Graph
    attributions: Dict[str, Attribution]
    report: Report


def analyze(
    records: Iterable[PathRecord],
    sort_key: SortKey = SortKey.SHARED_SIZE,
    order: SortOrder = SortOrder.DESCENDING,
    policy: str = DEFAULT_POLICY,
) -> Analysis:
    """Run the full pipeline over one closure.

    Graph errors propagate unchanged; nothing is computed for an invalid graph.
    """
    graph = build_graph(records)
    attributions = attribute(graph, policy)
    report = assemble(attributions, sort_key, order)
    logger.info(
        "Analyzed %d store paths totalling %d bytes", len(graph), report.total_exclusive_size
    )
    return Analysis(graph=graph, attributions=attributions, report=report)
