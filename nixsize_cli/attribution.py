"""Size attribution over a validated dependency graph.

For every node this computes:

- ``closure_size``: exclusive sizes summed over the node and everything it
  transitively depends on, each reachable node counted once.
- ``shared_size``: the node's portion of every exclusive size it helps keep
  alive. Each node's exclusive size is split across its ancestor set (the
  node itself plus everything that transitively depends on it) according to
  an apportionment policy, so the shared sizes of all nodes add up to the
  total exclusive size of the graph.

Reachable and ancestor sets are memoized as integer bitsets indexed by each
node's position in the graph's topological order. Unioning bitsets keeps
diamond dependencies from being counted twice.
"""

from __future__ import annotations

import logging
from itertools import compress
from typing import Callable, Dict, List, Sequence

from .graph import Graph
from .models import Attribution

logger = logging.getLogger(__name__)

# (exclusive size to split, exclusive sizes of the receiving ancestors) -> shares
ApportionmentPolicy = Callable[[int, Sequence[int]], List[float]]


def equal_shares(size: int, ancestor_sizes: Sequence[int]) -> List[float]:
    """Every ancestor receives the same share."""
    share = size / len(ancestor_sizes)
    return [share] * len(ancestor_sizes)


def proportional_shares(size: int, ancestor_sizes: Sequence[int]) -> List[float]:
    """Ancestors receive shares weighted by their own exclusive size.

    Falls back to equal shares when every ancestor is empty.
    """
    total = sum(ancestor_sizes)
    if total == 0:
        return equal_shares(size, ancestor_sizes)
    return [size * weight / total for weight in ancestor_sizes]


POLICIES: Dict[str, ApportionmentPolicy] = {
    "equal": equal_shares,
    "proportional": proportional_shares,
}

DEFAULT_POLICY = "equal"


def get_policy(name: str) -> ApportionmentPolicy:
    try:
        return POLICIES[name]
    except KeyError:
        choices = ", ".join(sorted(POLICIES))
        raise ValueError(f"Unknown apportionment policy '{name}' (choose from: {choices})")


_BIT_BYTES = str.maketrans("01", "\x00\x01")


def _members(mask: int) -> List[int]:
    """Indices of the set bits of ``mask``, ascending, in one linear pass."""
    # Least significant bit first, then one byte (0 or 1) per bit position.
    flags = bin(mask)[:1:-1].translate(_BIT_BYTES).encode("ascii")
    return list(compress(range(len(flags)), flags))


def attribute(graph: Graph, policy: str = DEFAULT_POLICY) -> Dict[str, Attribution]:
    """Compute an :class:`Attribution` for every node of ``graph``.

    Args:
        graph: A graph produced by :func:`~nixsize_cli.graph.build_graph`
        policy: Name of the apportionment policy (see :data:`POLICIES`)

    Returns:
        Mapping of node id to attribution, in topological order.
    """
    split = get_policy(policy)
    order = graph.order
    index = {node_id: i for i, node_id in enumerate(order)}
    sizes = [graph.nodes[node_id].exclusive_size for node_id in order]

    reachable: List[int] = [0] * len(order)
    for i, node_id in enumerate(order):
        mask = 1 << i
        for dep in graph.nodes[node_id].dependencies:
            mask |= reachable[index[dep]]
        reachable[i] = mask

    ancestors: List[int] = [0] * len(order)
    for i in range(len(order) - 1, -1, -1):
        mask = 1 << i
        for parent in graph.dependents[order[i]]:
            mask |= ancestors[index[parent]]
        ancestors[i] = mask

    shared = [0.0] * len(order)
    for i, size in enumerate(sizes):
        receivers = _members(ancestors[i])
        shares = split(size, [sizes[j] for j in receivers])
        for j, share in zip(receivers, shares):
            shared[j] += share

    result: Dict[str, Attribution] = {}
    for i, node_id in enumerate(order):
        result[node_id] = Attribution(
            node_id=node_id,
            exclusive_size=sizes[i],
            closure_size=sum(sizes[j] for j in _members(reachable[i])),
            shared_size=shared[i],
        )

    logger.debug("Attributed %d nodes using the '%s' policy", len(result), policy)
    return result
