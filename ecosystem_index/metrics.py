"""
Weight and volatility over the distribution dependency graph.

An edge ``(A, B)`` means A depends on B.

* weight(B): how many other distributions transitively depend on B.
* volatility(A): how many other distributions A transitively depends on.

Both are reachable-set sizes. Strongly connected components are collapsed
first, so cycles are counted once and the traversal always terminates. Each
component's reachable set is a bitset built from its successors' sets in
reverse topological order, then released once every predecessor has used it.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Sequence, Tuple

import networkx as nx

from .models import DEFAULT_UMBRELLA_PREFIXES, DependencyEdge, GraphMetrics


logger = logging.getLogger(__name__)


def is_umbrella(name: str, prefixes: Sequence[str] = DEFAULT_UMBRELLA_PREFIXES) -> bool:
    """True for bundle/demo distributions that should not count as dependents."""
    return name.startswith(tuple(prefixes))


def build_graph(nodes: Iterable[str], edges: Iterable[Tuple[str, str]]) -> nx.DiGraph:
    """Dependency graph over ``nodes``; edges touching unknown nodes are ignored."""
    graph = nx.DiGraph()
    graph.add_nodes_from(nodes)
    skipped = 0
    for source, target in edges:
        if source in graph and target in graph:
            graph.add_edge(source, target)
        else:
            skipped += 1
    if skipped:
        logger.debug("Ignored %d edges outside the node set", skipped)
    return graph


def reachable_counts(graph: nx.DiGraph, counted: Optional[Iterable[str]] = None) -> Dict[str, int]:
    """Number of nodes reachable from each node, the node itself included.

    Args:
        graph: Directed graph, cycles allowed
        counted: Nodes that count towards the totals; every node when omitted.
            Other nodes still relay reachability.

    Returns:
        Mapping of node to reachable-set size
    """
    if graph.number_of_nodes() == 0:
        return {}

    condensed = nx.condensation(graph)
    order = list(nx.topological_sort(condensed))

    # Bits are assigned sinks-first so reachable sets stay short integers
    bit_of: Dict[str, int] = {}
    for component in reversed(order):
        for node in sorted(condensed.nodes[component]["members"]):
            bit_of[node] = len(bit_of)

    if counted is None:
        mask = (1 << len(bit_of)) - 1
    else:
        mask = 0
        for node in counted:
            if node in bit_of:
                mask |= 1 << bit_of[node]

    pending = {component: condensed.in_degree(component) for component in order}
    reach: Dict[int, int] = {}
    sizes: Dict[int, int] = {}

    for component in reversed(order):
        bits = 0
        for node in condensed.nodes[component]["members"]:
            bits |= 1 << bit_of[node]
        for successor in condensed.successors(component):
            bits |= reach[successor]
            pending[successor] -= 1
            if pending[successor] == 0:
                del reach[successor]
        sizes[component] = bin(bits & mask).count("1")
        if pending[component] > 0:
            reach[component] = bits

    mapping = condensed.graph["mapping"]
    return {node: sizes[mapping[node]] for node in graph.nodes}


def compute_weight(
    distributions: Iterable[str],
    edges: Iterable[Tuple[str, str]],
    umbrella_prefixes: Sequence[str] = DEFAULT_UMBRELLA_PREFIXES,
) -> Dict[str, int]:
    """Fan-in: distinct distributions with a path to each distribution.

    Umbrella distributions are not counted as dependents and their own weight
    is 0, but paths through them still carry weight to their dependencies.
    """
    distributions = list(distributions)
    candidates = [name for name in distributions if not is_umbrella(name, umbrella_prefixes)]
    reverse = build_graph(distributions, ((target, source) for source, target in edges))
    counts = reachable_counts(reverse, counted=candidates)
    weight = dict.fromkeys(distributions, 0)
    for name in candidates:
        weight[name] = max(counts.get(name, 1) - 1, 0)
    return weight


def compute_volatility(
    distributions: Iterable[str],
    edges: Iterable[Tuple[str, str]],
) -> Dict[str, int]:
    """Fan-out: distinct distributions reachable from each distribution.

    The reachable set includes the distribution itself, hence the minus one.
    """
    distributions = list(distributions)
    forward = build_graph(distributions, edges)
    counts = reachable_counts(forward)
    return {name: counts.get(name, 1) - 1 for name in distributions}


def compute_metrics(
    distributions: Iterable[str],
    edges: Iterable[DependencyEdge],
    umbrella_prefixes: Sequence[str] = DEFAULT_UMBRELLA_PREFIXES,
) -> GraphMetrics:
    """Weight and volatility for every distribution.

    Phases are ignored: distinct (distribution, dependency) pairs form the graph.
    """
    distributions = list(distributions)
    pairs = sorted({(edge.distribution, edge.dependency) for edge in edges})
    logger.info("Computing metrics over %d distributions and %d edges", len(distributions), len(pairs))
    return GraphMetrics(
        weight=compute_weight(distributions, pairs, umbrella_prefixes),
        volatility=compute_volatility(distributions, pairs),
    )
