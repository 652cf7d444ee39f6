"""
Graph invariant checks and deterministic ordering.

validate_graph() runs the checks in a fixed order and raises the first
violation it finds:

1. Referential integrity: every edge targets a node in the graph.
2. Acyclicity per signal kind: no node feeds itself, transitively,
   along edges of one signal kind.
3. Signal compatibility: the source declares the edge's signal as an
   output and the target declares it as an input.
"""

import heapq
import logging
from typing import Dict, Iterator, List, Optional, Set

from alloy_pipeline.errors import CycleError, ReferentialIntegrityError, SignalMismatchError
from alloy_pipeline.models import Node, PipelineGraph, SignalKind

logger = logging.getLogger(__name__)


def check_referential_integrity(graph: PipelineGraph) -> None:
    """Raise ReferentialIntegrityError for the first edge with an unknown target."""
    names = graph.by_name()
    for node in graph.nodes:
        for edge in node.edges:
            if edge.target not in names:
                raise ReferentialIntegrityError(node.name, edge.target, edge.signal.value)


def find_cycle(graph: PipelineGraph, signal: SignalKind) -> Optional[List[str]]:
    """
    Find a cycle in the subgraph of edges carrying ``signal``.

    Iterative depth-first traversal tracking the nodes on the current
    path. Reaching a node that is on the path closes a cycle.

    Args:
        graph: Graph to search
        signal: Signal kind whose edges form the subgraph

    Returns:
        The cycle as a chain of node names starting and ending on the same
        node (e.g. ``["a", "b", "a"]``), or None if the subgraph is acyclic
    """
    nodes = graph.by_name()
    visited: Set[str] = set()

    for root in nodes:
        if root in visited:
            continue
        visited.add(root)
        path = [root]
        on_path = {root}
        pending: List[Iterator[str]] = [iter(nodes[root].targets(signal))]

        while pending:
            target = next(pending[-1], None)
            if target is None:
                on_path.discard(path.pop())
                pending.pop()
                continue
            if target not in nodes:
                continue
            if target in on_path:
                return path[path.index(target) :] + [target]
            if target not in visited:
                visited.add(target)
                path.append(target)
                on_path.add(target)
                pending.append(iter(nodes[target].targets(signal)))
    return None


def check_acyclic(graph: PipelineGraph) -> None:
    """Raise CycleError for the first signal kind whose subgraph has a cycle."""
    for signal in SignalKind:
        cycle = find_cycle(graph, signal)
        if cycle:
            raise CycleError(cycle, signal.value)


def check_signal_compatibility(graph: PipelineGraph) -> None:
    """Raise SignalMismatchError for the first edge its endpoints cannot carry."""
    nodes = graph.by_name()
    for node in graph.nodes:
        for edge in node.edges:
            target = nodes[edge.target]
            if edge.signal not in node.outputs:
                raise SignalMismatchError(
                    node.name,
                    target.name,
                    edge.signal.value,
                    f"{node.name!r} does not declare a {edge.signal.value} output",
                )
            if edge.signal not in target.inputs:
                raise SignalMismatchError(
                    node.name,
                    target.name,
                    edge.signal.value,
                    f"{target.name!r} does not declare a {edge.signal.value} input",
                )


def validate_graph(graph: PipelineGraph) -> None:
    """
    Check all graph invariants.

    Raises:
        ReferentialIntegrityError: An edge names a node outside the graph
        CycleError: A same-signal cycle exists
        SignalMismatchError: An edge's signal is not emitted or not accepted
    """
    check_referential_integrity(graph)
    check_acyclic(graph)
    check_signal_compatibility(graph)
    logger.debug(f"Pipeline graph with {len(graph)} nodes passed validation")


def topological_order(graph: PipelineGraph) -> List[Node]:
    """
    Order nodes so producers come before their consumers.

    Ties are broken by insertion order, so identical graphs always yield
    the same order. Edges of all signal kinds count as dependencies. A
    loop that mixes signal kinds is legal; when one blocks progress the
    earliest inserted remaining node is placed next.
    """
    nodes = graph.by_name()
    index: Dict[str, int] = {name: i for i, name in enumerate(nodes)}
    indegree: Dict[str, int] = {name: 0 for name in nodes}
    successors: Dict[str, List[str]] = {name: [] for name in nodes}

    for node in graph.nodes:
        for target in dict.fromkeys(edge.target for edge in node.edges):
            if target in nodes and target != node.name:
                successors[node.name].append(target)
                indegree[target] += 1

    ready = [(index[name], name) for name in nodes if indegree[name] == 0]
    heapq.heapify(ready)
    placed: Set[str] = set()
    order: List[Node] = []

    while len(order) < len(nodes):
        if not ready:
            forced = min((name for name in nodes if name not in placed), key=index.__getitem__)
            heapq.heappush(ready, (index[forced], forced))

        _, name = heapq.heappop(ready)
        if name in placed:
            continue
        placed.add(name)
        order.append(nodes[name])

        for target in successors[name]:
            indegree[target] -= 1
            if indegree[target] == 0 and target not in placed:
                heapq.heappush(ready, (index[target], target))

    return order
