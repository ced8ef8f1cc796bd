"""Type-level dependency ordering for infraresolve.

The dependency relation between entity types is declared once in
cloud_config (reference dependencies plus the sequence of resolution
stages). It is validated for cycles here and flattened into the order the
pipeline runs in. Entities of one type never depend on each other.
"""

import logging
from typing import Dict, List, Optional

import graphviz

import resolver.cloud_config as cloud_config
from resolver.exceptions import DependencyCycleError

logger = logging.getLogger(__name__)


def build_dependency_graph(
    dependencies: Optional[Dict[str, List[str]]] = None,
    stages: Optional[List[List[str]]] = None,
) -> Dict[str, List[str]]:
    """Combine reference dependencies and stage sequencing into one graph.

    Every type of a stage depends on every type of the stages before it, in
    addition to the types it references.

    Returns:
        dict: type -> sorted list of types it must come after
    """
    dependencies = cloud_config.TYPE_DEPENDENCIES if dependencies is None else dependencies
    stages = cloud_config.RESOLUTION_STAGES if stages is None else stages
    graph = {entity_type: set(deps) for entity_type, deps in dependencies.items()}
    earlier: List[str] = []
    for stage in stages:
        for entity_type in stage:
            graph.setdefault(entity_type, set()).update(earlier)
        earlier.extend(stage)
    for deps in list(graph.values()):
        for dep in deps:
            graph.setdefault(dep, set())
    return {entity_type: sorted(deps) for entity_type, deps in graph.items()}


def find_cycle(graph: Dict[str, List[str]]) -> List[str]:
    """Return one dependency cycle as a path [a, b, ..., a], or [] if there is none."""
    visiting: List[str] = []
    done = set()

    def visit(node: str) -> List[str]:
        if node in done:
            return []
        if node in visiting:
            return visiting[visiting.index(node):] + [node]
        visiting.append(node)
        for dep in graph.get(node, []):
            cycle = visit(dep)
            if cycle:
                return cycle
        visiting.pop()
        done.add(node)
        return []

    for node in sorted(graph):
        cycle = visit(node)
        if cycle:
            return cycle
    return []


def resolution_tiers(graph: Optional[Dict[str, List[str]]] = None) -> List[List[str]]:
    """Group types into tiers whose dependencies are all in earlier tiers.

    Types within a tier are independent of each other. Tiers keep the order
    of cloud_config.ENTITY_TYPES so the result is deterministic.

    Raises:
        DependencyCycleError: If the graph has a cycle
    """
    graph = build_dependency_graph() if graph is None else graph
    cycle = find_cycle(graph)
    if cycle:
        raise DependencyCycleError(
            "Entity type dependencies contain a cycle",
            context={"cycle": " -> ".join(cycle)},
        )
    rank = {t: i for i, t in enumerate(cloud_config.ENTITY_TYPES)}
    remaining = {node: set(deps) for node, deps in graph.items()}
    tiers: List[List[str]] = []
    while remaining:
        ready = [node for node, deps in remaining.items() if not deps]
        ready.sort(key=lambda node: (rank.get(node, len(rank)), node))
        tiers.append(ready)
        for node in ready:
            del remaining[node]
        for deps in remaining.values():
            deps.difference_update(ready)
    logger.debug(f"Resolution tiers: {tiers}")
    return tiers


def resolution_order(graph: Optional[Dict[str, List[str]]] = None) -> List[str]:
    """Flattened type order the pipeline executes in."""
    return [entity_type for tier in resolution_tiers(graph) for entity_type in tier]


def render_dependency_graph(
    graph: Optional[Dict[str, List[str]]] = None,
    counts: Optional[Dict[str, int]] = None,
) -> graphviz.Digraph:
    """Draw the reference dependencies between types as a Graphviz digraph.

    Stage sequencing edges are left out; only the types a type may reference
    are drawn, with nodes ranked by tier.

    Args:
        graph: Reference dependencies (defaults to cloud_config.TYPE_DEPENDENCIES)
        counts: Optional type -> number of declared entities, shown in labels
    """
    graph = cloud_config.TYPE_DEPENDENCIES if graph is None else graph
    dot = graphviz.Digraph("infraresolve", graph_attr={"rankdir": "LR"})
    for tier in resolution_tiers(build_dependency_graph(graph)):
        with dot.subgraph() as same_rank:
            same_rank.attr(rank="same")
            for entity_type in tier:
                label = entity_type
                if counts is not None:
                    label = f"{entity_type}\\n({counts.get(entity_type, 0)})"
                same_rank.node(entity_type, label=label, shape="box")
    for entity_type in sorted(graph):
        for dep in graph[entity_type]:
            dot.edge(dep, entity_type)
    return dot
