"""
Directed-graph utilities for dependency analysis.

A graph is a plain dict mapping a node identifier to the collection of its
direct successors (an empty set for a leaf). Nodes are opaque hashables.
Successors that never appear as keys are treated as leaves.

Traversal order is deterministic:
  - roots are visited in dict insertion order
  - successors held in a set are visited in sorted order (mixed types are
    ordered by (type name, str(value))); lists and tuples in their own order

All traversals use explicit stacks, so very long dependency chains never hit
the interpreter recursion limit.
"""

from collections import deque
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Set

Graph = Dict[Hashable, Set[Hashable]]

# Sentinel returned by next() when a successor iterator runs out
_EXHAUSTED = object()


def _sort_key(node: Any):
    return (type(node).__name__, str(node))


def successors(graph: Graph, node: Hashable) -> List[Hashable]:
    """Successors of node in deterministic visiting order."""
    neighbours = graph.get(node)
    if not neighbours:
        return []
    if isinstance(neighbours, (set, frozenset)):
        return sorted(neighbours, key=_sort_key)
    return list(neighbours)


def all_nodes(graph: Graph) -> List[Hashable]:
    """Keys in insertion order followed by successor-only nodes."""
    nodes = list(graph.keys())
    known = set(nodes)
    for node in list(nodes):
        for neighbour in successors(graph, node):
            if neighbour not in known:
                known.add(neighbour)
                nodes.append(neighbour)
    return nodes


# ============================================================================
# CONSTRUCTION
# ============================================================================

def create_graph(nodes: Iterable[Hashable] = ()) -> Graph:
    graph: Graph = {}
    for node in nodes:
        graph.setdefault(node, set())
    return graph


def add_edge(graph: Graph, source: Hashable, target: Hashable) -> None:
    """Insert source/target if absent and add source → target. Idempotent."""
    graph.setdefault(source, set())
    graph.setdefault(target, set())
    graph[source].add(target)


def add_bidirectional_edge(graph: Graph, node_a: Hashable, node_b: Hashable) -> None:
    """Edges in both directions; models symmetric relations such as co-run."""
    add_edge(graph, node_a, node_b)
    add_edge(graph, node_b, node_a)


def edge_count(graph: Graph) -> int:
    return sum(len(neighbours) for neighbours in graph.values())


# ============================================================================
# CYCLES AND COMPONENTS
# ============================================================================

def detect_cycles(graph: Graph) -> List[List[Hashable]]:
    """
    Depth-first cycle detection.

    Every unvisited node is used as a DFS root. When a traversal reaches a
    node that is already on the current path, the path segment from that
    node to the current node, followed by the repeated node, is recorded as
    one cycle and that root's traversal stops. So each root yields at most
    one cycle, and the cycles found are not guaranteed to be minimal.

    Returns:
        List of cycles, e.g. [['A', 'B', 'C', 'A']]; empty for a DAG.
    """
    visited: Set[Hashable] = set()
    cycles: List[List[Hashable]] = []

    for root in list(graph.keys()):
        if root in visited:
            continue
        path: List[Hashable] = [root]
        on_path: Set[Hashable] = {root}
        visited.add(root)
        stack = [iter(successors(graph, root))]

        while stack:
            neighbour = next(stack[-1], _EXHAUSTED)
            if neighbour is _EXHAUSTED:
                stack.pop()
                on_path.discard(path.pop())
                continue
            if neighbour in on_path:
                start = path.index(neighbour)
                cycles.append(path[start:] + [neighbour])
                break
            if neighbour in visited:
                continue
            visited.add(neighbour)
            path.append(neighbour)
            on_path.add(neighbour)
            stack.append(iter(successors(graph, neighbour)))

    return cycles


def find_undirected_cycles(
    graph: Graph,
    cycle_filter: Optional[Callable[[List[Hashable]], bool]] = None,
    limit: Optional[int] = None,
) -> List[List[Hashable]]:
    """
    Cycle search that reads every edge as undirected.

    For graphs built with add_bidirectional_edge each edge is a directed
    2-cycle; here the step straight back to the DFS parent is ignored, so a
    reported cycle has at least three distinct nodes. Each non-tree edge to a
    node on the current path yields one candidate (path segment plus the
    repeated node). Candidates rejected by cycle_filter are skipped and the
    search continues.

    Args:
        graph: adjacency mapping
        cycle_filter: optional predicate; return False to discard a candidate
        limit: stop once this many cycles have been accepted

    Returns:
        Accepted cycles in discovery order.
    """
    visited: Set[Hashable] = set()
    cycles: List[List[Hashable]] = []

    for root in list(graph.keys()):
        if root in visited:
            continue
        path: List[Hashable] = [root]
        position: Dict[Hashable, int] = {root: 0}
        visited.add(root)
        stack = [iter(successors(graph, root))]

        while stack:
            neighbour = next(stack[-1], _EXHAUSTED)
            if neighbour is _EXHAUSTED:
                stack.pop()
                del position[path.pop()]
                continue
            current_depth = len(path) - 1
            if neighbour in position:
                # Step back to the parent is the tree edge itself
                if position[neighbour] >= current_depth - 1:
                    continue
                candidate = path[position[neighbour]:] + [neighbour]
                if cycle_filter is None or cycle_filter(candidate):
                    cycles.append(candidate)
                    if limit is not None and len(cycles) >= limit:
                        return cycles
                continue
            if neighbour in visited:
                continue
            visited.add(neighbour)
            position[neighbour] = len(path)
            path.append(neighbour)
            stack.append(iter(successors(graph, neighbour)))

    return cycles


def find_strongly_connected_components(graph: Graph) -> List[List[Hashable]]:
    """
    Tarjan's algorithm with an explicit work stack.

    Returns one list per component; every node appears in exactly one,
    singletons included. Components come out in reverse topological order.
    """
    index_counter = 0
    indices: Dict[Hashable, int] = {}
    low_links: Dict[Hashable, int] = {}
    scc_stack: List[Hashable] = []
    on_stack: Set[Hashable] = set()
    components: List[List[Hashable]] = []

    for root in all_nodes(graph):
        if root in indices:
            continue
        indices[root] = low_links[root] = index_counter
        index_counter += 1
        scc_stack.append(root)
        on_stack.add(root)
        work = [(root, iter(successors(graph, root)))]

        while work:
            node, neighbours = work[-1]
            neighbour = next(neighbours, _EXHAUSTED)
            if neighbour is not _EXHAUSTED:
                if neighbour not in indices:
                    indices[neighbour] = low_links[neighbour] = index_counter
                    index_counter += 1
                    scc_stack.append(neighbour)
                    on_stack.add(neighbour)
                    work.append((neighbour, iter(successors(graph, neighbour))))
                elif neighbour in on_stack:
                    low_links[node] = min(low_links[node], indices[neighbour])
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                low_links[parent] = min(low_links[parent], low_links[node])
            if low_links[node] == indices[node]:
                component = []
                while True:
                    member = scc_stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(component)

    return components


def topological_sort(graph: Graph) -> Optional[List[Hashable]]:
    """
    Kahn's algorithm.

    Returns:
        An order in which every edge (u, v) has u before v, or None when the
        graph has a cycle.
    """
    nodes = all_nodes(graph)
    in_degree = {node: 0 for node in nodes}
    for node in nodes:
        for neighbour in successors(graph, node):
            in_degree[neighbour] += 1

    queue = deque(node for node in nodes if in_degree[node] == 0)
    order: List[Hashable] = []
    while queue:
        node = queue.popleft()
        order.append(node)
        for neighbour in successors(graph, node):
            in_degree[neighbour] -= 1
            if in_degree[neighbour] == 0:
                queue.append(neighbour)

    if len(order) != len(nodes):
        return None
    return order


def is_acyclic(graph: Graph) -> bool:
    return len(detect_cycles(graph)) == 0


# ============================================================================
# PATHS AND REACHABILITY
# ============================================================================

def get_reachable_nodes(graph: Graph, start: Hashable) -> List[Hashable]:
    """Nodes reachable from start (start itself excluded), in DFS order."""
    reachable: List[Hashable] = []
    seen: Set[Hashable] = {start}
    stack = list(reversed(successors(graph, start)))
    while stack:
        node = stack.pop()
        if node in seen:
            continue
        seen.add(node)
        reachable.append(node)
        for neighbour in reversed(successors(graph, node)):
            if neighbour not in seen:
                stack.append(neighbour)
    return reachable


def find_shortest_path(graph: Graph, start: Hashable, end: Hashable) -> Optional[List[Hashable]]:
    """Breadth-first search; fewest edges from start to end, or None."""
    if start == end:
        return [start]
    queue = deque([[start]])
    visited = {start}
    while queue:
        path = queue.popleft()
        for neighbour in successors(graph, path[-1]):
            if neighbour == end:
                return path + [neighbour]
            if neighbour not in visited:
                visited.add(neighbour)
                queue.append(path + [neighbour])
    return None


def find_all_paths(graph: Graph, start: Hashable, end: Hashable,
                   max_depth: int = 10) -> List[List[Hashable]]:
    """
    All simple paths from start to end holding at most max_depth nodes.
    """
    paths: List[List[Hashable]] = []
    stack = [(start, [start])]
    while stack:
        node, path = stack.pop()
        if node == end:
            paths.append(path)
            continue
        if len(path) >= max_depth:
            continue
        for neighbour in reversed(successors(graph, node)):
            if neighbour not in path:
                stack.append((neighbour, path + [neighbour]))
    return paths


# ============================================================================
# DEGREES AND ANALYSIS
# ============================================================================

def calculate_node_degrees(graph: Graph) -> Dict[Hashable, Dict[str, int]]:
    degrees = {node: {"in_degree": 0, "out_degree": 0} for node in all_nodes(graph)}
    for node in list(degrees):
        neighbours = successors(graph, node)
        degrees[node]["out_degree"] = len(neighbours)
        for neighbour in neighbours:
            degrees[neighbour]["in_degree"] += 1
    return degrees


def find_source_nodes(graph: Graph) -> List[Hashable]:
    """Nodes with no incoming edges."""
    return [n for n, d in calculate_node_degrees(graph).items() if d["in_degree"] == 0]


def find_sink_nodes(graph: Graph) -> List[Hashable]:
    """Nodes with no outgoing edges."""
    return [n for n, d in calculate_node_degrees(graph).items() if d["out_degree"] == 0]


def analyze_graph(graph: Graph) -> Dict[str, Any]:
    """
    Structural statistics for a graph.

    density = edges / (V * (V - 1)) for V > 1, else 0.
    """
    degrees = calculate_node_degrees(graph)
    node_count = len(degrees)
    edges = sum(d["out_degree"] for d in degrees.values())
    total_in = sum(d["in_degree"] for d in degrees.values())
    cycles = detect_cycles(graph)
    components = find_strongly_connected_components(graph)

    return {
        "node_count": node_count,
        "edge_count": edges,
        "average_in_degree": total_in / node_count if node_count else 0,
        "average_out_degree": edges / node_count if node_count else 0,
        "source_nodes": [n for n, d in degrees.items() if d["in_degree"] == 0],
        "sink_nodes": [n for n, d in degrees.items() if d["out_degree"] == 0],
        "has_cycles": len(cycles) > 0,
        "cycle_count": len(cycles),
        "cycles": cycles,
        "strongly_connected_components": components,
        "is_strongly_connected": len(components) == 1,
        "density": edges / (node_count * (node_count - 1)) if node_count > 1 else 0,
    }


def to_dot_format(graph: Graph, graph_name: str = "dependency_graph") -> str:
    """Render as Graphviz DOT text."""
    lines = [f"digraph {graph_name} {{", "  rankdir=TB;", "  node [shape=box];", ""]
    nodes = all_nodes(graph)
    for node in nodes:
        lines.append(f'  "{node}";')
    lines.append("")
    for node in nodes:
        for neighbour in successors(graph, node):
            lines.append(f'  "{node}" -> "{neighbour}";')
    lines.append("}")
    return "\n".join(lines) + "\n"
