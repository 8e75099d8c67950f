"""
Dependency graph used for monorepo build order and microservice deploy order.

Nodes live in an arena (a list) and edges are index-based adjacency lists.
Topological sorting is Kahn's algorithm with a priority tie-break so the
resulting order is deterministic; a leftover node set means a cycle, which is
reported with an explicit cycle path.
"""

import heapq
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import CyclicDependencyError


class DependencyGraph:
    """Directed graph where an edge u -> v means "v depends on u"."""

    def __init__(self, component: str = "dependency-graph"):
        self.component = component
        self._names: List[str] = []
        self._index: Dict[str, int] = {}
        self._edges: List[List[int]] = []
        self._deps: List[List[int]] = []

    def add_node(self, name: str) -> int:
        if name in self._index:
            return self._index[name]
        idx = len(self._names)
        self._names.append(name)
        self._index[name] = idx
        self._edges.append([])
        self._deps.append([])
        return idx

    def add_dependency(self, node: str, depends_on: str) -> None:
        """Record that `node` must come after `depends_on`."""
        src = self.add_node(depends_on)
        dst = self.add_node(node)
        if dst not in self._edges[src]:
            self._edges[src].append(dst)
            self._deps[dst].append(src)

    def __contains__(self, name: str) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._names)

    @property
    def nodes(self) -> List[str]:
        return list(self._names)

    def dependencies(self, name: str) -> List[str]:
        """Direct dependencies of `name`, in insertion order."""
        return [self._names[i] for i in self._deps[self._index[name]]]

    def dependents(self, name: str) -> List[str]:
        """Every node that transitively depends on `name`."""
        seen = set()
        stack = list(self._edges[self._index[name]])
        while stack:
            idx = stack.pop()
            if idx in seen:
                continue
            seen.add(idx)
            stack.extend(self._edges[idx])
        return [self._names[i] for i in sorted(seen)]

    def topological_order(self, priority: Optional[Sequence[str]] = None) -> List[str]:
        """
        Order nodes so every node follows its dependencies.

        Args:
            priority: Preferred order among nodes that are ready at the same
                time; unlisted nodes follow in insertion order

        Raises:
            CyclicDependencyError: If the graph contains a cycle
        """
        rank = self._rank(priority)
        indegree = [len(deps) for deps in self._deps]
        ready = [(rank[i], i) for i, degree in enumerate(indegree) if degree == 0]
        heapq.heapify(ready)

        order: List[int] = []
        while ready:
            _, idx = heapq.heappop(ready)
            order.append(idx)
            for nxt in self._edges[idx]:
                indegree[nxt] -= 1
                if indegree[nxt] == 0:
                    heapq.heappush(ready, (rank[nxt], nxt))

        if len(order) != len(self._names):
            raise CyclicDependencyError(self._find_cycle(), component=self.component)
        return [self._names[i] for i in order]

    def levels(self, priority: Optional[Sequence[str]] = None) -> List[List[str]]:
        """Group nodes into dependency levels; level N only depends on levels < N."""
        order = self.topological_order(priority)
        depth: Dict[int, int] = {}
        for name in order:
            idx = self._index[name]
            depth[idx] = 1 + max((depth[d] for d in self._deps[idx]), default=-1)

        grouped: List[List[str]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
        for name in order:
            grouped[depth[self._index[name]]].append(name)
        return grouped

    def _rank(self, priority: Optional[Iterable[str]]) -> List[int]:
        ranked = {name: pos for pos, name in enumerate(priority or ()) if name in self._index}
        offset = len(ranked)
        return [ranked.get(name, offset + i) for i, name in enumerate(self._names)]

    def _find_cycle(self) -> List[str]:
        white, grey, black = 0, 1, 2
        color = [white] * len(self._names)
        parent: Dict[int, int] = {}

        for start in range(len(self._names)):
            if color[start] != white:
                continue
            stack = [(start, iter(self._edges[start]))]
            color[start] = grey
            while stack:
                node, children = stack[-1]
                child = next(children, None)
                if child is None:
                    color[node] = black
                    stack.pop()
                elif color[child] == white:
                    parent[child] = node
                    color[child] = grey
                    stack.append((child, iter(self._edges[child])))
                elif color[child] == grey:
                    cycle = [child]
                    cur = node
                    while cur != child:
                        cycle.append(cur)
                        cur = parent[cur]
                    cycle.append(child)
                    cycle.reverse()
                    return [self._names[i] for i in cycle]
        return []
