"""
Ordering of named items linked by simple "requires" relations.

Dependencies here are plain names without version ranges. The order is
advisory: names involved in a cycle are dropped from the topological
result instead of raising, and requirements naming something outside the
item set are ignored.

Usage:
    from rustkit.core.dependency import DependencyResolver

    resolver = DependencyResolver({"a": [], "b": ["a"]})
    resolver.topological_sort()   # ['a', 'b']
"""

import logging
from collections import deque
from typing import Iterable, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


class DependencyResolver:
    """
    Index-based dependency graph with Kahn's-algorithm ordering.

    Names are mapped to integer node ids in insertion order; edges point
    from a dependency to the nodes that require it.

    Args:
        items: Mapping of name -> names it depends on, or an iterable of
            ``(name, dependencies)`` pairs. Insertion order is significant.
        priorities: Optional name -> integer rank used by ``sorted_by_priority``
    """

    def __init__(
        self,
        items: Mapping[str, Sequence[str]] | Iterable[tuple[str, Sequence[str]]],
        priorities: Optional[Mapping[str, int]] = None,
    ):
        pairs = items.items() if isinstance(items, Mapping) else items

        self.names: list[str] = []
        self._ids: dict[str, int] = {}
        declared: list[list[str]] = []
        for name, deps in pairs:
            if name in self._ids:
                # Later declaration wins
                declared[self._ids[name]] = list(deps)
                continue
            self._ids[name] = len(self.names)
            self.names.append(name)
            declared.append(list(deps or []))

        self.priorities = dict(priorities or {})

        # requires[i]: ids node i depends on; dependents[i]: ids depending on i
        self.requires: list[list[int]] = [[] for _ in self.names]
        self.dependents: list[list[int]] = [[] for _ in self.names]
        for node, deps in enumerate(declared):
            for dep in deps:
                dep_id = self._ids.get(dep)
                if dep_id is None:
                    logger.debug(
                        f"Ignoring dependency '{dep}' of '{self.names[node]}': not in set"
                    )
                    continue
                if dep_id in self.requires[node]:
                    continue
                self.requires[node].append(dep_id)
                self.dependents[dep_id].append(node)

    def has_dependency_info(self) -> bool:
        """True when at least one item declares a dependency inside the set."""
        return any(self.requires)

    def topological_sort(self) -> list[str]:
        """
        Order names so every item comes after all of its dependencies.

        Zero in-degree nodes are seeded in original order. Nodes on a cycle
        (and anything depending on them) never reach zero in-degree and are
        left out of the result.
        """
        in_degree = [len(reqs) for reqs in self.requires]
        queue = deque(i for i, degree in enumerate(in_degree) if degree == 0)

        order: list[int] = []
        while queue:
            node = queue.popleft()
            order.append(node)
            for dependent in self.dependents[node]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(order) != len(self.names):
            emitted = set(order)
            dropped = [self.names[i] for i in range(len(self.names)) if i not in emitted]
            logger.debug(f"Dropping items with cyclic dependencies: {dropped}")

        return [self.names[i] for i in order]

    def sorted_by_priority(self) -> list[str]:
        """
        Dependency-agnostic fallback ordering.

        Stable sort by rank; names without a rank sort last.
        """
        fallback = max(self.priorities.values(), default=0) + 1
        return sorted(self.names, key=lambda name: self.priorities.get(name, fallback))

    def ordered(self) -> list[str]:
        """Topological order when dependency data exists, else priority order."""
        if self.has_dependency_info():
            return self.topological_sort()
        return self.sorted_by_priority()
