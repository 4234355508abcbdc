"""Read-only tree traversal over a node repository.

Every query is composed from ``get_by_id`` and ``get_children`` and is
recomputed on each call; nothing is cached between calls.
"""

from ordtree.errors import InvariantViolation
from ordtree.models import Node
from ordtree.repository.base import NodeRepository


class TreeNavigator:
    def __init__(self, repository: NodeRepository) -> None:
        self._repo = repository

    async def roots(self) -> list[Node]:
        """All roots of the forest, ordered by position."""
        return await self._repo.get_children(None)

    async def first_root(self) -> Node | None:
        roots = await self.roots()
        return roots[0] if roots else None

    async def children(self, node: Node) -> list[Node]:
        return await self._repo.get_children(node.node_id)

    async def ancestors(self, node: Node) -> list[Node]:
        """Strict ancestors of ``node``, nearest first.

        Raises InvariantViolation if the parent chain loops back on itself.
        """
        ancestors: list[Node] = []
        seen = {node.node_id}
        parent_id = node.parent_id
        while parent_id is not None:
            if parent_id in seen:
                raise InvariantViolation(
                    f"Parent chain of {node.node_id} loops at {parent_id}",
                    parent_id=parent_id,
                )
            seen.add(parent_id)
            parent = await self._repo.get_by_id(parent_id)
            ancestors.append(parent)
            parent_id = parent.parent_id
        return ancestors

    async def root(self, node: Node) -> Node:
        if node.is_root:
            return node
        return (await self.ancestors(node))[-1]

    async def level(self, node: Node) -> int:
        """Depth of ``node`` counting roots as level 1."""
        return len(await self.ancestors(node)) + 1

    async def self_and_siblings(self, node: Node) -> list[Node]:
        return await self._repo.get_children(node.parent_id)

    async def siblings(self, node: Node) -> list[Node]:
        return [n for n in await self.self_and_siblings(node) if n.node_id != node.node_id]

    async def first_sibling(self, node: Node) -> Node | None:
        siblings = await self.siblings(node)
        return siblings[0] if siblings else None

    async def last_sibling(self, node: Node) -> Node | None:
        siblings = await self.siblings(node)
        return siblings[-1] if siblings else None

    async def is_leaf(self, node: Node) -> bool:
        return not await self.children(node)

    async def first_child(self, node: Node) -> Node | None:
        children = await self.children(node)
        return children[0] if children else None

    async def last_child(self, node: Node) -> Node | None:
        children = await self.children(node)
        return children[-1] if children else None

    async def descendants(self, node: Node) -> list[Node]:
        """The subtree below ``node`` in pre-order, children in position order."""
        result: list[Node] = []
        stack = list(reversed(await self.children(node)))
        while stack:
            current = stack.pop()
            result.append(current)
            stack.extend(reversed(await self.children(current)))
        return result
