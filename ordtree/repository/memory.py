"""Dict-backed node repository for tests and embedded use."""

from datetime import UTC, datetime

from ordtree.errors import NodeValidationError, NotFoundError
from ordtree.models import Node
from ordtree.repository.base import NodeRepository


class InMemoryNodeRepository(NodeRepository):
    """Keeps nodes in insertion order and hands out copies only.

    A transaction snapshots the store on ``begin`` and restores the snapshot
    on ``rollback``.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._snapshot: dict[str, Node] | None = None

    async def get_by_id(self, node_id: str) -> Node:
        try:
            return self._nodes[node_id].model_copy()
        except KeyError:
            raise NotFoundError(node_id)

    async def get_children(self, parent_id: str | None) -> list[Node]:
        children = [n for n in self._nodes.values() if n.parent_id == parent_id]
        # sorted() is stable, so equal positions keep insertion order
        children.sort(key=lambda n: n.position)
        return [n.model_copy() for n in children]

    async def save(self, node: Node) -> Node:
        self.check_saveable(node)
        if node.parent_id is not None and node.parent_id not in self._nodes:
            raise NodeValidationError(
                f"Invalid parent node: {node.parent_id}", node_id=node.node_id
            )
        now = datetime.now(UTC).isoformat()
        existing = self._nodes.get(node.node_id)
        created_at = existing.created_at if existing else (node.created_at or now)
        stored = node.model_copy(update={"created_at": created_at, "updated_at": now})
        self._nodes[node.node_id] = stored
        return stored.model_copy()

    async def delete_cascade(self, node_id: str) -> list[str]:
        if node_id not in self._nodes:
            raise NotFoundError(node_id)
        removed = [node_id]
        frontier = [node_id]
        while frontier:
            parents = set(frontier)
            frontier = [
                n.node_id
                for n in self._nodes.values()
                if n.parent_id in parents and n.node_id not in removed
            ]
            removed.extend(frontier)
        for removed_id in removed:
            del self._nodes[removed_id]
        return removed

    async def begin(self) -> None:
        if self._snapshot is not None:
            raise RuntimeError("A transaction is already open on this repository")
        self._snapshot = dict(self._nodes)

    async def commit(self) -> None:
        if self._snapshot is None:
            raise RuntimeError("No open transaction to commit")
        self._snapshot = None

    async def rollback(self) -> None:
        if self._snapshot is None:
            raise RuntimeError("No open transaction to roll back")
        self._nodes = self._snapshot
        self._snapshot = None
