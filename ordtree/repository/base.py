"""Abstract node repository: the storage contract the core depends on."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ordtree.errors import NodeValidationError
from ordtree.models import Node


class NodeRepository(ABC):
    """Keyed node store with parent lookups, cascade delete and transactions."""

    @abstractmethod
    async def get_by_id(self, node_id: str) -> Node:
        """Return the stored node. Raises NotFoundError if absent."""
        ...

    @abstractmethod
    async def get_children(self, parent_id: str | None) -> list[Node]:
        """Return the sibling group under ``parent_id``, ascending by position.

        ``parent_id=None`` returns the root group.
        """
        ...

    async def get_last_child(self, parent_id: str | None) -> Node | None:
        """Return the highest-positioned node of the group, or None if empty."""
        children = await self.get_children(parent_id)
        return children[-1] if children else None

    @abstractmethod
    async def save(self, node: Node) -> Node:
        """Insert or fully update ``node`` and return the stored copy.

        Raises NodeValidationError for an unusable position or parent reference.
        """
        ...

    @abstractmethod
    async def delete_cascade(self, node_id: str) -> list[str]:
        """Delete the node and its whole subtree. Returns the removed ids, node first."""
        ...

    @abstractmethod
    async def begin(self) -> None: ...

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["NodeRepository"]:
        """Run the enclosed block as one atomic unit.

        Commits on normal exit, rolls back on any exception (cancellation
        included, and a failed commit) and re-raises it.
        """
        await self.begin()
        try:
            yield self
            await self.commit()
        except BaseException:
            await self.rollback()
            raise

    @staticmethod
    def check_saveable(node: Node) -> None:
        """Shared input validation for ``save`` implementations."""
        position = node.position
        if position is None:
            raise NodeValidationError(
                f"Node {node.node_id} has no position", node_id=node.node_id
            )
        if isinstance(position, bool) or not isinstance(position, int):
            raise NodeValidationError(
                f"Position must be an integer, got {position!r}", node_id=node.node_id
            )
        if position < 1:
            raise NodeValidationError(
                f"Position must be positive, got {position}", node_id=node.node_id
            )
        if node.parent_id is not None and node.parent_id == node.node_id:
            raise NodeValidationError(
                f"Node {node.node_id} cannot be its own parent", node_id=node.node_id
            )
