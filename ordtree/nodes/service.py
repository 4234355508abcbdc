"""Forest service: runs position manager batches inside repository transactions."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

from ordtree.errors import InvariantViolation, NodeValidationError, NotFoundError
from ordtree.models import Node
from ordtree.navigation.navigator import TreeNavigator
from ordtree.nodes.schemas import (
    CreateNodeRequest,
    DeleteNodeResponse,
    GroupViolation,
    IntegrityReport,
    NodeDetailResponse,
    NodeResponse,
    ReparentNodeRequest,
)
from ordtree.positions.manager import PositionManager
from ordtree.repository.base import NodeRepository

logger = logging.getLogger(__name__)


class ForestService:
    """Coordinates the repository, position manager and navigator for node CRUD.

    Every call, read or write, runs under one lock. A read never sees a batch
    that has written some positions but not yet committed.
    """

    def __init__(self, repository: NodeRepository) -> None:
        self._repo = repository
        self._positions = PositionManager(repository)
        self._navigator = TreeNavigator(repository)
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def _atomic(self, operation: str) -> AsyncIterator[None]:
        """One repository transaction; integrity failures are logged as alarms."""
        async with self._lock:
            try:
                async with self._repo.transaction():
                    yield
            except InvariantViolation as e:
                logger.error(
                    "Repository integrity alarm during %s: %s (parent=%s, positions=%s)",
                    operation, e, e.parent_id, e.positions,
                )
                raise

    # -- Writes --

    async def create_node(self, request: CreateNodeRequest) -> NodeResponse:
        """Create a node at the end of its group, or at ``request.position``."""
        node = Node(node_id=str(uuid4()), parent_id=request.parent_id, label=request.label)
        async with self._atomic("create"):
            if request.parent_id is not None:
                await self._require_parent(request.parent_id)
            saved = await self._positions.insert_node(node, request.position)
        return self._node_response(saved)

    async def move_node(self, node_id: str, position: int) -> NodeResponse:
        """Move a node to ``position`` within its current sibling group."""
        async with self._atomic("move"):
            node = await self._repo.get_by_id(node_id)
            moved = await self._positions.apply_move(node, position)
        return self._node_response(moved)

    async def reparent_node(self, node_id: str, request: ReparentNodeRequest) -> NodeResponse:
        """Move a node and its subtree under a new parent.

        Both phases (leave the old group, join the new one) commit together.
        """
        async with self._atomic("reparent"):
            node = await self._repo.get_by_id(node_id)
            moved = await self._positions.reparent(node, request.parent_id, request.position)
        return self._node_response(moved)

    async def delete_node(self, node_id: str) -> DeleteNodeResponse:
        """Delete a node with its whole subtree and close the gap it leaves."""
        async with self._atomic("delete"):
            node = await self._repo.get_by_id(node_id)
            removed = await self._repo.delete_cascade(node_id)
            shifted = await self._positions.remove_from_group(node)
        logger.info("Deleted node %s with %d descendant(s)", node_id, len(removed) - 1)
        return DeleteNodeResponse(
            deleted_node_ids=removed,
            shifted_node_ids=[n.node_id for n in shifted],
        )

    # -- Reads --

    async def get_node(self, node_id: str) -> NodeDetailResponse:
        async with self._lock:
            node = await self._repo.get_by_id(node_id)
            children = await self._navigator.children(node)
            level = await self._navigator.level(node)
        return NodeDetailResponse(
            **self._node_response(node).model_dump(),
            level=level,
            is_leaf=not children,
            child_count=len(children),
        )

    async def list_roots(self) -> list[NodeResponse]:
        async with self._lock:
            roots = await self._navigator.roots()
        return [self._node_response(n) for n in roots]

    async def get_children(self, node_id: str) -> list[NodeResponse]:
        async with self._lock:
            node = await self._repo.get_by_id(node_id)
            children = await self._navigator.children(node)
        return [self._node_response(n) for n in children]

    async def get_ancestors(self, node_id: str) -> list[NodeResponse]:
        async with self._lock:
            node = await self._repo.get_by_id(node_id)
            ancestors = await self._navigator.ancestors(node)
        return [self._node_response(n) for n in ancestors]

    async def get_root(self, node_id: str) -> NodeResponse:
        async with self._lock:
            node = await self._repo.get_by_id(node_id)
            root = await self._navigator.root(node)
        return self._node_response(root)

    async def get_siblings(self, node_id: str, include_self: bool = False) -> list[NodeResponse]:
        async with self._lock:
            node = await self._repo.get_by_id(node_id)
            if include_self:
                siblings = await self._navigator.self_and_siblings(node)
            else:
                siblings = await self._navigator.siblings(node)
        return [self._node_response(n) for n in siblings]

    async def get_descendants(self, node_id: str) -> list[NodeResponse]:
        async with self._lock:
            node = await self._repo.get_by_id(node_id)
            descendants = await self._navigator.descendants(node)
        return [self._node_response(n) for n in descendants]

    async def check_integrity(self) -> IntegrityReport:
        """Validate every sibling group reachable from the roots."""
        violations: list[GroupViolation] = []
        pending: list[str | None] = [None]
        checked = 0
        async with self._lock:
            while pending:
                parent_id = pending.pop()
                checked += 1
                try:
                    group = await self._positions.validate_group(parent_id)
                except InvariantViolation as e:
                    logger.error("Repository integrity alarm: %s", e)
                    violations.append(
                        GroupViolation(parent_id=parent_id, positions=e.positions, message=str(e))
                    )
                    group = await self._repo.get_children(parent_id)
                pending.extend(n.node_id for n in group)
        return IntegrityReport(ok=not violations, groups_checked=checked, violations=violations)

    # -- Helpers --

    async def _require_parent(self, parent_id: str) -> None:
        try:
            await self._repo.get_by_id(parent_id)
        except NotFoundError as e:
            raise NodeValidationError(f"Invalid parent node: {parent_id}") from e

    @staticmethod
    def _node_response(node: Node) -> NodeResponse:
        """Convert a stored node to a response."""
        return NodeResponse(
            node_id=node.node_id,
            parent_id=node.parent_id,
            position=node.position,
            label=node.label,
            created_at=node.created_at,
            updated_at=node.updated_at,
        )
