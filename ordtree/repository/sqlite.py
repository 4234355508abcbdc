"""Node repository backed by the aiosqlite Database wrapper."""

import logging
from datetime import UTC, datetime

import aiosqlite

from ordtree.db.connection import Database
from ordtree.errors import NodeValidationError, NotFoundError
from ordtree.models import Node
from ordtree.repository.base import NodeRepository

logger = logging.getLogger(__name__)

_SUBTREE_CTE = """
WITH RECURSIVE subtree(node_id, depth) AS (
    SELECT node_id, 0 FROM nodes WHERE node_id = ?
    UNION ALL
    SELECT n.node_id, s.depth + 1
    FROM nodes n JOIN subtree s ON n.parent_id = s.node_id
)
"""


class SqliteNodeRepository(NodeRepository):
    """Stores nodes in the ``nodes`` table. One instance per connection."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def get_by_id(self, node_id: str) -> Node:
        row = await self._db.fetchone(
            "SELECT * FROM nodes WHERE node_id = ?", (node_id,)
        )
        if row is None:
            raise NotFoundError(node_id)
        return self._node_from_row(row)

    async def get_children(self, parent_id: str | None) -> list[Node]:
        # IS matches NULL for the root group and behaves as = otherwise
        rows = await self._db.fetchall(
            "SELECT * FROM nodes WHERE parent_id IS ? ORDER BY position, created_at",
            (parent_id,),
        )
        return [self._node_from_row(row) for row in rows]

    async def get_last_child(self, parent_id: str | None) -> Node | None:
        row = await self._db.fetchone(
            "SELECT * FROM nodes WHERE parent_id IS ? "
            "ORDER BY position DESC, created_at DESC LIMIT 1",
            (parent_id,),
        )
        return self._node_from_row(row) if row is not None else None

    async def save(self, node: Node) -> Node:
        self.check_saveable(node)
        now = datetime.now(UTC).isoformat()
        # ON CONFLICT ... DO UPDATE rather than INSERT OR REPLACE: a REPLACE
        # deletes the row first, which would cascade to the node's children.
        try:
            await self._db.execute(
                """
                INSERT INTO nodes
                    (node_id, parent_id, position, label, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(node_id) DO UPDATE SET
                    parent_id = excluded.parent_id,
                    position = excluded.position,
                    label = excluded.label,
                    updated_at = excluded.updated_at
                """,
                (
                    node.node_id,
                    node.parent_id,
                    node.position,
                    node.label,
                    node.created_at or now,
                    now,
                ),
            )
        except aiosqlite.IntegrityError as e:
            raise NodeValidationError(
                f"Cannot save node {node.node_id}: {e}", node_id=node.node_id
            ) from e
        return await self.get_by_id(node.node_id)

    async def delete_cascade(self, node_id: str) -> list[str]:
        rows = await self._db.fetchall(
            _SUBTREE_CTE + "SELECT node_id FROM subtree ORDER BY depth",
            (node_id,),
        )
        if not rows:
            raise NotFoundError(node_id)
        removed = [row["node_id"] for row in rows]
        await self._db.execute(
            _SUBTREE_CTE + "DELETE FROM nodes WHERE node_id IN (SELECT node_id FROM subtree)",
            (node_id,),
        )
        logger.debug("Deleted subtree of %s (%d nodes)", node_id, len(removed))
        return removed

    async def begin(self) -> None:
        await self._db.begin()

    async def commit(self) -> None:
        await self._db.commit()

    async def rollback(self) -> None:
        await self._db.rollback()

    @staticmethod
    def _node_from_row(row: aiosqlite.Row) -> Node:
        """Convert a nodes table row to a Node."""
        return Node(
            node_id=row["node_id"],
            parent_id=row["parent_id"],
            position=row["position"],
            label=row["label"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
