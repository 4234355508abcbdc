"""Position manager: keeps every sibling group numbered densely as 1..N.

Each public operation produces one batch of position updates. Callers run the
batch inside ``repository.transaction()``; every batch ends by re-reading the
affected group and raising InvariantViolation if it is not exactly 1..N, so a
repository that lost or reordered a write is caught before commit.
"""

import logging

from ordtree.errors import (
    InvariantViolation,
    NodeValidationError,
    NotFoundError,
    OutOfRangeError,
)
from ordtree.models import Node
from ordtree.repository.base import NodeRepository

logger = logging.getLogger(__name__)


class PositionManager:
    def __init__(self, repository: NodeRepository) -> None:
        self._repo = repository

    async def assign_initial_position(self, node: Node) -> Node:
        """Return ``node`` with the next free position in its group.

        An explicitly set position is left alone. Nothing is written.
        """
        if node.position is not None:
            return node
        last = await self._repo.get_last_child(node.parent_id)
        return node.with_position(last.position + 1 if last is not None else 1)

    async def insert_node(self, node: Node, position: int | None = None) -> Node:
        """Append ``node`` to its sibling group and persist it.

        With ``position`` (or a position already set on ``node``), the node is
        appended and then moved there, shifting later siblings down by one.
        ``position`` may be at most N + 1.
        """
        if position is None:
            position = node.position
        if position is not None:
            _check_position(position, node.node_id)
            size = len(await self._repo.get_children(node.parent_id))
            if position > size + 1:
                raise OutOfRangeError(position, size + 1)

        placed = await self.assign_initial_position(node.with_position(None))
        saved = await self._repo.save(placed)
        await self.validate_group(saved.parent_id)
        if position is not None and position != saved.position:
            saved = await self.apply_move(saved, position)
        return saved

    async def apply_move(self, node: Node, new_position: int) -> Node:
        """Move ``node`` to ``new_position`` within its sibling group.

        The old position is read from the repository, not from ``node``.
        Siblings between the old and new slot shift by one toward the gap;
        every other sibling is left untouched.
        """
        _check_position(new_position, node.node_id)
        current = await self._repo.get_by_id(node.node_id)
        old_position = current.position
        group = await self._repo.get_children(current.parent_id)
        if new_position > len(group):
            raise OutOfRangeError(new_position, len(group))
        if new_position == old_position:
            return current

        if new_position < old_position:
            shifts = [
                (sibling, sibling.position + 1)
                for sibling in group
                if sibling.node_id != current.node_id
                and new_position <= sibling.position < old_position
            ]
        else:
            shifts = [
                (sibling, sibling.position - 1)
                for sibling in group
                if sibling.node_id != current.node_id
                and old_position < sibling.position <= new_position
            ]

        shifted_ids = {sibling.node_id for sibling, _ in shifts}
        untouched = [
            s.position
            for s in group
            if s.node_id != current.node_id and s.node_id not in shifted_ids
        ]
        targets = [target for _, target in shifts] + [new_position]
        if len(set(targets)) != len(targets) or set(targets) & set(untouched):
            raise InvariantViolation(
                f"Move of {current.node_id} to {new_position} would duplicate a position",
                parent_id=current.parent_id,
                positions=[s.position for s in group],
            )

        logger.debug(
            "Moving %s %d -> %d under %s, shifting %d sibling(s)",
            current.node_id, old_position, new_position, current.parent_id, len(shifts),
        )
        for sibling, target in shifts:
            await self._repo.save(sibling.with_position(target))
        moved = await self._repo.save(current.with_position(new_position))
        await self.validate_group(current.parent_id)
        return moved

    async def remove_from_group(self, node: Node) -> list[Node]:
        """Close the gap ``node`` leaves in its group. Returns the shifted siblings.

        ``node`` may already be deleted; only its parent and position are used.
        """
        if node.position is None:
            raise NodeValidationError(
                f"Node {node.node_id} has no position to release", node_id=node.node_id
            )
        group = await self._repo.get_children(node.parent_id)
        shifted = []
        for sibling in group:
            if sibling.node_id != node.node_id and sibling.position > node.position:
                shifted.append(await self._repo.save(sibling.with_position(sibling.position - 1)))
        logger.debug(
            "Released position %d under %s, shifted %d sibling(s)",
            node.position, node.parent_id, len(shifted),
        )
        await self.validate_group(node.parent_id, exclude=node.node_id)
        return shifted

    async def reparent(
        self, node: Node, new_parent_id: str | None, position: int | None = None,
    ) -> Node:
        """Move ``node`` (with its subtree) under ``new_parent_id``.

        Runs as two batches: close the gap in the old group, then append to
        the new group (and move to ``position`` if given). Wrap the call in one
        transaction when both phases must commit together.
        """
        current = await self._repo.get_by_id(node.node_id)
        if new_parent_id == current.parent_id:
            if position is None:
                return current
            return await self.apply_move(current, position)

        await self._check_new_parent(current.node_id, new_parent_id)
        if position is not None:
            _check_position(position, current.node_id)
            size = len(await self._repo.get_children(new_parent_id))
            if position > size + 1:
                raise OutOfRangeError(position, size + 1)

        await self.remove_from_group(current)
        logger.info(
            "Reparenting %s from %s to %s", current.node_id, current.parent_id, new_parent_id
        )
        moved = current.model_copy(update={"parent_id": new_parent_id, "position": None})
        return await self.insert_node(moved, position)

    async def validate_group(
        self, parent_id: str | None, exclude: str | None = None,
    ) -> list[Node]:
        """Return the group under ``parent_id`` after checking it is exactly 1..N."""
        group = [n for n in await self._repo.get_children(parent_id) if n.node_id != exclude]
        positions = [n.position for n in group]
        if positions != list(range(1, len(group) + 1)):
            raise InvariantViolation(
                f"Sibling group under {parent_id} is not dense: {positions}",
                parent_id=parent_id,
                positions=positions,
            )
        return group

    async def _check_new_parent(self, node_id: str, new_parent_id: str | None) -> None:
        """Reject a parent that is missing, the node itself, or one of its descendants."""
        seen: set[str] = set()
        ancestor_id = new_parent_id
        while ancestor_id is not None:
            if ancestor_id == node_id:
                raise NodeValidationError(
                    f"Cannot move {node_id} under itself or its own descendant {new_parent_id}",
                    node_id=node_id,
                )
            if ancestor_id in seen:
                raise InvariantViolation(f"Parent chain of {new_parent_id} loops at {ancestor_id}")
            seen.add(ancestor_id)
            try:
                ancestor = await self._repo.get_by_id(ancestor_id)
            except NotFoundError as e:
                raise NodeValidationError(
                    f"Invalid parent node: {ancestor_id}", node_id=node_id
                ) from e
            ancestor_id = ancestor.parent_id


def _check_position(position: object, node_id: str | None = None) -> None:
    if isinstance(position, bool) or not isinstance(position, int):
        raise NodeValidationError(
            f"Position must be an integer, got {position!r}", node_id=node_id
        )
    if position < 1:
        raise NodeValidationError(f"Position must be positive, got {position}", node_id=node_id)
