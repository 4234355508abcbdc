"""Canonical data structures for ordtree.

A forest is the set of all stored nodes. Nodes sharing a ``parent_id`` form a
sibling group (the ``None`` group holds the roots), and within a group the
``position`` values are always exactly ``1..N``.
"""

from pydantic import BaseModel


class Node(BaseModel):
    node_id: str
    parent_id: str | None = None
    position: int | None = None  # None only until the first save
    label: str = ""
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def with_position(self, position: int | None) -> "Node":
        """Return a copy of this node moved to ``position``."""
        return self.model_copy(update={"position": position})
