"""Exceptions raised by the repository, position manager and navigator."""

from collections.abc import Sequence


class ForestError(Exception):
    """Base class for every ordtree error."""


class NodeValidationError(ForestError):
    """Bad input on a node: missing or non-integer position, bad parent reference."""

    def __init__(self, message: str, node_id: str | None = None) -> None:
        self.node_id = node_id
        super().__init__(message)


class NotFoundError(ForestError):
    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class OutOfRangeError(ForestError):
    def __init__(self, position: int, size: int) -> None:
        self.position = position
        self.size = size
        super().__init__(f"Position {position} is outside the sibling range [1, {size}]")


class InvariantViolation(ForestError):
    """A sibling group is not dense, or the parent chain loops.

    Signals a logic bug or a repository that did not apply a batch atomically.
    Never retried.
    """

    def __init__(
        self,
        message: str,
        parent_id: str | None = None,
        positions: Sequence[int | None] | None = None,
    ) -> None:
        self.parent_id = parent_id
        self.positions = list(positions) if positions is not None else []
        super().__init__(message)
