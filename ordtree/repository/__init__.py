"""Node storage: the abstract repository contract and its implementations."""

from ordtree.repository.base import NodeRepository
from ordtree.repository.memory import InMemoryNodeRepository
from ordtree.repository.sqlite import SqliteNodeRepository

__all__ = ["InMemoryNodeRepository", "NodeRepository", "SqliteNodeRepository"]
