"""Tests for the forest service: transactions, cascade delete, integrity alarms."""

import asyncio
import logging

import pytest

from ordtree.errors import InvariantViolation, NodeValidationError, NotFoundError, OutOfRangeError
from ordtree.models import Node
from ordtree.nodes.schemas import CreateNodeRequest, ReparentNodeRequest
from ordtree.nodes.service import ForestService
from ordtree.repository.memory import InMemoryNodeRepository
from ordtree.repository.sqlite import SqliteNodeRepository
from tests.fixtures import group_order


async def _scenario(service: ForestService) -> dict[str, str]:
    """R -> A, B, C through the service. Returns {label: node_id}."""
    root = await service.create_node(CreateNodeRequest(label="R"))
    ids = {"R": root.node_id}
    for label in ("A", "B", "C"):
        node = await service.create_node(CreateNodeRequest(label=label, parent_id=root.node_id))
        ids[label] = node.node_id
    return ids


async def _labels(repository, parent_id) -> list[str]:
    return [n.label for n in await repository.get_children(parent_id)]


class TestCreate:
    async def test_create_appends(self, service, repository):
        ids = await _scenario(service)
        children = await repository.get_children(ids["R"])
        assert [(n.label, n.position) for n in children] == [("A", 1), ("B", 2), ("C", 3)]

    async def test_create_at_position(self, service, repository):
        ids = await _scenario(service)
        node = await service.create_node(
            CreateNodeRequest(label="Z", parent_id=ids["R"], position=2)
        )
        assert node.position == 2
        assert await _labels(repository, ids["R"]) == ["A", "Z", "B", "C"]

    async def test_create_under_unknown_parent(self, service, repository):
        with pytest.raises(NodeValidationError):
            await service.create_node(CreateNodeRequest(label="X", parent_id="ghost"))
        assert await repository.get_children(None) == []

    async def test_create_out_of_range_writes_nothing(self, service, repository):
        ids = await _scenario(service)
        with pytest.raises(OutOfRangeError):
            await service.create_node(
                CreateNodeRequest(label="Z", parent_id=ids["R"], position=9)
            )
        assert await _labels(repository, ids["R"]) == ["A", "B", "C"]

    async def test_concurrent_creates_stay_dense(self, service, repository):
        root = await service.create_node(CreateNodeRequest(label="R"))
        await asyncio.gather(*(
            service.create_node(CreateNodeRequest(label=f"n{i}", parent_id=root.node_id))
            for i in range(10)
        ))
        children = await repository.get_children(root.node_id)
        assert [n.position for n in children] == list(range(1, 11))


class TestMoveAndReparent:
    async def test_move(self, service, repository):
        ids = await _scenario(service)
        moved = await service.move_node(ids["C"], 1)
        assert moved.position == 1
        assert await _labels(repository, ids["R"]) == ["C", "A", "B"]

    async def test_move_unknown_node(self, service):
        with pytest.raises(NotFoundError):
            await service.move_node("ghost", 1)

    async def test_reparent(self, service, repository):
        ids = await _scenario(service)
        moved = await service.reparent_node(ids["B"], ReparentNodeRequest(parent_id=ids["A"]))
        assert moved.parent_id == ids["A"]
        assert moved.position == 1
        assert await _labels(repository, ids["R"]) == ["A", "C"]
        assert [n.position for n in await repository.get_children(ids["R"])] == [1, 2]

    async def test_rejected_reparent_changes_nothing(self, service, repository):
        ids = await _scenario(service)
        with pytest.raises(NodeValidationError):
            await service.reparent_node(ids["R"], ReparentNodeRequest(parent_id=ids["A"]))
        assert (await repository.get_by_id(ids["R"])).parent_id is None
        assert await _labels(repository, ids["R"]) == ["A", "B", "C"]


class TestDelete:
    async def test_delete_cascades_and_closes_gap(self, service, repository):
        ids = await _scenario(service)
        a1 = await service.create_node(CreateNodeRequest(label="A1", parent_id=ids["A"]))
        a1x = await service.create_node(CreateNodeRequest(label="A1x", parent_id=a1.node_id))

        result = await service.delete_node(ids["A"])

        assert result.deleted_node_ids[0] == ids["A"]
        assert set(result.deleted_node_ids) == {ids["A"], a1.node_id, a1x.node_id}
        assert result.shifted_node_ids == [ids["B"], ids["C"]]
        children = await repository.get_children(ids["R"])
        assert [(n.label, n.position) for n in children] == [("B", 1), ("C", 2)]
        for node_id in result.deleted_node_ids:
            with pytest.raises(NotFoundError):
                await repository.get_by_id(node_id)

    async def test_delete_root_closes_root_gap(self, service, repository):
        first = await service.create_node(CreateNodeRequest(label="R1"))
        await service.create_node(CreateNodeRequest(label="R2"))
        await service.create_node(CreateNodeRequest(label="R3"))

        await service.delete_node(first.node_id)

        roots = await repository.get_children(None)
        assert [(n.label, n.position) for n in roots] == [("R2", 1), ("R3", 2)]

    async def test_delete_unknown(self, service):
        with pytest.raises(NotFoundError):
            await service.delete_node("ghost")


class TestIntegrityAlarm:
    async def test_lost_write_rolls_back_and_logs(self, caplog):
        class LossyRepository(InMemoryNodeRepository):
            drop_label: str | None = None

            async def save(self, node):
                if node.label == self.drop_label:
                    return node
                return await super().save(node)

        repository = LossyRepository()
        service = ForestService(repository)
        ids = await _scenario(service)
        repository.drop_label = "A"

        with caplog.at_level(logging.ERROR, logger="ordtree.nodes.service"):
            with pytest.raises(InvariantViolation):
                await service.move_node(ids["C"], 1)

        children = await repository.get_children(ids["R"])
        assert [(n.label, n.position) for n in children] == [("A", 1), ("B", 2), ("C", 3)]
        assert any("integrity alarm" in r.getMessage() for r in caplog.records)

    async def test_check_integrity_clean(self, service):
        await _scenario(service)
        report = await service.check_integrity()
        assert report.ok is True
        assert report.violations == []
        # root group plus one (possibly empty) group per node
        assert report.groups_checked == 5

    async def test_check_integrity_reports_gap(self, service, repository):
        ids = await _scenario(service)
        await repository.save(Node(node_id=ids["C"], parent_id=ids["R"], position=7, label="C"))

        report = await service.check_integrity()

        assert report.ok is False
        assert len(report.violations) == 1
        assert report.violations[0].parent_id == ids["R"]
        assert report.violations[0].positions == [1, 2, 7]


class TestReads:
    async def test_node_detail(self, service):
        ids = await _scenario(service)
        detail = await service.get_node(ids["B"])
        assert detail.level == 2
        assert detail.is_leaf is True
        assert detail.child_count == 0

        root = await service.get_node(ids["R"])
        assert root.level == 1
        assert root.child_count == 3

    async def test_navigation(self, service, repository):
        ids = await _scenario(service)
        assert [n.node_id for n in await service.get_ancestors(ids["C"])] == [ids["R"]]
        assert (await service.get_root(ids["C"])).node_id == ids["R"]
        assert [n.label for n in await service.get_siblings(ids["A"])] == ["B", "C"]
        assert [n.label for n in await service.get_siblings(ids["A"], include_self=True)] == [
            "A", "B", "C",
        ]
        assert [n.label for n in await service.get_children(ids["R"])] == ["A", "B", "C"]
        assert [n.label for n in await service.get_descendants(ids["R"])] == ["A", "B", "C"]
        assert [n.label for n in await service.list_roots()] == ["R"]
        assert await group_order(repository, None) == [ids["R"]]


class TestReadIsolation:
    async def test_reads_never_see_a_half_applied_move(self, db):
        """Readers running alongside a move on SQLite only see committed groups."""
        service = ForestService(SqliteNodeRepository(db))
        root = await service.create_node(CreateNodeRequest(label="R"))
        ids = []
        for i in range(30):
            child = await service.create_node(
                CreateNodeRequest(label=f"n{i}", parent_id=root.node_id)
            )
            ids.append(child.node_id)

        done = asyncio.Event()
        snapshots: list[list[int]] = []
        reports = []

        async def mover():
            try:
                await service.move_node(ids[-1], 1)
            finally:
                done.set()

        async def reader():
            while not done.is_set():
                children = await service.get_children(root.node_id)
                snapshots.append([n.position for n in children])
                reports.append(await service.check_integrity())

        await asyncio.gather(reader(), mover(), reader())

        assert snapshots
        for positions in snapshots:
            assert positions == list(range(1, 31))
        assert all(report.ok for report in reports)
        children = await service.get_children(root.node_id)
        assert children[0].node_id == ids[-1]
        assert [n.position for n in children] == list(range(1, 31))

    async def test_create_checks_parent_inside_the_transaction(self, db):
        """A create queued behind the deletion of its parent is rejected cleanly."""
        service = ForestService(SqliteNodeRepository(db))
        ids = await _scenario(service)

        results = await asyncio.gather(
            service.delete_node(ids["A"]),
            service.create_node(CreateNodeRequest(label="A1", parent_id=ids["A"])),
            return_exceptions=True,
        )

        assert isinstance(results[1], NodeValidationError)
        assert [n.label for n in await service.get_children(ids["R"])] == ["B", "C"]
        assert (await service.check_integrity()).ok
