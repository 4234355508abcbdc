"""Shared test helpers."""

from httpx import AsyncClient

from ordtree.models import Node
from ordtree.positions.manager import PositionManager
from ordtree.repository.base import NodeRepository


async def add_node(
    positions: PositionManager,
    node_id: str,
    parent_id: str | None = None,
    position: int | None = None,
) -> Node:
    """Insert a node whose id doubles as its label, so assertions stay readable."""
    return await positions.insert_node(
        Node(node_id=node_id, parent_id=parent_id, label=node_id), position
    )


async def build_scenario(positions: PositionManager) -> dict[str, Node]:
    """Root R with children A, B, C at positions 1, 2, 3."""
    nodes = {"R": await add_node(positions, "R")}
    for name in ("A", "B", "C"):
        nodes[name] = await add_node(positions, name, parent_id="R")
    return nodes


async def build_deep_forest(positions: PositionManager) -> dict[str, Node]:
    """Two trees:

        R                 S
        ├── A             └── S1
        │   ├── A1
        │   └── A2
        ├── B
        └── C
    """
    nodes = await build_scenario(positions)
    nodes["A1"] = await add_node(positions, "A1", parent_id="A")
    nodes["A2"] = await add_node(positions, "A2", parent_id="A")
    nodes["S"] = await add_node(positions, "S")
    nodes["S1"] = await add_node(positions, "S1", parent_id="S")
    return nodes


async def group_order(repository: NodeRepository, parent_id: str | None) -> list[str]:
    """Node ids of a sibling group in position order."""
    return [n.node_id for n in await repository.get_children(parent_id)]


async def group_positions(repository: NodeRepository, parent_id: str | None) -> dict[str, int]:
    """{node_id: position} for a sibling group."""
    return {n.node_id: n.position for n in await repository.get_children(parent_id)}


# -- API-level helpers --


async def create_node(
    client: AsyncClient,
    label: str,
    parent_id: str | None = None,
    position: int | None = None,
) -> dict:
    """Create a node via the API and return the response JSON."""
    body: dict = {"label": label}
    if parent_id is not None:
        body["parent_id"] = parent_id
    if position is not None:
        body["position"] = position
    resp = await client.post("/api/nodes", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def create_scenario(client: AsyncClient) -> dict[str, str]:
    """Root R with children A, B, C through the API. Returns {label: node_id}."""
    root = await create_node(client, "R")
    ids = {"R": root["node_id"]}
    for label in ("A", "B", "C"):
        ids[label] = (await create_node(client, label, parent_id=root["node_id"]))["node_id"]
    return ids
