"""FastAPI routes for node CRUD, positioning and navigation."""

from fastapi import APIRouter, Depends, HTTPException, status

from ordtree.errors import (
    ForestError,
    NodeValidationError,
    NotFoundError,
    OutOfRangeError,
)
from ordtree.nodes.schemas import (
    CreateNodeRequest,
    DeleteNodeResponse,
    IntegrityReport,
    MoveNodeRequest,
    NodeDetailResponse,
    NodeResponse,
    ReparentNodeRequest,
)
from ordtree.nodes.service import ForestService

router = APIRouter(prefix="/api", tags=["nodes"])


def get_forest_service() -> ForestService:
    """Dependency placeholder, replaced at app startup."""
    raise RuntimeError("ForestService not initialized")


def _http_error(e: ForestError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, OutOfRangeError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, NodeValidationError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


@router.post("/nodes", status_code=status.HTTP_201_CREATED)
async def create_node(
    request: CreateNodeRequest,
    service: ForestService = Depends(get_forest_service),
) -> NodeResponse:
    try:
        return await service.create_node(request)
    except ForestError as e:
        raise _http_error(e)


@router.get("/nodes")
async def list_roots(
    service: ForestService = Depends(get_forest_service),
) -> list[NodeResponse]:
    return await service.list_roots()


@router.get("/nodes/{node_id}")
async def get_node(
    node_id: str,
    service: ForestService = Depends(get_forest_service),
) -> NodeDetailResponse:
    try:
        return await service.get_node(node_id)
    except ForestError as e:
        raise _http_error(e)


@router.get("/nodes/{node_id}/children")
async def get_children(
    node_id: str,
    service: ForestService = Depends(get_forest_service),
) -> list[NodeResponse]:
    try:
        return await service.get_children(node_id)
    except ForestError as e:
        raise _http_error(e)


@router.get("/nodes/{node_id}/ancestors")
async def get_ancestors(
    node_id: str,
    service: ForestService = Depends(get_forest_service),
) -> list[NodeResponse]:
    try:
        return await service.get_ancestors(node_id)
    except ForestError as e:
        raise _http_error(e)


@router.get("/nodes/{node_id}/root")
async def get_root(
    node_id: str,
    service: ForestService = Depends(get_forest_service),
) -> NodeResponse:
    try:
        return await service.get_root(node_id)
    except ForestError as e:
        raise _http_error(e)


@router.get("/nodes/{node_id}/siblings")
async def get_siblings(
    node_id: str,
    include_self: bool = False,
    service: ForestService = Depends(get_forest_service),
) -> list[NodeResponse]:
    try:
        return await service.get_siblings(node_id, include_self=include_self)
    except ForestError as e:
        raise _http_error(e)


@router.get("/nodes/{node_id}/descendants")
async def get_descendants(
    node_id: str,
    service: ForestService = Depends(get_forest_service),
) -> list[NodeResponse]:
    try:
        return await service.get_descendants(node_id)
    except ForestError as e:
        raise _http_error(e)


@router.patch("/nodes/{node_id}/position")
async def move_node(
    node_id: str,
    request: MoveNodeRequest,
    service: ForestService = Depends(get_forest_service),
) -> NodeResponse:
    try:
        return await service.move_node(node_id, request.position)
    except ForestError as e:
        raise _http_error(e)


@router.patch("/nodes/{node_id}/parent")
async def reparent_node(
    node_id: str,
    request: ReparentNodeRequest,
    service: ForestService = Depends(get_forest_service),
) -> NodeResponse:
    try:
        return await service.reparent_node(node_id, request)
    except ForestError as e:
        raise _http_error(e)


@router.delete("/nodes/{node_id}")
async def delete_node(
    node_id: str,
    service: ForestService = Depends(get_forest_service),
) -> DeleteNodeResponse:
    try:
        return await service.delete_node(node_id)
    except ForestError as e:
        raise _http_error(e)


@router.get("/integrity")
async def check_integrity(
    service: ForestService = Depends(get_forest_service),
) -> IntegrityReport:
    return await service.check_integrity()
