"""Request and response schemas for node endpoints."""

from pydantic import BaseModel, Field

# -- Requests --


class CreateNodeRequest(BaseModel):
    label: str = ""
    parent_id: str | None = None
    position: int | None = None  # None appends to the end of the group


class MoveNodeRequest(BaseModel):
    position: int


class ReparentNodeRequest(BaseModel):
    """Request body for PATCH /api/nodes/{node_id}/parent. A null parent_id makes a root."""

    parent_id: str | None = None
    position: int | None = None


# -- Responses --


class NodeResponse(BaseModel):
    node_id: str
    parent_id: str | None = None
    position: int
    label: str = ""
    created_at: str
    updated_at: str


class NodeDetailResponse(NodeResponse):
    level: int = 1
    is_leaf: bool = True
    child_count: int = 0


class DeleteNodeResponse(BaseModel):
    deleted_node_ids: list[str]
    shifted_node_ids: list[str] = Field(default_factory=list)


class GroupViolation(BaseModel):
    parent_id: str | None = None
    positions: list[int | None]
    message: str


class IntegrityReport(BaseModel):
    ok: bool
    groups_checked: int
    violations: list[GroupViolation] = Field(default_factory=list)
