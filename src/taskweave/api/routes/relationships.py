"""Relationship endpoints.

Create, update and delete typed edges between tasks. Every mutation goes
through RelationshipManager so self-loops, cross-project edges and
depends_on cycles are rejected with a 400.
"""

from fastapi import APIRouter, Depends, Response
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from taskweave.api.decorators import handle_graph_errors
from taskweave.api.schemas import ApiModel, RelationshipResponse
from taskweave.db.connection import get_session_dependency
from taskweave.graph.relationships import RelationshipManager
from taskweave.graph.store import GraphStore
from taskweave.models.priority import RelationshipType
from taskweave.models.relationships import RelationshipMetadata

router = APIRouter(prefix="/relationships", tags=["relationships"])


# =============================================================================
# Request Models
# =============================================================================


class CreateRelationshipRequest(ApiModel):
    """Request to create an edge."""

    source_task_id: str
    target_task_id: str
    type: RelationshipType
    metadata: RelationshipMetadata | None = None
    user_id: str | None = None


class UpdateRelationshipRequest(ApiModel):
    """Request to retype an edge or replace its metadata."""

    type: RelationshipType | None = None
    metadata: RelationshipMetadata | None = None


class RelationshipProgressRequest(ApiModel):
    """Request to record progress on an edge."""

    progress: float = Field(ge=0, le=100)


def _manager(session: AsyncSession) -> RelationshipManager:
    return RelationshipManager(GraphStore(session))


# =============================================================================
# Endpoints
# =============================================================================


@router.post("", response_model=RelationshipResponse)
@handle_graph_errors("create_relationship")
async def create_relationship(
    request: CreateRelationshipRequest,
    session: AsyncSession = Depends(get_session_dependency),
) -> RelationshipResponse:
    """Create a relationship between two tasks of the same project."""
    edge = await _manager(session).create(
        request.source_task_id,
        request.target_task_id,
        request.type,
        request.metadata,
        user_id=request.user_id,
    )
    await session.commit()
    return RelationshipResponse.from_edge(edge)


@router.get("/{relationship_id}", response_model=RelationshipResponse)
@handle_graph_errors("get_relationship")
async def get_relationship(
    relationship_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> RelationshipResponse:
    edge = await _manager(session).get(relationship_id)
    return RelationshipResponse.from_edge(edge)


@router.patch("/{relationship_id}", response_model=RelationshipResponse)
@handle_graph_errors("update_relationship")
async def update_relationship(
    relationship_id: str,
    request: UpdateRelationshipRequest,
    session: AsyncSession = Depends(get_session_dependency),
) -> RelationshipResponse:
    """Retype an edge and/or replace its metadata."""
    edge = await _manager(session).update(
        relationship_id, rel_type=request.type, metadata=request.metadata
    )
    await session.commit()
    return RelationshipResponse.from_edge(edge)


@router.post("/{relationship_id}/progress", response_model=RelationshipResponse)
@handle_graph_errors("update_relationship_progress")
async def update_relationship_progress(
    relationship_id: str,
    request: RelationshipProgressRequest,
    session: AsyncSession = Depends(get_session_dependency),
) -> RelationshipResponse:
    edge = await _manager(session).update_progress(relationship_id, request.progress)
    await session.commit()
    return RelationshipResponse.from_edge(edge)


@router.delete("/{relationship_id}", status_code=204)
@handle_graph_errors("delete_relationship")
async def delete_relationship(
    relationship_id: str,
    user_id: str | None = None,
    session: AsyncSession = Depends(get_session_dependency),
) -> Response:
    """Delete an edge; parent_child removals re-roll the parent's progress."""
    await _manager(session).delete(relationship_id, user_id=user_id)
    await session.commit()
    return Response(status_code=204)
