"""
Organization project routes.

Every endpoint declares the (action, project) permission it needs.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.features.permissions.dependencies import require_permission
from app.features.permissions.guards import GuardContext
from app.features.permissions.models import PermissionAction, PermissionSubject
from app.features.projects.models import Project
from app.features.projects.schemas import ProjectCreate, ProjectUpdate, ProjectResponse


router = APIRouter(tags=["projects"])


async def get_project(db: AsyncSession, organization_id: int, project_id: int) -> Project:
    """
    Raises:
        NotFoundError: if the project is not in the organization
    """
    project = await db.scalar(
        select(Project).where(Project.id == project_id, Project.organization_id == organization_id)
    )
    if project is None:
        raise NotFoundError(f"Project {project_id} does not belong to organization {organization_id}")
    return project


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    organization_id: int,
    project_data: ProjectCreate,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.CREATE, PermissionSubject.PROJECT))]
):
    project = Project(organization_id=organization_id, **project_data.model_dump())
    ctx.db.add(project)
    await ctx.db.commit()
    await ctx.db.refresh(project)
    return project


@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    organization_id: int,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.READ, PermissionSubject.PROJECT))],
    skip: int = 0,
    limit: int = 100
):
    """List the organization's projects."""
    result = await ctx.db.execute(
        select(Project)
        .where(Project.organization_id == organization_id)
        .order_by(Project.id)
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all()


@router.get("/{project_id}", response_model=ProjectResponse)
async def read_project(
    organization_id: int,
    project_id: int,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.READ, PermissionSubject.PROJECT))]
):
    return await get_project(ctx.db, organization_id, project_id)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    organization_id: int,
    project_id: int,
    update_data: ProjectUpdate,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.UPDATE, PermissionSubject.PROJECT))]
):
    project = await get_project(ctx.db, organization_id, project_id)
    for key, value in update_data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(project, key, value)
    await ctx.db.commit()
    await ctx.db.refresh(project)
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    organization_id: int,
    project_id: int,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.DELETE, PermissionSubject.PROJECT))]
):
    project = await get_project(ctx.db, organization_id, project_id)
    await ctx.db.delete(project)
    await ctx.db.commit()
    return None
