from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.documents import base_url
from app.db.core import get_async_db
from app.db.models import Project, ProjectMedia
from app.deps.user import CurrentUser, get_current_user
from app.http_errors import bad_request, error_response, forbidden, server_error
from app.uploads import UploadRejected, delete_stored, save_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["Projects"])

MEDIA_MIME_TYPES = frozenset(
    {"image/jpeg", "image/png", "image/gif", "video/mp4", "video/webm"}
)
PROJECT_STATUSES = ("active", "in_progress", "completed", "cancelled")
NOT_OWNER = "Unauthorized: Project does not belong to this user"


class ProjectCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    type: str | None = None
    location: str | None = None
    budget: str | None = None
    description: str | None = None


class ProjectUpdate(ProjectCreate):
    status: str | None = None


def project_out(p: Project) -> dict[str, Any]:
    return {
        "id": p.id,
        "client_id": p.client_id,
        "title": p.title,
        "type": p.type,
        "location": p.location,
        "budget": p.budget,
        "description": p.description,
        "status": p.status,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
    }


async def _owned_project(db: AsyncSession, project_id: int, user: CurrentUser) -> Project:
    project = await db.get(Project, project_id)
    # Missing and foreign projects answer the same way
    if project is None or project.client_id != user.user_id:
        raise forbidden(NOT_OWNER)
    return project


@router.post("")
async def create_project(
    body: ProjectCreate,
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    title = (body.title or "").strip()
    description = (body.description or "").strip()
    if not title or not description:
        return error_response(
            "Project title and description are required",
            status=400,
            details={"received": {"title": body.title, "description": body.description}},
        )

    project = Project(
        client_id=current.user_id,
        title=title,
        type=body.type or "",
        location=body.location or "",
        budget=body.budget or "",
        description=description,
        status="active",
    )
    db.add(project)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("❌ PROJECT_CREATE_FAILED", extra={"meta": {"user_id": current.user_id}})
        raise server_error("An error occurred while creating the project")
    await db.refresh(project)

    logger.info(
        "✅ PROJECT_CREATED",
        extra={"meta": {"project_id": project.id, "client_id": current.user_id}},
    )
    return {
        "message": "Project created successfully",
        "id": project.id,
        "project": project_out(project),
    }


@router.get("")
async def list_projects(
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    projects = (
        await db.scalars(
            select(Project)
            .where(Project.client_id == current.user_id)
            .order_by(Project.id)
        )
    ).all()
    return {"projects": [project_out(p) for p in projects]}


@router.put("/{project_id}")
async def update_project(
    project_id: int,
    body: ProjectUpdate,
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    project = await _owned_project(db, project_id, current)

    changes = body.model_dump(exclude_unset=True)
    for key in ("title", "description"):
        if key in changes and not (changes[key] or "").strip():
            raise bad_request(f"Project {key} cannot be empty")
    if "status" in changes and changes["status"] not in PROJECT_STATUSES:
        raise bad_request("Invalid project status")
    for key, value in changes.items():
        setattr(project, key, value if value is not None else "")

    await db.commit()
    await db.refresh(project)
    logger.info(
        "✅ PROJECT_UPDATED",
        extra={"meta": {"project_id": project_id, "fields": sorted(changes)}},
    )
    return {"message": "Project updated successfully", "project": project_out(project)}


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    project = await _owned_project(db, project_id, current)
    await db.delete(project)
    await db.commit()
    logger.info("✅ PROJECT_DELETED", extra={"meta": {"project_id": project_id}})
    return {"message": "Project deleted successfully"}


@router.post("/{project_id}/media")
async def upload_project_media(
    project_id: int,
    request: Request,
    file: UploadFile | None = File(None),
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    if file is None:
        raise bad_request("No file provided")
    await _owned_project(db, project_id, current)

    try:
        stored = await save_upload(
            file, "projects", base_url=base_url(request), allowed_types=MEDIA_MIME_TYPES
        )
    except UploadRejected as e:
        message = (
            "Invalid file type. Only images and videos are allowed."
            if e.message == "Invalid file type"
            else e.message
        )
        raise HTTPException(status_code=e.status_code, detail=message)

    media = ProjectMedia(
        project_id=project_id, type="media", url=stored.url, filename=stored.filename
    )
    db.add(media)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        await delete_stored(stored.path)
        logger.exception("❌ PROJECT_MEDIA_FAILED", extra={"meta": {"project_id": project_id}})
        raise server_error("An error occurred while uploading media")

    logger.info(
        "✅ PROJECT_MEDIA_STORED",
        extra={"meta": {"project_id": project_id, "media_id": media.id, "size": stored.size}},
    )
    return {"message": "Media uploaded successfully", "id": media.id, "url": stored.url}
