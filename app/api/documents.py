from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel, StrictBool
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.core import get_async_db
from app.db.models import User, UserDocument
from app.deps.user import CurrentUser, get_current_user, require_admin
from app.http_errors import bad_request, forbidden, not_found, server_error
from app.settings import settings
from app.uploads import (
    DOCUMENT_MIME_TYPES,
    UploadRejected,
    delete_stored,
    save_upload,
    stored_path,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Documents"])

DOCUMENT_TYPES = frozenset({"identity", "license", "certification", "testimonial"})


def base_url(request: Request) -> str:
    return settings.BACKEND_URL or str(request.base_url).rstrip("/")


def _metadata(raw: str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def document_out(doc: UserDocument, *, user_email: str | None = None) -> dict[str, Any]:
    data = {
        "id": doc.id,
        "user_id": doc.user_id,
        "type": doc.type,
        "filename": doc.filename,
        "url": doc.url,
        "size": doc.size,
        "metadata": _metadata(doc.metadata_json),
        "verified": bool(doc.verified),
        "created_at": doc.created_at.isoformat() if doc.created_at else None,
    }
    if user_email is not None:
        data["user_email"] = user_email
    return data


def _require_owner(current: CurrentUser, user_id: int) -> None:
    if current.user_id != user_id:
        raise forbidden("Unauthorized")


# Admin routes are declared first so "/admin/..." never matches "/{user_id}/..."


@router.get("/admin/documents")
async def list_all_documents(
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    rows = (
        await db.execute(
            select(UserDocument, User.email)
            .join(User, User.id == UserDocument.user_id)
            .order_by(UserDocument.created_at.desc(), UserDocument.id.desc())
        )
    ).all()
    return {"documents": [document_out(doc, user_email=email) for doc, email in rows]}


class VerifyDocumentRequest(BaseModel):
    verified: StrictBool


@router.patch("/admin/documents/{doc_id}")
async def verify_document(
    doc_id: int,
    body: VerifyDocumentRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    doc = await db.get(UserDocument, doc_id)
    if doc is None:
        raise not_found("Document not found")
    doc.verified = body.verified
    await db.commit()
    await db.refresh(doc)
    logger.info(
        "📄 DOCUMENT_VERIFICATION_SET",
        extra={"meta": {"doc_id": doc_id, "verified": body.verified, "admin_id": admin.user_id}},
    )
    return {"document": document_out(doc)}


@router.post("/{user_id}/documents", status_code=201)
async def upload_document(
    user_id: int,
    request: Request,
    file: UploadFile | None = File(None),
    form_type: str | None = Form(None, alias="type"),
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    _require_owner(current, user_id)

    doc_type = (
        request.query_params.get("type")
        or request.headers.get("X-Document-Type")
        or form_type
        or ""
    ).strip()
    # Type is checked before anything touches the uploads directory
    if not doc_type:
        raise bad_request("Document type is required")
    if doc_type not in DOCUMENT_TYPES:
        raise bad_request("Invalid document type")
    if file is None:
        raise bad_request("File is required")

    try:
        stored = await save_upload(
            file,
            doc_type,
            base_url=base_url(request),
            allowed_types=DOCUMENT_MIME_TYPES,
        )
    except UploadRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    metadata = {"originalName": stored.original_name, "mimeType": stored.content_type}
    doc = UserDocument(
        user_id=user_id,
        type=doc_type,
        filename=stored.filename,
        url=stored.url,
        size=stored.size,
        metadata_json=json.dumps(metadata),
    )
    try:
        db.add(doc)
        await db.commit()
        await db.refresh(doc)
    except SQLAlchemyError:
        await db.rollback()
        await delete_stored(stored.path)
        logger.exception("📄 DOCUMENT_SAVE_FAILED", extra={"meta": {"user_id": user_id}})
        raise server_error("An error occurred while uploading document")

    logger.info(
        "📄 DOCUMENT_UPLOADED",
        extra={"meta": {"user_id": user_id, "doc_id": doc.id, "type": doc_type}},
    )
    return document_out(doc)


@router.get("/{user_id}/documents")
async def list_documents(
    user_id: int,
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    _require_owner(current, user_id)
    docs = (
        await db.scalars(
            select(UserDocument)
            .where(UserDocument.user_id == user_id)
            .order_by(UserDocument.created_at.desc(), UserDocument.id.desc())
        )
    ).all()
    return {"documents": [document_out(d) for d in docs]}


@router.delete("/{user_id}/documents/{doc_id}")
async def delete_document(
    user_id: int,
    doc_id: int,
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    if current.user_id != user_id and not current.is_admin:
        raise forbidden("Unauthorized")

    doc = await db.get(UserDocument, doc_id)
    if doc is None or doc.user_id != user_id:
        raise not_found("Document not found")

    path = stored_path(doc.type, doc.filename)
    await db.delete(doc)
    await db.commit()
    await delete_stored(path)
    return {"message": "Document deleted"}
