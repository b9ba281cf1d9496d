import base64
import binascii
import logging
import re
import time

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import RedirectResponse, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from remise.audit.service import log_evidence_access
from remise.auth.deps import get_current_identity
from remise.auth.session import Identity
from remise.authz.policy import Action, Resource, Verb, require
from remise.authz.scoping import load_evidence, scope_evidence
from remise.core.config import settings
from remise.core.errors import Conflict, NotFound, UpstreamFailure, ValidationFailed
from remise.db.session import get_db
from remise.evidence.models import Evidence
from remise.evidence.schemas import (
    EvidenceCreate,
    EvidenceDeleteResponse,
    EvidenceListResponse,
    EvidenceOut,
    EvidenceUpdate,
    InlineDocumentCreate,
)
from remise.items.models import Item
from remise.storage.local_provider import get_storage
from remise.storage.provider import StorageError, StorageProvider

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_UPLOAD_BYTES = 50 * 1024 * 1024

_STORAGE_ID_RE = re.compile(r"item_\d+/[A-Za-z0-9_-][A-Za-z0-9._-]*")

ALLOWED_MIME_TYPES: dict[str, set[str]] = {
    "photo": {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"},
    "video": {"video/mp4", "video/quicktime", "video/x-msvideo", "video/avi"},
    "document": {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
    },
}


def _to_evidence_out(row: Evidence, storage: StorageProvider | None = None) -> EvidenceOut:
    url = None
    if row.storage_id and storage is not None:
        url = storage.get_url(row.storage_id)
    return EvidenceOut(
        id=row.id,
        item_id=row.item_id,
        type=row.type,
        storage_id=row.storage_id,
        original_name=row.original_name,
        description=row.description,
        mime_type=row.mime_type,
        file_size=row.file_size,
        stored_inline=row.storage_id is None,
        url=url,
        uploaded_by=row.uploaded_by,
        created_at=row.created_at,
    )


def _load_item_for_evidence(db: Session, identity: Identity, item_id: int, verb: Verb) -> Item:
    item = db.get(Item, item_id)
    if item is None:
        raise NotFound("Item not found")
    require(
        identity,
        Action(Resource.EVIDENCE, verb),
        item.tenant_id,
        owned=item.owner_id == identity.user_id,
    )
    return item


def _ensure_unique_name(db: Session, item_id: int, evidence_type: str, name: str | None) -> None:
    if not name:
        return
    duplicate = db.execute(
        select(Evidence.id).where(
            Evidence.item_id == item_id,
            Evidence.type == evidence_type,
            Evidence.original_name == name,
        )
    ).first()
    if duplicate:
        raise Conflict(f'A {evidence_type} named "{name}" already exists for this item.')


def _safe_name(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", name)


def _item_prefix(item_id: int) -> str:
    return f"item_{item_id}/"


def _check_issued_storage_id(db: Session, storage: StorageProvider, item_id: int, storage_id: str) -> str:
    """Metadata may only reference an unclaimed object stored under the item's own prefix."""
    if not _STORAGE_ID_RE.fullmatch(storage_id) or not storage_id.startswith(_item_prefix(item_id)):
        raise ValidationFailed("storage_id does not belong to this item")
    try:
        present = storage.exists(storage_id)
    except StorageError as exc:
        raise ValidationFailed("storage_id does not belong to this item") from exc
    if not present:
        raise ValidationFailed("No stored object for storage_id")
    claimed = db.execute(select(Evidence.id).where(Evidence.storage_id == storage_id)).first()
    if claimed:
        raise Conflict("storage_id is already attached to evidence")
    return storage_id


@router.get("", response_model=EvidenceListResponse)
def list_evidence(
    item_id: int = Query(...),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    storage: StorageProvider = Depends(get_storage),
):
    _load_item_for_evidence(db, identity, item_id, Verb.READ)

    stmt = scope_evidence(select(Evidence), identity).where(Evidence.item_id == item_id)
    rows = db.execute(stmt.order_by(Evidence.created_at.desc(), Evidence.id.desc())).scalars().all()
    return EvidenceListResponse(
        item_id=item_id,
        evidence=[_to_evidence_out(r, storage) for r in rows],
        total=len(rows),
    )


@router.post("", response_model=EvidenceOut, status_code=201)
def create_evidence(
    payload: EvidenceCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    storage: StorageProvider = Depends(get_storage),
):
    item = _load_item_for_evidence(db, identity, payload.item_id, Verb.CREATE)
    storage_id = _check_issued_storage_id(db, storage, item.id, payload.storage_id)
    _ensure_unique_name(db, item.id, payload.type, payload.original_name)

    row = Evidence(**payload.model_dump(exclude={"storage_id"}), storage_id=storage_id, uploaded_by=identity.user_id)
    db.add(row)
    db.commit()
    db.refresh(row)

    log_evidence_access(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="evidence_uploaded",
        evidence_id=row.id,
        item_id=item.id,
        request=request,
    )
    return _to_evidence_out(row, storage)


@router.post("/upload", response_model=EvidenceOut, status_code=201)
def upload_evidence(
    request: Request,
    item_id: int = Form(...),
    evidence_type: str = Form(..., alias="type"),
    description: str | None = Form(default=None),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    storage: StorageProvider = Depends(get_storage),
):
    if evidence_type not in ALLOWED_MIME_TYPES:
        raise ValidationFailed("Invalid evidence type. Must be photo, video, or document")
    item = _load_item_for_evidence(db, identity, item_id, Verb.CREATE)

    content_type = (file.content_type or "").lower()
    if content_type not in ALLOWED_MIME_TYPES[evidence_type]:
        raise ValidationFailed(f"Invalid file type for {evidence_type}")

    data = file.file.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationFailed("File size must be less than 50MB")

    filename = file.filename or "upload"
    _ensure_unique_name(db, item.id, evidence_type, filename)

    key = f"{_item_prefix(item.id)}{int(time.time() * 1000)}_{_safe_name(filename)}"
    try:
        storage_id = storage.put(key, data, content_type)
    except StorageError as exc:
        raise UpstreamFailure("media storage", str(exc)) from exc

    row = Evidence(
        item_id=item.id,
        type=evidence_type,
        storage_id=storage_id,
        original_name=filename,
        description=(description or "").strip() or None,
        mime_type=content_type,
        file_size=len(data),
        uploaded_by=identity.user_id,
    )
    db.add(row)
    db.commit()
    db.refresh(row)

    log_evidence_access(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="evidence_uploaded",
        evidence_id=row.id,
        item_id=item.id,
        details={"file_size": len(data), "mime_type": content_type},
        request=request,
    )
    return _to_evidence_out(row, storage)


@router.post("/documents", response_model=EvidenceOut, status_code=201)
def upload_inline_document(
    payload: InlineDocumentCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    item = _load_item_for_evidence(db, identity, payload.item_id, Verb.CREATE)

    try:
        data = base64.b64decode(payload.content_base64, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationFailed("content_base64 is not valid base64")
    if len(data) > settings.INLINE_DOCUMENT_MAX_BYTES:
        raise ValidationFailed("Document too large for database storage")

    _ensure_unique_name(db, item.id, "document", payload.filename)

    row = Evidence(
        item_id=item.id,
        type="document",
        storage_id=None,
        original_name=payload.filename,
        description=payload.description,
        mime_type=payload.mime_type,
        file_size=len(data),
        content=data,
        uploaded_by=identity.user_id,
    )
    db.add(row)
    db.commit()
    db.refresh(row)

    log_evidence_access(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="evidence_uploaded",
        evidence_id=row.id,
        item_id=item.id,
        details={"inline": True, "file_size": len(data)},
        request=request,
    )
    return _to_evidence_out(row)


@router.get("/{evidence_id}", response_model=EvidenceOut)
def get_evidence(
    evidence_id: int,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    storage: StorageProvider = Depends(get_storage),
):
    row, item = load_evidence(db, identity, evidence_id)
    log_evidence_access(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="evidence_viewed",
        evidence_id=row.id,
        item_id=item.id,
        request=request,
    )
    return _to_evidence_out(row, storage)


@router.get("/{evidence_id}/download")
def download_evidence(
    evidence_id: int,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    storage: StorageProvider = Depends(get_storage),
):
    row, item = load_evidence(db, identity, evidence_id)

    if row.storage_id is None:
        content = row.content
        if content is None:
            raise NotFound("Evidence has no stored content")
        response = Response(
            content=content,
            media_type=row.mime_type or "application/octet-stream",
            headers={
                "Content-Disposition": f'attachment; filename="{_safe_name(row.original_name or "document")}"'
            },
        )
    else:
        url = storage.get_url(row.storage_id)
        if url is None:
            raise UpstreamFailure("media storage", f"no object for {row.storage_id}")
        response = RedirectResponse(url, status_code=307)

    log_evidence_access(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="evidence_downloaded",
        evidence_id=row.id,
        item_id=item.id,
        request=request,
    )
    return response


@router.patch("/{evidence_id}", response_model=EvidenceOut)
def update_evidence(
    evidence_id: int,
    payload: EvidenceUpdate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    storage: StorageProvider = Depends(get_storage),
):
    row, item = load_evidence(db, identity, evidence_id, Verb.WRITE)
    row.description = (payload.description or "").strip() or None
    db.add(row)
    db.commit()
    db.refresh(row)

    log_evidence_access(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="evidence_modified",
        evidence_id=row.id,
        item_id=item.id,
        request=request,
    )
    return _to_evidence_out(row, storage)


@router.delete("/{evidence_id}", response_model=EvidenceDeleteResponse)
def delete_evidence(
    evidence_id: int,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    storage: StorageProvider = Depends(get_storage),
):
    row, item = load_evidence(db, identity, evidence_id, Verb.DELETE)

    if row.storage_id:
        try:
            storage.delete(row.storage_id)
        except StorageError as exc:
            raise UpstreamFailure("media storage", str(exc)) from exc

    db.delete(row)
    db.commit()
    logger.info("Deleted evidence=%s from item=%s", evidence_id, item.id)

    log_evidence_access(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="evidence_deleted",
        evidence_id=evidence_id,
        item_id=item.id,
        request=request,
    )
    return EvidenceDeleteResponse(deleted=True, evidence_id=evidence_id)
