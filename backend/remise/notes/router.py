import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from remise.audit.service import write_audit_log
from remise.auth.deps import get_current_identity
from remise.auth.session import Identity
from remise.authz.policy import Action, Resource, Verb, require
from remise.authz.scoping import load_note, scope_notes
from remise.core.errors import NotFound, ValidationFailed
from remise.db.session import get_db
from remise.items.models import Item
from remise.notes.models import InvestigationNote
from remise.notes.schemas import NoteCreate, NoteDeleteResponse, NoteOut, NotesListResponse, NoteUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_item_for_notes(db: Session, identity: Identity, item_id: int, verb: Verb) -> Item:
    item = db.get(Item, item_id)
    if item is None:
        raise NotFound("Item not found")
    require(identity, Action(Resource.NOTE, verb), item.tenant_id, owned=item.owner_id == identity.user_id)
    return item


@router.get("", response_model=NotesListResponse)
def list_notes(
    item_id: int = Query(...),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    _load_item_for_notes(db, identity, item_id, Verb.READ)
    stmt = scope_notes(select(InvestigationNote), identity).where(InvestigationNote.item_id == item_id)
    rows = db.execute(
        stmt.order_by(InvestigationNote.created_at.desc(), InvestigationNote.id.desc())
    ).scalars().all()
    return NotesListResponse(item_id=item_id, notes=[NoteOut.model_validate(r) for r in rows], total=len(rows))


@router.post("", response_model=NoteOut, status_code=201)
def create_note(
    payload: NoteCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    item = _load_item_for_notes(db, identity, payload.item_id, Verb.CREATE)
    content = payload.content.strip()
    if not content:
        raise ValidationFailed("Note content is required")

    note = InvestigationNote(
        item_id=item.id,
        content=content,
        is_confidential=payload.is_confidential,
        created_by=identity.user_id,
        created_by_name=identity.display_name,
        created_by_role=identity.role,
    )
    db.add(note)
    db.commit()
    db.refresh(note)

    write_audit_log(
        db,
        action="note_created",
        user_id=identity.user_id,
        username=identity.username,
        resource=f"note:{note.id}",
        resource_type="note",
        details={"item_id": item.id, "confidential": note.is_confidential},
        request=request,
    )
    return NoteOut.model_validate(note)


@router.patch("/{note_id}", response_model=NoteOut)
def update_note(
    note_id: int,
    payload: NoteUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    note, _ = load_note(db, identity, note_id, Verb.WRITE)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "content" in changes:
        changes["content"] = changes["content"].strip()
        if not changes["content"]:
            raise ValidationFailed("Note content is required")
    if not changes:
        raise ValidationFailed("Provide at least one field to update")

    for key, value in changes.items():
        setattr(note, key, value)
    db.add(note)
    db.commit()
    db.refresh(note)
    return NoteOut.model_validate(note)


@router.delete("/{note_id}", response_model=NoteDeleteResponse)
def delete_note(
    note_id: int,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    note, item = load_note(db, identity, note_id, Verb.DELETE)
    db.delete(note)
    db.commit()

    write_audit_log(
        db,
        action="note_deleted",
        user_id=identity.user_id,
        username=identity.username,
        resource=f"note:{note_id}",
        resource_type="note",
        details={"item_id": item.id},
        severity="warning",
        request=request,
    )
    logger.info("Deleted note=%s from item=%s", note_id, item.id)
    return NoteDeleteResponse(deleted=True, note_id=note_id)
