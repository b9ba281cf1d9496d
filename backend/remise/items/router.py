import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from remise.audit.service import write_audit_log
from remise.auth.deps import get_current_identity
from remise.auth.models import User
from remise.auth.session import Identity
from remise.authz.policy import Action, Resource, Verb, require
from remise.authz.scoping import load_item, scope_items
from remise.core.errors import NotFound, ValidationFailed
from remise.db.session import get_db
from remise.evidence.models import Evidence
from remise.items.models import Item
from remise.items.schemas import (
    ItemCreate,
    ItemDeleteResponse,
    ItemOut,
    ItemsListResponse,
    ItemUpdate,
)
from remise.notes.models import InvestigationNote
from remise.storage.local_provider import get_storage
from remise.storage.provider import StorageError, StorageProvider
from remise.tenants.models import Tenant

logger = logging.getLogger(__name__)

router = APIRouter()

# columns a PATCH may set to null; null on any other field means "leave as is"
CLEARABLE_FIELDS = {"serial_number", "purchase_date", "date_last_seen", "location_last_seen", "notes"}


def _to_item_out(item: Item, evidence_count: int = 0) -> ItemOut:
    return ItemOut(
        id=item.id,
        tenant_id=item.tenant_id,
        owner_id=item.owner_id,
        name=item.name,
        description=item.description or "",
        serial_number=item.serial_number,
        category=item.category,
        purchase_date=item.purchase_date,
        purchase_cost=item.purchase_cost,
        estimated_value=item.estimated_value,
        date_last_seen=item.date_last_seen,
        location_last_seen=item.location_last_seen,
        tags=list(item.tags or []),
        notes=item.notes,
        evidence_count=evidence_count,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


def _evidence_count(db: Session, item_id: int) -> int:
    return int(
        db.execute(select(func.count(Evidence.id)).where(Evidence.item_id == item_id)).scalar_one() or 0
    )


@router.get("", response_model=ItemsListResponse)
def list_items(
    q: str | None = Query(default=None, min_length=1, max_length=200),
    category: str | None = Query(default=None, max_length=64),
    min_value: float | None = Query(default=None, ge=0),
    max_value: float | None = Query(default=None, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0, le=100_000),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    stmt = scope_items(select(Item), identity)

    if q:
        pattern = f"%{q}%"
        stmt = stmt.where(
            or_(
                Item.name.ilike(pattern),
                Item.description.ilike(pattern),
                Item.serial_number.ilike(pattern),
                Item.location_last_seen.ilike(pattern),
            )
        )
    if category:
        stmt = stmt.where(Item.category == category)
    if min_value is not None:
        stmt = stmt.where(Item.estimated_value >= min_value)
    if max_value is not None:
        stmt = stmt.where(Item.estimated_value <= max_value)

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    items = db.execute(
        stmt.order_by(Item.created_at.desc(), Item.id.desc()).limit(limit).offset(offset)
    ).scalars().all()

    item_ids = [i.id for i in items]
    counts: dict[int, int] = {}
    if item_ids:
        counts = dict(
            db.execute(
                select(Evidence.item_id, func.count(Evidence.id))
                .where(Evidence.item_id.in_(item_ids))
                .group_by(Evidence.item_id)
            ).all()
        )

    return ItemsListResponse(
        items=[_to_item_out(i, int(counts.get(i.id, 0))) for i in items],
        total=int(total or 0),
    )


@router.post("", response_model=ItemOut, status_code=201)
def create_item(
    payload: ItemCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    tenant_id = payload.tenant_id or identity.tenant_id
    if not tenant_id:
        raise ValidationFailed("tenant_id is required")
    require(identity, Action(Resource.ITEM, Verb.CREATE), tenant_id)

    if db.get(Tenant, tenant_id) is None:
        raise NotFound("Tenant not found")

    item = Item(
        tenant_id=tenant_id,
        owner_id=identity.user_id,
        **payload.model_dump(exclude={"tenant_id"}),
    )
    db.add(item)
    db.commit()
    db.refresh(item)

    write_audit_log(
        db,
        action="item_created",
        user_id=identity.user_id,
        username=identity.username,
        resource=f"item:{item.id}",
        resource_type="item",
        details={"item_id": item.id, "tenant_id": tenant_id},
        request=request,
    )
    return _to_item_out(item)


@router.get("/{item_id}", response_model=ItemOut)
def get_item(
    item_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    item = load_item(db, identity, item_id)
    return _to_item_out(item, _evidence_count(db, item.id))


@router.patch("/{item_id}", response_model=ItemOut)
def update_item(
    item_id: int,
    payload: ItemUpdate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    item = load_item(db, identity, item_id, Verb.WRITE)
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in CLEARABLE_FIELDS
    }
    if not changes:
        raise ValidationFailed("Provide at least one field to update")

    new_owner_id = changes.pop("owner_id", None)
    if new_owner_id and new_owner_id != item.owner_id:
        # reassigning is a tenant-wide write, not an owner write
        require(identity, Action(Resource.ITEM, Verb.WRITE), item.tenant_id)
        new_owner = db.get(User, new_owner_id)
        if new_owner is None or new_owner.tenant_id != item.tenant_id:
            raise ValidationFailed("New owner must belong to the item's tenant")
        changes["owner_id"] = new_owner_id

    before = {k: getattr(item, k) for k in changes}
    for key, value in changes.items():
        setattr(item, key, value)
    db.add(item)
    db.commit()
    db.refresh(item)

    write_audit_log(
        db,
        action="item_modified",
        user_id=identity.user_id,
        username=identity.username,
        resource=f"item:{item.id}",
        resource_type="item",
        details={"item_id": item.id, "before": before, "after": changes},
        request=request,
    )
    return _to_item_out(item, _evidence_count(db, item.id))


@router.delete("/{item_id}", response_model=ItemDeleteResponse)
def delete_item(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    storage: StorageProvider = Depends(get_storage),
):
    item = load_item(db, identity, item_id, Verb.DELETE)

    evidence_rows = db.execute(select(Evidence).where(Evidence.item_id == item.id)).scalars().all()
    storage_ids = [row.storage_id for row in evidence_rows if row.storage_id]
    for row in evidence_rows:
        db.delete(row)
    db.execute(delete(InvestigationNote).where(InvestigationNote.item_id == item.id))
    db.flush()
    db.delete(item)
    db.commit()

    # media goes after the commit; a failure leaves orphaned objects, never dangling rows
    orphaned = []
    for storage_id in storage_ids:
        try:
            storage.delete(storage_id)
        except StorageError:
            logger.exception("Could not remove media %s of deleted item=%s", storage_id, item_id)
            orphaned.append(storage_id)

    write_audit_log(
        db,
        action="item_deleted",
        user_id=identity.user_id,
        username=identity.username,
        resource=f"item:{item_id}",
        resource_type="item",
        details={"item_id": item_id, "evidence_deleted": len(evidence_rows), "orphaned_media": orphaned},
        severity="warning",
        request=request,
    )
    logger.info("Deleted item=%s with %s evidence rows", item_id, len(evidence_rows))
    return ItemDeleteResponse(deleted=True, item_id=item_id, evidence_deleted=len(evidence_rows))
