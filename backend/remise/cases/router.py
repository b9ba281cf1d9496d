import logging

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from remise.audit.service import write_audit_log
from remise.auth.deps import get_current_identity
from remise.auth.session import Identity
from remise.authz.policy import Action, Resource, Verb, authorize, require
from remise.authz.scoping import load_case, scope_cases
from remise.cases.models import Case, CasePermission, CaseSuspect, CaseTimelineEvent, CaseUpdate
from remise.cases.schemas import (
    CaseCreate,
    CaseDetailOut,
    CaseOut,
    CasePermissionIn,
    CasePermissionOut,
    CasesListResponse,
    CaseUpdateIn,
    CaseUpdateOut,
    CaseUpdatePatch,
    CaseUpdateRequest,
    DeletedResponse,
    SuspectIn,
    SuspectOut,
    SuspectPatch,
    TimelineEventIn,
    TimelineEventOut,
    TimelineEventPatch,
)
from remise.cases.service import grant_case_permission, purge_case, revoke_case_permission
from remise.core.errors import NotFound, ValidationFailed
from remise.db.session import get_db
from remise.tenants.models import Tenant

logger = logging.getLogger(__name__)

router = APIRouter()

CLEARABLE_CASE_FIELDS = frozenset({"case_number", "assigned_officer"})
CLEARABLE_SUSPECT_FIELDS = frozenset({"address", "phone"})


def _changes(payload: BaseModel, clearable: frozenset[str] = frozenset()) -> dict:
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in clearable
    }
    if not changes:
        raise ValidationFailed("Provide at least one field to update")
    return changes


def _can_manage_grants(identity: Identity, case: Case) -> bool:
    return bool(
        authorize(
            identity,
            Action(Resource.CASE, Verb.WRITE),
            case.tenant_id,
            owned=case.created_by == identity.user_id,
        )
    )


def _audit(db: Session, identity: Identity, action: str, case_id: int, request: Request, **details) -> None:
    write_audit_log(
        db,
        action=action,
        user_id=identity.user_id,
        username=identity.username,
        resource=f"case:{case_id}",
        resource_type="case",
        details={"case_id": case_id, **details},
        severity="warning" if action.endswith("_deleted") or action.endswith("_revoked") else "info",
        request=request,
    )


@router.get("", response_model=CasesListResponse)
def list_cases(
    status: str | None = Query(default=None, max_length=16),
    tenant_id: str | None = Query(default=None, max_length=64),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0, le=100_000),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    stmt = scope_cases(select(Case), identity)
    if status:
        stmt = stmt.where(Case.status == status)
    if tenant_id:
        stmt = stmt.where(Case.tenant_id == tenant_id)

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = db.execute(
        stmt.order_by(Case.created_at.desc(), Case.id.desc()).limit(limit).offset(offset)
    ).scalars().all()
    return CasesListResponse(cases=[CaseOut.model_validate(r) for r in rows], total=int(total or 0))


@router.post("", response_model=CaseOut, status_code=201)
def create_case(
    payload: CaseCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    tenant_id = payload.tenant_id or identity.tenant_id
    if not tenant_id:
        raise ValidationFailed("tenant_id is required")
    require(identity, Action(Resource.CASE, Verb.CREATE), tenant_id)
    if db.get(Tenant, tenant_id) is None:
        raise NotFound("Tenant not found")

    case = Case(
        tenant_id=tenant_id,
        created_by=identity.user_id,
        created_by_name=identity.display_name,
        created_by_role=identity.role,
        **payload.model_dump(exclude={"tenant_id"}),
    )
    db.add(case)
    db.commit()
    db.refresh(case)

    _audit(db, identity, "case_created", case.id, request, tenant_id=tenant_id)
    logger.info("Opened case=%s in tenant=%s by user=%s", case.id, tenant_id, identity.user_id)
    return CaseOut.model_validate(case)


@router.get("/{case_id}", response_model=CaseDetailOut)
def get_case(
    case_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id)

    def entries(model, *order_by):
        return db.execute(select(model).where(model.case_id == case.id).order_by(*order_by)).scalars().all()

    # grants are only shown to whoever may change them
    grants = []
    if _can_manage_grants(identity, case):
        grants = entries(CasePermission, CasePermission.id)

    return CaseDetailOut(
        **CaseOut.model_validate(case).model_dump(),
        timeline=[
            TimelineEventOut.model_validate(r)
            for r in entries(CaseTimelineEvent, CaseTimelineEvent.date, CaseTimelineEvent.time)
        ],
        suspects=[SuspectOut.model_validate(r) for r in entries(CaseSuspect, CaseSuspect.id)],
        updates=[
            CaseUpdateOut.model_validate(r)
            for r in entries(CaseUpdate, CaseUpdate.date.desc(), CaseUpdate.id.desc())
        ],
        permissions=[CasePermissionOut.model_validate(r) for r in grants],
    )


@router.patch("/{case_id}", response_model=CaseOut)
def update_case(
    case_id: int,
    payload: CaseUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE)
    changes = _changes(payload, CLEARABLE_CASE_FIELDS)

    for key, value in changes.items():
        setattr(case, key, value)
    db.add(case)
    db.commit()
    db.refresh(case)

    _audit(db, identity, "case_modified", case.id, request, fields=sorted(changes))
    return CaseOut.model_validate(case)


@router.delete("/{case_id}", response_model=DeletedResponse)
def delete_case(
    case_id: int,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.DELETE)
    purge_case(db, case)
    db.commit()

    _audit(db, identity, "case_deleted", case_id, request)
    logger.info("Deleted case=%s by user=%s", case_id, identity.user_id)
    return DeletedResponse(deleted=True, id=case_id)


# --- Grants ---
@router.get("/{case_id}/permissions", response_model=list[CasePermissionOut])
def list_case_permissions(
    case_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE, honor_grants=False)
    rows = db.execute(
        select(CasePermission).where(CasePermission.case_id == case.id).order_by(CasePermission.id)
    ).scalars().all()
    return [CasePermissionOut.model_validate(r) for r in rows]


@router.put("/{case_id}/permissions", response_model=CasePermissionOut)
def put_case_permission(
    case_id: int,
    payload: CasePermissionIn,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE, honor_grants=False)
    grant = grant_case_permission(
        db, identity, case, payload.user_id, payload.model_dump(exclude={"user_id"})
    )
    _audit(
        db,
        identity,
        "case_permission_granted",
        case.id,
        request,
        grantee=grant.user_id,
        can_view=grant.can_view,
        can_edit=grant.can_edit,
        can_delete=grant.can_delete,
    )
    return CasePermissionOut.model_validate(grant)


@router.delete("/{case_id}/permissions/{user_id}", response_model=DeletedResponse)
def delete_case_permission(
    case_id: int,
    user_id: str,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE, honor_grants=False)
    revoke_case_permission(db, case, user_id)
    _audit(db, identity, "case_permission_revoked", case.id, request, grantee=user_id)
    return DeletedResponse(deleted=True, id=case.id)


# --- Timeline, suspects, updates ---
def _add_entry(db: Session, identity: Identity, case: Case, model, values: dict):
    row = model(
        case_id=case.id,
        created_by=identity.user_id,
        created_by_name=identity.display_name,
        created_by_role=identity.role,
        **values,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _load_entry(db: Session, model, case: Case, entry_id: int):
    row = db.get(model, entry_id)
    if row is None or row.case_id != case.id:
        raise NotFound("Entry not found")
    return row


def _patch_entry(db: Session, row, changes: dict):
    for key, value in changes.items():
        setattr(row, key, value)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _delete_entry(db: Session, row) -> None:
    db.delete(row)
    db.commit()


@router.post("/{case_id}/timeline", response_model=TimelineEventOut, status_code=201)
def add_timeline_event(
    case_id: int,
    payload: TimelineEventIn,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE)
    return TimelineEventOut.model_validate(_add_entry(db, identity, case, CaseTimelineEvent, payload.model_dump()))


@router.patch("/{case_id}/timeline/{entry_id}", response_model=TimelineEventOut)
def update_timeline_event(
    case_id: int,
    entry_id: int,
    payload: TimelineEventPatch,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE)
    row = _load_entry(db, CaseTimelineEvent, case, entry_id)
    return TimelineEventOut.model_validate(_patch_entry(db, row, _changes(payload)))


@router.delete("/{case_id}/timeline/{entry_id}", response_model=DeletedResponse)
def delete_timeline_event(
    case_id: int,
    entry_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE)
    _delete_entry(db, _load_entry(db, CaseTimelineEvent, case, entry_id))
    return DeletedResponse(deleted=True, id=entry_id)


@router.post("/{case_id}/suspects", response_model=SuspectOut, status_code=201)
def add_suspect(
    case_id: int,
    payload: SuspectIn,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE)
    row = _add_entry(db, identity, case, CaseSuspect, payload.model_dump())
    _audit(db, identity, "case_suspect_added", case.id, request, suspect_id=row.id)
    return SuspectOut.model_validate(row)


@router.patch("/{case_id}/suspects/{entry_id}", response_model=SuspectOut)
def update_suspect(
    case_id: int,
    entry_id: int,
    payload: SuspectPatch,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE)
    row = _load_entry(db, CaseSuspect, case, entry_id)
    return SuspectOut.model_validate(_patch_entry(db, row, _changes(payload, CLEARABLE_SUSPECT_FIELDS)))


@router.delete("/{case_id}/suspects/{entry_id}", response_model=DeletedResponse)
def delete_suspect(
    case_id: int,
    entry_id: int,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE)
    _delete_entry(db, _load_entry(db, CaseSuspect, case, entry_id))
    _audit(db, identity, "case_suspect_deleted", case.id, request, suspect_id=entry_id)
    return DeletedResponse(deleted=True, id=entry_id)


@router.post("/{case_id}/updates", response_model=CaseUpdateOut, status_code=201)
def add_case_update(
    case_id: int,
    payload: CaseUpdateIn,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE)
    return CaseUpdateOut.model_validate(_add_entry(db, identity, case, CaseUpdate, payload.model_dump()))


@router.patch("/{case_id}/updates/{entry_id}", response_model=CaseUpdateOut)
def edit_case_update(
    case_id: int,
    entry_id: int,
    payload: CaseUpdatePatch,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE)
    row = _load_entry(db, CaseUpdate, case, entry_id)
    return CaseUpdateOut.model_validate(_patch_entry(db, row, _changes(payload)))


@router.delete("/{case_id}/updates/{entry_id}", response_model=DeletedResponse)
def delete_case_update(
    case_id: int,
    entry_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    case = load_case(db, identity, case_id, Verb.WRITE)
    _delete_entry(db, _load_entry(db, CaseUpdate, case, entry_id))
    return DeletedResponse(deleted=True, id=entry_id)
