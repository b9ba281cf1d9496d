from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from remise.admin.schemas import (
    AdminUserDeleteResponse,
    AdminUserOut,
    AdminUserPatchRequest,
    AdminUsersListResponse,
    AuditLogEntryOut,
    AuditLogListResponse,
    PlatformStatsResponse,
)
from remise.admin.service import delete_user, owned_item_count, update_user
from remise.audit.models import AuditLog
from remise.audit.service import log_admin_action, query_audit_logs
from remise.auth.deps import require_super_admin
from remise.auth.models import User
from remise.auth.router import to_user_out
from remise.auth.session import Identity
from remise.core.errors import NotFound, ValidationFailed
from remise.db.session import get_db
from remise.evidence.models import Evidence
from remise.items.models import Item
from remise.tenants.models import Tenant

router = APIRouter()


def _to_admin_user_out(user: User, item_count: int = 0) -> AdminUserOut:
    return AdminUserOut(
        **to_user_out(user).model_dump(),
        item_count=item_count,
        created_at=user.created_at,
    )


def _to_audit_out(row: AuditLog) -> AuditLogEntryOut:
    return AuditLogEntryOut(
        id=row.id,
        timestamp=row.timestamp,
        user_id=row.user_id,
        username=row.username,
        action=row.action,
        resource=row.resource,
        resource_type=row.resource_type,
        details=row.details or {},
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        success=row.success,
        severity=row.severity,
    )


@router.get("/users", response_model=AdminUsersListResponse)
def list_users(
    q: str | None = Query(default=None, min_length=1, max_length=200),
    role: str | None = Query(default=None, max_length=32),
    tenant_id: str | None = Query(default=None, max_length=64),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0, le=100_000),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_super_admin),
):
    stmt = select(User)
    if q:
        pattern = f"%{q}%"
        stmt = stmt.where(
            or_(User.username.ilike(pattern), User.email.ilike(pattern), User.name.ilike(pattern))
        )
    if role:
        stmt = stmt.where(User.role == role)
    if tenant_id:
        stmt = stmt.where(User.tenant_id == tenant_id)

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    users = db.execute(
        stmt.order_by(User.created_at.desc()).limit(limit).offset(offset)
    ).scalars().all()

    user_ids = [u.id for u in users]
    item_counts: dict[str, int] = {}
    if user_ids:
        item_counts = dict(
            db.execute(
                select(Item.owner_id, func.count(Item.id))
                .where(Item.owner_id.in_(user_ids))
                .group_by(Item.owner_id)
            ).all()
        )

    return AdminUsersListResponse(
        users=[_to_admin_user_out(u, int(item_counts.get(u.id, 0))) for u in users],
        total=int(total or 0),
    )


@router.get("/users/{user_id}", response_model=AdminUserOut)
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_super_admin),
):
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return _to_admin_user_out(user, owned_item_count(db, user.id))


@router.patch("/users/{user_id}", response_model=AdminUserOut)
def patch_user(
    user_id: str,
    payload: AdminUserPatchRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_super_admin),
):
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key == "tenant_id"
    }
    if not changes:
        raise ValidationFailed("Provide at least one field to update")

    user = update_user(db, identity, user_id, changes)
    log_admin_action(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="user_modified",
        resource=f"user:{user_id}",
        details={"changes": {k: str(v) for k, v in changes.items()}},
        request=request,
    )
    return _to_admin_user_out(user, owned_item_count(db, user.id))


@router.delete("/users/{user_id}", response_model=AdminUserDeleteResponse)
def remove_user(
    user_id: str,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_super_admin),
):
    delete_user(db, identity, user_id)
    log_admin_action(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="user_deleted",
        resource=f"user:{user_id}",
        request=request,
    )
    return AdminUserDeleteResponse(deleted=True, user_id=user_id)


@router.get("/platform-stats", response_model=PlatformStatsResponse)
def platform_stats(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_super_admin),
):
    tenant_count, active_tenants = db.execute(
        select(func.count(Tenant.id), func.count(Tenant.id).filter(Tenant.is_active.is_(True)))
    ).one()
    user_count, active_users = db.execute(
        select(func.count(User.id), func.count(User.id).filter(User.is_active.is_(True)))
    ).one()
    by_role = dict(db.execute(select(User.role, func.count(User.id)).group_by(User.role)).all())
    item_count, total_value = db.execute(
        select(func.count(Item.id), func.coalesce(func.sum(Item.estimated_value), 0.0))
    ).one()
    evidence_count = db.execute(select(func.count(Evidence.id))).scalar_one()

    return PlatformStatsResponse(
        tenant_count=int(tenant_count or 0),
        active_tenant_count=int(active_tenants or 0),
        user_count=int(user_count or 0),
        active_user_count=int(active_users or 0),
        users_by_role={k: int(v) for k, v in by_role.items()},
        item_count=int(item_count or 0),
        evidence_count=int(evidence_count or 0),
        total_estimated_value=float(total_value or 0.0),
    )


@router.get("/audit-logs", response_model=AuditLogListResponse)
def list_audit_logs(
    request: Request,
    user_id: str | None = Query(default=None, max_length=64),
    action: str | None = Query(default=None, max_length=64),
    resource_type: str | None = Query(default=None, max_length=32),
    success: bool | None = Query(default=None),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0, le=100_000),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_super_admin),
):
    rows = query_audit_logs(
        db,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        success=success,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )
    log_admin_action(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="audit_log_viewed",
        resource_type="audit",
        details={"filters": {"user_id": user_id, "action": action, "resource_type": resource_type}},
        request=request,
    )
    return AuditLogListResponse(count=len(rows), entries=[_to_audit_out(r) for r in rows])
