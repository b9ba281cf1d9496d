from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from remise.audit.service import log_admin_action
from remise.auth.deps import require_super_admin
from remise.auth.session import Identity
from remise.core.errors import Conflict, NotFound, ValidationFailed
from remise.db.session import get_db
from remise.tenants.models import Tenant
from remise.tenants.schemas import (
    TenantCreate,
    TenantDeleteResponse,
    TenantOut,
    TenantsListResponse,
    TenantUpdate,
)
from remise.tenants.service import create_tenant, delete_tenant, tenant_counts

router = APIRouter()


def _to_tenant_out(db: Session, tenant: Tenant) -> TenantOut:
    return TenantOut(
        id=tenant.id,
        name=tenant.name,
        description=tenant.description,
        is_active=tenant.is_active,
        created_at=tenant.created_at,
        updated_at=tenant.updated_at,
        **tenant_counts(db, tenant.id),
    )


@router.get("", response_model=TenantsListResponse)
def list_tenants(
    q: str | None = Query(default=None, min_length=1, max_length=200),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0, le=100_000),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_super_admin),
):
    stmt = select(Tenant)
    if q:
        stmt = stmt.where(Tenant.name.ilike(f"%{q}%"))

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    tenants = db.execute(stmt.order_by(Tenant.name.asc()).limit(limit).offset(offset)).scalars().all()
    return TenantsListResponse(
        tenants=[_to_tenant_out(db, t) for t in tenants],
        total=int(total or 0),
    )


@router.post("", response_model=TenantOut, status_code=201)
def create(
    payload: TenantCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_super_admin),
):
    tenant = create_tenant(
        db,
        name=payload.name,
        description=payload.description,
        is_active=payload.is_active,
    )
    db.commit()
    db.refresh(tenant)

    log_admin_action(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="tenant_created",
        resource=f"tenant:{tenant.id}",
        resource_type="tenant",
        details={"name": tenant.name},
        request=request,
    )
    return _to_tenant_out(db, tenant)


@router.get("/{tenant_id}", response_model=TenantOut)
def get_tenant(
    tenant_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_super_admin),
):
    tenant = db.get(Tenant, tenant_id)
    if not tenant:
        raise NotFound("Tenant not found")
    return _to_tenant_out(db, tenant)


@router.patch("/{tenant_id}", response_model=TenantOut)
def update_tenant(
    tenant_id: str,
    payload: TenantUpdate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_super_admin),
):
    tenant = db.get(Tenant, tenant_id)
    if not tenant:
        raise NotFound("Tenant not found")

    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key == "description"
    }
    if not changes:
        raise ValidationFailed("Provide at least one field to update")

    if "name" in changes:
        changes["name"] = changes["name"].strip()
        taken = db.execute(
            select(Tenant.id).where(
                func.lower(Tenant.name) == changes["name"].lower(),
                Tenant.id != tenant_id,
            )
        ).first()
        if taken:
            raise Conflict("A tenant with this name already exists")

    for key, value in changes.items():
        setattr(tenant, key, value)
    db.add(tenant)
    db.commit()
    db.refresh(tenant)

    log_admin_action(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="tenant_modified",
        resource=f"tenant:{tenant.id}",
        resource_type="tenant",
        details={"changes": changes},
        request=request,
    )
    return _to_tenant_out(db, tenant)


@router.delete("/{tenant_id}", response_model=TenantDeleteResponse)
def remove_tenant(
    tenant_id: str,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_super_admin),
):
    delete_tenant(db, tenant_id)
    log_admin_action(
        db,
        user_id=identity.user_id,
        username=identity.username,
        action="tenant_deleted",
        resource=f"tenant:{tenant_id}",
        resource_type="tenant",
        request=request,
    )
    return TenantDeleteResponse(deleted=True, tenant_id=tenant_id)
