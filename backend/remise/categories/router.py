from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from remise.auth.deps import get_current_identity
from remise.auth.session import Identity
from remise.authz.policy import Action, Resource, Verb, require
from remise.authz.scoping import load_category
from remise.categories.models import Category
from remise.categories.schemas import CategoriesListResponse, CategoryCreate, CategoryOut, CategoryUpdate
from remise.categories.service import list_categories
from remise.core.errors import Conflict, Forbidden, ValidationFailed
from remise.db.session import get_db

router = APIRouter()


def _to_category_out(row: Category) -> CategoryOut:
    return CategoryOut(
        id=row.id,
        tenant_id=row.tenant_id,
        name=row.name,
        description=row.description,
        is_system=row.is_system,
        sort_order=row.sort_order,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _resolve_tenant(identity: Identity, tenant_id: str | None) -> str:
    target = tenant_id or identity.tenant_id
    if not target:
        raise ValidationFailed("tenant_id is required")
    return target


def _ensure_name_free(db: Session, tenant_id: str, name: str, exclude_id: int | None = None) -> None:
    stmt = select(Category.id).where(
        Category.tenant_id == tenant_id,
        func.lower(Category.name) == name.lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    if db.execute(stmt).first():
        raise Conflict("Category with this name already exists")


@router.get("", response_model=CategoriesListResponse)
def get_categories(
    tenant_id: str | None = Query(default=None, min_length=3, max_length=64),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    target = _resolve_tenant(identity, tenant_id)
    require(identity, Action(Resource.CATEGORY, Verb.READ), target)
    return CategoriesListResponse(
        tenant_id=target,
        categories=[_to_category_out(c) for c in list_categories(db, target)],
    )


@router.post("", response_model=CategoryOut, status_code=201)
def create_category(
    payload: CategoryCreate,
    tenant_id: str | None = Query(default=None, min_length=3, max_length=64),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    target = _resolve_tenant(identity, tenant_id)
    require(identity, Action(Resource.CATEGORY, Verb.CREATE), target)

    name = payload.name.strip()
    _ensure_name_free(db, target, name)

    row = Category(
        tenant_id=target,
        name=name,
        description=(payload.description or "").strip() or None,
        is_system=False,
        sort_order=payload.sort_order,
        created_by=identity.user_id,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return _to_category_out(row)


@router.patch("/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    row = load_category(db, identity, category_id, Verb.WRITE)
    if row.is_system:
        raise Forbidden("System categories cannot be modified")

    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"]:
        changes["name"] = changes["name"].strip()
        _ensure_name_free(db, row.tenant_id, changes["name"], exclude_id=row.id)
    for key, value in changes.items():
        if value is not None:
            setattr(row, key, value)
    db.add(row)
    db.commit()
    db.refresh(row)
    return _to_category_out(row)


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    row = load_category(db, identity, category_id, Verb.DELETE)
    if row.is_system:
        raise Forbidden("System categories cannot be deleted")
    db.delete(row)
    db.commit()
    return {"deleted": True, "category_id": category_id}
