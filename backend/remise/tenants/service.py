import secrets

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from remise.auth.models import User
from remise.cases.models import Case
from remise.cases.service import purge_case
from remise.categories.models import Category
from remise.categories.service import seed_system_categories
from remise.core.errors import Conflict, NotFound
from remise.items.models import Item
from remise.tenants.models import Tenant


def new_tenant_id() -> str:
    return f"t_{secrets.token_hex(8)}"


def _name_taken(db: Session, name: str) -> bool:
    return db.execute(select(Tenant.id).where(func.lower(Tenant.name) == name.lower())).first() is not None


def available_tenant_name(db: Session, base: str) -> str:
    """First of `base`, `base (2)`, `base (3)`, ... that no tenant uses yet."""
    base = base.strip()
    name, n = base, 1
    while _name_taken(db, name):
        n += 1
        name = f"{base} ({n})"
    return name


def create_tenant(
    db: Session,
    *,
    name: str,
    description: str | None = None,
    is_active: bool = True,
) -> Tenant:
    name = name.strip()
    if _name_taken(db, name):
        raise Conflict("A tenant with this name already exists")

    tenant = Tenant(id=new_tenant_id(), name=name, description=description, is_active=is_active)
    db.add(tenant)
    db.flush()
    seed_system_categories(db, tenant.id)
    return tenant


def tenant_counts(db: Session, tenant_id: str) -> dict:
    user_count = db.execute(
        select(func.count(User.id)).where(User.tenant_id == tenant_id)
    ).scalar_one()
    item_count, total_value = db.execute(
        select(func.count(Item.id), func.coalesce(func.sum(Item.estimated_value), 0.0)).where(
            Item.tenant_id == tenant_id
        )
    ).one()
    return {
        "user_count": int(user_count or 0),
        "item_count": int(item_count or 0),
        "total_value": float(total_value or 0.0),
    }


def delete_tenant(db: Session, tenant_id: str) -> None:
    """Delete a tenant that no longer owns users or items."""
    tenant = db.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFound("Tenant not found")

    counts = tenant_counts(db, tenant_id)
    if counts["user_count"] or counts["item_count"]:
        raise Conflict(
            {
                "error": (
                    f"Cannot delete tenant with {counts['user_count']} users and "
                    f"{counts['item_count']} items. Reassign or delete them first."
                ),
                "user_count": counts["user_count"],
                "item_count": counts["item_count"],
            }
        )

    for case in db.execute(select(Case).where(Case.tenant_id == tenant_id)).scalars().all():
        purge_case(db, case)
    for category in db.execute(select(Category).where(Category.tenant_id == tenant_id)).scalars():
        db.delete(category)
    db.flush()
    db.delete(tenant)
    db.commit()
