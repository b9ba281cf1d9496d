from sqlalchemy import select
from sqlalchemy.orm import Session

from remise.categories.models import Category

DEFAULT_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("electronics", "Electronic devices and equipment"),
    ("jewelry", "Jewelry and precious items"),
    ("vehicles", "Cars, motorcycles, bicycles, etc."),
    ("tools", "Hand tools, power tools, equipment"),
    ("clothing", "Clothing and accessories"),
    ("furniture", "Furniture and home decor"),
    ("documents", "Important documents and papers"),
    ("livestock", "Farm animals and livestock"),
    ("fencing", "Fencing materials and equipment"),
    ("appliance", "Household appliances"),
    ("other", "Other items not categorized"),
)


def seed_system_categories(db: Session, tenant_id: str) -> int:
    existing = set(
        db.execute(select(Category.name).where(Category.tenant_id == tenant_id)).scalars().all()
    )
    created = 0
    for sort_order, (name, description) in enumerate(DEFAULT_CATEGORIES, start=1):
        if name in existing:
            continue
        db.add(
            Category(
                tenant_id=tenant_id,
                name=name,
                description=description,
                is_system=True,
                sort_order=sort_order,
                created_by="system",
            )
        )
        created += 1
    return created


def list_categories(db: Session, tenant_id: str) -> list[Category]:
    # system categories first, then explicit order, then alphabetical
    return list(
        db.execute(
            select(Category)
            .where(Category.tenant_id == tenant_id)
            .order_by(Category.is_system.desc(), Category.sort_order.asc(), Category.name.asc())
        ).scalars().all()
    )
