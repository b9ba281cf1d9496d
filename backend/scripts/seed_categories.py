"""Backfill the system categories for every tenant that lacks them."""

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sqlalchemy import select  # noqa: E402

from remise.categories.service import seed_system_categories  # noqa: E402
from remise.db.session import SessionLocal  # noqa: E402
from remise.tenants.models import Tenant  # noqa: E402


def main() -> int:
    with SessionLocal() as db:
        tenant_ids = db.execute(select(Tenant.id)).scalars().all()
        created = 0
        for tenant_id in tenant_ids:
            created += seed_system_categories(db, tenant_id)
        db.commit()

    print(f"[OK] {created} categories added across {len(tenant_ids)} tenants")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
