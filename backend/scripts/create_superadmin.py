"""Create a super admin from the command line.

Usage: python scripts/create_superadmin.py USERNAME EMAIL [NAME]
The password is read from REMISE_ADMIN_PASSWORD or prompted for.
"""

import getpass
import os
import secrets
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sqlalchemy import func, select  # noqa: E402

from remise.auth.models import User  # noqa: E402
from remise.auth.permissions import AccessLevel, Role  # noqa: E402
from remise.auth.security import hash_password  # noqa: E402
from remise.db.init_db import init_db  # noqa: E402
from remise.db.session import SessionLocal  # noqa: E402
from remise.tenants.models import Tenant  # noqa: E402
from remise.tenants.service import create_tenant  # noqa: E402

PLATFORM_TENANT_NAME = "Platform"


def main(argv: list[str]) -> int:
    if len(argv) < 2:
        print(__doc__.strip(), file=sys.stderr)
        return 2
    username, email = argv[0].strip(), argv[1].strip().lower()
    name = argv[2] if len(argv) > 2 else "Platform Administrator"
    password = os.getenv("REMISE_ADMIN_PASSWORD") or getpass.getpass("Password: ")

    init_db()
    with SessionLocal() as db:
        taken = db.execute(
            select(User.id).where(
                (func.lower(User.username) == username.lower()) | (User.email == email)
            )
        ).first()
        if taken:
            print(f"[FAIL] username or email already in use: {username} / {email}")
            return 1

        tenant = db.execute(
            select(Tenant).where(Tenant.name == PLATFORM_TENANT_NAME)
        ).scalar_one_or_none()
        if tenant is None:
            tenant = create_tenant(db, name=PLATFORM_TENANT_NAME, description="Platform administration tenant")

        user = User(
            id=f"u_{secrets.token_hex(8)}",
            username=username,
            email=email,
            name=name,
            password_hash=hash_password(password),
            role=Role.SUPER_ADMIN.value,
            access_level=AccessLevel.OWNER.value,
            tenant_id=tenant.id,
            is_active=True,
            email_verified=True,
        )
        db.add(user)
        db.commit()

    print(f"[OK] super admin {username} created in tenant {tenant.id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
