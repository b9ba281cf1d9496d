"""Platform-level user administration.

Self-protection runs before any role check: nobody, super admins included,
can deactivate or delete the account they are signed in with.
"""

import logging
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from remise.auth.models import AuthToken, User
from remise.auth.permissions import Role, is_valid_role
from remise.auth.session import Identity
from remise.authz.policy import Action, Resource, Verb, require
from remise.cases.models import CasePermission
from remise.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from remise.items.models import Item
from remise.tenants.models import Tenant

logger = logging.getLogger(__name__)

ADMIN_EDITABLE_FIELDS = {"name", "email", "role", "access_level", "tenant_id", "is_active", "email_verified"}


def owned_item_count(db: Session, user_id: str) -> int:
    return int(
        db.execute(select(func.count(Item.id)).where(Item.owner_id == user_id)).scalar_one() or 0
    )


def update_user(db: Session, actor: Identity, user_id: str, changes: dict[str, Any]) -> User:
    if user_id == actor.user_id and changes.get("is_active") is False:
        raise Forbidden("Cannot deactivate your own account")

    require(actor, Action(Resource.USER, Verb.WRITE), None)

    unknown = set(changes) - ADMIN_EDITABLE_FIELDS
    if unknown:
        raise ValidationFailed(f"Fields cannot be changed here: {', '.join(sorted(unknown))}")
    cleared = sorted(k for k, v in changes.items() if v is None and k != "tenant_id")
    if cleared:
        raise ValidationFailed(f"Fields cannot be null: {', '.join(cleared)}")

    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    if "role" in changes and not is_valid_role(changes["role"]):
        raise ValidationFailed(f"Unknown role: {changes['role']}")
    if "access_level" in changes and changes["access_level"] not in {"owner", "stakeholder"}:
        raise ValidationFailed("access_level must be owner or stakeholder")
    if "email" in changes:
        changes["email"] = str(changes["email"]).lower()
        taken = db.execute(
            select(User.id).where(User.email == changes["email"], User.id != user_id)
        ).first()
        if taken:
            raise Conflict("Email is already registered")

    if "tenant_id" in changes or "role" in changes:
        role = changes.get("role", user.role)
        tenant_id = changes["tenant_id"] if "tenant_id" in changes else user.tenant_id
        if tenant_id is None and role != Role.SUPER_ADMIN.value:
            raise ValidationFailed("Only super admins may be without a tenant")

    new_tenant = changes.get("tenant_id")
    if "tenant_id" in changes and new_tenant != user.tenant_id:
        if new_tenant is not None and db.get(Tenant, new_tenant) is None:
            raise NotFound("Tenant not found")
        # items keep their tenant, so their owner has to stay with them
        items = owned_item_count(db, user_id)
        if items:
            raise Conflict(
                {
                    "error": f"Cannot move user with {items} items to another tenant.",
                    "item_count": items,
                }
            )

    for key, value in changes.items():
        setattr(user, key, value)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Admin %s updated user %s: %s", actor.user_id, user_id, sorted(changes))
    return user


def delete_user(db: Session, actor: Identity, user_id: str) -> None:
    if user_id == actor.user_id:
        raise Forbidden("Cannot delete your own account")

    require(actor, Action(Resource.USER, Verb.DELETE), None)

    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    items = owned_item_count(db, user_id)
    if items:
        raise Conflict(
            {
                "error": (
                    f"Cannot delete user with {items} items. "
                    "Please transfer or delete items first."
                ),
                "item_count": items,
            }
        )

    db.execute(delete(AuthToken).where(AuthToken.user_id == user_id))
    db.execute(delete(CasePermission).where(CasePermission.user_id == user_id))
    db.delete(user)
    db.commit()
    logger.info("Admin %s deleted user %s", actor.user_id, user_id)
