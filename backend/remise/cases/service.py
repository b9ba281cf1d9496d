import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from remise.auth.models import User
from remise.auth.session import Identity
from remise.cases.models import Case, CasePermission, CaseSuspect, CaseTimelineEvent, CaseUpdate
from remise.core.errors import NotFound

logger = logging.getLogger(__name__)

CASE_ENTRY_MODELS = (CaseTimelineEvent, CaseSuspect, CaseUpdate)


def grant_case_permission(
    db: Session,
    granter: Identity,
    case: Case,
    user_id: str,
    flags: dict[str, Any],
) -> CasePermission:
    """Create or update the grant for ``user_id``; unset flags keep their value.

    A new grant defaults to view-only.
    """
    if db.get(User, user_id) is None:
        raise NotFound("User not found")

    grant = db.execute(
        select(CasePermission).where(CasePermission.case_id == case.id, CasePermission.user_id == user_id)
    ).scalar_one_or_none()
    if grant is None:
        grant = CasePermission(
            case_id=case.id,
            user_id=user_id,
            can_view=True,
            can_edit=False,
            can_delete=False,
            granted_by=granter.user_id,
            granted_by_name=granter.display_name,
        )
    for key in ("can_view", "can_edit", "can_delete"):
        if flags.get(key) is not None:
            setattr(grant, key, flags[key])

    db.add(grant)
    db.commit()
    db.refresh(grant)
    logger.info(
        "Case=%s grant for user=%s view=%s edit=%s delete=%s by %s",
        case.id,
        user_id,
        grant.can_view,
        grant.can_edit,
        grant.can_delete,
        granter.user_id,
    )
    return grant


def revoke_case_permission(db: Session, case: Case, user_id: str) -> None:
    grant = db.execute(
        select(CasePermission).where(CasePermission.case_id == case.id, CasePermission.user_id == user_id)
    ).scalar_one_or_none()
    if grant is None:
        raise NotFound("Permission not found")
    db.delete(grant)
    db.commit()


def purge_case(db: Session, case: Case) -> None:
    """Delete a case with its timeline, suspects, updates and grants. Does not commit."""
    for model in CASE_ENTRY_MODELS:
        db.execute(delete(model).where(model.case_id == case.id))
    db.execute(delete(CasePermission).where(CasePermission.case_id == case.id))
    db.delete(case)
    db.flush()
