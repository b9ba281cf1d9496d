"""Tenant scoping for queries and single-record loads.

List queries are narrowed with ``scope_*``. Single records go through
``load_*``, which tells "does not exist" (404) apart from "exists in another
tenant" (403). Mutating handlers call the loader with the write verb right
before applying the change, so the stored tenant is what gets checked.
"""

import logging

from sqlalchemy import Select, and_, false, or_, select
from sqlalchemy.orm import Session

from remise.auth.models import User
from remise.auth.session import Identity
from remise.authz.policy import Action, Resource, Verb, authorize, has_cross_tenant_override
from remise.cases.models import Case, CasePermission
from remise.categories.models import Category
from remise.core.errors import Forbidden, NotFound
from remise.evidence.models import Evidence
from remise.items.models import Item
from remise.notes.models import InvestigationNote

logger = logging.getLogger(__name__)


def _tenant_filter(stmt: Select, subject: Identity, resource: Resource, column) -> Select:
    if has_cross_tenant_override(subject, resource):
        return stmt
    if subject.tenant_id is None:
        return stmt.where(false())
    return stmt.where(column == subject.tenant_id)


def scope_items(stmt: Select, subject: Identity) -> Select:
    return _tenant_filter(stmt, subject, Resource.ITEM, Item.tenant_id)


def scope_evidence(stmt: Select, subject: Identity) -> Select:
    if has_cross_tenant_override(subject, Resource.EVIDENCE):
        return stmt
    stmt = stmt.join(Item, Evidence.item_id == Item.id)
    return _tenant_filter(stmt, subject, Resource.EVIDENCE, Item.tenant_id)


def scope_members(stmt: Select, subject: Identity) -> Select:
    return _tenant_filter(stmt, subject, Resource.MEMBER, User.tenant_id)


def scope_categories(stmt: Select, subject: Identity) -> Select:
    return _tenant_filter(stmt, subject, Resource.CATEGORY, Category.tenant_id)


def _check(
    subject: Identity,
    action: Action,
    resource_tenant_id: str | None,
    *,
    owned: bool,
    label: str,
) -> None:
    decision = authorize(subject, action, resource_tenant_id, owned=owned)
    if not decision:
        logger.warning(
            "Denied %s on %s for user=%s role=%s tenant=%s: %s",
            action,
            label,
            subject.user_id,
            subject.role,
            subject.tenant_id,
            decision.reason,
        )
        raise Forbidden(f"Not allowed to {action.verb.value} this {action.resource.value}")


def load_item(db: Session, subject: Identity, item_id: int, verb: Verb = Verb.READ) -> Item:
    item = db.get(Item, item_id)
    if item is None:
        raise NotFound("Item not found")
    _check(
        subject,
        Action(Resource.ITEM, verb),
        item.tenant_id,
        owned=item.owner_id == subject.user_id,
        label=f"item:{item_id}",
    )
    return item


def load_evidence(
    db: Session, subject: Identity, evidence_id: int, verb: Verb = Verb.READ
) -> tuple[Evidence, Item]:
    evidence = db.get(Evidence, evidence_id)
    if evidence is None:
        raise NotFound("Evidence not found")
    item = db.get(Item, evidence.item_id)
    if item is None:
        raise NotFound("Evidence not found")
    owned = subject.user_id in (item.owner_id, evidence.uploaded_by)
    _check(
        subject,
        Action(Resource.EVIDENCE, verb),
        item.tenant_id,
        owned=owned,
        label=f"evidence:{evidence_id}",
    )
    return evidence, item


def load_member(db: Session, subject: Identity, user_id: str, verb: Verb = Verb.READ) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    _check(
        subject,
        Action(Resource.MEMBER, verb),
        user.tenant_id,
        owned=user.id == subject.user_id,
        label=f"user:{user_id}",
    )
    return user


def load_category(db: Session, subject: Identity, category_id: int, verb: Verb = Verb.READ) -> Category:
    category = db.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found")
    _check(
        subject,
        Action(Resource.CATEGORY, verb),
        category.tenant_id,
        owned=category.created_by == subject.user_id,
        label=f"category:{category_id}",
    )
    return category


# roles that see confidential investigation notes written by others
CONFIDENTIAL_NOTE_READERS = frozenset({"law_enforcement", "super_admin"})


def scope_notes(stmt: Select, subject: Identity) -> Select:
    if subject.role not in CONFIDENTIAL_NOTE_READERS:
        stmt = stmt.where(
            or_(InvestigationNote.is_confidential.is_(False), InvestigationNote.created_by == subject.user_id)
        )
    if has_cross_tenant_override(subject, Resource.NOTE):
        return stmt
    stmt = stmt.join(Item, InvestigationNote.item_id == Item.id)
    return _tenant_filter(stmt, subject, Resource.NOTE, Item.tenant_id)


def load_note(
    db: Session, subject: Identity, note_id: int, verb: Verb = Verb.READ
) -> tuple[InvestigationNote, Item]:
    note = db.get(InvestigationNote, note_id)
    if note is None:
        raise NotFound("Note not found")
    item = db.get(Item, note.item_id)
    if item is None:
        raise NotFound("Note not found")
    _check(
        subject,
        Action(Resource.NOTE, verb),
        item.tenant_id,
        owned=note.created_by == subject.user_id,
        label=f"note:{note_id}",
    )
    if (
        note.is_confidential
        and note.created_by != subject.user_id
        and subject.role not in CONFIDENTIAL_NOTE_READERS
    ):
        raise Forbidden("Not allowed to read this note")
    return note, item


_GRANT_FLAGS = {
    Verb.READ: (CasePermission.can_view, CasePermission.can_edit, CasePermission.can_delete),
    Verb.WRITE: (CasePermission.can_edit,),
    Verb.DELETE: (CasePermission.can_delete,),
}


def scope_cases(stmt: Select, subject: Identity) -> Select:
    """Cases the subject reaches by policy, plus those granted to them for viewing."""
    if has_cross_tenant_override(subject, Resource.CASE):
        return stmt

    granted = select(CasePermission.case_id).where(
        CasePermission.user_id == subject.user_id,
        or_(*_GRANT_FLAGS[Verb.READ]),
    )
    reachable = Case.id.in_(granted)
    if subject.tenant_id is not None:
        if authorize(subject, Action(Resource.CASE, Verb.READ), subject.tenant_id):
            home = Case.tenant_id == subject.tenant_id
        else:
            home = and_(Case.tenant_id == subject.tenant_id, Case.created_by == subject.user_id)
        reachable = or_(home, reachable)
    return stmt.where(reachable)


def load_case(
    db: Session,
    subject: Identity,
    case_id: int,
    verb: Verb = Verb.READ,
    *,
    honor_grants: bool = True,
) -> Case:
    """Load a case, letting a per-case grant cover what tenant policy denies.

    Grants never widen CREATE, and are ignored (``honor_grants=False``) for
    managing the grants themselves.
    """
    case = db.get(Case, case_id)
    if case is None:
        raise NotFound("Case not found")

    action = Action(Resource.CASE, verb)
    decision = authorize(subject, action, case.tenant_id, owned=case.created_by == subject.user_id)
    if decision:
        return case

    if honor_grants and verb in _GRANT_FLAGS:
        grant = db.execute(
            select(CasePermission).where(
                CasePermission.case_id == case.id,
                CasePermission.user_id == subject.user_id,
                or_(*_GRANT_FLAGS[verb]),
            )
        ).first()
        if grant is not None:
            return case

    logger.warning(
        "Denied %s on case:%s for user=%s role=%s tenant=%s: %s",
        action,
        case_id,
        subject.user_id,
        subject.role,
        subject.tenant_id,
        decision.reason,
    )
    raise Forbidden(f"Not allowed to {verb.value} this case")
