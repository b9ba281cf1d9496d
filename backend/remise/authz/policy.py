"""Role and tenant policy evaluation.

``authorize`` is the single place that decides whether a subject may perform
an action on a resource living in a given tenant. Rules are evaluated in a
fixed order:

1. ``super_admin`` may do anything, in any tenant.
2. Platform management (tenants, platform users, platform stats, audit trail)
   is reserved to ``super_admin``.
3. ``law_enforcement`` may read and write items, evidence and investigation
   notes in any tenant.
4. Everyone else must be in the resource's tenant and hold a matching
   permission token for their role.
5. Anything else is denied.

Overrides are checked before tenant equality, otherwise cross-tenant roles
would end up scoped to their home tenant.
"""

from dataclasses import dataclass
from enum import Enum

from remise.auth.permissions import AccessLevel, Role
from remise.auth.session import Identity
from remise.core.errors import Forbidden


class Resource(str, Enum):
    ITEM = "item"
    EVIDENCE = "evidence"
    CATEGORY = "category"
    MEMBER = "member"        # a user, managed from inside its own tenant
    TENANT = "tenant"
    USER = "user"            # a user, managed platform-wide
    PLATFORM = "platform"
    AUDIT = "audit"
    CASE = "case"
    NOTE = "note"            # investigation note on an item


class Verb(str, Enum):
    READ = "read"
    CREATE = "create"
    WRITE = "write"
    DELETE = "delete"


@dataclass(frozen=True)
class Action:
    resource: Resource
    verb: Verb

    def __str__(self) -> str:
        return f"{self.resource.value}:{self.verb.value}"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


SUPER_ADMIN_ONLY = frozenset({Resource.TENANT, Resource.USER, Resource.PLATFORM, Resource.AUDIT})

CROSS_TENANT_OVERRIDES: dict[str, frozenset[Resource]] = {
    Role.SUPER_ADMIN.value: frozenset(Resource),
    Role.LAW_ENFORCEMENT.value: frozenset({Resource.ITEM, Resource.EVIDENCE, Resource.NOTE}),
}


def has_cross_tenant_override(subject: Identity, resource: Resource) -> bool:
    return resource in CROSS_TENANT_OVERRIDES.get(subject.role, frozenset())


def _allow(reason: str) -> Decision:
    return Decision(True, reason)


def _deny(reason: str) -> Decision:
    return Decision(False, reason)


def _tenant_permission(subject: Identity, action: Action, *, owned: bool) -> Decision:
    perms = subject.permissions
    is_tenant_owner = subject.access_level == AccessLevel.OWNER.value
    can_read = bool(perms & {"read:own", "read:all"})
    can_write_any = "write:all" in perms or ("write:own" in perms and is_tenant_owner)
    can_write_own = "write:own" in perms or "write:all" in perms

    resource, verb = action.resource, action.verb

    # cases stay with their creator unless someone holds tenant-wide write;
    # per-case grants are layered on top by the case loader
    if resource is Resource.CASE and verb is not Verb.CREATE:
        if can_write_any:
            return _allow("tenant-wide case access")
        if owned:
            return _allow("case creator")
        return _deny("case not shared")

    if verb is Verb.READ:
        return _allow("tenant read") if can_read else _deny("missing read permission")

    if resource is Resource.MEMBER:
        if is_tenant_owner:
            return _allow("tenant owner manages members")
        return _deny("only tenant owners manage members")

    if resource is Resource.EVIDENCE and verb is Verb.CREATE:
        if "upload:evidence" in perms or "write:all" in perms:
            return _allow("evidence upload")
        return _deny("missing upload:evidence")

    if verb is Verb.CREATE:
        return _allow("tenant create") if can_write_own else _deny("missing write permission")

    # WRITE and DELETE on existing records
    if can_write_any:
        return _allow("tenant-wide write")
    if owned and can_write_own:
        return _allow("owner write")
    return _deny("may only modify own records")


def authorize(
    subject: Identity,
    action: Action,
    resource_tenant_id: str | None,
    *,
    owned: bool = False,
) -> Decision:
    if subject.role == Role.SUPER_ADMIN.value:
        return _allow("super_admin override")

    if action.resource in SUPER_ADMIN_ONLY:
        return _deny("super_admin only")

    if has_cross_tenant_override(subject, action.resource):
        return _allow(f"{subject.role} cross-tenant access")

    if subject.tenant_id is None or resource_tenant_id is None:
        return _deny("no tenant")
    if subject.tenant_id != resource_tenant_id:
        return _deny("tenant mismatch")

    return _tenant_permission(subject, action, owned=owned)


def require(
    subject: Identity,
    action: Action,
    resource_tenant_id: str | None,
    *,
    owned: bool = False,
) -> Decision:
    decision = authorize(subject, action, resource_tenant_id, owned=owned)
    if not decision:
        raise Forbidden(f"Not allowed to {action.verb.value} this {action.resource.value}")
    return decision
