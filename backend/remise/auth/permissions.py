from enum import Enum
from types import MappingProxyType


class Role(str, Enum):
    PROPERTY_OWNER = "property_owner"
    LAW_ENFORCEMENT = "law_enforcement"
    SUPER_ADMIN = "super_admin"
    INSURANCE_AGENT = "insurance_agent"
    BROKER = "broker"
    BANKER = "banker"
    ASSET_MANAGER = "asset_manager"
    ASSISTANT = "assistant"
    SECRETARY = "secretary"
    MANAGER = "manager"
    EXECUTIVE_ASSISTANT = "executive_assistant"


class AccessLevel(str, Enum):
    OWNER = "owner"
    STAKEHOLDER = "stakeholder"


ROLES = frozenset(r.value for r in Role)

_STAKEHOLDER = frozenset({"read:own", "write:own", "upload:evidence"})
_SUPPORT_STAFF = frozenset({"read:own", "write:own"})

# Immutable for the life of the process.
ROLE_PERMISSIONS: MappingProxyType[str, frozenset[str]] = MappingProxyType(
    {
        Role.PROPERTY_OWNER.value: frozenset(
            {"read:own", "write:own", "upload:evidence", "generate:reports"}
        ),
        Role.LAW_ENFORCEMENT.value: frozenset(
            {"read:all", "write:all", "admin:users", "admin:system"}
        ),
        Role.SUPER_ADMIN.value: frozenset(
            {"read:all", "write:all", "admin:users", "admin:system", "admin:tenants", "super:admin"}
        ),
        Role.INSURANCE_AGENT.value: _STAKEHOLDER,
        Role.BROKER.value: _STAKEHOLDER,
        Role.BANKER.value: _STAKEHOLDER,
        Role.ASSET_MANAGER.value: _STAKEHOLDER,
        Role.ASSISTANT.value: _SUPPORT_STAFF,
        Role.SECRETARY.value: _SUPPORT_STAFF,
        Role.MANAGER.value: _SUPPORT_STAFF,
        Role.EXECUTIVE_ASSISTANT.value: _SUPPORT_STAFF,
    }
)


def permissions_for(role: str | None) -> frozenset[str]:
    return ROLE_PERMISSIONS.get((role or "").lower(), _SUPPORT_STAFF)


def is_valid_role(role: str | None) -> bool:
    return (role or "").lower() in ROLES
