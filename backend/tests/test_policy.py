import pytest

from remise.auth.permissions import ROLE_PERMISSIONS, permissions_for
from remise.auth.session import Identity
from remise.authz.policy import Action, Resource, Verb, authorize, require
from remise.core.errors import Forbidden


def _subject(role: str, tenant_id: str | None = "t1", access_level: str = "owner") -> Identity:
    return Identity(
        user_id=f"u_{role}",
        username=role,
        role=role,
        tenant_id=tenant_id,
        access_level=access_level,
        permissions=permissions_for(role),
    )


ALL_ACTIONS = [Action(resource, verb) for resource in Resource for verb in Verb]


@pytest.mark.parametrize("action", ALL_ACTIONS, ids=str)
def test_super_admin_is_allowed_everything_in_any_tenant(action):
    admin = _subject("super_admin", tenant_id="t_platform")

    assert authorize(admin, action, "t2").allowed
    assert authorize(admin, action, None).allowed


@pytest.mark.parametrize("resource", [Resource.ITEM, Resource.EVIDENCE, Resource.NOTE])
@pytest.mark.parametrize("verb", [Verb.READ, Verb.WRITE, Verb.DELETE])
def test_law_enforcement_crosses_tenants_for_item_records(resource, verb):
    officer = _subject("law_enforcement", tenant_id="t_police")

    assert authorize(officer, Action(resource, verb), "t2").allowed


@pytest.mark.parametrize("resource", [Resource.TENANT, Resource.USER, Resource.PLATFORM, Resource.AUDIT])
@pytest.mark.parametrize("verb", list(Verb))
def test_law_enforcement_cannot_manage_tenants_or_platform_users(resource, verb):
    officer = _subject("law_enforcement", tenant_id="t_police")

    decision = authorize(officer, Action(resource, verb), "t_police")

    assert not decision
    assert decision.reason == "super_admin only"


@pytest.mark.parametrize("role", sorted(set(ROLE_PERMISSIONS) - {"super_admin", "law_enforcement"}))
@pytest.mark.parametrize("resource", [Resource.ITEM, Resource.EVIDENCE, Resource.CATEGORY, Resource.MEMBER])
def test_tenant_roles_are_denied_in_other_tenants(role, resource):
    subject = _subject(role, tenant_id="t1")

    for verb in Verb:
        decision = authorize(subject, Action(resource, verb), "t2", owned=True)
        assert not decision
        assert decision.reason == "tenant mismatch"


def test_subject_without_tenant_is_denied():
    subject = _subject("property_owner", tenant_id=None)

    assert not authorize(subject, Action(Resource.ITEM, Verb.READ), "t1")


def test_property_owner_can_write_any_record_in_own_tenant():
    owner = _subject("property_owner", access_level="owner")

    assert authorize(owner, Action(Resource.ITEM, Verb.WRITE), "t1", owned=False)
    assert authorize(owner, Action(Resource.ITEM, Verb.DELETE), "t1", owned=False)


def test_stakeholder_may_only_modify_own_records():
    agent = _subject("insurance_agent", access_level="stakeholder")

    assert authorize(agent, Action(Resource.ITEM, Verb.READ), "t1")
    assert authorize(agent, Action(Resource.ITEM, Verb.CREATE), "t1")
    assert authorize(agent, Action(Resource.ITEM, Verb.WRITE), "t1", owned=True)

    decision = authorize(agent, Action(Resource.ITEM, Verb.WRITE), "t1", owned=False)
    assert not decision
    assert decision.reason == "may only modify own records"


def test_support_staff_cannot_upload_evidence():
    assistant = _subject("assistant", access_level="stakeholder")

    assert not authorize(assistant, Action(Resource.EVIDENCE, Verb.CREATE), "t1")
    assert authorize(_subject("broker", access_level="stakeholder"), Action(Resource.EVIDENCE, Verb.CREATE), "t1")


def test_only_tenant_owners_manage_members():
    owner = _subject("property_owner", access_level="owner")
    agent = _subject("insurance_agent", access_level="stakeholder")

    assert authorize(owner, Action(Resource.MEMBER, Verb.CREATE), "t1")
    assert not authorize(agent, Action(Resource.MEMBER, Verb.CREATE), "t1")
    assert authorize(agent, Action(Resource.MEMBER, Verb.READ), "t1")


def test_require_raises_forbidden_on_deny():
    agent = _subject("insurance_agent", access_level="stakeholder")

    with pytest.raises(Forbidden) as exc:
        require(agent, Action(Resource.TENANT, Verb.DELETE), "t1")

    assert exc.value.status_code == 403


def test_unknown_role_falls_back_to_least_privilege():
    assert permissions_for("no_such_role") == permissions_for("assistant")
    assert "upload:evidence" not in permissions_for(None)


def test_role_table_is_read_only():
    with pytest.raises(TypeError):
        ROLE_PERMISSIONS["property_owner"] = frozenset({"read:all"})  # type: ignore[index]


@pytest.mark.parametrize("verb", [Verb.READ, Verb.WRITE, Verb.DELETE])
def test_cases_stay_with_their_creator_inside_the_tenant(verb):
    agent = _subject("insurance_agent", access_level="stakeholder")
    owner = _subject("property_owner")

    assert authorize(agent, Action(Resource.CASE, verb), "t1", owned=True).allowed
    assert not authorize(agent, Action(Resource.CASE, verb), "t1", owned=False).allowed
    assert authorize(owner, Action(Resource.CASE, verb), "t1", owned=False).allowed


def test_law_enforcement_does_not_cross_tenants_for_cases():
    officer = _subject("law_enforcement", tenant_id="t_police")

    assert not authorize(officer, Action(Resource.CASE, Verb.READ), "t2").allowed
    assert authorize(officer, Action(Resource.CASE, Verb.CREATE), "t_police").allowed
