"""
Membership resolver tests.
"""
import pytest

from app.core.errors import ConflictError, NotFoundError
from app.features.organizations import membership
from app.features.organizations.service import OWNER_ROLE_SLUG
from app.features.permissions.models import PermissionAction as A, PermissionSubject as S


@pytest.mark.asyncio
async def test_creator_is_owner_member(db, owner, organization):
    role = await membership.get_role(db, owner.id, organization.id)

    assert role.slug == OWNER_ROLE_SLUG
    assert [(p.action, p.subject) for p in role.permissions] == [(A.MANAGE, S.ALL)]
    assert organization.owner_id == owner.id


@pytest.mark.asyncio
async def test_non_member_has_no_role(db, make_user, organization):
    user = await make_user("nobody@example.com")
    assert await membership.get_role(db, user.id, organization.id) is None
    assert not await membership.is_member(db, user.id, organization.id)


@pytest.mark.asyncio
async def test_add_member(db, make_user, make_role, organization):
    user = await make_user("new@example.com")
    role = await make_role(organization.id, "viewer", [("read", "all")])

    added, added_role = await membership.add_member(db, organization.id, "new@example.com", role.id)

    assert added.id == user.id
    assert added_role.id == role.id
    assert (await membership.get_role(db, user.id, organization.id)).id == role.id


@pytest.mark.asyncio
async def test_add_member_twice_conflicts(db, organization, make_member):
    user, role = await make_member(organization.id, "twice@example.com", [])
    with pytest.raises(ConflictError):
        await membership.add_member(db, organization.id, user.email, role.id)


@pytest.mark.asyncio
async def test_add_unknown_email(db, organization, make_role):
    role = await make_role(organization.id, "viewer", [])
    with pytest.raises(NotFoundError):
        await membership.add_member(db, organization.id, "ghost@example.com", role.id)


@pytest.mark.asyncio
async def test_add_with_role_of_other_org(db, owner, make_user, make_org, make_role, organization):
    other = await make_org(owner, "other-org")
    foreign_role = await make_role(other.id, "viewer", [])
    await make_user("new@example.com")

    with pytest.raises(NotFoundError):
        await membership.add_member(db, organization.id, "new@example.com", foreign_role.id)


@pytest.mark.asyncio
async def test_change_member_role(db, organization, make_member, make_role):
    user, _ = await make_member(organization.id, "mover@example.com", [])
    editor = await make_role(organization.id, "editor", [("manage", "project")])

    _, role = await membership.change_member_role(db, organization.id, user.id, editor.id)

    assert role.id == editor.id
    assert (await membership.get_role(db, user.id, organization.id)).slug == "editor"


@pytest.mark.asyncio
async def test_change_role_of_non_member(db, make_user, make_role, organization):
    user = await make_user("outsider@example.com")
    role = await make_role(organization.id, "viewer", [])
    with pytest.raises(NotFoundError):
        await membership.change_member_role(db, organization.id, user.id, role.id)


@pytest.mark.asyncio
async def test_remove_member(db, organization, make_member):
    user, _ = await make_member(organization.id, "leaver@example.com", [])
    await membership.remove_member(db, organization.id, user.id)

    assert not await membership.is_member(db, user.id, organization.id)
    with pytest.raises(NotFoundError):
        await membership.remove_member(db, organization.id, user.id)


@pytest.mark.asyncio
async def test_list_members_and_memberships(db, owner, organization, make_org, make_member):
    user, role = await make_member(organization.id, "member@example.com", [])
    other = await make_org(owner, "other-org")

    members = await membership.list_members(db, organization.id)
    assert [(u.email, r.slug) for u, r in members] == [
        ("owner@example.com", OWNER_ROLE_SLUG),
        ("member@example.com", role.slug),
    ]

    memberships = await membership.list_memberships(db, owner.id)
    assert [org.id for org, _ in memberships] == [organization.id, other.id]
    assert await membership.list_memberships(db, user.id) != []
