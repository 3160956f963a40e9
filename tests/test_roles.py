"""
Role store tests: atomic create/update/delete and per-organization slugs.
"""
import pytest
from sqlalchemy import delete, func, select

from app.core.errors import ConflictError, NotFoundError
from app.features.organizations import membership
from app.features.permissions import service
from app.features.permissions.models import (
    Permission,
    PermissionAction as A,
    PermissionSubject as S,
    Role,
    role_permissions,
)
from app.features.permissions.schemas import PermissionConfig, RoleCreate, RoleSearchParams, RoleUpdate


def configs(*pairs):
    return [PermissionConfig(action=a, subject=s) for a, s in pairs]


async def count_roles(db, organization_id):
    stmt = select(func.count()).select_from(Role).where(Role.organization_id == organization_id)
    return (await db.execute(stmt)).scalar()


class TestCreateRole:

    @pytest.mark.asyncio
    async def test_creates_role_with_permissions(self, db, organization):
        role = await service.create_role(
            db,
            organization.id,
            RoleCreate(name="Accountant", slug="accountant", permission_configs=configs(("manage", "invoice"), ("read", "budget"))),
        )

        assert role.id is not None
        assert role.organization_id == organization.id
        assert {(p.action, p.subject) for p in role.permissions} == {(A.MANAGE, S.INVOICE), (A.READ, S.BUDGET)}

    @pytest.mark.asyncio
    async def test_duplicate_configs_are_stored_once(self, db, organization):
        role = await service.create_role(
            db,
            organization.id,
            RoleCreate(name="Reader", slug="reader", permission_configs=configs(("read", "project"), ("read", "project"))),
        )
        assert len(role.permissions) == 1

    @pytest.mark.asyncio
    async def test_role_without_permissions(self, db, organization):
        role = await service.create_role(db, organization.id, RoleCreate(name="Guest", slug="guest"))
        assert role.permissions == []

    @pytest.mark.asyncio
    async def test_duplicate_slug_in_same_org_conflicts(self, db, organization):
        await service.create_role(db, organization.id, RoleCreate(name="Editor", slug="editor"))
        with pytest.raises(ConflictError):
            await service.create_role(db, organization.id, RoleCreate(name="Another editor", slug="editor"))
        # owner + editor
        assert await count_roles(db, organization.id) == 2

    @pytest.mark.asyncio
    async def test_same_slug_allowed_in_other_org(self, db, owner, organization, make_org):
        other = await make_org(owner, "other-org")
        await service.create_role(db, organization.id, RoleCreate(name="Editor", slug="editor"))
        role = await service.create_role(db, other.id, RoleCreate(name="Editor", slug="editor"))
        assert role.organization_id == other.id

    @pytest.mark.asyncio
    async def test_unknown_permission_leaves_nothing_behind(self, db, organization):
        await db.execute(delete(Permission).where(Permission.action == A.DELETE, Permission.subject == S.BUDGET))
        await db.commit()

        with pytest.raises(NotFoundError):
            await service.create_role(
                db,
                organization.id,
                RoleCreate(name="Broken", slug="broken", permission_configs=configs(("read", "budget"), ("delete", "budget"))),
            )

        result = await db.execute(select(Role).where(Role.slug == "broken"))
        assert result.scalar_one_or_none() is None


class TestUpdateRole:

    @pytest.mark.asyncio
    async def test_permission_list_replaces_whole_set(self, db, organization, make_role):
        role = await make_role(organization.id, "editor", [("read", "project"), ("update", "project")])

        updated = await service.update_role(
            db, organization.id, role.id, RoleUpdate(permission_configs=configs(("read", "invoice")))
        )

        assert [(p.action, p.subject) for p in updated.permissions] == [(A.READ, S.INVOICE)]
        links = await db.execute(select(role_permissions).where(role_permissions.c.role_id == role.id))
        assert len(links.all()) == 1

    @pytest.mark.asyncio
    async def test_empty_list_clears_permissions(self, db, organization, make_role):
        role = await make_role(organization.id, "editor", [("read", "project")])
        updated = await service.update_role(db, organization.id, role.id, RoleUpdate(permission_configs=[]))
        assert updated.permissions == []

    @pytest.mark.asyncio
    async def test_omitted_permissions_are_kept(self, db, organization, make_role):
        role = await make_role(organization.id, "editor", [("read", "project")])
        updated = await service.update_role(db, organization.id, role.id, RoleUpdate(name="Project editor"))

        assert updated.name == "Project editor"
        assert updated.slug == "editor"
        assert len(updated.permissions) == 1

    @pytest.mark.asyncio
    async def test_slug_conflict(self, db, organization, make_role):
        await make_role(organization.id, "editor", [])
        role = await make_role(organization.id, "viewer", [])
        with pytest.raises(ConflictError):
            await service.update_role(db, organization.id, role.id, RoleUpdate(slug="editor"))

    @pytest.mark.asyncio
    async def test_unknown_permission_keeps_previous_state(self, db, organization, make_role):
        role = await make_role(organization.id, "editor", [("read", "project")])
        await db.execute(delete(Permission).where(Permission.action == A.READ, Permission.subject == S.CATEGORY))
        await db.commit()

        with pytest.raises(NotFoundError):
            await service.update_role(
                db,
                organization.id,
                role.id,
                RoleUpdate(name="Renamed", permission_configs=configs(("read", "category"))),
            )

        current = await service.get_role(db, organization.id, role.id)
        assert current.name == "Editor"
        assert [(p.action, p.subject) for p in current.permissions] == [(A.READ, S.PROJECT)]

    @pytest.mark.asyncio
    async def test_role_of_other_org_is_not_found(self, db, owner, organization, make_org, make_role):
        other = await make_org(owner, "other-org")
        role = await make_role(other.id, "editor", [])
        with pytest.raises(NotFoundError):
            await service.update_role(db, organization.id, role.id, RoleUpdate(name="Hijacked"))

    @pytest.mark.asyncio
    async def test_organization_cannot_change(self, db, owner, organization, make_org, make_role):
        other = await make_org(owner, "other-org")
        role = await make_role(organization.id, "editor", [])
        with pytest.raises(ValueError):
            role.organization_id = other.id


class TestDeleteRole:

    @pytest.mark.asyncio
    async def test_delete_removes_links_and_memberships(self, db, organization, make_member):
        user, role = await make_member(organization.id, "editor@example.com", [("manage", "project")])

        await service.delete_role(db, organization.id, role.id)

        with pytest.raises(NotFoundError):
            await service.get_role(db, organization.id, role.id)
        links = await db.execute(select(role_permissions).where(role_permissions.c.role_id == role.id))
        assert links.all() == []
        assert not await membership.is_member(db, user.id, organization.id)

    @pytest.mark.asyncio
    async def test_delete_missing_role(self, db, organization):
        with pytest.raises(NotFoundError):
            await service.delete_role(db, organization.id, 12345)


class TestListRoles:

    @pytest.mark.asyncio
    async def test_lists_only_own_roles(self, db, owner, organization, make_org, make_role):
        other = await make_org(owner, "other-org")
        await make_role(organization.id, "editor", [("read", "project")])
        await make_role(other.id, "auditor", [])

        listing = await service.list_roles(db, organization.id, RoleSearchParams())

        assert listing.metadata.total == 2
        assert [r.slug for r in listing.roles] == ["owner", "editor"]
        assert listing.roles[1].permissions[0].subject == S.PROJECT

    @pytest.mark.asyncio
    async def test_filters_and_pagination(self, db, organization, make_role):
        await make_role(organization.id, "invoice-clerk", [])
        await make_role(organization.id, "invoice-admin", [])
        await make_role(organization.id, "viewer", [])

        by_name = await service.list_roles(db, organization.id, RoleSearchParams(name="INVOICE"))
        assert by_name.metadata.total == 2

        by_slug = await service.list_roles(db, organization.id, RoleSearchParams(slug="viewer"))
        assert [r.slug for r in by_slug.roles] == ["viewer"]

        page = await service.list_roles(db, organization.id, RoleSearchParams(skip=1, limit=2))
        assert page.metadata.total == 4
        assert [r.slug for r in page.roles] == ["invoice-clerk", "invoice-admin"]

    @pytest.mark.asyncio
    async def test_name_filter_matches_wildcard_characters_literally(self, db, organization, make_role):
        await make_role(organization.id, "viewer", [])
        await service.create_role(db, organization.id, RoleCreate(name="Billing_admin", slug="billing-admin"))
        await service.create_role(db, organization.id, RoleCreate(name="100% access", slug="full-access"))

        underscore = await service.list_roles(db, organization.id, RoleSearchParams(name="_"))
        assert [r.slug for r in underscore.roles] == ["billing-admin"]
        assert underscore.metadata.total == 1

        percent = await service.list_roles(db, organization.id, RoleSearchParams(name="%"))
        assert [r.slug for r in percent.roles] == ["full-access"]
