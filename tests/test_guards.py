"""
Guard pipeline tests: stage order and the error each denial maps to.
"""
from datetime import timedelta

import pytest

from app.core.errors import ForbiddenError, UnauthorizedError
from app.features.permissions.guards import (
    IDENTITY,
    MEMBERSHIP,
    PERMISSION,
    GuardContext,
    authenticate,
    check_membership,
    run_guards,
)
from app.features.permissions.models import PermissionAction as A, PermissionSubject as S
from app.features.users.auth import create_access_token


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(db):
    with pytest.raises(UnauthorizedError):
        await run_guards(GuardContext(db=db), IDENTITY)


@pytest.mark.asyncio
async def test_garbage_token_is_unauthorized(db):
    with pytest.raises(UnauthorizedError):
        await run_guards(GuardContext(db=db, token="not-a-token"), IDENTITY)


@pytest.mark.asyncio
async def test_expired_token_is_unauthorized(db, owner):
    token = create_access_token(owner, expires_delta=timedelta(minutes=-1))
    with pytest.raises(UnauthorizedError) as exc:
        await run_guards(GuardContext(db=db, token=token), IDENTITY)
    assert exc.value.detail == "Token has expired"


@pytest.mark.asyncio
async def test_deactivated_user_is_forbidden(db, make_user):
    user = await make_user("inactive@example.com")
    user.is_active = False
    await db.commit()

    decision = await authenticate(GuardContext(db=db, token=create_access_token(user)))
    assert not decision.allowed
    assert decision.error is ForbiddenError


@pytest.mark.asyncio
async def test_identity_resolves_user(db, owner):
    ctx = await run_guards(GuardContext(db=db, token=create_access_token(owner)), IDENTITY)
    assert ctx.user.id == owner.id
    assert ctx.passed == ["authenticate"]


@pytest.mark.asyncio
async def test_non_member_is_forbidden(db, make_user, organization):
    user = await make_user("stranger@example.com")
    ctx = GuardContext(db=db, token=create_access_token(user), organization_id=organization.id)
    with pytest.raises(ForbiddenError):
        await run_guards(ctx, MEMBERSHIP)
    assert ctx.passed == ["authenticate"]


@pytest.mark.asyncio
async def test_unknown_organization_looks_like_foreign_one(db, owner):
    ctx = GuardContext(db=db, token=create_access_token(owner), organization_id=424242)
    with pytest.raises(ForbiddenError) as exc:
        await run_guards(ctx, MEMBERSHIP)
    assert exc.value.detail == "You are not a member of this organization"


@pytest.mark.asyncio
async def test_membership_without_user_denies(db, organization):
    decision = await check_membership(GuardContext(db=db, organization_id=organization.id))
    assert not decision.allowed


@pytest.mark.asyncio
async def test_missing_permission_is_forbidden(db, organization, make_member):
    user, _ = await make_member(organization.id, "viewer@example.com", [("read", "project")])
    ctx = GuardContext(
        db=db,
        token=create_access_token(user),
        organization_id=organization.id,
        required=(A.DELETE, S.PROJECT),
    )
    with pytest.raises(ForbiddenError) as exc:
        await run_guards(ctx, PERMISSION)
    assert "delete" in exc.value.detail
    assert ctx.passed == ["authenticate", "check_membership"]


@pytest.mark.asyncio
async def test_full_chain_passes(db, organization, make_member):
    user, role = await make_member(organization.id, "viewer@example.com", [("read", "project")])
    ctx = GuardContext(
        db=db,
        token=create_access_token(user),
        organization_id=organization.id,
        required=(A.READ, S.PROJECT),
    )
    ctx = await run_guards(ctx, PERMISSION)

    assert ctx.passed == ["authenticate", "check_membership", "check_permission"]
    assert ctx.role.id == role.id
