"""
Request guard pipeline.

Each guard stage is an async predicate over a shared ``GuardContext`` and
returns a ``GuardDecision``. Stages run in order and the first denial stops
the chain:

    identity -> membership -> permission

The FastAPI dependencies in ``users``, ``organizations`` and ``permissions``
build a context from the request and run the stages they need.
"""
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence, Type
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AppError, ForbiddenError, UnauthorizedError
from app.features.organizations.membership import get_organization_role, get_role
from app.features.permissions.engine import covers, is_allowed
from app.features.permissions.models import PermissionAction, PermissionSubject, Role
from app.features.users.auth import decode_access_token
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


@dataclass
class GuardContext:
    """Request state shared by the guard stages."""
    db: AsyncSession
    token: Optional[str] = None
    organization_id: Optional[int] = None
    required: Optional[tuple[PermissionAction, PermissionSubject]] = None
    user: Optional[User] = None
    role: Optional[Role] = None
    passed: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    reason: Optional[str] = None
    error: Type[AppError] = ForbiddenError

    @classmethod
    def allow(cls) -> "GuardDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str, error: Type[AppError] = ForbiddenError) -> "GuardDecision":
        return cls(allowed=False, reason=reason, error=error)


GuardStage = Callable[[GuardContext], Awaitable[GuardDecision]]


async def authenticate(ctx: GuardContext) -> GuardDecision:
    """Identity stage: the bearer token must resolve to an active user."""
    if not ctx.token:
        return GuardDecision.deny("Not authenticated", UnauthorizedError)

    try:
        user_id = decode_access_token(ctx.token)
    except UnauthorizedError as e:
        return GuardDecision.deny(e.detail, UnauthorizedError)

    user = await ctx.db.get(User, user_id)
    if user is None:
        return GuardDecision.deny("Invalid token", UnauthorizedError)
    if not user.is_active:
        return GuardDecision.deny("User account is deactivated")

    ctx.user = user
    return GuardDecision.allow()


async def check_membership(ctx: GuardContext) -> GuardDecision:
    """
    Membership stage: the user must hold a role in the path organization.

    Unknown organizations are reported exactly like foreign ones.
    """
    if ctx.user is None or ctx.organization_id is None:
        return GuardDecision.deny("You are not a member of this organization")

    role = await get_role(ctx.db, ctx.user.id, ctx.organization_id)
    if role is None:
        return GuardDecision.deny("You are not a member of this organization")

    ctx.role = role
    return GuardDecision.allow()


async def check_permission(ctx: GuardContext) -> GuardDecision:
    """Permission stage: the declared (action, subject) must be granted."""
    if ctx.required is None:
        return GuardDecision.allow()
    if ctx.user is None or ctx.organization_id is None:
        return GuardDecision.deny("Permission denied")

    action, subject = ctx.required
    if not await is_allowed(ctx.db, ctx.user.id, ctx.organization_id, action, subject):
        return GuardDecision.deny(f"Permission denied: {action.value} on {subject.value}")

    return GuardDecision.allow()


IDENTITY: Sequence[GuardStage] = (authenticate,)
MEMBERSHIP: Sequence[GuardStage] = (authenticate, check_membership)
PERMISSION: Sequence[GuardStage] = (authenticate, check_membership, check_permission)


async def run_guards(ctx: GuardContext, stages: Sequence[GuardStage]) -> GuardContext:
    """
    Run stages in order, raising the first denial's error.

    Raises:
        UnauthorizedError: identity stage failed
        ForbiddenError: membership or permission stage failed
    """
    for stage in stages:
        decision = await stage(ctx)
        if not decision.allowed:
            log.debug(
                "Guard %s denied user=%s org=%s: %s",
                stage.__name__,
                ctx.user.id if ctx.user else None,
                ctx.organization_id,
                decision.reason,
            )
            raise decision.error(decision.reason)
        ctx.passed.append(stage.__name__)
    return ctx


async def ensure_assignable(ctx: GuardContext, role_id: int) -> Role:
    """
    Return the organization role ``role_id`` if the caller may hand it out.

    A role can only be assigned by a member whose own role already grants
    every permission it carries.

    Raises:
        NotFoundError: role does not belong to the organization
        ForbiddenError: role carries a permission the caller's role lacks
    """
    role = await get_organization_role(ctx.db, ctx.organization_id, role_id)
    if ctx.role is None or not covers(ctx.role.permissions, role.permissions):
        log.debug(
            "User %s may not assign role %s in org %s",
            ctx.user.id if ctx.user else None,
            role.slug,
            ctx.organization_id,
        )
        raise ForbiddenError("You cannot assign a role with permissions you do not hold")
    return role
