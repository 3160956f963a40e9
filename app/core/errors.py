"""
Application error taxonomy.

Services and guards raise these; ``app.main`` turns them into JSON responses
with the matching status code. Nothing else about the failure leaves the process.
"""


class AppError(Exception):
    """Base class for errors that map to a client-visible status."""
    status_code: int = 500
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(AppError):
    """Referenced entity does not exist."""
    status_code = 404
    default_detail = "Not found"


class ConflictError(AppError):
    """Uniqueness violation, e.g. a duplicate role slug."""
    status_code = 409
    default_detail = "Conflict"


class UnauthorizedError(AppError):
    """Missing, invalid or expired credential."""
    status_code = 401
    default_detail = "Not authenticated"


class ForbiddenError(AppError):
    """Authenticated but not a member, or not permitted."""
    status_code = 403
    default_detail = "Forbidden"
