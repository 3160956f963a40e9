"""
Permission management feature module.

Fixed (action, subject) permission catalog, organization-scoped roles built
from it, the decision engine and the guard pipeline used by protected routes.
"""
