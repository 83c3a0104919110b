"""
Service-level errors.

Services raise these; routers translate them into HTTP responses.
"""


class NotFoundError(ValueError):
    """Referenced user, company, branch, employee, task or message does not exist."""


class AuthFailure(Exception):
    """Login denied: unknown user, wrong password or an inactive link in the chain."""


class PersistenceError(RuntimeError):
    """The database rejected or failed a read/write."""
