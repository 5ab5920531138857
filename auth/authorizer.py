"""
auth/authorizer.py -- Role gate for authenticated identities.

Role comparison is exact match. There is no hierarchy: a superadmin calling
an admin-only operation is refused just like any other mismatched role.
"""

from __future__ import annotations

from auth.models import Identity, Role
from core.errors import Forbidden, Unauthenticated


def authorize(identity: Identity | None, role: Role) -> Identity:
    """Return identity if it holds exactly `role`.

    Raises Unauthenticated if no identity is attached, Forbidden on a role mismatch.
    """
    if identity is None:
        raise Unauthenticated()
    if identity.role != role:
        raise Forbidden()
    return identity
