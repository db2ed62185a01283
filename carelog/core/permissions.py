"""Role-based access control (RBAC) for family principals.

Roles are coarse: they gate which routes a user may call at all. Whether
the user may touch a particular care recipient is decided per request by
the predicates in ``carelog.core.rls``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends

from carelog.core.auth import get_current_user
from carelog.core.errors import ForbiddenError
from carelog.core.models import User, UserRole

logger = logging.getLogger(__name__)


def has_role(user: User, *roles: UserRole) -> bool:
    return user.role in roles


def require_role(*roles: UserRole) -> Any:
    """Create a FastAPI dependency admitting only the given roles.

    Usage:
        @router.post("/x", dependencies=[Depends(require_role(UserRole.FAMILY_ADMIN))])
    """

    async def _check(user: User = Depends(get_current_user)) -> User:
        if not has_role(user, *roles):
            logger.warning("User %s with role %s denied, requires one of %s", user.id, user.role, roles)
            raise ForbiddenError("Insufficient role: " + " or ".join(r.value for r in roles) + " required")
        return user

    return _check


require_family_admin = require_role(UserRole.FAMILY_ADMIN)

# Admins are family too: anything a member may read, the owner may read.
require_family_member = require_role(UserRole.FAMILY_ADMIN, UserRole.FAMILY_MEMBER)
