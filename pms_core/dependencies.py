"""
Request Dependencies
====================

Identity is resolved upstream; the identity provider forwards the caller's
user id in the ``X-User-Id`` header. A missing header means an anonymous
caller, which services reject with Unauthenticated where identity is
required.
"""

from typing import Optional
from uuid import UUID

from fastapi import Header

from .errors import Unauthenticated


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> Optional[UUID]:
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        raise Unauthenticated("Invalid user identity")
