"""Acting-user resolution for the HTTP boundary.

Token issuance and verification happen upstream (the gateway in front of
this service). Requests arrive with the authenticated user's id and role in
``X-User-Id`` / ``X-User-Role`` headers.
"""

from dataclasses import dataclass

from fastapi import Depends, Header

from orders.errors import AuthorizationError
from orders.order.order import Role


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role


def current_actor(
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=""),
) -> Actor:
    if not x_user_id or not x_user_role:
        raise AuthorizationError("Missing acting user")
    try:
        role = Role(x_user_role.upper())
    except ValueError:
        raise AuthorizationError(f"Unknown role: {x_user_role}") from None
    return Actor(user_id=x_user_id, role=role)


def require_role(*roles: Role):
    """Dependency that admits only actors holding one of ``roles``."""

    def dependency(actor: Actor = Depends(current_actor)) -> Actor:
        if actor.role not in roles:
            raise AuthorizationError(f"{actor.role.value} is not allowed to do this")
        return actor

    return dependency
