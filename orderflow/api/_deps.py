"""
Request dependencies.

Identity comes from headers set by whatever authenticates upstream:

    X-User-Id     required on private routes
    X-User-Role   "admin" unlocks privileged routes
    X-User-Email  optional, recorded on payment confirmation
"""

from typing import Annotated

from fastapi import Depends, Header, Request

from orderflow.errors import OrderErrors, OrderFailure
from orderflow.orders import Actor
from orderflow.wiring import Services

ADMIN_ROLE = "admin"


def get_services(request: Request) -> Services:
    return request.app.state.services


def current_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
    x_user_email: Annotated[str | None, Header()] = None,
) -> Actor:
    if not x_user_id:
        raise OrderFailure(OrderErrors.unauthorized())
    return Actor(user_id=x_user_id, is_admin=x_user_role == ADMIN_ROLE, email=x_user_email)


def admin_actor(actor: Annotated[Actor, Depends(current_actor)]) -> Actor:
    if not actor.is_admin:
        raise OrderFailure(OrderErrors.forbidden("Admin access required"))
    return actor


ServicesDep = Annotated[Services, Depends(get_services)]
ActorDep = Annotated[Actor, Depends(current_actor)]
AdminDep = Annotated[Actor, Depends(admin_actor)]


__all__ = ("ServicesDep", "ActorDep", "AdminDep", "get_services", "current_actor", "admin_actor")
