"""
Request-scoped collaborators: the acting user and the notification dispatcher.

Authentication happens upstream; the gateway forwards the resolved identity
in ``X-Actor-Id`` / ``X-Actor-Role`` (and ``X-Citizen-Id`` for citizen
accounts), which handlers pass explicitly into every workflow operation.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from services.lifecycle import Actor, Role
from services.mailer import build_mailer
from services.notification_rules import build_policy
from services.notifications import Dispatcher


async def get_actor(
    x_actor_id: str = Header(..., alias="X-Actor-Id"),
    x_actor_role: str = Header(..., alias="X-Actor-Role"),
    x_citizen_id: Optional[str] = Header(None, alias="X-Citizen-Id"),
) -> Actor:
    try:
        role = Role(x_actor_role.lower())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown role: {x_actor_role}") from None
    return Actor(id=x_actor_id, role=role, citizen_id=x_citizen_id)


@lru_cache
def get_dispatcher() -> Dispatcher:
    return Dispatcher(build_policy(), build_mailer())
