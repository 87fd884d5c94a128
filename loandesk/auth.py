"""Authenticated actor handed to the ledger by the upstream gateway."""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header

from loandesk.errors import ForbiddenError, UnauthenticatedError
from loandesk.models import ACTOR_ROLE_ENUM

LEDGER_ADMIN_ROLES = ("admin", "employee")


@dataclass(frozen=True)
class Actor:
    """Identity of the caller: an employee/admin id, or an advisor id."""

    id: int
    role: str

    def is_ledger_admin(self) -> bool:
        return self.role in LEDGER_ADMIN_ROLES

    def is_advisor(self) -> bool:
        return self.role == "advisor"


def get_current_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    """Dependency to resolve the caller from gateway-supplied headers."""
    if not x_actor_id or not x_actor_role:
        raise UnauthenticatedError("Authentication token missing")

    try:
        actor_id = int(x_actor_id)
    except (ValueError, TypeError):
        raise UnauthenticatedError("Invalid or expired token")

    role = x_actor_role.strip().lower()
    if role not in ACTOR_ROLE_ENUM:
        raise UnauthenticatedError("Invalid or expired token")

    return Actor(id=actor_id, role=role)


def get_ledger_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency to ensure the caller may administer payouts and invoices."""
    if not actor.is_ledger_admin():
        raise ForbiddenError("Access denied: Not in admin department")
    return actor


def get_advisor_actor(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency for the advisor self-service panel."""
    if not actor.is_advisor():
        raise ForbiddenError("Access denied: Advisor panel only")
    return actor
