"""
Capability checks

can_perform() is a pure predicate over (actor, operation, entity). Services
call require() before every mutating core operation so that authorization
does not depend on how the request arrived.

Actors are user documents ({"email": ..., "role": ...}). Entities are contest
documents, except for payment.view where the entity is the email whose
payments are being read.
"""
from typing import Any, Callable, Dict, Optional

from app.core.exceptions import AuthorizationError
from app.models.auth.user import UserRole
from app.models.contest.contest import ContestStatus


def _role(actor: Optional[dict]) -> Optional[str]:
    if not actor:
        return None
    role = actor.get("role") or UserRole.USER.value
    return role.value if isinstance(role, UserRole) else role


def _is_admin(actor: Optional[dict]) -> bool:
    return _role(actor) == UserRole.ADMIN.value


def _is_creator(actor: Optional[dict]) -> bool:
    return _role(actor) == UserRole.CREATOR.value


def _owns_contest(actor: Optional[dict], contest: Any) -> bool:
    if not actor or not isinstance(contest, dict):
        return False
    return bool(actor.get("email")) and contest.get("creator_email") == actor.get("email")


def _admin_or_owning_creator(actor, contest) -> bool:
    return _is_admin(actor) or (_is_creator(actor) and _owns_contest(actor, contest))


def _can_delete_contest(actor, contest) -> bool:
    if _is_admin(actor):
        return True
    return (
        _is_creator(actor)
        and _owns_contest(actor, contest)
        and contest.get("status") == ContestStatus.PENDING.value
    )


def _can_view_payments(actor, email) -> bool:
    return _is_admin(actor) or (bool(actor) and actor.get("email") == email)


_RULES: Dict[str, Callable[[Optional[dict], Any], bool]] = {
    "contest.create": lambda actor, _: _is_admin(actor) or _is_creator(actor),
    "contest.transition": lambda actor, _: _is_admin(actor),
    "contest.edit": _admin_or_owning_creator,
    "contest.delete": _can_delete_contest,
    "submission.list": _admin_or_owning_creator,
    "winner.declare": _admin_or_owning_creator,
    "payment.view": _can_view_payments,
    "user.set_role": lambda actor, _: _is_admin(actor),
    "contest.audit": _admin_or_owning_creator,
    "reconcile.run": lambda actor, _: _is_admin(actor),
}


def can_perform(actor: Optional[dict], operation: str, entity: Any = None) -> bool:
    """Return True when actor may perform operation on entity"""
    rule = _RULES.get(operation)
    if rule is None:
        return False
    return rule(actor, entity)


def require(actor: Optional[dict], operation: str, entity: Any = None, message: Optional[str] = None):
    """Raise AuthorizationError unless can_perform() allows the operation"""
    if not can_perform(actor, operation, entity):
        raise AuthorizationError(message or "Forbidden access")
