"""
Access policy for booking operations.

Every coordinator entry point asks `can_act(actor, action, entity)` instead
of comparing role strings inline. A rule is a set of roles allowed outright
plus, optionally, the entity field that must equal the caller's id.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Tuple

from mockbook.schemas.common import AuthContext, Role
from mockbook.utils.exceptions import UnauthorizedError


@dataclass(frozen=True)
class Rule:
    # Roles that may act on any entity
    any_of: FrozenSet[Role] = frozenset()
    # (role, entity field) pairs: role may act when entity[field] == actor.user_id
    owner_of: Tuple[Tuple[Role, str], ...] = ()


ADMIN = frozenset({Role.ADMIN})

RULES: Dict[str, Rule] = {
    "slot:create": Rule(any_of=frozenset({Role.INTERVIEWER, Role.ADMIN})),
    "slot:import": Rule(any_of=ADMIN),
    "slot:delete": Rule(any_of=ADMIN, owner_of=((Role.INTERVIEWER, "interviewer_id"),)),
    "price:set": Rule(any_of=ADMIN),
    "payment_details:set": Rule(any_of=frozenset({Role.INTERVIEWER, Role.ADMIN})),
    "payment:prebook": Rule(any_of=frozenset({Role.CANDIDATE})),
    "payment:request": Rule(owner_of=((Role.CANDIDATE, "candidate_id"),)),
    "payment:submit": Rule(owner_of=((Role.CANDIDATE, "paid_by"),)),
    "payment:verify": Rule(any_of=ADMIN, owner_of=((Role.INTERVIEWER, "interviewer_id"),)),
    "payment:refund": Rule(any_of=ADMIN),
    "payment:read": Rule(
        any_of=ADMIN,
        owner_of=((Role.CANDIDATE, "candidate_id"), (Role.INTERVIEWER, "interviewer_id")),
    ),
    "interview:book": Rule(any_of=frozenset({Role.CANDIDATE})),
    "interview:read": Rule(
        any_of=ADMIN,
        owner_of=((Role.CANDIDATE, "candidate_id"), (Role.INTERVIEWER, "interviewer_id")),
    ),
    "interview:cancel": Rule(
        any_of=ADMIN,
        owner_of=((Role.CANDIDATE, "candidate_id"), (Role.INTERVIEWER, "interviewer_id")),
    ),
    "interview:update_status": Rule(any_of=ADMIN, owner_of=((Role.INTERVIEWER, "interviewer_id"),)),
    "interview:feedback": Rule(owner_of=((Role.INTERVIEWER, "interviewer_id"),)),
    "interview:recording": Rule(any_of=ADMIN, owner_of=((Role.INTERVIEWER, "interviewer_id"),)),
    "interview:rate": Rule(owner_of=((Role.CANDIDATE, "candidate_id"),)),
    "rating:list_all": Rule(any_of=ADMIN),
}


def can_act(actor: AuthContext, action: str, entity: Optional[Dict[str, Any]] = None) -> bool:
    rule = RULES.get(action)
    if rule is None:
        return False
    if actor.role in rule.any_of:
        return True
    if entity is None:
        return False
    return any(
        actor.role == role and entity.get(field) == actor.user_id
        for role, field in rule.owner_of
    )


def require(actor: AuthContext, action: str, entity: Optional[Dict[str, Any]] = None, message: str = "Not authorized") -> None:
    if not can_act(actor, action, entity):
        raise UnauthorizedError(message, "Policy")
