from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Tuple

from pizza_service.models.user import Role, User

RoleSet = FrozenSet[Tuple[str, int]]


def role_set(grants: Iterable) -> RoleSet:
    """Accepts ``RoleGrant`` rows or ``(role, scope_id)`` pairs."""
    result = set()
    for grant in grants:
        if isinstance(grant, tuple):
            role, scope_id = grant
        else:
            role, scope_id = grant.role, grant.scope_id
        result.add((str(role), int(scope_id or 0)))
    return frozenset(result)


@dataclass(frozen=True)
class Identity:
    """An authenticated caller."""

    id: int
    name: str = ""
    email: str = ""
    roles: RoleSet = field(default_factory=frozenset)
    generation: int = 0
    token_id: str = ""

    @classmethod
    def from_user(cls, user: User, generation: int = 0, token_id: str = "") -> "Identity":
        return cls(
            id=int(user.id),
            name=user.name,
            email=user.email,
            roles=role_set(user.roles),
            generation=generation,
            token_id=token_id,
        )

    @property
    def is_admin(self) -> bool:
        return any(role == Role.ADMIN.value for role, _ in self.roles)

    def is_franchisee_of(self, franchise_id: int | None) -> bool:
        if franchise_id is None:
            return False
        return (Role.FRANCHISEE.value, int(franchise_id)) in self.roles
