"""Per-user revocation generations.

A token is only valid while the generation embedded at issuance equals the
user's current generation. Logout and deletion bump the counter, which
invalidates every outstanding token of that user at once; the registry only
ever holds one integer per user.

Both registries take the request's SQLAlchemy session so a bump lands in the
same transaction as the change that triggered it. The caller commits.
"""
from __future__ import annotations

from threading import Lock
from typing import Dict

from sqlalchemy.orm import Session

from pizza_service.models.session_generation import SessionGeneration


class RevocationRegistry:
    def current(self, db: Session, user_id: int) -> int:
        raise NotImplementedError

    def ensure(self, db: Session, user_id: int) -> int:
        """Make sure a counter exists for ``user_id`` and return it."""
        raise NotImplementedError

    def bump(self, db: Session, user_id: int) -> int:
        """Unconditionally advance the generation; returns the new value."""
        raise NotImplementedError

    def revoke(self, db: Session, user_id: int, generation: int) -> bool:
        """Advance the generation only if it still equals ``generation``.

        Returns ``False`` when the generation had already moved on, which
        keeps repeated logouts of the same token idempotent.
        """
        raise NotImplementedError


class DatabaseRevocationRegistry(RevocationRegistry):
    """Generations stored in ``session_generations``.

    Bumps are single ``UPDATE ... SET generation = generation + 1``
    statements, so concurrent bumps never lose an increment.
    """

    def _read(self, db: Session, user_id: int) -> int | None:
        # column query: bypasses the identity map, always reads the row
        value = (
            db.query(SessionGeneration.generation)
            .filter(SessionGeneration.user_id == int(user_id))
            .scalar()
        )
        return int(value) if value is not None else None

    def current(self, db: Session, user_id: int) -> int:
        value = self._read(db, user_id)
        return value if value is not None else 0

    def ensure(self, db: Session, user_id: int) -> int:
        value = self._read(db, user_id)
        if value is not None:
            return value
        db.add(SessionGeneration(user_id=int(user_id), generation=0))
        db.flush()
        return 0

    def bump(self, db: Session, user_id: int) -> int:
        updated = (
            db.query(SessionGeneration)
            .filter(SessionGeneration.user_id == int(user_id))
            .update(
                {SessionGeneration.generation: SessionGeneration.generation + 1},
                synchronize_session=False,
            )
        )
        if not updated:
            db.add(SessionGeneration(user_id=int(user_id), generation=1))
            db.flush()
        return self.current(db, user_id)

    def revoke(self, db: Session, user_id: int, generation: int) -> bool:
        if int(generation) == 0 and self._read(db, user_id) is None:
            db.add(SessionGeneration(user_id=int(user_id), generation=1))
            db.flush()
            return True
        updated = (
            db.query(SessionGeneration)
            .filter(
                SessionGeneration.user_id == int(user_id),
                SessionGeneration.generation == int(generation),
            )
            .update(
                {SessionGeneration.generation: SessionGeneration.generation + 1},
                synchronize_session=False,
            )
        )
        return bool(updated)


class InMemoryRevocationRegistry(RevocationRegistry):
    """Process-local registry, for tests and single-process deployments."""

    def __init__(self) -> None:
        self._generations: Dict[int, int] = {}
        self._lock = Lock()

    def current(self, db: Session, user_id: int) -> int:
        with self._lock:
            return self._generations.get(int(user_id), 0)

    def ensure(self, db: Session, user_id: int) -> int:
        with self._lock:
            return self._generations.setdefault(int(user_id), 0)

    def bump(self, db: Session, user_id: int) -> int:
        with self._lock:
            value = self._generations.get(int(user_id), 0) + 1
            self._generations[int(user_id)] = value
            return value

    def revoke(self, db: Session, user_id: int, generation: int) -> bool:
        with self._lock:
            if self._generations.get(int(user_id), 0) != int(generation):
                return False
            self._generations[int(user_id)] = int(generation) + 1
            return True
