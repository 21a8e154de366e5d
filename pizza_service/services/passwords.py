from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes (bcrypt 5.x raises past it)
BCRYPT_MAX_BYTES = 72


def _normalize_password_for_bcrypt(password: str) -> bytes:
    pw = (password or "").encode("utf-8")
    if len(pw) <= BCRYPT_MAX_BYTES:
        return pw
    return pw[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """One-way bcrypt hashing for stored credentials.

    bcrypt is used directly rather than through passlib, whose backend detection
    breaks on bcrypt 5.x.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_normalize_password_for_bcrypt(password), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        if not password_hash:
            return False
        try:
            return bcrypt.checkpw(
                _normalize_password_for_bcrypt(password),
                password_hash.encode("utf-8"),
            )
        except ValueError:
            logger.warning("[AUTH] stored password hash is not a valid bcrypt hash")
            return False

    @staticmethod
    def looks_hashed(value: str) -> bool:
        return value.startswith(("$2a$", "$2b$", "$2y$"))
