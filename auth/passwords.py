"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

Bcrypt is salted per call, so two digests of the same password never compare
equal -- the only way to check a password is verify() against its own digest.

Timing equalization [C1]: verify_dummy() runs one bcrypt check against a digest
computed at construction time. AuthService calls it when the username does not
exist so the response time does not reveal which case occurred.
"""

from __future__ import annotations

import bcrypt

# bcrypt only reads the first 72 bytes; newer releases reject anything longer.
MAX_PASSWORD_BYTES = 72

_DUMMY_PASSWORD = b"userservice_timing_dummy"


class PasswordHasher:
    """One-way hash + verify for passwords.

    Usage:
        hasher = PasswordHasher(rounds=12)
        digest = hasher.hash("secret1")
        hasher.verify("secret1", digest)   # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Computed once so the first failed login is not measurably slower
        # than later ones.
        self._dummy_hash = bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt(rounds=rounds))

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt digest of the plaintext password.

        Recent bcrypt releases raise ValueError for input over 72 bytes.
        AuthService.register() rejects such passwords before they get here.
        """
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext matches the digest.

        Malformed digests return False. So does any plaintext over 72 bytes:
        bcrypt 4.x truncates silently, which would let a wrong password that
        starts with the real one match. No stored password can be that long.
        """
        encoded = _encode(plain)
        if encoded is None or len(encoded) > MAX_PASSWORD_BYTES:
            self.verify_dummy(plain)
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError:
            return False

    def verify_dummy(self, plain: str) -> None:
        """Spend one bcrypt check's worth of time. The result is discarded.

        Accepts any string, including overlong or unencodable input.
        """
        encoded = _encode(plain)
        if encoded is None:
            encoded = _DUMMY_PASSWORD
        try:
            bcrypt.checkpw(encoded[:MAX_PASSWORD_BYTES], self._dummy_hash)
        except ValueError:
            pass


def _encode(plain: str) -> bytes | None:
    # Lone surrogates cannot be encoded; treat them as a non-matching password.
    try:
        return plain.encode("utf-8")
    except UnicodeEncodeError:
        return None
