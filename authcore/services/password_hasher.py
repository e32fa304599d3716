"""Password hashing with bcrypt."""

import bcrypt

from authcore.config import get_settings


class PasswordHasher:
    """One-way password hashing and verification.

    bcrypt is deliberately slow; callers on the event loop should run these
    methods in a worker thread.
    """

    def __init__(self, rounds: int | None = None):
        self.rounds = rounds or get_settings().bcrypt_rounds

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise (including a
            malformed stored hash)
        """
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"),
                password_hash.encode("utf-8"),
            )
        except ValueError:
            return False
