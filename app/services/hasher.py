"""Password hashing with bcrypt."""

import bcrypt

from app.config import get_settings

# bcrypt ignores (or rejects, in recent releases) input beyond this many bytes
MAX_PASSWORD_BYTES = 72


class BcryptHasher:
    """Salted adaptive hashing. ``rounds`` is the log2 work factor."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        return bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Constant-time check of ``plaintext`` against a stored hash."""
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Malformed stored hash or over-long input
            return False


_hasher: BcryptHasher | None = None


def get_hasher() -> BcryptHasher:
    """Get singleton hasher instance."""
    global _hasher
    if _hasher is None:
        _hasher = BcryptHasher(rounds=get_settings().BCRYPT_ROUNDS)
    return _hasher
