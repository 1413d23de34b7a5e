"""Verification tokens and reset codes."""

import secrets
import string

RESET_CODE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
RESET_CODE_LENGTH = 6


class TokenGenerator:
    """Mints one-time secrets from the OS CSPRNG.

    The two formats are not interchangeable: verification tokens travel inside a
    link and are long, reset codes are read from an email and typed back in.
    """

    def verification_token(self) -> str:
        """256-bit token as 64 hex characters."""
        return secrets.token_hex(32)

    def reset_code(self) -> str:
        """Six characters from A-Z, a-z, 0-9."""
        return "".join(secrets.choice(RESET_CODE_ALPHABET) for _ in range(RESET_CODE_LENGTH))


_token_generator: TokenGenerator | None = None


def get_token_generator() -> TokenGenerator:
    """Get singleton token generator instance."""
    global _token_generator
    if _token_generator is None:
        _token_generator = TokenGenerator()
    return _token_generator
