"""Password hashing."""

import base64
import hashlib
import hmac


class PasswordHasher:
    """Deterministic SHA-256 password digest, base64-encoded.

    The digest is unsalted and single-round so stored hashes stay
    compatible with existing accounts. Moving to a salted slow hash is a
    separate migration, see DESIGN.md.
    """

    def hash(self, password: str) -> str:
        """Hash a password.

        Args:
            password: Plain-text password (empty strings are hashed as-is)

        Returns:
            Base64-encoded SHA-256 digest of the UTF-8 bytes
        """
        digest = hashlib.sha256(password.encode("utf-8")).digest()
        return base64.b64encode(digest).decode("ascii")

    def verify(self, password: str, password_hash: str) -> bool:
        """Return True if ``password`` hashes to ``password_hash``."""
        return hmac.compare_digest(
            self.hash(password).encode("utf-8"),
            password_hash.encode("utf-8"),
        )
