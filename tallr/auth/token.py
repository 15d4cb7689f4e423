"""Shared-secret management and constant-time validation.

The gateway and the CLI wrapper share one secret. It is resolved lazily,
first match wins:

1. the value cached in memory,
2. the ``TALLR_TOKEN`` environment variable,
3. the ``.token`` file in the data directory,
4. a freshly generated secret, written to that file.

Validation fails closed: if the expected secret cannot be resolved, every
credential is rejected.
"""

import hmac
import logging
import os
import secrets
import threading
from pathlib import Path
from typing import Optional

from tallr.core.errors import TokenResolutionError

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "TALLR_TOKEN"
TOKEN_RANDOM_BYTES = 32  # 64 hex characters


def generate_secure_token() -> str:
    """Generate a new random secret (32 bytes, hex-encoded)."""
    return secrets.token_hex(TOKEN_RANDOM_BYTES)


def constant_time_equals(presented: str, expected: str) -> bool:
    """Compare two tokens without leaking where they differ.

    Lengths are compared first; equal-length values are then compared byte
    by byte over the whole expected token.
    """
    presented_bytes = presented.encode("utf-8")
    expected_bytes = expected.encode("utf-8")
    if len(presented_bytes) != len(expected_bytes):
        return False
    return hmac.compare_digest(presented_bytes, expected_bytes)


class TokenManager:
    """Resolves and caches the shared bearer secret.

    Args:
        token_file: Location of the persisted secret
    """

    def __init__(self, token_file: Path):
        self.token_file = Path(token_file)
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    def get_or_create_token(self) -> str:
        """Return the expected secret, generating and persisting one if needed.

        Raises:
            TokenResolutionError: If the token file cannot be read or written
        """
        with self._lock:
            if self._token:
                return self._token

            env_token = os.environ.get(TOKEN_ENV_VAR)
            if env_token:
                self._token = env_token
                return env_token

            token = self._read_token_file()
            if token:
                self._token = token
                return token

            token = generate_secure_token()
            self._write_token_file(token)
            logger.info(f"Generated new auth token at {self.token_file}")
            self._token = token
            return token

    def validate(self, credential: Optional[str]) -> bool:
        """Check a presented credential against the expected secret."""
        if not credential:
            return False

        try:
            expected = self.get_or_create_token()
        except TokenResolutionError as e:
            logger.error(f"Rejecting request, auth token unavailable: {e}")
            return False

        return constant_time_equals(credential, expected)

    def clear_cache(self) -> None:
        with self._lock:
            self._token = None

    def _read_token_file(self) -> Optional[str]:
        if not self.token_file.exists():
            return None
        try:
            token = self.token_file.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            raise TokenResolutionError(f"Failed to read auth token file: {e}") from e
        return token or None

    def _write_token_file(self, token: str) -> None:
        try:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            self.token_file.write_text(token, encoding="utf-8")
            self.token_file.chmod(0o600)
        except OSError as e:
            raise TokenResolutionError(f"Failed to write auth token file: {e}") from e
