"""Bearer-token authentication for the Tallr gateway."""

from tallr.auth.token import TOKEN_ENV_VAR, TokenManager, generate_secure_token

__all__ = ["TOKEN_ENV_VAR", "TokenManager", "generate_secure_token"]
