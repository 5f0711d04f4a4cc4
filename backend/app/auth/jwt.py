"""JWT decoding (and minting, for tooling and tests).

Tokens are issued by the identity provider. Claims read here:
  - sub:   user ID (matches user_profiles.user_id)
  - type:  "access"
  - exp:   expiry timestamp

Permissions are deliberately NOT embedded in the token: they are resolved
from the store (through the cache) so a role change takes effect without
re-issuing tokens.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from app.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(
    user_id: str,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": user_id,
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}
