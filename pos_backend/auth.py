import time
from typing import NamedTuple, Optional

import jwt
from passlib.context import CryptContext

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"
EXP_SECONDS = 60 * 60 * 24  # 1 day

TOKEN_EXPIRED = "expired"
TOKEN_INVALID = "invalid"


class TokenCheck(NamedTuple):
    """Outcome of verifying a bearer token: claims on success, an error kind otherwise."""

    claims: Optional[dict]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def create_access_token(user_id: int, username: str, role: str, secret: str, expires_delta: Optional[int] = None) -> str:
    now = int(time.time())
    exp = now + (expires_delta or EXP_SECONDS)
    payload = {"id": user_id, "username": username, "role": role, "iat": now, "exp": exp}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> TokenCheck:
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        return TokenCheck(None, TOKEN_EXPIRED)
    except jwt.PyJWTError:
        return TokenCheck(None, TOKEN_INVALID)
    if "id" not in claims or "role" not in claims:
        return TokenCheck(None, TOKEN_INVALID)
    return TokenCheck(claims)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)
