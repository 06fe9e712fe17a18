"""
Credential verification and session token issuance
"""

import asyncio
import hashlib
import secrets
import time
import logging
from typing import Any, Dict, Tuple

from jose import JWTError, jwt

from .config import PASSWORD_ITERATIONS, TOKEN_TTL_SECONDS

logger = logging.getLogger(__name__)


class InvalidToken(Exception):
    """Raised when a session token cannot be verified"""


def _derive(password: str, salt_hex: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac('sha256', password.encode(), bytes.fromhex(salt_hex), iterations).hex()


async def hash_password(password: str, iterations: int = PASSWORD_ITERATIONS) -> Tuple[str, str]:
    """Generate salt and hash for password, returned as (salt_hex, hash_hex)"""
    salt = secrets.token_bytes(32).hex()
    loop = asyncio.get_running_loop()
    password_hash = await loop.run_in_executor(None, _derive, password, salt, iterations)
    return salt, password_hash


async def verify_password(password: str, salt_hex: str, hash_hex: str,
                          iterations: int = PASSWORD_ITERATIONS) -> bool:
    """Verify password against stored salt and hash"""
    if not password or not salt_hex or not hash_hex:
        return False
    loop = asyncio.get_running_loop()
    candidate = await loop.run_in_executor(None, _derive, password, salt_hex, iterations)
    return secrets.compare_digest(candidate, hash_hex)


class TokenService:
    """Signs and verifies time-limited session tokens"""

    def __init__(self, secret: str, algorithm: str = "HS256", ttl_seconds: int = TOKEN_TTL_SECONDS):
        self.secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds

    def issue(self, user: Dict[str, Any]) -> str:
        issued_at = int(time.time())
        claims = {
            'id': user['id'],
            'email': user['email'],
            'name': user['name'],
            'role': user.get('role') or 'author',
            'iat': issued_at,
            'exp': issued_at + self.ttl_seconds,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            raise InvalidToken(str(e)) from e
        if not claims.get('id'):
            raise InvalidToken("Token carries no subject id")
        return claims
