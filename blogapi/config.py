"""
Runtime configuration loaded from environment variables
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_SECRET = "your-secret-key-change-in-production"
TOKEN_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days
PASSWORD_ITERATIONS = 600_000


def _split_origins(value: str) -> List[str]:
    origins = [origin.strip() for origin in value.split(',') if origin.strip()]
    return origins or ["*"]


@dataclass
class Settings:
    """Application settings"""
    database_path: str = "blog.db"
    jwt_secret: str = DEFAULT_SECRET
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = TOKEN_TTL_SECONDS
    password_iterations: int = PASSWORD_ITERATIONS
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    admin_name: str = "Administrator"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment"""
        settings = cls(
            database_path=os.environ.get('BLOG_DATABASE_PATH', 'blog.db'),
            jwt_secret=os.environ.get('JWT_SECRET', DEFAULT_SECRET),
            token_ttl_seconds=int(os.environ.get('TOKEN_TTL_SECONDS', TOKEN_TTL_SECONDS)),
            password_iterations=int(os.environ.get('PASSWORD_ITERATIONS', PASSWORD_ITERATIONS)),
            cors_origins=_split_origins(os.environ.get('CORS_ORIGINS', '*')),
            host=os.environ.get('HOST', '0.0.0.0'),
            port=int(os.environ.get('PORT', 8080)),
            log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
            admin_email=os.environ.get('ADMIN_EMAIL') or None,
            admin_password=os.environ.get('ADMIN_PASSWORD') or None,
            admin_name=os.environ.get('ADMIN_NAME', 'Administrator'),
        )
        if settings.jwt_secret == DEFAULT_SECRET:
            logger.warning("JWT_SECRET not set, using the development secret")
        return settings
