#!/usr/bin/env python3
"""
AIOHTTP Blog API
Features: Authentication, Posts, Categories, Tags, Threaded comments
Security: Signed session tokens, role-based access (admin / author), CORS
Database: SQLite via aiosqlite
"""

import logging
from typing import Optional

from aiohttp import web

from . import __version__
from .aioweb import cors_middleware_factory, error_middleware, json_middleware, json_response
from .auth import AuthHandler
from .categories import CategoryHandler
from .comments import REQUIRE_APPROVAL_SETTING, CommentHandler
from .config import Settings
from .db import Database, create_timestamp, create_unique_id
from .gate import auth_gate_middleware
from .policy import Role
from .posts import PostHandler
from .security import TokenService, hash_password

logger = logging.getLogger(__name__)


async def health_check(request):
    """Health check endpoint"""
    return json_response({
        'status': 'healthy',
        'timestamp': create_timestamp(),
        'version': __version__,
    })


async def init_default_data(app: web.Application):
    """Create the schema, default settings and the bootstrap admin"""
    db: Database = app['db']
    settings: Settings = app['settings']
    await db.init_schema()
    await db.execute("INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)",
                     (REQUIRE_APPROVAL_SETTING, 'true'))

    if not (settings.admin_email and settings.admin_password):
        return
    users = await db.fetch_value("SELECT COUNT(*) FROM users")
    if users:
        return

    logger.info("Creating default admin user")
    salt, password_hash = await hash_password(settings.admin_password, settings.password_iterations)
    await db.execute(
        "INSERT INTO users (id, email, name, role, password_hash, password_salt, verified, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, 1, ?)",
        (create_unique_id(), settings.admin_email.strip().lower(), settings.admin_name,
         Role.ADMIN.value, password_hash, salt, create_timestamp()),
    )
    logger.info(f"Default admin user created ({settings.admin_email})")


def create_app(settings: Optional[Settings] = None) -> web.Application:
    """Create and configure the application"""
    settings = settings or Settings.from_env()
    logger.info("Creating AIOHTTP application")

    app = web.Application(middlewares=[
        cors_middleware_factory(settings.cors_origins),
        error_middleware,
        auth_gate_middleware,
        json_middleware,
    ])

    app['settings'] = settings
    app['db'] = Database(settings.database_path)
    app['tokens'] = TokenService(settings.jwt_secret, settings.jwt_algorithm, settings.token_ttl_seconds)
    app.on_startup.append(init_default_data)

    app.router.add_get('/health', health_check)

    # Auth routes
    app.router.add_post('/api/auth/register', AuthHandler.register)
    app.router.add_post('/api/auth/login', AuthHandler.login)
    app.router.add_post('/api/auth/logout', AuthHandler.logout)
    app.router.add_get('/api/auth/me', AuthHandler.me)

    # Blog routes; fixed paths before the /api/blog/{id} catch-all
    app.router.add_get('/api/blog/posts', PostHandler.list_posts)
    app.router.add_post('/api/blog/posts', PostHandler.create_post)
    app.router.add_get('/api/blog/categories', CategoryHandler.list_categories)
    app.router.add_post('/api/blog/categories', CategoryHandler.create_category)
    app.router.add_get('/api/blog/comment', CommentHandler.list_comments)
    app.router.add_post('/api/blog/comment', CommentHandler.create_comment)
    app.router.add_get('/api/blog/{id}', PostHandler.get_post)
    app.router.add_put('/api/blog/{id}', PostHandler.update_post)
    app.router.add_delete('/api/blog/{id}', PostHandler.delete_post)

    logger.info("Application created successfully")
    return app


def main():
    """Main entry point"""
    settings = Settings.from_env()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    logger.info("Starting AIOHTTP Blog API")

    app = create_app(settings)
    try:
        web.run_app(app, host=settings.host, port=settings.port, access_log=logger)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


if __name__ == '__main__':
    main()
