import logging

from aiohttp.web_request import Request

from .aioweb import (
    Conflict, NotFound, Unauthenticated, ValidationError, get_json_data,
    json_response, require_fields, validate_email, validate_field_types,
)
from .db import IntegrityError, create_timestamp, create_unique_id
from .gate import TOKEN_COOKIE, get_caller
from .policy import Role, require_caller
from .security import hash_password, verify_password

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = (
    "id, name, email, role, bio, gender, age, mobile, instagram, twitter, "
    "avatar, verified, created_at, last_login"
)


class AuthHandler:
    """Authentication handlers"""

    @staticmethod
    async def register(request: Request):
        """Register a new author account"""
        data = get_json_data(request)
        require_fields(data, ['name', 'email', 'password'])
        validate_field_types(data, {'name': str, 'email': str, 'password': str})

        name = data['name'].strip()
        email = data['email'].strip().lower()
        password = data['password']

        if not validate_email(email):
            raise ValidationError("Invalid email format")
        if len(password) < 6:
            raise ValidationError("Password must be at least 6 characters")

        db = request.app['db']
        if await db.fetch_one("SELECT id FROM users WHERE email = ?", (email,)):
            raise Conflict("Email already registered")

        salt, password_hash = await hash_password(password, request.app['settings'].password_iterations)
        user_id = create_unique_id()
        try:
            await db.execute(
                "INSERT INTO users (id, email, name, role, password_hash, password_salt, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (user_id, email, name, Role.AUTHOR.value, password_hash, salt, create_timestamp()),
            )
        except IntegrityError:
            raise Conflict("Email already registered")

        logger.info(f"User registered: {user_id}")
        return json_response({'id': user_id, 'message': 'User registered successfully'}, status=201)

    @staticmethod
    async def login(request: Request):
        """Verify credentials, record a session and hand out a token"""
        data = get_json_data(request)
        require_fields(data, ['email', 'password'])
        validate_field_types(data, {'email': str, 'password': str})
        email = data['email'].strip().lower()

        db = request.app['db']
        settings = request.app['settings']
        user = await db.fetch_one("SELECT * FROM users WHERE email = ?", (email,))
        if not user or not await verify_password(data['password'], user['password_salt'],
                                                 user['password_hash'], settings.password_iterations):
            logger.warning(f"Failed login attempt for {email}")
            raise Unauthenticated("Invalid credentials")

        tokens = request.app['tokens']
        now = create_timestamp()
        session_id = create_unique_id()
        async with db.transaction() as tx:
            await tx.execute(
                "UPDATE users SET last_login = ?, failed_attempts = 0 WHERE id = ?",
                (now, user['id']),
            )
            await tx.execute(
                "INSERT INTO sessions (id, user_id, created_at, expires_at) VALUES (?, ?, ?, ?)",
                (session_id, user['id'], now, now + tokens.ttl_seconds),
            )

        role = user.get('role') or Role.AUTHOR.value
        token = tokens.issue({**user, 'role': role})
        response = json_response({
            'token': token,
            'user': {
                'id': user['id'],
                'name': user['name'],
                'email': user['email'],
                'role': role,
            },
        })
        response.set_cookie(TOKEN_COOKIE, token, path='/', httponly=True, samesite='Strict',
                            max_age=tokens.ttl_seconds)
        logger.info(f"User logged in: {user['id']}")
        return response

    @staticmethod
    async def logout(request: Request):
        caller = require_caller(get_caller(request))
        response = json_response({'message': 'Logged out'})
        response.del_cookie(TOKEN_COOKIE, path='/')
        logger.info(f"User logged out: {caller.id}")
        return response

    @staticmethod
    async def me(request: Request):
        """Current user's profile with post and comment counts"""
        caller = require_caller(get_caller(request))
        db = request.app['db']

        user = await db.fetch_one(f"SELECT {PROFILE_COLUMNS} FROM users WHERE id = ?", (caller.id,))
        if not user:
            raise NotFound("User not found")

        posts = await db.fetch_value("SELECT COUNT(*) FROM posts WHERE author_id = ?", (caller.id,))
        comments = await db.fetch_value("SELECT COUNT(*) FROM comments WHERE user_id = ?", (caller.id,))
        user['verified'] = bool(user['verified'])
        user['stats'] = {'posts': posts, 'comments': comments}
        return json_response({'user': user})
