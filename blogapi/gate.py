import logging
from typing import Optional

from aiohttp import web
from aiohttp.web_request import Request

from .aioweb import error_response
from .policy import ANONYMOUS, Caller
from .security import InvalidToken

logger = logging.getLogger(__name__)

TOKEN_COOKIE = 'auth_token'

# Paths reachable without a token; '[id]' stands for exactly one path segment
PUBLIC_ROUTES = [
    '/',
    '/health',
    '/api/auth/login',
    '/api/auth/register',
    '/api/blog/posts',
    '/api/blog/categories',
    '/api/blog/comment',
    '/api/blog/[id]',
]


def is_public_path(path: str) -> bool:
    for route in PUBLIC_ROUTES:
        if route.endswith('/[id]'):
            base = route[:-len('/[id]')]
            rest = path[len(base) + 1:]
            if path.startswith(base + '/') and rest and '/' not in rest:
                return True
        elif path == route or (route != '/' and path.startswith(route + '/')):
            return True
    return False


def extract_token(request: Request) -> Optional[str]:
    """Bearer token from the Authorization header, falling back to the session cookie"""
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(TOKEN_COOKIE) or None


@web.middleware
async def auth_gate_middleware(request: Request, handler):
    """Resolve request['caller']; non-public paths need a valid token"""
    request['caller'] = ANONYMOUS
    if request.method == 'OPTIONS':
        return await handler(request)

    public = is_public_path(request.path)
    token = extract_token(request)

    if not token:
        if public:
            return await handler(request)
        logger.debug(f"No auth token for {request.path}")
        return error_response('Unauthorized', 401)

    try:
        claims = request.app['tokens'].verify(token)
    except InvalidToken as e:
        if public:
            logger.debug(f"Ignoring invalid token on public path {request.path}: {e}")
            return await handler(request)
        logger.debug(f"Invalid token for {request.path}: {e}")
        return error_response('Invalid token', 401)

    request['caller'] = Caller.from_claims(claims)
    return await handler(request)


def get_caller(request: Request) -> Caller:
    return request.get('caller', ANONYMOUS)
