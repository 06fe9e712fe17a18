import re
import json
import traceback
from typing import Dict, Any, Optional, List
from aiohttp import web
from aiohttp.web_request import Request
from aiohttp.web_response import Response
import logging

logger = logging.getLogger(__name__)


class APIError(Exception):
    """API exception with status code and message"""
    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(APIError):
    status_code = 400


class Unauthenticated(APIError):
    status_code = 401


class Forbidden(APIError):
    status_code = 403


class NotFound(APIError):
    status_code = 404


class Conflict(APIError):
    status_code = 409


def json_response(data: Any, status: int = 200, headers: Optional[Dict[str, str]] = None) -> Response:
    """Create a JSON response"""
    return web.json_response(data, status=status, headers=headers,
                             dumps=lambda obj: json.dumps(obj, default=str))


def error_response(message: str, status: int, details: Optional[Dict] = None) -> Response:
    body = {'error': message}
    if details:
        body['details'] = details
    return json_response(body, status=status)


def cors_middleware_factory(cors_origins: Optional[List[str]] = None):
    """Build a middleware answering preflight requests and adding CORS headers"""
    origins = cors_origins or ["*"]

    @web.middleware
    async def cors_middleware(request: Request, handler):
        if request.method == 'OPTIONS':
            response = web.Response(status=200)
        else:
            response = await handler(request)

        origin = request.headers.get('Origin', '')
        if origins == ["*"] or origin in origins:
            response.headers['Access-Control-Allow-Origin'] = origin or "*"
            response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, DELETE, OPTIONS'
            response.headers['Access-Control-Allow-Headers'] = 'Content-Type, Authorization'
            response.headers['Access-Control-Allow-Credentials'] = 'true'
            response.headers['Access-Control-Max-Age'] = '86400'
        return response

    return cors_middleware


@web.middleware
async def error_middleware(request: Request, handler):
    """Global error handling middleware"""
    try:
        return await handler(request)
    except APIError as e:
        logger.warning(f"API Error: {e.message} (Status: {e.status_code}) on {request.method} {request.path}")
        return error_response(e.message, e.status_code, e.details)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error on {request.method} {request.path}: {e}\n{traceback.format_exc()}")
        return error_response('Internal server error', 500)


@web.middleware
async def json_middleware(request: Request, handler):
    """Parse JSON request bodies into request['json_data']"""
    request['json_data'] = None
    if request.method in ('POST', 'PUT', 'PATCH') and request.can_read_body:
        content_type = request.headers.get('Content-Type', '')
        if 'application/json' in content_type:
            body = await request.text()
            if body.strip():
                try:
                    request['json_data'] = json.loads(body)
                except json.JSONDecodeError as e:
                    logger.warning(f"Invalid JSON in request: {e}")
                    raise ValidationError("Invalid JSON in request body")
    return await handler(request)


# Utility functions for common request operations
def get_json_data(request: Request) -> Dict[str, Any]:
    """Get JSON object from request (parsed by middleware)"""
    data = request.get('json_data')
    if not isinstance(data, dict):
        raise ValidationError("Request must contain a JSON object")
    return data


def get_query_params(request: Request) -> Dict[str, str]:
    """Get non-empty query parameters from request"""
    return {key: value for key, value in request.query.items() if value != ''}


def parse_int_param(params: Dict[str, str], name: str, default: int, minimum: int = 1,
                    maximum: Optional[int] = None) -> int:
    raw = params.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"Query parameter '{name}' must be an integer")
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_fields(data: Dict[str, Any], fields: List[str], message: Optional[str] = None) -> None:
    """Validate that required fields are present and not blank"""
    missing = [field for field in fields if is_blank(data.get(field))]
    if missing:
        raise ValidationError(message or f"Missing required fields: {', '.join(missing)}",
                              details={'missing': missing})


def validate_field_types(data: Dict[str, Any], field_types: Dict[str, type]) -> None:
    """Validate field types in data"""
    for field, expected_type in field_types.items():
        if field in data and data[field] is not None and not isinstance(data[field], expected_type):
            type_name = getattr(expected_type, '__name__', str(expected_type))
            raise ValidationError(f"Field '{field}' must be of type {type_name}")


EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def validate_email(email: str) -> bool:
    """Validate email format"""
    return bool(EMAIL_PATTERN.match(email))
