import logging

from aiohttp.web_request import Request

from .aioweb import Conflict, ValidationError, get_json_data, json_response, require_fields, validate_field_types
from .db import IntegrityError, create_unique_id
from .gate import get_caller
from .policy import PUBLISHED, authorize_category_creation
from .slugs import slugify

logger = logging.getLogger(__name__)


class CategoryHandler:
    """Category handlers"""

    @staticmethod
    async def list_categories(request: Request):
        """All categories with their published post counts"""
        categories = await request.app['db'].fetch_all(
            """
            SELECT c.*, COUNT(DISTINCT p.id) AS post_count
            FROM categories c
            LEFT JOIN post_categories pc ON c.id = pc.category_id
            LEFT JOIN posts p ON pc.post_id = p.id AND p.status = ?
            GROUP BY c.id
            ORDER BY c.name
            """,
            (PUBLISHED,),
        )
        return json_response(categories)

    @staticmethod
    async def create_category(request: Request):
        caller = authorize_category_creation(get_caller(request))
        data = get_json_data(request)
        require_fields(data, ['name'], message="Category name is required")
        validate_field_types(data, {'name': str, 'description': str})

        name = data['name'].strip()
        slug = slugify(name)
        if not slug:
            raise ValidationError("Category name must contain letters or digits")

        category_id = create_unique_id()
        try:
            await request.app['db'].execute(
                "INSERT INTO categories (id, name, slug, description) VALUES (?, ?, ?, ?)",
                (category_id, name, slug, data.get('description') or ''),
            )
        except IntegrityError:
            raise Conflict("Category with this name already exists")

        logger.info(f"Category created: {category_id} ({slug}) by {caller.id}")
        return json_response({
            'id': category_id,
            'name': name,
            'slug': slug,
            'message': 'Category created successfully',
        }, status=201)
