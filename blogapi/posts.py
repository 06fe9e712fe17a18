import logging
from typing import Any, Dict, List

from aiohttp.web_request import Request

from .aioweb import (
    NotFound, ValidationError, get_json_data, get_query_params, json_response,
    parse_int_param, require_fields, validate_field_types,
)
from .db import create_timestamp, create_unique_id
from .gate import get_caller
from .policy import (
    DRAFT, PUBLISHED, authorize_post_mutation, can_view_post, plan_post_update,
    post_status_filter, post_visibility_clause, require_caller,
)
from .reconcile import reconcile_categories, reconcile_tags
from .slugs import slugify, unique_post_slug

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
EXCERPT_LENGTH = 200
TRUTHY = ('1', 'true', 'yes', 'on')
FIELD_TYPES = {'title': str, 'content': str, 'excerpt': str, 'status': str, 'featured': (bool, int)}


async def attach_taxonomy(db, posts: List[Dict[str, Any]]) -> None:
    """Add category_* and tag_* lists to each post row"""
    for post in posts:
        for key in ('category_ids', 'category_names', 'category_slugs', 'tag_ids', 'tag_names', 'tag_slugs'):
            post[key] = []
        post['featured'] = bool(post.get('featured'))
    if not posts:
        return

    by_id = {post['id']: post for post in posts}
    placeholders = ', '.join('?' for _ in by_id)
    ids = list(by_id)

    categories = await db.fetch_all(
        f"""
        SELECT pc.post_id, c.id, c.name, c.slug
        FROM post_categories pc JOIN categories c ON pc.category_id = c.id
        WHERE pc.post_id IN ({placeholders})
        ORDER BY c.name
        """,
        ids,
    )
    for row in categories:
        post = by_id[row['post_id']]
        post['category_ids'].append(row['id'])
        post['category_names'].append(row['name'])
        post['category_slugs'].append(row['slug'])

    tags = await db.fetch_all(
        f"""
        SELECT pt.post_id, t.id, t.name, t.slug
        FROM post_tags pt JOIN tags t ON pt.tag_id = t.id
        WHERE pt.post_id IN ({placeholders})
        ORDER BY t.name
        """,
        ids,
    )
    for row in tags:
        post = by_id[row['post_id']]
        post['tag_ids'].append(row['id'])
        post['tag_names'].append(row['name'])
        post['tag_slugs'].append(row['slug'])


def _list_field(data: Dict[str, Any], name: str) -> List[Any]:
    value = data.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"Field '{name}' must be a list")
    return value


class PostHandler:
    """Post management handlers"""

    @staticmethod
    async def list_posts(request: Request):
        """Paginated post listing filtered by what the caller may see"""
        caller = get_caller(request)
        params = get_query_params(request)
        page = parse_int_param(params, 'page', 1)
        limit = parse_int_param(params, 'limit', DEFAULT_PAGE_SIZE, maximum=MAX_PAGE_SIZE)
        offset = (page - 1) * limit

        where = []
        args: List[Any] = []

        clause, clause_args = post_visibility_clause(caller, 'p')
        if clause:
            where.append(clause)
            args.extend(clause_args)

        if 'category' in params:
            where.append("EXISTS (SELECT 1 FROM post_categories pc WHERE pc.post_id = p.id AND pc.category_id = ?)")
            args.append(params['category'])
        if 'tag' in params:
            where.append("EXISTS (SELECT 1 FROM post_tags pt WHERE pt.post_id = p.id AND pt.tag_id = ?)")
            args.append(params['tag'])
        if 'author_id' in params:
            where.append("p.author_id = ?")
            args.append(params['author_id'])

        status = post_status_filter(caller, params.get('status'), params.get('author_id'))
        if status:
            where.append("p.status = ?")
            args.append(status)

        if params.get('featured', '').lower() in TRUTHY:
            where.append("p.featured = 1")

        where_sql = f"WHERE {' AND '.join(where)}" if where else ''
        db = request.app['db']

        posts = await db.fetch_all(
            f"""
            SELECT p.*, u.name AS author_name, u.avatar AS author_avatar,
                   (SELECT COUNT(*) FROM comments com
                    WHERE com.post_id = p.id AND com.status = 'approved') AS comment_count
            FROM posts p
            LEFT JOIN users u ON p.author_id = u.id
            {where_sql}
            ORDER BY p.created_at DESC, p.rowid DESC
            LIMIT ? OFFSET ?
            """,
            args + [limit, offset],
        )
        total = await db.fetch_value(f"SELECT COUNT(*) FROM posts p {where_sql}", args)
        await attach_taxonomy(db, posts)

        logger.debug(f"Retrieved {len(posts)} posts (page {page})")
        return json_response({
            'posts': posts,
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': (total + limit - 1) // limit,
            },
        })

    @staticmethod
    async def create_post(request: Request):
        """Create a post owned by the caller"""
        caller = require_caller(get_caller(request))
        data = get_json_data(request)
        require_fields(data, ['title', 'content'], message="Title and content are required")
        validate_field_types(data, FIELD_TYPES)

        title = data['title']
        content = data['content']
        status = data.get('status') or DRAFT
        excerpt = data.get('excerpt') or content[:EXCERPT_LENGTH]
        category_ids = _list_field(data, 'category_ids')
        tag_names = _list_field(data, 'tag_names')

        post_id = create_unique_id()
        now = create_timestamp()
        db = request.app['db']

        async with db.transaction() as tx:
            slug = await unique_post_slug(tx, slugify(title))
            await tx.execute(
                """
                INSERT INTO posts (
                    id, title, slug, content, excerpt, author_id,
                    status, featured, published_at, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    post_id, title, slug, content, excerpt, caller.id,
                    status, 1 if data.get('featured') else 0,
                    now if status == PUBLISHED else None, now, now,
                ),
            )
            await reconcile_categories(tx, post_id, category_ids)
            await reconcile_tags(tx, post_id, tag_names)

        logger.info(f"Post created: {post_id} by {caller.id}")
        return json_response({
            'id': post_id,
            'slug': slug,
            'message': 'Post created successfully',
        }, status=201)

    @staticmethod
    async def get_post(request: Request):
        """Single post; reading a published post counts a view"""
        caller = get_caller(request)
        post_id = request.match_info['id']

        db = request.app['db']
        post = await db.fetch_one(
            """
            SELECT p.*, u.name AS author_name, u.bio AS author_bio, u.avatar AS author_avatar
            FROM posts p
            LEFT JOIN users u ON p.author_id = u.id
            WHERE p.id = ?
            """,
            (post_id,),
        )
        # Hidden posts are indistinguishable from missing ones
        if not post or not can_view_post(caller, post):
            raise NotFound("Post not found")

        if post['status'] == PUBLISHED:
            await db.execute("UPDATE posts SET view_count = view_count + 1 WHERE id = ?", (post_id,))

        await attach_taxonomy(db, [post])
        return json_response(post)

    @staticmethod
    async def update_post(request: Request):
        """Partial update; only the owner or an admin may edit"""
        caller = get_caller(request)
        post_id = request.match_info['id']
        db = request.app['db']

        existing = await db.fetch_one("SELECT id, author_id, status FROM posts WHERE id = ?",
                                      (post_id,))
        authorize_post_mutation(caller, existing)

        data = get_json_data(request)
        validate_field_types(data, FIELD_TYPES)
        now = create_timestamp()
        changes = plan_post_update(data, now)
        category_ids = _list_field(data, 'category_ids') if data.get('category_ids') is not None else None
        tag_names = _list_field(data, 'tag_names') if data.get('tag_names') is not None else None

        if not changes and category_ids is None and tag_names is None:
            return json_response({'message': 'No changes made'})
        changes.setdefault('updated_at', now)

        async with db.transaction() as tx:
            if 'slug' in changes:
                changes['slug'] = await unique_post_slug(tx, changes['slug'], exclude_id=post_id)
            assignments = ', '.join(f"{column} = ?" for column in changes)
            await tx.execute(f"UPDATE posts SET {assignments} WHERE id = ?", list(changes.values()) + [post_id])
            if category_ids is not None:
                await reconcile_categories(tx, post_id, category_ids, replace=True)
            if tag_names is not None:
                await reconcile_tags(tx, post_id, tag_names, replace=True)

        logger.info(f"Post updated: {post_id} by {caller.id} ({', '.join(changes)})")
        return json_response({'message': 'Post updated successfully'})

    @staticmethod
    async def delete_post(request: Request):
        caller = get_caller(request)
        post_id = request.match_info['id']
        db = request.app['db']

        existing = await db.fetch_one("SELECT id, author_id FROM posts WHERE id = ?", (post_id,))
        authorize_post_mutation(caller, existing)

        await db.execute("DELETE FROM posts WHERE id = ?", (post_id,))
        logger.info(f"Post deleted: {post_id} by {caller.id}")
        return json_response({'message': 'Post deleted successfully'})
