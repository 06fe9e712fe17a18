import logging

from aiohttp.web_request import Request

from .aioweb import NotFound, get_json_data, get_query_params, json_response, require_fields, validate_field_types
from .db import create_timestamp, create_unique_id
from .gate import get_caller
from .policy import APPROVED, PUBLISHED, initial_comment_status
from .threads import list_threads, resolve_comment_author, validate_parent

logger = logging.getLogger(__name__)

REQUIRE_APPROVAL_SETTING = 'require_comment_approval'


class CommentHandler:
    """Comment handlers"""

    @staticmethod
    async def list_comments(request: Request):
        params = get_query_params(request)
        comments = await list_threads(
            request.app['db'],
            get_caller(request),
            post_id=params.get('post_id'),
            status=params.get('status'),
            parent_id=params.get('parent_id'),
        )
        return json_response(comments)

    @staticmethod
    async def create_comment(request: Request):
        """Add a comment or a reply to a published post"""
        caller = get_caller(request)
        data = get_json_data(request)
        require_fields(data, ['post_id', 'content'], message="Post ID and content are required")
        validate_field_types(data, {'content': str})

        db = request.app['db']
        post_id = data['post_id']
        post = await db.fetch_one("SELECT id, status FROM posts WHERE id = ?", (post_id,))
        if not post or post['status'] != PUBLISHED:
            raise NotFound("Post not found or not published")

        user_id, author_name, author_email = await resolve_comment_author(db, caller, data)
        require_approval = (await db.get_setting(REQUIRE_APPROVAL_SETTING)) != 'false'
        status = initial_comment_status(caller, require_approval)
        parent_id = await validate_parent(db, post_id, data.get('parent_id'))

        comment_id = create_unique_id()
        await db.execute(
            """
            INSERT INTO comments (
                id, post_id, user_id, author_name, author_email,
                content, status, parent_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (comment_id, post_id, user_id, author_name, author_email,
             data['content'], status, parent_id, create_timestamp()),
        )

        logger.info(f"Comment created: {comment_id} on post {post_id} ({status})")
        return json_response({
            'id': comment_id,
            'status': status,
            'message': 'Comment added successfully' if status == APPROVED else 'Comment submitted for approval',
        }, status=201)
