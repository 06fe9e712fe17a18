"""
Two-level comment threads: top-level comments, each with one level of replies
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .aioweb import NotFound, ValidationError, is_blank, require_fields, validate_email
from .policy import Caller, can_view_comment, comment_status_filter

logger = logging.getLogger(__name__)


async def fetch_replies(db, comment_id: str, caller: Caller) -> List[Dict[str, Any]]:
    """Direct replies of a comment, oldest first"""
    replies = await db.fetch_all(
        """
        SELECT r.*, u.name AS user_name, u.avatar AS user_avatar
        FROM comments r
        LEFT JOIN users u ON r.user_id = u.id
        WHERE r.parent_id = ?
        ORDER BY r.created_at ASC, r.rowid ASC
        """,
        (comment_id,),
    )
    return [reply for reply in replies if can_view_comment(caller, reply)]


async def list_threads(db, caller: Caller, post_id: Optional[str] = None, status: Optional[str] = None,
                       parent_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Newest-first listing of top-level comments (or the direct children of
    ``parent_id``), each carrying its own ``replies``.
    """
    where = []
    params: List[Any] = []
    if post_id:
        where.append("c.post_id = ?")
        params.append(post_id)
    if parent_id:
        where.append("c.parent_id = ?")
        params.append(parent_id)
    else:
        where.append("c.parent_id IS NULL")

    effective_status = comment_status_filter(caller, status)
    if effective_status is not None:
        where.append("c.status = ?")
        params.append(effective_status)

    comments = await db.fetch_all(
        f"""
        SELECT c.*, u.name AS user_name, u.avatar AS user_avatar,
               p.title AS post_title, p.slug AS post_slug
        FROM comments c
        LEFT JOIN users u ON c.user_id = u.id
        LEFT JOIN posts p ON c.post_id = p.id
        WHERE {' AND '.join(where)}
        ORDER BY c.created_at DESC, c.rowid DESC
        """,
        params,
    )
    for comment in comments:
        comment['replies'] = await fetch_replies(db, comment['id'], caller)
    return comments


async def resolve_comment_author(db, caller: Caller, data: Mapping[str, Any]) -> Tuple[Optional[str], str, str]:
    """(user_id, author_name, author_email) for a new comment"""
    if caller.is_authenticated:
        user = await db.fetch_one("SELECT name, email FROM users WHERE id = ?", (caller.id,))
        if user is None:
            return caller.id, caller.name, caller.email
        return caller.id, user['name'], user['email']

    require_fields(data, ['author_name', 'author_email'],
                   message="Name and email are required for guest comments")
    name, email = data['author_name'], data['author_email']
    if not isinstance(name, str) or not isinstance(email, str):
        raise ValidationError("Name and email must be strings")
    if not validate_email(email.strip()):
        raise ValidationError("Invalid email format")
    return None, name.strip(), email.strip()


async def validate_parent(db, post_id: str, parent_id: Optional[str]) -> Optional[str]:
    """
    Check that a reply targets a top-level comment on the same post.

    Replies to replies are rejected: the read path only surfaces one level.
    """
    if is_blank(parent_id):
        return None
    parent = await db.fetch_one(
        "SELECT id, parent_id FROM comments WHERE id = ? AND post_id = ?",
        (parent_id, post_id),
    )
    if parent is None:
        raise NotFound("Parent comment not found")
    if parent['parent_id'] is not None:
        raise ValidationError("Replies can only be made to top-level comments")
    return parent['id']
