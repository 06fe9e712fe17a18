"""
Access policy for posts, comments and categories

Every decision takes an explicit ``Caller``: the anonymous caller, an author
or an admin. Readers see published posts, authors additionally see their own
rows, admins see everything. Only the owner or an admin may mutate a post.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .aioweb import Forbidden, NotFound, Unauthenticated, ValidationError
from .slugs import slugify

logger = logging.getLogger(__name__)

PUBLISHED = 'published'
DRAFT = 'draft'
APPROVED = 'approved'
PENDING = 'pending'


class Role(str, Enum):
    ADMIN = 'admin'
    AUTHOR = 'author'


@dataclass(frozen=True)
class Caller:
    """Identity behind a request; ``id`` is None for anonymous callers"""
    id: Optional[str] = None
    role: Optional[Role] = None
    email: str = ''
    name: str = ''

    @property
    def is_authenticated(self) -> bool:
        return self.id is not None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "Caller":
        try:
            role = Role(claims.get('role') or Role.AUTHOR.value)
        except ValueError:
            role = Role.AUTHOR
        return cls(id=str(claims['id']), role=role,
                   email=claims.get('email') or '', name=claims.get('name') or '')


ANONYMOUS = Caller()


# =============================================================================
# Posts
# =============================================================================

def can_view_post(caller: Caller, post: Mapping[str, Any]) -> bool:
    if caller.is_admin:
        return True
    if post.get('status') == PUBLISHED:
        return True
    return caller.is_authenticated and post.get('author_id') == caller.id


def can_mutate_post(caller: Caller, post: Mapping[str, Any]) -> bool:
    if not caller.is_authenticated:
        return False
    return caller.is_admin or post.get('author_id') == caller.id


def post_visibility_clause(caller: Caller, alias: str = 'p') -> Tuple[Optional[str], List[Any]]:
    """SQL predicate restricting posts to the ones the caller may read"""
    if caller.is_admin:
        return None, []
    if caller.is_authenticated:
        return f"({alias}.author_id = ? OR {alias}.status = ?)", [caller.id, PUBLISHED]
    return f"{alias}.status = ?", [PUBLISHED]


def post_status_filter(caller: Caller, status: Optional[str], author_id: Optional[str]) -> Optional[str]:
    """Explicit status filter, honoured for admins or authors listing their own posts"""
    if not status:
        return None
    if caller.is_admin:
        return status
    if caller.is_authenticated and author_id == caller.id:
        return status
    return None


def require_caller(caller: Caller) -> Caller:
    if not caller.is_authenticated:
        raise Unauthenticated("Unauthorized")
    return caller


def authorize_post_mutation(caller: Caller, post: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Raise unless the caller may update or delete the post"""
    require_caller(caller)
    if post is None:
        raise NotFound("Post not found")
    if not can_mutate_post(caller, post):
        logger.warning(f"User {caller.id} denied mutation of post {post.get('id')}")
        raise Forbidden("Forbidden")
    return post


def plan_post_update(data: Mapping[str, Any], now: int) -> Dict[str, Any]:
    """
    Column changes for a partial post update.

    Returns an empty dict when ``data`` carries none of the editable columns.
    ``slug`` holds the regenerated base slug; uniqueness is settled by the caller.
    ``published_at`` is restamped whenever the update sets ``published``.
    """
    changes: Dict[str, Any] = {}

    if 'title' in data and data['title'] is not None:
        title = data['title']
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Title cannot be empty")
        changes['title'] = title
        changes['slug'] = slugify(title)

    for column in ('content', 'excerpt'):
        if column in data and data[column] is not None:
            if not isinstance(data[column], str):
                raise ValidationError(f"Field '{column}' must be of type str")
            changes[column] = data[column]

    if 'status' in data and data['status'] is not None:
        status = data['status']
        if not isinstance(status, str) or not status.strip():
            raise ValidationError("Status cannot be empty")
        changes['status'] = status
        if status == PUBLISHED:
            changes['published_at'] = now

    if 'featured' in data and data['featured'] is not None:
        changes['featured'] = 1 if data['featured'] else 0

    if changes:
        changes['updated_at'] = now
    return changes


# =============================================================================
# Categories
# =============================================================================

def authorize_category_creation(caller: Caller) -> Caller:
    require_caller(caller)
    if not caller.is_admin:
        raise Forbidden("Only admins can create categories")
    return caller


# =============================================================================
# Comments
# =============================================================================

def can_view_comment(caller: Caller, comment: Mapping[str, Any]) -> bool:
    return caller.is_admin or comment.get('status') == APPROVED


def comment_status_filter(caller: Caller, requested: Optional[str]) -> Optional[str]:
    """Status top-level listings are restricted to; None means no restriction"""
    if caller.is_admin:
        return requested or None
    return APPROVED


def initial_comment_status(caller: Caller, require_approval: bool) -> str:
    if caller.is_authenticated:
        return APPROVED
    return PENDING if require_approval else APPROVED
