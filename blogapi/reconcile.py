"""
Tag and category association sets of a post
"""

import logging
from typing import Iterable, List

from .aioweb import ValidationError
from .db import create_unique_id
from .slugs import tag_slug

logger = logging.getLogger(__name__)


def clean_tag_names(names: Iterable) -> List[str]:
    """Drop blank entries; anything that isn't a string is rejected"""
    cleaned = []
    for name in names:
        if not isinstance(name, str):
            raise ValidationError("tag_names must be a list of strings")
        if name.strip():
            cleaned.append(name.strip())
    return cleaned


async def resolve_tag(tx, name: str) -> str:
    """Id of the tag with this name's slug, creating the tag when absent"""
    slug = tag_slug(name)
    await tx.execute(
        "INSERT OR IGNORE INTO tags (id, name, slug) VALUES (?, ?, ?)",
        (create_unique_id(), name, slug),
    )
    return await tx.fetch_value("SELECT id FROM tags WHERE slug = ?", (slug,))


async def reconcile_tags(tx, post_id: str, names: Iterable, replace: bool = False) -> List[str]:
    """
    Attach the named tags to a post.

    With ``replace`` the post's previous tag set is removed first, otherwise
    the names are added to whatever is already attached. Returns tag ids.
    """
    cleaned = clean_tag_names(names)
    if replace:
        await tx.execute("DELETE FROM post_tags WHERE post_id = ?", (post_id,))

    tag_ids = []
    for name in cleaned:
        tag_id = await resolve_tag(tx, name)
        await tx.execute(
            "INSERT OR IGNORE INTO post_tags (post_id, tag_id) VALUES (?, ?)",
            (post_id, tag_id),
        )
        if tag_id not in tag_ids:
            tag_ids.append(tag_id)
    logger.debug(f"Post {post_id} tagged with {len(tag_ids)} tags (replace={replace})")
    return tag_ids


async def reconcile_categories(tx, post_id: str, category_ids: Iterable, replace: bool = False) -> List[str]:
    """Attach categories by id; same replace/additive semantics as tags"""
    ids = []
    for category_id in category_ids:
        if not isinstance(category_id, (str, int)) or isinstance(category_id, bool):
            raise ValidationError("category_ids must be a list of ids")
        if str(category_id) not in ids:
            ids.append(str(category_id))

    if ids:
        placeholders = ', '.join('?' for _ in ids)
        rows = await tx.fetch_all(f"SELECT id FROM categories WHERE id IN ({placeholders})", ids)
        unknown = sorted(set(ids) - {row['id'] for row in rows})
        if unknown:
            raise ValidationError("Unknown category ids", details={'category_ids': unknown})

    if replace:
        await tx.execute("DELETE FROM post_categories WHERE post_id = ?", (post_id,))
    for category_id in ids:
        await tx.execute(
            "INSERT OR IGNORE INTO post_categories (post_id, category_id) VALUES (?, ?)",
            (post_id, category_id),
        )
    logger.debug(f"Post {post_id} linked to {len(ids)} categories (replace={replace})")
    return ids
