import re
import time
from typing import Optional

_NON_WORD = re.compile(r'[^\w\s-]', re.ASCII)
_WHITESPACE = re.compile(r'\s+')
_HYPHENS = re.compile(r'-{2,}')


def slugify(text: str) -> str:
    """Slug for posts and categories: 'Hello World!' -> 'hello-world'"""
    slug = _NON_WORD.sub('', text.lower().strip())
    slug = _WHITESPACE.sub('-', slug)
    slug = _HYPHENS.sub('-', slug)
    return slug.strip('-')


def tag_slug(name: str) -> str:
    """Slug for tags; punctuation is kept, only whitespace is replaced"""
    return _WHITESPACE.sub('-', name.strip().lower())


def dedupe_suffix(slug: str) -> str:
    return f"{slug}-{int(time.time() * 1000)}"


async def unique_post_slug(executor, base: str, exclude_id: Optional[str] = None) -> str:
    """Return base, or a timestamp-suffixed variant when another post holds it"""
    candidate = base or 'post'
    while True:
        query = "SELECT id FROM posts WHERE slug = ?"
        params = [candidate]
        if exclude_id is not None:
            query += " AND id != ?"
            params.append(exclude_id)
        if await executor.fetch_one(query, params) is None:
            return candidate
        candidate = dedupe_suffix(base or 'post')
