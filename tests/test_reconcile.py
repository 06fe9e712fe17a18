import pytest

from blogapi.aioweb import ValidationError
from blogapi.reconcile import clean_tag_names, reconcile_categories, reconcile_tags


async def tag_names_of(db, post_id):
    rows = await db.fetch_all(
        "SELECT t.name FROM post_tags pt JOIN tags t ON pt.tag_id = t.id WHERE pt.post_id = ? ORDER BY t.name",
        (post_id,),
    )
    return [row['name'] for row in rows]


def test_clean_tag_names_skips_blank():
    assert clean_tag_names(['python', '  ', '', ' web ']) == ['python', 'web']
    with pytest.raises(ValidationError):
        clean_tag_names(['ok', 3])


async def test_same_tag_twice_gives_one_row_and_one_link(db, make_post):
    post_id = (await make_post())['id']
    async with db.transaction() as tx:
        await reconcile_tags(tx, post_id, ['Python', 'python', 'PYTHON'])
    async with db.transaction() as tx:
        await reconcile_tags(tx, post_id, ['python'])

    assert await db.fetch_value("SELECT COUNT(*) FROM tags") == 1
    assert await db.fetch_value("SELECT COUNT(*) FROM post_tags WHERE post_id = ?", (post_id,)) == 1
    assert await db.fetch_value("SELECT name FROM tags") == 'Python'


async def test_create_path_is_additive(db, make_post):
    post_id = (await make_post(tag_names=['alpha']))['id']
    async with db.transaction() as tx:
        await reconcile_tags(tx, post_id, ['beta'])
    assert await tag_names_of(db, post_id) == ['alpha', 'beta']


async def test_replace_path_drops_previous_set(db, make_post):
    post_id = (await make_post(tag_names=['alpha', 'beta']))['id']
    async with db.transaction() as tx:
        await reconcile_tags(tx, post_id, ['beta', 'gamma'], replace=True)
    assert await tag_names_of(db, post_id) == ['beta', 'gamma']

    async with db.transaction() as tx:
        await reconcile_tags(tx, post_id, [], replace=True)
    assert await tag_names_of(db, post_id) == []
    assert await db.fetch_value("SELECT COUNT(*) FROM tags") == 3


async def test_tags_are_shared_between_posts(db, make_post):
    first = (await make_post(title='First', tag_names=['Machine Learning']))['id']
    second = (await make_post(title='Second', tag_names=['machine   learning']))['id']
    assert await db.fetch_value("SELECT COUNT(*) FROM tags") == 1
    assert await db.fetch_value("SELECT slug FROM tags") == 'machine-learning'
    assert await tag_names_of(db, first) == await tag_names_of(db, second)


async def test_category_reconciliation(db, client, headers, make_post):
    ids = []
    for name in ('One', 'Two'):
        resp = await client.post('/api/blog/categories', json={'name': name}, headers=headers['admin'])
        ids.append((await resp.json())['id'])
    post_id = (await make_post(category_ids=[ids[0]]))['id']

    async with db.transaction() as tx:
        await reconcile_categories(tx, post_id, [ids[1], ids[1]])
    assert await db.fetch_value("SELECT COUNT(*) FROM post_categories WHERE post_id = ?", (post_id,)) == 2

    async with db.transaction() as tx:
        await reconcile_categories(tx, post_id, [ids[1]], replace=True)
    rows = await db.fetch_all("SELECT category_id FROM post_categories WHERE post_id = ?", (post_id,))
    assert [row['category_id'] for row in rows] == [ids[1]]


async def test_failed_reconciliation_rolls_back(db, make_post):
    post_id = (await make_post(tag_names=['keep']))['id']
    with pytest.raises(ValidationError):
        async with db.transaction() as tx:
            await reconcile_tags(tx, post_id, ['other'], replace=True)
            await reconcile_categories(tx, post_id, ['missing'], replace=True)
    assert await tag_names_of(db, post_id) == ['keep']
