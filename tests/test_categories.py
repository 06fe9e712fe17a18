async def test_create_category_admin_only(client, headers):
    resp = await client.post('/api/blog/categories', json={'name': 'Tech'})
    assert resp.status == 401

    resp = await client.post('/api/blog/categories', json={'name': 'Tech'}, headers=headers['alice'])
    assert resp.status == 403

    resp = await client.post('/api/blog/categories', json={'name': 'Tech & Science', 'description': 'Nerdy'},
                             headers=headers['admin'])
    assert resp.status == 201
    body = await resp.json()
    assert body['name'] == 'Tech & Science'
    assert body['slug'] == 'tech-science'
    assert body['message'] == 'Category created successfully'


async def test_duplicate_category_conflicts(client, headers):
    resp = await client.post('/api/blog/categories', json={'name': 'News'}, headers=headers['admin'])
    assert resp.status == 201
    resp = await client.post('/api/blog/categories', json={'name': 'News'}, headers=headers['admin'])
    assert resp.status == 409
    resp = await client.post('/api/blog/categories', json={'name': 'news!'}, headers=headers['admin'])
    assert resp.status == 409


async def test_category_name_required(client, headers):
    resp = await client.post('/api/blog/categories', json={'description': 'x'}, headers=headers['admin'])
    assert resp.status == 400


async def test_list_counts_only_published_posts(client, headers, make_post):
    resp = await client.post('/api/blog/categories', json={'name': 'Travel'}, headers=headers['admin'])
    travel = (await resp.json())['id']
    await client.post('/api/blog/categories', json={'name': 'Art'}, headers=headers['admin'])

    await make_post(title='Trip one', status='published', category_ids=[travel])
    await make_post(title='Trip two', category_ids=[travel])

    resp = await client.get('/api/blog/categories')
    assert resp.status == 200
    categories = await resp.json()
    assert [c['name'] for c in categories] == ['Art', 'Travel']
    assert {c['name']: c['post_count'] for c in categories} == {'Art': 0, 'Travel': 1}
