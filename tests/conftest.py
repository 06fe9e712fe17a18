import pytest

from blogapi import create_app
from blogapi.config import Settings
from blogapi.db import create_timestamp
from blogapi.security import hash_password

PASSWORD = 'password123'
ITERATIONS = 1000


async def create_user(db, user_id, email, name, role='author', password=PASSWORD):
    salt, password_hash = await hash_password(password, ITERATIONS)
    await db.execute(
        "INSERT INTO users (id, email, name, role, password_hash, password_salt, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (user_id, email, name, role, password_hash, salt, create_timestamp()),
    )
    return {'id': user_id, 'email': email, 'name': name, 'role': role}


def bearer(app, user):
    return {'Authorization': f"Bearer {app['tokens'].issue(user)}"}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_path=str(tmp_path / 'blog.db'),
        jwt_secret='test-secret',
        password_iterations=ITERATIONS,
    )


@pytest.fixture
async def client(aiohttp_client, settings):
    return await aiohttp_client(create_app(settings))


@pytest.fixture
def app(client):
    return client.server.app


@pytest.fixture
def db(app):
    return app['db']


@pytest.fixture
async def users(db):
    return {
        'admin': await create_user(db, 'user-admin', 'admin@example.com', 'Admin', role='admin'),
        'alice': await create_user(db, 'user-alice', 'alice@example.com', 'Alice'),
        'bob': await create_user(db, 'user-bob', 'bob@example.com', 'Bob'),
    }


@pytest.fixture
def headers(app, users):
    return {name: bearer(app, user) for name, user in users.items()}


@pytest.fixture
def make_post(client, headers):
    async def _make_post(author='alice', **fields):
        body = {'title': 'A post', 'content': 'Body text', **fields}
        resp = await client.post('/api/blog/posts', json=body, headers=headers[author])
        assert resp.status == 201, await resp.text()
        return await resp.json()
    return _make_post
