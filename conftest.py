"""
Shared fixtures: an in-memory document store, a fake media store and a fake
identity provider wired into the Flask app.
"""

import pytest

from app import create_app
from comment_store import CommentStore, HubHistory
from config import TestingConfig
from database import InMemoryStore
from engagement import EngagementEngine
from errors import InvalidArgument, NotFound, Unauthenticated
from file_store import FileStore
from hub_store import HubStore
from profile_store import ProfileStore


class FakeMediaStore:
    """Keeps uploaded bytes in a dict keyed by storage path."""

    def __init__(self):
        self.blobs = {}
        self._counter = 0

    def upload(self, hub_id, stream, filename, content_type=None):
        self._counter += 1
        path = f"hubs/{hub_id}/{self._counter}_{filename}"
        self.blobs[path] = stream.read()
        return {'url': f"https://storage.test/{path}", 'path': path}

    def delete(self, path):
        return self.blobs.pop(path, None) is not None

    def delete_prefix(self, prefix):
        paths = [path for path in self.blobs if path.startswith(prefix)]
        for path in paths:
            del self.blobs[path]
        return len(paths)


class FakeIdentityProvider:
    """Accounts in a dict; the token for uid X is "token-X"."""

    def __init__(self):
        self.users = {}
        self.tokens = {}

    def add_user(self, uid, email, name='', email_verified=False):
        self.users[uid] = {'uid': uid, 'email': email, 'name': name, 'email_verified': email_verified}
        token = f"token-{uid}"
        self.tokens[token] = uid
        return token

    def verify_token(self, token):
        uid = self.tokens.get(token)
        if uid is None:
            raise Unauthenticated()
        record = self.users[uid]
        return {'uid': uid, 'email': record['email'], 'email_verified': record['email_verified']}

    def create_user(self, email, password, name):
        if any(record['email'] == email for record in self.users.values()):
            raise InvalidArgument("An account with this email already exists")
        uid = f"uid-{email.split('@')[0]}"
        self.add_user(uid, email, name)
        return dict(self.users[uid])

    def get_user(self, uid):
        if uid not in self.users:
            raise NotFound("User not found")
        return dict(self.users[uid])

    def get_user_by_email(self, email):
        for record in self.users.values():
            if record['email'] == email:
                return dict(record)
        raise NotFound("User not found")

    def generate_email_verification_link(self, email, continue_url):
        return f"https://auth.test/verify?email={email}&continueUrl={continue_url}"


USERS = [
    ('alice', 'alice@example.com', 'Alice'),
    ('bob', 'bob@example.com', 'Bob'),
    ('carol', 'carol@example.com', 'Carol'),
]


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def media():
    return FakeMediaStore()


@pytest.fixture
def identity():
    provider = FakeIdentityProvider()
    for uid, email, name in USERS:
        provider.add_user(uid, email, name)
    return provider


@pytest.fixture
def profiles(store):
    """ProfileStore with alice, bob and carol already signed up."""
    profile_store = ProfileStore(store)
    for uid, email, name in USERS:
        profile_store.upsert_on_auth(uid, email, name)
    return profile_store


@pytest.fixture
def history(store):
    return HubHistory(store)


@pytest.fixture
def hubs(store, history, media):
    return HubStore(store, history=history, media=media)


@pytest.fixture
def files(store, media, history, profiles):
    return FileStore(store, media, history=history, profiles=profiles)


@pytest.fixture
def engagement(store):
    return EngagementEngine(store)


@pytest.fixture
def comments(store, profiles):
    return CommentStore(store, profiles)


@pytest.fixture
def app(store, media, identity, profiles):
    return create_app(TestingConfig, store=store, media=media, identity=identity)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth():
    """auth('alice') -> Authorization header for that user."""
    def _headers(uid):
        return {'Authorization': f'Bearer token-{uid}'}
    return _headers
