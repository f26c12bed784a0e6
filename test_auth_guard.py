#!/usr/bin/env python3
"""
Tests for bearer token resolution and the Firebase identity wrapper.
"""

from types import SimpleNamespace

import pytest

import auth_guard
from auth_guard import AccessGuard, FirebaseIdentityProvider
from errors import InvalidArgument, NotFound, Unauthenticated


@pytest.fixture
def guard(identity):
    return AccessGuard(identity)


def test_authenticate_resolves_caller(guard):
    caller = guard.authenticate('Bearer token-alice')

    assert caller.id == 'alice'
    assert caller.email == 'alice@example.com'
    assert caller.is_authenticated


@pytest.mark.parametrize('header', [None, '', 'token-alice', 'Basic token-alice', 'Bearer    ', 'Bearer nope'])
def test_authenticate_rejects(guard, header):
    with pytest.raises(Unauthenticated):
        guard.authenticate(header)


def test_resolve_returns_none_for_anonymous(guard):
    assert guard.resolve(None) is None
    assert guard.resolve('Bearer nope') is None
    assert guard.resolve('Bearer token-bob').id == 'bob'


def test_sub_claim_fallback():
    class SubOnly:
        def verify_token(self, token):
            return {'sub': 'u-123'}

    assert AccessGuard(SubOnly()).authenticate('Bearer t').id == 'u-123'


def test_claims_without_uid_are_rejected():
    class NoUid:
        def verify_token(self, token):
            return {'email': 'x@example.com'}

    with pytest.raises(Unauthenticated):
        AccessGuard(NoUid()).authenticate('Bearer t')


def test_firebase_verify_token_errors(monkeypatch):
    def _reject(token, check_revoked=False):
        raise ValueError("malformed")

    monkeypatch.setattr(auth_guard.firebase_auth, 'verify_id_token', _reject)

    with pytest.raises(Unauthenticated):
        FirebaseIdentityProvider().verify_token('bad')


def test_firebase_verify_token_checks_revocation(monkeypatch):
    calls = []

    def _verify(token, check_revoked=False):
        calls.append(check_revoked)
        return {'uid': 'alice'}

    monkeypatch.setattr(auth_guard.firebase_auth, 'verify_id_token', _verify)

    assert FirebaseIdentityProvider().verify_token('good') == {'uid': 'alice'}
    assert calls == [True]


def test_firebase_user_lookups(monkeypatch):
    record = SimpleNamespace(uid='alice', email='alice@example.com', display_name=None, email_verified=True)
    monkeypatch.setattr(auth_guard.firebase_auth, 'get_user', lambda uid: record)

    assert FirebaseIdentityProvider().get_user('alice') == {
        'uid': 'alice', 'email': 'alice@example.com', 'name': '', 'email_verified': True,
    }

    def _missing(email):
        raise auth_guard.firebase_auth.UserNotFoundError("no user")

    monkeypatch.setattr(auth_guard.firebase_auth, 'get_user_by_email', _missing)
    with pytest.raises(NotFound):
        FirebaseIdentityProvider().get_user_by_email('x@example.com')


def test_firebase_create_user_duplicate(monkeypatch):
    def _exists(**kwargs):
        raise auth_guard.firebase_auth.EmailAlreadyExistsError("exists", None, None)

    monkeypatch.setattr(auth_guard.firebase_auth, 'create_user', _exists)

    with pytest.raises(InvalidArgument, match="already exists"):
        FirebaseIdentityProvider().create_user('alice@example.com', 'secret1', 'Alice')
