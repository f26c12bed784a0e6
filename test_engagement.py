#!/usr/bin/env python3
"""
Tests for star/unstar and follow/unfollow.
"""

import threading

import pytest

from database import HUBS, USERS
from errors import InvalidArgument, NotFound


def _hub(hubs, owner='alice', **kwargs):
    return hubs.create(owner, kwargs.pop('title', 'DSA'), kwargs.pop('description', 'notes'),
                       tags=['cs'], **kwargs)


def test_star_scenario(hubs, engagement):
    hub = _hub(hubs)
    assert hub.stars == 0

    assert engagement.toggle_star(hub.id, 'bob') == {'hubId': hub.id, 'starred': True, 'stars': 1}
    assert engagement.toggle_star(hub.id, 'bob') == {'hubId': hub.id, 'starred': False, 'stars': 0}


def test_star_count_tracks_membership(hubs, engagement, store):
    hub = _hub(hubs)
    toggles = ['bob', 'carol', 'bob', 'alice', 'bob', 'carol', 'carol']
    counts = {}

    for uid in toggles:
        engagement.toggle_star(hub.id, uid)
        counts[uid] = counts.get(uid, 0) + 1

        data = store.get(HUBS, hub.id)
        assert data['stars'] == len(data['starredBy'])
        for user_id, n in counts.items():
            assert (user_id in data['starredBy']) == (n % 2 == 1)


def test_unstar_clamps_at_zero(store, engagement):
    store.set(HUBS, 'corrupt', {'title': 'Old', 'description': 'x', 'ownerId': 'alice',
                                'visibility': 'public', 'stars': 0, 'starredBy': ['bob']})

    result = engagement.toggle_star('corrupt', 'bob')

    assert result == {'hubId': 'corrupt', 'starred': False, 'stars': 0}
    assert store.get(HUBS, 'corrupt')['starredBy'] == []


def test_star_stamps_updated_at(hubs, engagement, store):
    hub = _hub(hubs)
    store.update(HUBS, hub.id, {'updatedAt': '2020-01-01T00:00:00+00:00'})

    engagement.toggle_star(hub.id, 'bob')

    assert store.get(HUBS, hub.id)['updatedAt'] > '2020-01-01T00:00:00+00:00'


def test_star_requires_existing_hub(engagement):
    with pytest.raises(InvalidArgument):
        engagement.toggle_star('', 'bob')
    with pytest.raises(NotFound):
        engagement.toggle_star('missing', 'bob')


def test_concurrent_stars_are_not_lost(hubs, engagement, store):
    hub = _hub(hubs)
    callers = [f"user{i}" for i in range(20)]

    threads = [threading.Thread(target=engagement.toggle_star, args=(hub.id, uid)) for uid in callers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    data = store.get(HUBS, hub.id)
    assert data['stars'] == 20
    assert sorted(data['starredBy']) == sorted(callers)


def test_follow_scenario(profiles, engagement):
    result = engagement.toggle_follow('alice', 'bob')

    assert result == {'targetUserId': 'bob', 'following': True, 'followersCount': 1}
    assert 'bob' in profiles.get('alice').following
    assert 'alice' in profiles.get('bob').followers

    result = engagement.toggle_follow('alice', 'bob')

    assert result == {'targetUserId': 'bob', 'following': False, 'followersCount': 0}
    assert 'bob' not in profiles.get('alice').following
    assert 'alice' not in profiles.get('bob').followers


def test_follow_stays_mirrored(profiles, engagement):
    pairs = [('alice', 'bob'), ('bob', 'alice'), ('carol', 'bob'), ('alice', 'bob'), ('alice', 'carol')]
    for follower, target in pairs:
        engagement.toggle_follow(follower, target)

        for a in ('alice', 'bob', 'carol'):
            for b in ('alice', 'bob', 'carol'):
                if a == b:
                    continue
                assert (b in profiles.get(a).following) == (a in profiles.get(b).followers)


def test_follow_count_matches_followers(profiles, engagement):
    engagement.toggle_follow('alice', 'carol')
    result = engagement.toggle_follow('bob', 'carol')

    assert result['followersCount'] == len(profiles.get('carol').followers) == 2


def test_cannot_follow_self(profiles, engagement, store):
    before = store.get(USERS, 'alice')

    with pytest.raises(InvalidArgument, match="Cannot follow yourself"):
        engagement.toggle_follow('alice', 'alice')

    assert store.get(USERS, 'alice') == before


def test_follow_missing_users(profiles, engagement):
    with pytest.raises(InvalidArgument):
        engagement.toggle_follow('alice', '')
    with pytest.raises(NotFound, match="User not found"):
        engagement.toggle_follow('alice', 'nobody')
    with pytest.raises(NotFound, match="Your profile was not found"):
        engagement.toggle_follow('nobody', 'alice')

    assert profiles.get('alice').followers == []


def test_starred_hubs_hides_others_private_hubs(hubs, engagement):
    public = _hub(hubs, title='Public')
    private = _hub(hubs, title='Private', visibility='private')
    own_private = _hub(hubs, owner='bob', title='Mine', visibility='private')
    for hub in (public, private, own_private):
        engagement.toggle_star(hub.id, 'bob')

    starred = {hub.id for hub in engagement.starred_hubs('bob')}

    assert starred == {public.id, own_private.id}


def test_is_following(profiles, engagement):
    engagement.toggle_follow('alice', 'bob')

    assert engagement.is_following('alice', 'bob')
    assert not engagement.is_following('bob', 'alice')
    assert not engagement.is_following(None, 'bob')
