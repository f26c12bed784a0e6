#!/usr/bin/env python3
"""
Tests for hub creation, listing, editing and cascade delete.
"""

import io

import pytest

from database import COMMENTS, FILES, HUBS, activity_path, versions_path
from errors import Forbidden, InvalidArgument, NotFound
from hub_store import clean_tags


def _seed_hub(store, hub_id, owner, created_at, visibility='public', **extra):
    data = {'title': hub_id.upper(), 'description': 'notes', 'ownerId': owner, 'visibility': visibility,
            'tags': [], 'stars': 0, 'starredBy': [], 'files': [], 'createdAt': created_at,
            'updatedAt': created_at}
    data.update(extra)
    store.set(HUBS, hub_id, data)


def test_create_applies_defaults(hubs, store):
    hub = hubs.create('alice', '  DSA ', 'notes', tags='cs, math ,cs', owner_name='Alice')

    data = store.get(HUBS, hub.id)
    assert data['title'] == 'DSA'
    assert data['tags'] == ['cs', 'math']
    assert data['stars'] == 0
    assert data['starredBy'] == []
    assert data['files'] == []
    assert data['visibility'] == 'public'
    assert data['ownerId'] == 'alice'
    assert data['schemaVersion'] == 1


def test_create_requires_title_and_description(hubs):
    with pytest.raises(InvalidArgument, match="Title and description are required"):
        hubs.create('alice', '', 'notes')
    with pytest.raises(InvalidArgument):
        hubs.create('alice', 'DSA', '   ')
    with pytest.raises(InvalidArgument):
        hubs.create('alice', 'DSA', 'notes', visibility='friends')


def test_create_records_activity(hubs, history):
    hub = hubs.create('alice', 'DSA', 'notes')

    assert [item.type for item in history.history(hub.id)] == ['hub_created']


def test_get(hubs):
    with pytest.raises(InvalidArgument):
        hubs.get('')
    with pytest.raises(NotFound):
        hubs.get('missing')
    assert hubs.find('missing') is None


def test_list_defaults_to_public_hubs(hubs, store):
    _seed_hub(store, 'a1', 'alice', '2024-01-01T00:00:00+00:00')
    _seed_hub(store, 'a2', 'alice', '2024-01-02T00:00:00+00:00', visibility='private')
    _seed_hub(store, 'b1', 'bob', '2024-01-03T00:00:00+00:00')

    assert [hub.id for hub in hubs.list()] == ['b1', 'a1']


def test_list_by_owner_ignores_visibility(hubs, store):
    _seed_hub(store, 'a1', 'alice', '2024-01-01T00:00:00+00:00')
    _seed_hub(store, 'a2', 'alice', '2024-01-02T00:00:00+00:00', visibility='private')
    _seed_hub(store, 'b1', 'bob', '2024-01-03T00:00:00+00:00')

    listed = hubs.list(owner_id='alice')

    assert [hub.id for hub in listed] == ['a2', 'a1']
    assert all(hub.owner_id == 'alice' for hub in listed)
    assert [hub.id for hub in hubs.list(owner_id='alice', visibility='public')] == ['a1']


def test_list_private_without_owner_is_empty(hubs, store):
    _seed_hub(store, 'a1', 'alice', '2024-01-01T00:00:00+00:00')
    _seed_hub(store, 'a2', 'alice', '2024-01-02T00:00:00+00:00', visibility='private')

    assert hubs.list(visibility='private') == []
    assert [hub.id for hub in hubs.list(visibility='public')] == ['a1']


def test_list_filters_search_and_tags_in_memory(hubs, store):
    _seed_hub(store, 'algo', 'alice', '2024-01-01T00:00:00+00:00', title='Algorithms', tags=['cs'])
    _seed_hub(store, 'bio', 'bob', '2024-01-02T00:00:00+00:00', title='Biology', tags=['science'])
    _seed_hub(store, 'ds', 'bob', '2024-01-03T00:00:00+00:00', title='Data structures', tags=['cs'])

    assert [hub.id for hub in hubs.list(search='ALGO')] == ['algo']
    assert [hub.id for hub in hubs.list(tags='cs')] == ['ds', 'algo']
    # limit bounds the fetch, not the filtered result
    assert [hub.id for hub in hubs.list(tags='cs', limit=2)] == ['ds']


def test_list_rejects_bad_visibility(hubs):
    with pytest.raises(InvalidArgument):
        hubs.list(visibility='secret')


def test_search_only_public(hubs, store):
    _seed_hub(store, 'p', 'alice', '2024-01-01T00:00:00+00:00', title='Physics notes')
    _seed_hub(store, 'q', 'alice', '2024-01-02T00:00:00+00:00', title='Physics private', visibility='private')

    assert [hub.id for hub in hubs.search('physics')] == ['p']


def test_update_by_owner(hubs, store):
    hub = hubs.create('alice', 'DSA', 'notes')
    store.update(HUBS, hub.id, {'updatedAt': '2020-01-01T00:00:00+00:00'})

    updated = hubs.update(hub.id, 'alice', {'title': 'Algorithms', 'tags': ['cs', 'cs'],
                                            'stars': 99, 'ownerId': 'bob'})

    assert updated.title == 'Algorithms'
    assert updated.tags == ['cs']
    assert updated.stars == 0
    assert updated.owner_id == 'alice'
    assert updated.updated_at > '2020-01-01T00:00:00+00:00'


def test_update_validates_fields(hubs):
    hub = hubs.create('alice', 'DSA', 'notes')

    with pytest.raises(InvalidArgument):
        hubs.update(hub.id, 'alice', {'title': ''})
    with pytest.raises(InvalidArgument):
        hubs.update(hub.id, 'alice', {'visibility': 'hidden'})


def test_preview_image_must_be_text(hubs, store):
    with pytest.raises(InvalidArgument):
        hubs.create('alice', 'DSA', 'notes', preview_image={'url': 'x'})

    hub = hubs.create('alice', 'DSA', 'notes', preview_image='https://img.test/dsa.png')
    with pytest.raises(InvalidArgument):
        hubs.update(hub.id, 'alice', {'previewImage': 42})
    assert store.get(HUBS, hub.id)['previewImage'] == 'https://img.test/dsa.png'

    assert hubs.update(hub.id, 'alice', {'previewImage': None}).preview_image == ''


def test_non_owner_cannot_update_or_delete(hubs, store):
    hub = hubs.create('alice', 'DSA', 'notes')
    before = store.get(HUBS, hub.id)

    with pytest.raises(Forbidden):
        hubs.update(hub.id, 'bob', {'title': 'Mine now'})
    with pytest.raises(Forbidden):
        hubs.delete(hub.id, 'bob')

    assert store.get(HUBS, hub.id) == before


def test_delete_cascades(hubs, files, comments, store, media):
    hub = hubs.create('alice', 'DSA', 'notes')
    first = files.upload(hub.id, 'alice', io.BytesIO(b'v1'), 'notes.pdf')
    files.upload(hub.id, 'alice', io.BytesIO(b'v2'), 'notes.pdf', file_id=first.id, change_note='typo')
    second = files.upload(hub.id, 'alice', io.BytesIO(b'slides'), 'slides.pptx')
    comments.create(hub.id, 'bob', 'Great notes')
    assert len(media.blobs) == 3

    counts = hubs.delete(hub.id, 'alice')

    assert counts['files'] == 2
    assert counts['blobs'] == 3
    with pytest.raises(NotFound):
        hubs.get(hub.id)
    for file_id in (first.id, second.id):
        with pytest.raises(NotFound):
            files.get(file_id)
        assert store.query(versions_path(file_id)) == []
    assert store.query(FILES) == []
    assert store.query(COMMENTS) == []
    assert store.query(activity_path(hub.id)) == []
    assert media.blobs == {}


def test_delete_survives_media_failure(hubs, store, media, monkeypatch):
    hub = hubs.create('alice', 'DSA', 'notes')

    def _fail(prefix):
        raise RuntimeError("bucket unavailable")

    monkeypatch.setattr(media, 'delete_prefix', _fail)

    counts = hubs.delete(hub.id, 'alice')

    assert counts['blobs'] == 0
    assert store.get(HUBS, hub.id) is None


def test_clean_tags():
    assert clean_tags(None) == []
    assert clean_tags(' a, b ,,a') == ['a', 'b']
    with pytest.raises(InvalidArgument):
        clean_tags(['ok', 3])
    with pytest.raises(InvalidArgument):
        clean_tags({'tag': 'x'})
