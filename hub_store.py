import logging

from database import COMMENTS, FILES, HUBS, activity_path, versions_path
from errors import Forbidden, InvalidArgument, NotFound
from models import VISIBILITY_CHOICES, StudyHub, utc_now

logger = logging.getLogger('bytehub.storage')

# Keys the owner may change through PUT /hubs/<hubId>
HUB_EDITABLE_KEYS = ['title', 'description', 'tags', 'visibility', 'previewImage']


def clean_tags(tags):
    """Tags arrive as a list (or a comma-separated string); keep the first occurrence of each."""
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = tags.split(',')
    if not isinstance(tags, list):
        raise InvalidArgument("Tags must be a list of strings")

    cleaned = []
    for tag in tags:
        if not isinstance(tag, str):
            raise InvalidArgument("Tags must be a list of strings")
        tag = tag.strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def _require_text(value, field):
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f"{field} is required")
    return value.strip()


def _optional_text(value, field):
    if value is None or isinstance(value, str):
        return value or ''
    raise InvalidArgument(f"{field} must be a string")


class HubStore:
    def __init__(self, store, history=None, media=None):
        self.store = store
        self.history = history
        self.media = media

    def create(self, owner_id, title, description, tags=None, visibility='public',
               preview_image='', owner_name=''):
        if not isinstance(title, str) or not title.strip() or not isinstance(description, str) or not description.strip():
            raise InvalidArgument("Title and description are required")

        visibility = visibility or 'public'
        if visibility not in VISIBILITY_CHOICES:
            raise InvalidArgument("Visibility must be 'public' or 'private'")

        hub = StudyHub(
            id=None,
            title=title.strip(),
            description=description.strip(),
            owner_id=owner_id,
            owner_name=owner_name,
            tags=clean_tags(tags),
            visibility=visibility,
            preview_image=_optional_text(preview_image, 'Preview image'),
        )
        hub.id = self.store.add(HUBS, hub.to_dict())

        if self.history:
            self.history.record(hub.id, 'hub_created', 'Hub created', owner_id, owner_name,
                                {'hubTitle': hub.title}, timestamp=hub.created_at)
        return hub

    def find(self, hub_id):
        if not hub_id:
            return None
        data = self.store.get(HUBS, hub_id)
        return StudyHub.from_dict(data) if data else None

    def get(self, hub_id):
        if not hub_id:
            raise InvalidArgument("Hub ID required")
        hub = self.find(hub_id)
        if hub is None:
            raise NotFound("Hub not found")
        return hub

    def list(self, owner_id=None, visibility=None, search=None, tags=None, limit=20):
        """
        Hubs newest first. Without an owner only public hubs are returned, and
        visibility only narrows the result further. search/tags are applied
        after the limited fetch, so fewer than `limit` hubs can come back even
        when more would match.
        """
        if visibility and visibility not in VISIBILITY_CHOICES:
            raise InvalidArgument("Visibility must be 'public' or 'private'")

        filters = [('ownerId', '==', owner_id)] if owner_id else [('visibility', '==', 'public')]
        if visibility:
            filters.append(('visibility', '==', visibility))

        documents = self.store.query(HUBS, filters=filters, order_by='createdAt', descending=True, limit=limit)
        hubs = [StudyHub.from_dict(data) for data in documents]

        if search:
            hubs = [hub for hub in hubs if hub.matches_search(search)]

        wanted_tags = clean_tags(tags) if tags else []
        if wanted_tags:
            hubs = [hub for hub in hubs if any(tag in hub.tags for tag in wanted_tags)]

        return hubs

    def search(self, term, limit=20):
        documents = self.store.query(HUBS, filters=[('visibility', '==', 'public')], limit=limit)
        hubs = [StudyHub.from_dict(data) for data in documents]
        return [hub for hub in hubs if hub.matches_search(term)][:limit]

    def update(self, hub_id, caller_id, patch):
        hub = self.get(hub_id)
        if not hub.is_owned_by(caller_id):
            raise Forbidden()
        if not isinstance(patch, dict):
            raise InvalidArgument("Invalid request body")

        update_data = {}
        for key, value in patch.items():
            if key not in HUB_EDITABLE_KEYS:
                continue
            if key in ('title', 'description'):
                update_data[key] = _require_text(value, key.capitalize())
            elif key == 'tags':
                update_data[key] = clean_tags(value)
            elif key == 'visibility':
                if value not in VISIBILITY_CHOICES:
                    raise InvalidArgument("Visibility must be 'public' or 'private'")
                update_data[key] = value
            else:
                update_data[key] = _optional_text(value, 'Preview image')

        now = utc_now()
        update_data['updatedAt'] = now
        update_data['lastActivity'] = now
        self.store.update(HUBS, hub_id, update_data)

        changed = sorted(key for key in update_data if key in HUB_EDITABLE_KEYS)
        if self.history and changed:
            self.history.record(hub_id, 'hub_updated', 'Hub details updated', caller_id, hub.owner_name,
                                {'hubTitle': update_data.get('title', hub.title), 'fields': changed},
                                timestamp=now)
        return self.get(hub_id)

    def delete(self, hub_id, caller_id):
        """
        Owner-only. Removes the hub's files with their versions, its comments and
        its activity log, then the hub itself, then the stored blobs.
        """
        hub = self.get(hub_id)
        if not hub.is_owned_by(caller_id):
            raise Forbidden()

        refs = []
        file_documents = self.store.query(FILES, filters=[('hubId', '==', hub_id)])
        for file_data in file_documents:
            for version in self.store.query(versions_path(file_data['id'])):
                refs.append((versions_path(file_data['id']), version['id']))
            refs.append((FILES, file_data['id']))

        for comment in self.store.query(COMMENTS, filters=[('hubId', '==', hub_id)]):
            refs.append((COMMENTS, comment['id']))
        for item in self.store.query(activity_path(hub_id)):
            refs.append((activity_path(hub_id), item['id']))

        # Hub document goes last so a failed cascade can be retried
        refs.append((HUBS, hub_id))
        self.store.delete_many(refs)

        blobs_deleted = 0
        if self.media:
            try:
                blobs_deleted = self.media.delete_prefix(f"hubs/{hub_id}/")
            except Exception as e:
                logger.error(f"Error deleting stored blobs for hub {hub_id}: {e}")

        logger.info(f"Deleted hub {hub_id}: {len(file_documents)} files, {blobs_deleted} blobs")
        return {'files': len(file_documents), 'documents': len(refs), 'blobs': blobs_deleted}
