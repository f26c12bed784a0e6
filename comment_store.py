"""
Read paths keyed by hub: comments and the activity timeline.
"""

import logging
from datetime import datetime, timezone

from database import COMMENTS, FILES, HUBS, activity_path
from errors import InvalidArgument, NotFound
from models import ActivityItem, Comment, HubFile, StudyHub, parse_timestamp

logger = logging.getLogger('bytehub.storage')

MAX_COMMENT_LENGTH = 2000
HISTORY_LIMIT = 50
SYNTHESIZED_FILE_LIMIT = 10


class CommentStore:
    def __init__(self, store, profiles):
        self.store = store
        self.profiles = profiles

    def create(self, hub_id, caller_id, text):
        if not hub_id or not isinstance(text, str) or not text.strip():
            raise InvalidArgument("Hub ID and comment text required")
        if len(text) > MAX_COMMENT_LENGTH:
            raise InvalidArgument(f"Comments are limited to {MAX_COMMENT_LENGTH} characters")
        if self.store.get(HUBS, hub_id) is None:
            raise NotFound("Hub not found")

        author = self.profiles.find(caller_id)
        comment = Comment(
            id=None,
            hub_id=hub_id,
            user_id=caller_id,
            text=text.strip(),
            user_name=author.name if author else 'Anonymous',
            user_avatar=author.avatar_url if author else '',
        )
        comment.id = self.store.add(COMMENTS, comment.to_dict())
        return comment

    def list(self, hub_id):
        if not hub_id:
            raise InvalidArgument("Hub ID required")
        documents = self.store.query(COMMENTS, filters=[('hubId', '==', hub_id)],
                                     order_by='createdAt', descending=True)
        return [Comment.from_dict(data) for data in documents]


def _sort_key(item):
    return parse_timestamp(item.timestamp) or datetime.min.replace(tzinfo=timezone.utc)


class HubHistory:
    def __init__(self, store):
        self.store = store

    def record(self, hub_id, activity_type, message, user_id, user_name='', metadata=None, timestamp=None):
        """Append to the hub's activity log. A failed write is logged, not raised."""
        item = ActivityItem(id=None, type=activity_type, message=message, user_id=user_id,
                            user_name=user_name, timestamp=timestamp, metadata=metadata)
        try:
            item.id = self.store.add(activity_path(hub_id), item.to_dict())
        except Exception as e:
            logger.error(f"Error recording {activity_type} for hub {hub_id}: {e}")
            return None
        return item

    def history(self, hub_id, limit=HISTORY_LIMIT):
        if not hub_id:
            raise InvalidArgument("Hub ID required")
        hub_data = self.store.get(HUBS, hub_id)
        if hub_data is None:
            raise NotFound("Hub not found")

        documents = self.store.query(activity_path(hub_id), order_by='timestamp', descending=True, limit=limit)
        if documents:
            return [ActivityItem.from_dict(data) for data in documents]

        return self._synthesize(StudyHub.from_dict(hub_data))

    def _synthesize(self, hub):
        """Timeline built from hub and file timestamps, for hubs without an activity log."""
        items = [ActivityItem(
            id='hub_created',
            type='hub_created',
            message='Hub created',
            user_id=hub.owner_id,
            user_name=hub.owner_name or 'Owner',
            timestamp=hub.created_at,
            metadata={'hubTitle': hub.title},
        )]

        if hub.updated_at and hub.updated_at != hub.created_at:
            items.append(ActivityItem(
                id='hub_updated',
                type='hub_updated',
                message='Hub details updated',
                user_id=hub.owner_id,
                user_name=hub.owner_name or 'Owner',
                timestamp=hub.updated_at,
                metadata={'hubTitle': hub.title},
            ))

        file_documents = self.store.query(FILES, filters=[('hubId', '==', hub.id)],
                                          order_by='uploadedAt', descending=True,
                                          limit=SYNTHESIZED_FILE_LIMIT)
        for data in file_documents:
            hub_file = HubFile.from_dict(data)
            items.append(ActivityItem(
                id=f"file_{hub_file.id}",
                type='file_uploaded',
                message=f"Uploaded {hub_file.file_name}",
                user_id=hub_file.uploader_id,
                user_name=hub_file.uploader_name or 'User',
                timestamp=hub_file.uploaded_at,
                metadata={
                    'fileName': hub_file.file_name,
                    'fileSize': hub_file.file_size,
                    'fileType': hub_file.file_type,
                },
            ))

        items.sort(key=_sort_key, reverse=True)
        return items
