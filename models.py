from datetime import datetime, timezone

SCHEMA_VERSION = 1

VISIBILITY_CHOICES = ('public', 'private')
THEME_CHOICES = ('light', 'dark', 'system')


def utc_now():
    """Timestamps are stored as ISO-8601 UTC strings."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value):
    """Accepts ISO strings or datetimes (older documents) and returns an aware datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


# --- User profile ---
class UserProfile:
    def __init__(self, id, email='', name='', username='', bio='', institution='',
                 avatar_url='', website='', social_links=None,
                 followers=None, following=None,
                 # Notification & privacy settings
                 profile_visibility='public', email_notifications=True,
                 hub_notifications=True, follow_notifications=True,
                 show_email=False, show_institution=True, theme='light',
                 created_at=None, updated_at=None, schema_version=SCHEMA_VERSION, **kwargs):
        self.id = id
        self.email = email or ''
        self.name = name or (email.split('@')[0] if email else '')
        self.username = username or ''
        self.bio = bio or ''
        self.institution = institution or ''
        self.avatar_url = avatar_url or ''
        self.website = website or ''
        self.social_links = social_links if social_links is not None else {}
        self.followers = list(followers) if followers is not None else []
        self.following = list(following) if following is not None else []

        self.profile_visibility = profile_visibility
        self.email_notifications = email_notifications
        self.hub_notifications = hub_notifications
        self.follow_notifications = follow_notifications
        self.show_email = show_email
        self.show_institution = show_institution
        self.theme = theme

        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or self.created_at
        self.schema_version = schema_version

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'username': self.username,
            'bio': self.bio,
            'institution': self.institution,
            'avatarURL': self.avatar_url,
            'website': self.website,
            'socialLinks': self.social_links,
            'followers': self.followers,
            'following': self.following,
            'profileVisibility': self.profile_visibility,
            'emailNotifications': self.email_notifications,
            'hubNotifications': self.hub_notifications,
            'followNotifications': self.follow_notifications,
            'showEmail': self.show_email,
            'showInstitution': self.show_institution,
            'theme': self.theme,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'schemaVersion': self.schema_version,
        }

    def to_public_dict(self, viewer_id=None):
        """Profile as seen by another user: email and institution follow the privacy flags."""
        data = self.to_dict()
        if viewer_id == self.id:
            return data
        if self.profile_visibility == 'private':
            return {
                'id': self.id,
                'name': self.name,
                'avatarURL': self.avatar_url,
                'profileVisibility': self.profile_visibility,
            }
        if not self.show_email:
            data.pop('email', None)
        if not self.show_institution:
            data.pop('institution', None)
        return data

    @staticmethod
    def from_dict(source):
        return UserProfile(
            id=source.get('id'),
            email=source.get('email', ''),
            name=source.get('name', ''),
            username=source.get('username', ''),
            bio=source.get('bio', ''),
            institution=source.get('institution', ''),
            avatar_url=source.get('avatarURL') or source.get('avatar', ''),
            website=source.get('website', ''),
            social_links=source.get('socialLinks', {}),
            followers=source.get('followers', []),
            following=source.get('following', []),
            profile_visibility=source.get('profileVisibility', 'public'),
            email_notifications=source.get('emailNotifications', True),
            hub_notifications=source.get('hubNotifications', True),
            follow_notifications=source.get('followNotifications', True),
            show_email=source.get('showEmail', False),
            show_institution=source.get('showInstitution', True),
            theme=source.get('theme', 'light'),
            created_at=source.get('createdAt'),
            updated_at=source.get('updatedAt'),
            schema_version=source.get('schemaVersion', SCHEMA_VERSION),
        )


# --- Study hub ---
class StudyHub:
    def __init__(self, id, title, description, owner_id, tags=None, owner_name='',
                 visibility='public', preview_image='', files=None,
                 stars=0, starred_by=None, views=0, downloads=0,
                 created_at=None, updated_at=None, last_activity=None,
                 schema_version=SCHEMA_VERSION, **kwargs):
        self.id = id
        self.title = title
        self.description = description
        self.owner_id = owner_id
        self.owner_name = owner_name or ''
        self.tags = list(tags) if tags is not None else []
        self.visibility = visibility if visibility in VISIBILITY_CHOICES else 'public'
        self.preview_image = preview_image or ''
        self.files = list(files) if files is not None else []  # File document ids
        self.stars = stars
        self.starred_by = list(starred_by) if starred_by is not None else []
        self.views = views
        self.downloads = downloads
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or self.created_at
        self.last_activity = last_activity or self.updated_at
        self.schema_version = schema_version

    def is_owned_by(self, user_id):
        return user_id is not None and self.owner_id == user_id

    def is_starred_by(self, user_id):
        return user_id in self.starred_by

    def matches_search(self, term):
        term = term.lower()
        return (term in (self.title or '').lower()
                or term in (self.description or '').lower()
                or any(term in tag.lower() for tag in self.tags))

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'tags': self.tags,
            'ownerId': self.owner_id,
            'ownerName': self.owner_name,
            'visibility': self.visibility,
            'previewImage': self.preview_image,
            'files': self.files,
            'stars': self.stars,
            'starredBy': self.starred_by,
            'views': self.views,
            'downloads': self.downloads,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'lastActivity': self.last_activity,
            'schemaVersion': self.schema_version,
        }

    @staticmethod
    def from_dict(source):
        return StudyHub(
            id=source.get('id'),
            title=source.get('title', ''),
            description=source.get('description', ''),
            owner_id=source.get('ownerId'),
            owner_name=source.get('ownerName', ''),
            tags=source.get('tags') or [],
            visibility=source.get('visibility', 'public'),
            preview_image=source.get('previewImage', ''),
            files=source.get('files') or [],
            stars=source.get('stars') or 0,
            starred_by=source.get('starredBy') or [],
            views=source.get('views') or 0,
            downloads=source.get('downloads') or 0,
            created_at=source.get('createdAt'),
            updated_at=source.get('updatedAt'),
            last_activity=source.get('lastActivity'),
            schema_version=source.get('schemaVersion', SCHEMA_VERSION),
        )


# --- Files and their versions ---
class HubFile:
    def __init__(self, id, hub_id, file_name, file_url, uploader_id, original_name='',
                 file_size=0, file_type='', storage_path='', uploader_name='',
                 version=1, description='', uploaded_at=None, updated_at=None,
                 schema_version=SCHEMA_VERSION, **kwargs):
        self.id = id
        self.hub_id = hub_id
        self.file_name = file_name
        self.original_name = original_name or file_name
        self.file_size = file_size
        self.file_type = file_type
        self.file_url = file_url
        self.storage_path = storage_path  # Identifier of the blob in the media store
        self.uploader_id = uploader_id
        self.uploader_name = uploader_name or ''
        self.version = version
        self.description = description or ''
        self.uploaded_at = uploaded_at or utc_now()
        self.updated_at = updated_at or self.uploaded_at
        self.schema_version = schema_version

    def snapshot(self, change_note=''):
        """Freeze the current metadata as a FileVersion before it is superseded."""
        return FileVersion(
            id=str(self.version),
            file_id=self.id,
            version=self.version,
            file_name=self.file_name,
            file_size=self.file_size,
            file_type=self.file_type,
            file_url=self.file_url,
            storage_path=self.storage_path,
            uploader_id=self.uploader_id,
            uploaded_at=self.updated_at,
            change_note=change_note,
        )

    def to_dict(self):
        return {
            'id': self.id,
            'hubId': self.hub_id,
            'fileName': self.file_name,
            'originalName': self.original_name,
            'fileSize': self.file_size,
            'fileType': self.file_type,
            'fileURL': self.file_url,
            'storagePath': self.storage_path,
            'uploaderId': self.uploader_id,
            'uploaderName': self.uploader_name,
            'version': self.version,
            'description': self.description,
            'uploadedAt': self.uploaded_at,
            'updatedAt': self.updated_at,
            'schemaVersion': self.schema_version,
        }

    @staticmethod
    def from_dict(source):
        return HubFile(
            id=source.get('id'),
            hub_id=source.get('hubId'),
            file_name=source.get('fileName', ''),
            original_name=source.get('originalName', ''),
            file_size=source.get('fileSize') or 0,
            file_type=source.get('fileType', ''),
            file_url=source.get('fileURL', ''),
            # Older documents were written with the provider id / "uploadedBy" field names
            storage_path=source.get('storagePath') or source.get('cloudinaryPublicId', ''),
            uploader_id=source.get('uploaderId') or source.get('uploadedBy'),
            uploader_name=source.get('uploaderName', ''),
            version=source.get('version') or 1,
            description=source.get('description', ''),
            uploaded_at=source.get('uploadedAt'),
            updated_at=source.get('updatedAt'),
            schema_version=source.get('schemaVersion', SCHEMA_VERSION),
        )


class FileVersion:
    """Immutable snapshot of a file's content metadata, written on re-upload."""
    def __init__(self, id, file_id, version, file_name, file_url, uploader_id,
                 file_size=0, file_type='', storage_path='', uploaded_at=None,
                 superseded_at=None, change_note='', **kwargs):
        self.id = id
        self.file_id = file_id
        self.version = version
        self.file_name = file_name
        self.file_size = file_size
        self.file_type = file_type
        self.file_url = file_url
        self.storage_path = storage_path
        self.uploader_id = uploader_id
        self.uploaded_at = uploaded_at or utc_now()
        self.superseded_at = superseded_at or utc_now()
        self.change_note = change_note or ''

    def to_dict(self):
        return {
            'id': self.id,
            'fileId': self.file_id,
            'version': self.version,
            'fileName': self.file_name,
            'fileSize': self.file_size,
            'fileType': self.file_type,
            'fileURL': self.file_url,
            'storagePath': self.storage_path,
            'uploaderId': self.uploader_id,
            'uploadedAt': self.uploaded_at,
            'supersededAt': self.superseded_at,
            'changeNote': self.change_note,
        }

    @staticmethod
    def from_dict(source):
        return FileVersion(
            id=source.get('id'),
            file_id=source.get('fileId'),
            version=source.get('version') or 1,
            file_name=source.get('fileName', ''),
            file_size=source.get('fileSize') or 0,
            file_type=source.get('fileType', ''),
            file_url=source.get('fileURL', ''),
            storage_path=source.get('storagePath', ''),
            uploader_id=source.get('uploaderId') or source.get('uploadedBy'),
            uploaded_at=source.get('uploadedAt'),
            superseded_at=source.get('supersededAt'),
            change_note=source.get('changeNote', ''),
        )


# --- Comments ---
class Comment:
    def __init__(self, id, hub_id, user_id, text, user_name='Anonymous', user_avatar='',
                 created_at=None, updated_at=None, schema_version=SCHEMA_VERSION, **kwargs):
        self.id = id
        self.hub_id = hub_id
        self.user_id = user_id
        self.user_name = user_name or 'Anonymous'
        self.user_avatar = user_avatar or ''
        self.text = text
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or self.created_at
        self.schema_version = schema_version

    def to_dict(self):
        return {
            'id': self.id,
            'hubId': self.hub_id,
            'userId': self.user_id,
            'userName': self.user_name,
            'userAvatar': self.user_avatar,
            'text': self.text,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'schemaVersion': self.schema_version,
        }

    @staticmethod
    def from_dict(source):
        return Comment(
            id=source.get('id'),
            hub_id=source.get('hubId'),
            user_id=source.get('userId'),
            text=source.get('text', ''),
            user_name=source.get('userName'),
            user_avatar=source.get('userAvatar'),
            created_at=source.get('createdAt'),
            updated_at=source.get('updatedAt'),
            schema_version=source.get('schemaVersion', SCHEMA_VERSION),
        )


# --- Hub activity timeline ---
class ActivityItem:
    TYPES = ('hub_created', 'hub_updated', 'file_uploaded', 'file_updated', 'file_deleted')

    def __init__(self, id, type, message, user_id, user_name='', timestamp=None, metadata=None, **kwargs):
        self.id = id
        self.type = type
        self.message = message
        self.user_id = user_id or 'unknown'
        self.user_name = user_name or ''
        self.timestamp = timestamp or utc_now()
        self.metadata = metadata if metadata is not None else {}

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'message': self.message,
            'userId': self.user_id,
            'userName': self.user_name,
            'timestamp': self.timestamp,
            'metadata': self.metadata,
        }

    @staticmethod
    def from_dict(source):
        return ActivityItem(
            id=source.get('id'),
            type=source.get('type'),
            message=source.get('message', ''),
            user_id=source.get('userId'),
            user_name=source.get('userName', ''),
            timestamp=source.get('timestamp'),
            metadata=source.get('metadata', {}),
        )
