"""
Blob storage for uploaded study materials (Firebase Storage bucket).
Only metadata lives in Firestore; the bytes live here under hubs/<hubId>/.
"""

import logging
import os
import uuid

from firebase_admin import storage
from werkzeug.utils import secure_filename

logger = logging.getLogger('bytehub.storage')

ALLOWED_FILE_TYPES = {
    'documents': ['pdf', 'doc', 'docx', 'ppt', 'pptx', 'xls', 'xlsx', 'txt', 'md'],
    'images': ['jpg', 'jpeg', 'png', 'gif', 'webp', 'svg'],
    'videos': ['mp4', 'avi', 'mov', 'wmv', 'flv', 'webm'],
    'audio': ['mp3', 'wav', 'aac', 'ogg'],
    'archives': ['zip', 'rar', '7z', 'tar', 'gz'],
}


def file_extension(filename):
    if not filename or '.' not in filename:
        return ''
    return filename.rsplit('.', 1)[1].lower()


def is_valid_file_type(filename):
    extension = file_extension(filename)
    return any(extension in extensions for extensions in ALLOWED_FILE_TYPES.values())


def get_file_category(filename):
    extension = file_extension(filename)
    for category, extensions in ALLOWED_FILE_TYPES.items():
        if extension in extensions:
            return category
    return 'other'


def stream_size(stream):
    """Size in bytes of a seekable upload stream; leaves it rewound."""
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


class FirebaseMediaStore:
    def __init__(self, bucket=None):
        self.bucket = bucket or storage.bucket()

    def upload(self, hub_id, stream, filename, content_type=None):
        """Store the blob and return {'url', 'path'} for the metadata document."""
        safe_name = secure_filename(filename) or 'upload'
        file_path = f"hubs/{hub_id}/{uuid.uuid4().hex[:8]}_{safe_name}"
        blob = self.bucket.blob(file_path)

        stream.seek(0)
        blob.upload_from_file(stream, content_type=content_type or 'application/octet-stream')
        blob.make_public()
        logger.info(f"Uploaded blob {file_path}")
        return {'url': blob.public_url, 'path': file_path}

    def delete(self, file_path):
        if not file_path:
            return False
        blob = self.bucket.blob(file_path)
        if not blob.exists():
            return False
        blob.delete()
        logger.info(f"Deleted blob {file_path}")
        return True

    def delete_prefix(self, prefix):
        deleted = 0
        for blob in self.bucket.list_blobs(prefix=prefix):
            blob.delete()
            deleted += 1
        return deleted
