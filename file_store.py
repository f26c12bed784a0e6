import logging

from database import FILES, HUBS, versions_path
from errors import Forbidden, InvalidArgument, NotFound
from media import get_file_category, is_valid_file_type, stream_size
from models import FileVersion, HubFile, StudyHub, utc_now

logger = logging.getLogger('bytehub.storage')


class FileStore:
    def __init__(self, store, media, history=None, profiles=None):
        self.store = store
        self.media = media
        self.history = history
        self.profiles = profiles

    # --- Reads ---
    def find(self, file_id):
        if not file_id:
            return None
        data = self.store.get(FILES, file_id)
        return HubFile.from_dict(data) if data else None

    def get(self, file_id):
        if not file_id:
            raise InvalidArgument("File ID required")
        hub_file = self.find(file_id)
        if hub_file is None:
            raise NotFound("File not found")
        return hub_file

    def list(self, hub_id=None, user_id=None, limit=50):
        if hub_id:
            filters = [('hubId', '==', hub_id)]
        elif user_id:
            filters = [('uploaderId', '==', user_id)]
        else:
            raise InvalidArgument("Either hubId or userId is required")
        documents = self.store.query(FILES, filters=filters, order_by='uploadedAt', descending=True, limit=limit)
        return [HubFile.from_dict(data) for data in documents]

    def list_versions(self, file_id):
        """Superseded versions of a file, newest first."""
        self.get(file_id)
        documents = self.store.query(versions_path(file_id), order_by='version', descending=True)
        return [FileVersion.from_dict(data) for data in documents]

    # --- Upload ---
    def upload(self, hub_id, uploader_id, stream, filename, file_name=None, content_type=None,
               description='', file_id=None, change_note=''):
        """
        Store a new file in a hub, or a new version of file_id when given.
        Only the hub's owner may upload.
        """
        if stream is None or not hub_id:
            raise InvalidArgument("File and Hub ID required")
        if not filename:
            raise InvalidArgument("No file selected")
        if not is_valid_file_type(filename):
            raise InvalidArgument("File type not allowed")
        size = stream_size(stream)
        if size == 0:
            raise InvalidArgument("Uploaded file is empty")

        hub_data = self.store.get(HUBS, hub_id)
        if hub_data is None:
            raise NotFound("Hub not found")
        hub = StudyHub.from_dict(hub_data)
        if not hub.is_owned_by(uploader_id):
            raise Forbidden()

        existing = None
        if file_id:
            existing = self.get(file_id)
            if existing.hub_id != hub_id:
                raise InvalidArgument("File does not belong to this hub")

        stored = self.media.upload(hub_id, stream, filename, content_type)
        try:
            if existing:
                hub_file = self._add_version(existing, stored, filename, size, content_type, change_note)
            else:
                hub_file = self._create(hub, uploader_id, stored, filename, file_name, size,
                                        content_type, description)
        except Exception:
            # Don't leave an unreferenced blob behind
            self.media.delete(stored['path'])
            raise

        if self.history:
            if existing:
                self.history.record(hub_id, 'file_updated',
                                    f"Uploaded version {hub_file.version} of {hub_file.file_name}",
                                    uploader_id, hub_file.uploader_name,
                                    {'fileName': hub_file.file_name, 'version': hub_file.version,
                                     'changeNote': change_note or ''})
            else:
                self.history.record(hub_id, 'file_uploaded', f"Uploaded {hub_file.file_name}",
                                    uploader_id, hub_file.uploader_name,
                                    {'fileName': hub_file.file_name, 'fileSize': hub_file.file_size,
                                     'fileType': hub_file.file_type, 'category': get_file_category(filename)},
                                    timestamp=hub_file.uploaded_at)
        return hub_file

    def _create(self, hub, uploader_id, stored, filename, file_name, size, content_type, description):
        uploader = self.profiles.find(uploader_id) if self.profiles else None
        hub_file = HubFile(
            id=None,
            hub_id=hub.id,
            file_name=file_name or filename,
            original_name=filename,
            file_size=size,
            file_type=content_type or '',
            file_url=stored['url'],
            storage_path=stored['path'],
            uploader_id=uploader_id,
            uploader_name=uploader.name if uploader else '',
            description=description or '',
        )
        hub_file.id = self.store.add(FILES, hub_file.to_dict())

        # Separate write from the file document above
        def _attach(tx):
            hub_data = tx.get(HUBS, hub.id)
            if hub_data is None:
                raise NotFound("Hub not found")
            files = hub_data.get('files') or []
            if hub_file.id not in files:
                files.append(hub_file.id)
            tx.update(HUBS, hub.id, {'files': files, 'updatedAt': utc_now(), 'lastActivity': utc_now()})

        try:
            self.store.run_transaction(_attach)
        except Exception:
            self.store.delete(FILES, hub_file.id)
            raise
        return hub_file

    def _add_version(self, existing, stored, filename, size, content_type, change_note):
        def _supersede(tx):
            current_data = tx.get(FILES, existing.id)
            if current_data is None:
                raise NotFound("File not found")
            current = HubFile.from_dict(current_data)
            snapshot = current.snapshot(change_note)

            now = utc_now()
            current.original_name = filename
            current.file_size = size
            current.file_type = content_type or current.file_type
            current.file_url = stored['url']
            current.storage_path = stored['path']
            current.version = current.version + 1
            current.updated_at = now

            tx.set(versions_path(existing.id), snapshot.id, snapshot.to_dict())
            tx.update(FILES, existing.id, {
                'originalName': current.original_name,
                'fileSize': current.file_size,
                'fileType': current.file_type,
                'fileURL': current.file_url,
                'storagePath': current.storage_path,
                'version': current.version,
                'updatedAt': now,
            })
            tx.update(HUBS, existing.hub_id, {'updatedAt': now, 'lastActivity': now})
            return current

        return self.store.run_transaction(_supersede)

    # --- Delete ---
    def delete(self, file_id, caller_id):
        """Uploader or hub owner only. Versions go before the file document."""
        hub_file = self.get(file_id)
        hub_data = self.store.get(HUBS, hub_file.hub_id)
        hub = StudyHub.from_dict(hub_data) if hub_data else None

        if hub_file.uploader_id != caller_id and not (hub and hub.is_owned_by(caller_id)):
            raise Forbidden()

        versions = self.store.query(versions_path(file_id))
        refs = [(versions_path(file_id), version['id']) for version in versions]
        refs.append((FILES, file_id))
        self.store.delete_many(refs)

        if hub:
            def _detach(tx):
                hub_data = tx.get(HUBS, hub.id)
                if hub_data is None:
                    return
                files = [fid for fid in (hub_data.get('files') or []) if fid != file_id]
                tx.update(HUBS, hub.id, {'files': files, 'updatedAt': utc_now()})

            self.store.run_transaction(_detach)

        blob_paths = [hub_file.storage_path] + [version.get('storagePath') for version in versions]
        for path in filter(None, set(blob_paths)):
            try:
                self.media.delete(path)
            except Exception as e:
                logger.error(f"Error deleting blob {path} for file {file_id}: {e}")

        if self.history and hub:
            self.history.record(hub.id, 'file_deleted', f"Deleted {hub_file.file_name}", caller_id,
                                metadata={'fileName': hub_file.file_name})
        return {'versions': len(versions)}
