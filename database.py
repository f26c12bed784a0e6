"""
Document store access for ByteHub.

Every store in this app talks to a DocumentStore passed in at construction,
never to a module-level client. FirestoreStore is the production backend;
InMemoryStore has the same semantics and backs the tests and local fixtures.

Collection paths may point at sub-collections, e.g. "files/<fileId>/versions".
"""

import base64
import copy
import json
import logging
import os
import threading
import uuid

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions

from errors import NotFound

logger = logging.getLogger('bytehub.storage')

# Firestore rejects batches with more than 500 writes
BATCH_LIMIT = 500

USERS = 'users'
HUBS = 'studyHubs'
FILES = 'files'
COMMENTS = 'comments'


def versions_path(file_id):
    return f"{FILES}/{file_id}/versions"


def activity_path(hub_id):
    return f"{HUBS}/{hub_id}/activity"


def initialize_firebase(config):
    """Initialize the Firebase Admin app once, from FIREBASE_KEY_B64 or the key file."""
    if firebase_admin._apps:
        return firebase_admin.get_app()

    firebase_key_b64 = config.get('FIREBASE_KEY_B64')
    if firebase_key_b64:
        # Production: base64 string holding the service-account JSON
        firebase_key_json = base64.b64decode(firebase_key_b64).decode('utf-8')
        cred = credentials.Certificate(json.loads(firebase_key_json))
    else:
        key_path = config.get('FIREBASE_KEY_PATH')
        if not key_path or not os.path.exists(key_path):
            raise RuntimeError("No Firebase credentials found. Set FIREBASE_KEY_B64 or FIREBASE_KEY_PATH.")
        cred = credentials.Certificate(key_path)

    options = {}
    if config.get('FIREBASE_BUCKET_NAME'):
        options['storageBucket'] = config['FIREBASE_BUCKET_NAME']
    if config.get('FIREBASE_PROJECT_ID'):
        options['projectId'] = config['FIREBASE_PROJECT_ID']

    app = firebase_admin.initialize_app(cred, options)
    logger.info("Firebase initialized successfully")
    return app


class DocumentStore:
    """Interface shared by the Firestore and in-memory backends."""

    def get(self, path, doc_id):
        raise NotImplementedError

    def add(self, path, data):
        raise NotImplementedError

    def set(self, path, doc_id, data, merge=False):
        raise NotImplementedError

    def update(self, path, doc_id, data):
        raise NotImplementedError

    def delete(self, path, doc_id):
        raise NotImplementedError

    def query(self, path, filters=None, order_by=None, descending=False, limit=None):
        raise NotImplementedError

    def delete_many(self, refs):
        raise NotImplementedError

    def run_transaction(self, fn):
        raise NotImplementedError


# ==============================================================================
# FIRESTORE BACKEND
# ==============================================================================

def _snapshot_to_dict(snapshot):
    data = snapshot.to_dict() or {}
    data['id'] = snapshot.id
    return data


class _FirestoreTransaction:
    def __init__(self, client, transaction):
        self._client = client
        self._transaction = transaction

    def get(self, path, doc_id):
        snapshot = self._client.collection(path).document(doc_id).get(transaction=self._transaction)
        if not snapshot.exists:
            return None
        return _snapshot_to_dict(snapshot)

    def set(self, path, doc_id, data, merge=False):
        self._transaction.set(self._client.collection(path).document(doc_id), data, merge=merge)

    def update(self, path, doc_id, data):
        self._transaction.update(self._client.collection(path).document(doc_id), data)

    def delete(self, path, doc_id):
        self._transaction.delete(self._client.collection(path).document(doc_id))


class FirestoreStore(DocumentStore):
    def __init__(self, client=None):
        self.client = client or firestore.client()

    def _ref(self, path, doc_id):
        return self.client.collection(path).document(doc_id)

    def get(self, path, doc_id):
        snapshot = self._ref(path, doc_id).get()
        if not snapshot.exists:
            return None
        return _snapshot_to_dict(snapshot)

    def add(self, path, data):
        doc_ref = self.client.collection(path).document()
        doc_ref.set(dict(data, id=doc_ref.id))
        return doc_ref.id

    def set(self, path, doc_id, data, merge=False):
        self._ref(path, doc_id).set(dict(data, id=doc_id), merge=merge)

    def update(self, path, doc_id, data):
        try:
            self._ref(path, doc_id).update(data)
        except google_exceptions.NotFound as e:
            raise NotFound(f"Document {path}/{doc_id} not found") from e

    def delete(self, path, doc_id):
        self._ref(path, doc_id).delete()

    def query(self, path, filters=None, order_by=None, descending=False, limit=None):
        query = self.client.collection(path)
        for field, op, value in filters or []:
            query = query.where(filter=firestore.FieldFilter(field, op, value))
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit:
            query = query.limit(limit)
        return [_snapshot_to_dict(doc) for doc in query.stream()]

    def delete_many(self, refs):
        refs = list(refs)
        for start in range(0, len(refs), BATCH_LIMIT):
            batch = self.client.batch()
            for path, doc_id in refs[start:start + BATCH_LIMIT]:
                batch.delete(self._ref(path, doc_id))
            batch.commit()
        return len(refs)

    def run_transaction(self, fn):
        transaction = self.client.transaction()

        @firestore.transactional
        def _run(transaction):
            return fn(_FirestoreTransaction(self.client, transaction))

        return _run(transaction)


# ==============================================================================
# IN-MEMORY BACKEND
# ==============================================================================

class _MemoryTransaction:
    def __init__(self, store):
        self._store = store
        self._writes = []

    def get(self, path, doc_id):
        if self._writes:
            raise ValueError("Attempted read after write in a transaction.")
        return self._store._read(path, doc_id)

    def set(self, path, doc_id, data, merge=False):
        self._writes.append(('set', path, doc_id, data, merge))

    def update(self, path, doc_id, data):
        self._writes.append(('update', path, doc_id, data, None))

    def delete(self, path, doc_id):
        self._writes.append(('delete', path, doc_id, None, None))

    def _commit(self):
        # Validate before applying so a failed update leaves nothing half-written
        for op, path, doc_id, _, _ in self._writes:
            if op == 'update' and self._store._read(path, doc_id) is None:
                raise NotFound(f"Document {path}/{doc_id} not found")
        for op, path, doc_id, data, merge in self._writes:
            if op == 'set':
                self._store._write(path, doc_id, data, merge=merge)
            elif op == 'update':
                self._store._write(path, doc_id, data, merge=True)
            else:
                self._store._remove(path, doc_id)


class InMemoryStore(DocumentStore):
    """Dict-backed document store. Thread-safe; transactions are serialized."""

    def __init__(self, seed=None):
        self._collections = {}
        self._lock = threading.RLock()
        for path, documents in (seed or {}).items():
            for doc_id, data in documents.items():
                self.set(path, doc_id, data)

    def _read(self, path, doc_id):
        document = self._collections.get(path, {}).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    def _write(self, path, doc_id, data, merge=False):
        collection = self._collections.setdefault(path, {})
        if merge and doc_id in collection:
            collection[doc_id].update(copy.deepcopy(data))
        else:
            collection[doc_id] = dict(copy.deepcopy(data), id=doc_id)

    def _remove(self, path, doc_id):
        self._collections.get(path, {}).pop(doc_id, None)

    def get(self, path, doc_id):
        with self._lock:
            return self._read(path, doc_id)

    def add(self, path, data):
        doc_id = uuid.uuid4().hex[:20]
        with self._lock:
            self._write(path, doc_id, data)
        return doc_id

    def set(self, path, doc_id, data, merge=False):
        with self._lock:
            self._write(path, doc_id, data, merge=merge)

    def update(self, path, doc_id, data):
        with self._lock:
            if doc_id not in self._collections.get(path, {}):
                raise NotFound(f"Document {path}/{doc_id} not found")
            self._write(path, doc_id, data, merge=True)

    def delete(self, path, doc_id):
        with self._lock:
            self._remove(path, doc_id)

    def query(self, path, filters=None, order_by=None, descending=False, limit=None):
        with self._lock:
            documents = [copy.deepcopy(doc) for doc in self._collections.get(path, {}).values()]

        for field, op, value in filters or []:
            if op == '==':
                documents = [doc for doc in documents if doc.get(field) == value]
            elif op == 'array-contains':
                documents = [doc for doc in documents if value in (doc.get(field) or [])]
            else:
                raise ValueError(f"Unsupported query operator: {op}")

        if order_by:
            # Like Firestore, ordering drops documents that lack the field
            documents = [doc for doc in documents if doc.get(order_by) is not None]
            documents.sort(key=lambda doc: doc[order_by], reverse=descending)
        if limit:
            documents = documents[:limit]
        return documents

    def delete_many(self, refs):
        refs = list(refs)
        with self._lock:
            for path, doc_id in refs:
                self._remove(path, doc_id)
        return len(refs)

    def run_transaction(self, fn):
        with self._lock:
            transaction = _MemoryTransaction(self)
            result = fn(transaction)
            transaction._commit()
            return result
