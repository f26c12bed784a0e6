#!/usr/bin/env python3
"""
Firestore index setup for ByteHub.
Prints the composite indexes the API's queries need and writes them to
firestore.indexes.json for `firebase deploy --only firestore:indexes`.

Required composite indexes:
1. studyHubs: ownerId + createdAt (a user's hubs, newest first)
2. studyHubs: visibility + createdAt (public hub listing)
3. studyHubs: ownerId + visibility + createdAt (a user's hubs filtered by visibility)
4. studyHubs: starredBy (array-contains) + updatedAt (starred hubs)
5. files: hubId + uploadedAt (files in a hub)
6. files: uploaderId + uploadedAt (files by uploader)
7. comments: hubId + createdAt (hub comments)
Single-field orderings (versions, activity) use Firestore's automatic indexes.
"""

import json
import os

from database import COMMENTS, FILES, HUBS

INDEXES_FILE = 'firestore.indexes.json'

REQUIRED_INDEXES = [
    {
        "collection": HUBS,
        "fields": [
            {"fieldPath": "ownerId", "order": "ASCENDING"},
            {"fieldPath": "createdAt", "order": "DESCENDING"}
        ],
        "description": "A user's hubs, newest first"
    },
    {
        "collection": HUBS,
        "fields": [
            {"fieldPath": "visibility", "order": "ASCENDING"},
            {"fieldPath": "createdAt", "order": "DESCENDING"}
        ],
        "description": "Public hub listing"
    },
    {
        "collection": HUBS,
        "fields": [
            {"fieldPath": "ownerId", "order": "ASCENDING"},
            {"fieldPath": "visibility", "order": "ASCENDING"},
            {"fieldPath": "createdAt", "order": "DESCENDING"}
        ],
        "description": "A user's hubs filtered by visibility"
    },
    {
        "collection": HUBS,
        "fields": [
            {"fieldPath": "starredBy", "arrayConfig": "CONTAINS"},
            {"fieldPath": "updatedAt", "order": "DESCENDING"}
        ],
        "description": "Hubs starred by a user"
    },
    {
        "collection": FILES,
        "fields": [
            {"fieldPath": "hubId", "order": "ASCENDING"},
            {"fieldPath": "uploadedAt", "order": "DESCENDING"}
        ],
        "description": "Files in a hub"
    },
    {
        "collection": FILES,
        "fields": [
            {"fieldPath": "uploaderId", "order": "ASCENDING"},
            {"fieldPath": "uploadedAt", "order": "DESCENDING"}
        ],
        "description": "Files by uploader"
    },
    {
        "collection": COMMENTS,
        "fields": [
            {"fieldPath": "hubId", "order": "ASCENDING"},
            {"fieldPath": "createdAt", "order": "DESCENDING"}
        ],
        "description": "Comments on a hub"
    },
]


def build_indexes_file(indexes=None):
    """The firestore.indexes.json document for the given index specs."""
    firestore_indexes = {"indexes": [], "fieldOverrides": []}
    for index in indexes or REQUIRED_INDEXES:
        firestore_indexes["indexes"].append({
            "collectionGroup": index['collection'],
            "queryScope": "COLLECTION",
            "fields": index['fields']
        })
    return firestore_indexes


def _describe_field(field):
    return f"{field['fieldPath']} ({field.get('order') or 'ARRAY_' + field['arrayConfig']})"


def setup_indexes(output_dir='.'):
    print("Required Firestore Indexes:")
    print("=" * 50)

    for i, index in enumerate(REQUIRED_INDEXES, 1):
        print(f"\n{i}. Collection: {index['collection']}")
        print(f"   Description: {index['description']}")
        print("   Fields:")
        for field in index['fields']:
            print(f"     - {_describe_field(field)}")

    output_path = os.path.join(output_dir, INDEXES_FILE)
    with open(output_path, 'w') as f:
        json.dump(build_indexes_file(), f, indent=2)

    print("\n" + "=" * 50)
    print(f"✅ Wrote {output_path}")
    print("Deploy with: firebase deploy --only firestore:indexes")
    return output_path


if __name__ == "__main__":
    setup_indexes()
