#!/usr/bin/env python3
"""
Migration script for documents written before the versioned schemas.
Fills in default values, renames legacy fields (uploadedBy, cloudinaryPublicId,
avatar) to their current names, converts datetime timestamps to ISO strings
and stamps schemaVersion. Documents already at SCHEMA_VERSION are skipped.
"""

import sys
from datetime import datetime

from config import Config
from database import COMMENTS, FILES, HUBS, USERS, FirestoreStore, initialize_firebase
from models import SCHEMA_VERSION, Comment, HubFile, StudyHub, UserProfile

# Collection -> model whose from_dict/to_dict applies the defaults
MIGRATIONS = [
    (USERS, UserProfile),
    (HUBS, StudyHub),
    (FILES, HubFile),
    (COMMENTS, Comment),
]

TIMESTAMP_FIELDS = ('createdAt', 'updatedAt', 'uploadedAt', 'lastActivity')


def _normalize_timestamps(data):
    for field in TIMESTAMP_FIELDS:
        value = data.get(field)
        if isinstance(value, datetime):
            data[field] = value.isoformat()
    return data


def needs_migration(data):
    return data.get('schemaVersion', 0) < SCHEMA_VERSION


def migrate_document(model, data):
    """The document as it should be stored now. Unknown fields are kept as they are."""
    normalized = model.from_dict(_normalize_timestamps(dict(data))).to_dict()
    normalized['schemaVersion'] = SCHEMA_VERSION
    return dict(data, **normalized)


def migrate_schema(store, dry_run=False):
    """Returns {collection: migrated_count}."""
    results = {}
    for path, model in MIGRATIONS:
        print(f"🔍 Checking {path}...")
        migrated = 0
        for data in store.query(path):
            if not needs_migration(data):
                continue
            if not dry_run:
                store.set(path, data['id'], migrate_document(model, data))
            migrated += 1
        print(f"   {'Would migrate' if dry_run else 'Migrated'} {migrated} document(s)")
        results[path] = migrated
    return results


if __name__ == "__main__":
    dry_run = '--dry-run' in sys.argv
    initialize_firebase(vars(Config))
    results = migrate_schema(FirestoreStore(), dry_run=dry_run)
    print(f"\n✅ Done: {sum(results.values())} document(s) {'to migrate' if dry_run else 'migrated'}")
