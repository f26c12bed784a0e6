#!/usr/bin/env python3
"""
Audit star counts and follow relationships.

Checks that every hub's `stars` equals the number of distinct ids in
`starredBy`, and that follows are mirrored (B in A.followers iff A in
B.following). Run with --repair to rewrite counts from membership, add the
missing side of one-sided follows and drop ids of users that no longer exist.
"""

import argparse
import sys

from config import Config
from database import HUBS, USERS, FirestoreStore, initialize_firebase


def audit_engagement(store):
    """Returns a report dict; nothing is written."""
    report = {
        'hubs_checked': 0,
        'users_checked': 0,
        'star_mismatches': [],
        'asymmetric_follows': [],
        'dangling_follows': [],
    }

    for hub in store.query(HUBS):
        report['hubs_checked'] += 1
        starred_by = hub.get('starredBy') or []
        unique = list(dict.fromkeys(starred_by))
        stars = hub.get('stars') or 0
        if stars != len(unique) or len(unique) != len(starred_by):
            report['star_mismatches'].append({
                'hubId': hub['id'],
                'stars': stars,
                'starredBy': unique,
                'duplicates': len(starred_by) - len(unique),
            })

    users = {user['id']: user for user in store.query(USERS)}
    report['users_checked'] = len(users)

    # Each entry names the user whose `field` is missing (or wrongly holds) `otherId`
    for user_id, user in users.items():
        for target_id in user.get('following') or []:
            target = users.get(target_id)
            if target is None:
                report['dangling_follows'].append({'userId': user_id, 'field': 'following', 'otherId': target_id})
            elif user_id not in (target.get('followers') or []):
                report['asymmetric_follows'].append({'userId': target_id, 'field': 'followers', 'otherId': user_id})

        for follower_id in user.get('followers') or []:
            follower = users.get(follower_id)
            if follower is None:
                report['dangling_follows'].append({'userId': user_id, 'field': 'followers', 'otherId': follower_id})
            elif user_id not in (follower.get('following') or []):
                report['asymmetric_follows'].append({'userId': follower_id, 'field': 'following', 'otherId': user_id})

    return report


def _fix_membership(store, user_id, field, other_id, present):
    def _apply(tx):
        data = tx.get(USERS, user_id)
        if data is None:
            return
        ids = [uid for uid in (data.get(field) or []) if uid != other_id]
        if present:
            ids.append(other_id)
        tx.update(USERS, user_id, {field: ids})

    store.run_transaction(_apply)


def repair_engagement(store, report):
    """Apply the fixes for an audit report. Returns the number of documents touched."""
    repaired = 0

    for mismatch in report['star_mismatches']:
        store.update(HUBS, mismatch['hubId'], {
            'starredBy': mismatch['starredBy'],
            'stars': len(mismatch['starredBy']),
        })
        repaired += 1

    for entry in report['asymmetric_follows']:
        _fix_membership(store, entry['userId'], entry['field'], entry['otherId'], present=True)
        repaired += 1

    for entry in report['dangling_follows']:
        _fix_membership(store, entry['userId'], entry['field'], entry['otherId'], present=False)
        repaired += 1

    return repaired


def print_report(report):
    print('🔍 Engagement audit')
    print('=' * 50)
    print(f"Hubs checked: {report['hubs_checked']}")
    print(f"Users checked: {report['users_checked']}")

    for mismatch in report['star_mismatches']:
        print(f"⚠️  Hub {mismatch['hubId']}: stars={mismatch['stars']}, "
              f"starredBy={len(mismatch['starredBy'])}, duplicates={mismatch['duplicates']}")
    for entry in report['asymmetric_follows']:
        print(f"⚠️  User {entry['userId']}: {entry['field']} is missing {entry['otherId']}")
    for entry in report['dangling_follows']:
        print(f"⚠️  User {entry['userId']}: {entry['field']} references missing user {entry['otherId']}")

    issues = len(report['star_mismatches']) + len(report['asymmetric_follows']) + len(report['dangling_follows'])
    if issues:
        print(f'\n{issues} issue(s) found.')
    else:
        print('\n✅ Star counts and follows are consistent.')
    return issues


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument('--repair', action='store_true', help='fix the issues found')
    args = parser.parse_args(argv)

    initialize_firebase(vars(Config))
    store = FirestoreStore()

    report = audit_engagement(store)
    issues = print_report(report)
    if issues and args.repair:
        repaired = repair_engagement(store, report)
        print(f'🔧 Repaired {repaired} document(s).')
        return 0
    return 1 if issues else 0


if __name__ == "__main__":
    sys.exit(main())
