"""
Star/unstar and follow/unfollow.

Each toggle reads and writes its documents inside one store transaction, so two
concurrent toggles cannot lose an update and a follow is never recorded on one
side only. Relationship state is always derived from array membership.
"""

import logging

from database import HUBS, USERS
from errors import InvalidArgument, NotFound
from models import StudyHub, utc_now

logger = logging.getLogger('bytehub.engagement')


class EngagementEngine:
    def __init__(self, store):
        self.store = store

    def toggle_star(self, hub_id, caller_id):
        """Returns {'hubId', 'starred', 'stars'} after the toggle."""
        if not hub_id:
            raise InvalidArgument("Hub ID required")

        def _toggle(tx):
            hub_data = tx.get(HUBS, hub_id)
            if hub_data is None:
                raise NotFound("Hub not found")

            starred_by = list(hub_data.get('starredBy') or [])
            stars = hub_data.get('stars') or 0
            already_starred = caller_id in starred_by

            if already_starred:
                starred_by = [uid for uid in starred_by if uid != caller_id]
                stars = max(0, stars - 1)
            else:
                starred_by.append(caller_id)
                stars = stars + 1

            tx.update(HUBS, hub_id, {
                'starredBy': starred_by,
                'stars': stars,
                'updatedAt': utc_now(),
            })
            return already_starred, stars

        already_starred, stars = self.store.run_transaction(_toggle)
        logger.info(f"{caller_id} {'unstarred' if already_starred else 'starred'} hub {hub_id} (stars={stars})")
        return {'hubId': hub_id, 'starred': not already_starred, 'stars': stars}

    def toggle_follow(self, caller_id, target_id):
        """Returns {'targetUserId', 'following', 'followersCount'} after the toggle."""
        if not target_id:
            raise InvalidArgument("Target user ID required")
        if target_id == caller_id:
            raise InvalidArgument("Cannot follow yourself")

        def _toggle(tx):
            target_data = tx.get(USERS, target_id)
            if target_data is None:
                raise NotFound("User not found")
            caller_data = tx.get(USERS, caller_id)
            if caller_data is None:
                raise NotFound("Your profile was not found")

            following = list(caller_data.get('following') or [])
            followers = list(target_data.get('followers') or [])
            is_following = target_id in following

            if is_following:
                following = [uid for uid in following if uid != target_id]
                followers = [uid for uid in followers if uid != caller_id]
            else:
                following.append(target_id)
                if caller_id not in followers:
                    followers.append(caller_id)

            now = utc_now()
            tx.update(USERS, caller_id, {'following': following, 'updatedAt': now})
            tx.update(USERS, target_id, {'followers': followers, 'updatedAt': now})
            return is_following, len(followers)

        was_following, followers_count = self.store.run_transaction(_toggle)
        logger.info(f"{caller_id} {'unfollowed' if was_following else 'followed'} {target_id}")
        return {
            'targetUserId': target_id,
            'following': not was_following,
            'followersCount': followers_count,
        }

    def starred_hubs(self, user_id):
        """Hubs the user has starred, most recently updated first. Others' private hubs are left out."""
        documents = self.store.query(HUBS, filters=[('starredBy', 'array-contains', user_id)],
                                     order_by='updatedAt', descending=True)
        hubs = [StudyHub.from_dict(data) for data in documents]
        return [hub for hub in hubs if hub.visibility == 'public' or hub.is_owned_by(user_id)]

    def is_following(self, follower_id, target_id):
        if not follower_id or not target_id:
            return False
        data = self.store.get(USERS, follower_id)
        return bool(data) and target_id in (data.get('following') or [])
