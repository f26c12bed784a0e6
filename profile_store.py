import logging

from database import USERS
from errors import Forbidden, InvalidArgument, NotFound
from models import THEME_CHOICES, VISIBILITY_CHOICES, UserProfile, utc_now

logger = logging.getLogger('bytehub.storage')

# Keys a user may change through the profile endpoint
PROFILE_KEYS = ['name', 'username', 'bio', 'institution', 'avatarURL', 'website', 'socialLinks']

# Preference keys and the values each accepts
SETTINGS_KEYS = {
    'profileVisibility': VISIBILITY_CHOICES,
    'theme': THEME_CHOICES,
    'emailNotifications': (True, False),
    'hubNotifications': (True, False),
    'followNotifications': (True, False),
    'showEmail': (True, False),
    'showInstitution': (True, False),
}

SOCIAL_LINK_KEYS = ('github', 'linkedin', 'twitter')

RELATION_KINDS = ('followers', 'following')


class ProfileStore:
    def __init__(self, store):
        self.store = store

    def find(self, user_id):
        if not user_id:
            return None
        data = self.store.get(USERS, user_id)
        return UserProfile.from_dict(data) if data else None

    def get(self, user_id):
        profile = self.find(user_id)
        if profile is None:
            raise NotFound("User not found")
        return profile

    def upsert_on_auth(self, uid, email, name='', institution=''):
        """Create the profile on first successful authentication; otherwise return the stored one."""
        def _upsert(tx):
            existing = tx.get(USERS, uid)
            if existing:
                return UserProfile.from_dict(existing), False
            profile = UserProfile(id=uid, email=email, name=name, institution=institution)
            tx.set(USERS, uid, profile.to_dict())
            return profile, True

        profile, created = self.store.run_transaction(_upsert)
        if created:
            logger.info(f"Created profile for {uid}")
        return profile

    def _check_owner(self, user_id, caller_id):
        if not user_id or user_id != caller_id:
            raise Forbidden()

    def update_profile(self, user_id, caller_id, patch):
        self._check_owner(user_id, caller_id)
        if not isinstance(patch, dict):
            raise InvalidArgument("Invalid request body")

        update_data = {key: value for key, value in patch.items() if key in PROFILE_KEYS}
        if not update_data:
            raise InvalidArgument("No valid profile fields provided")

        for key, value in update_data.items():
            if key == 'socialLinks':
                if not isinstance(value, dict):
                    raise InvalidArgument("socialLinks must be an object")
                update_data[key] = {k: str(v) for k, v in value.items() if k in SOCIAL_LINK_KEYS}
            elif not isinstance(value, str):
                raise InvalidArgument(f"{key} must be a string")
        if 'name' in update_data and not update_data['name'].strip():
            raise InvalidArgument("Name cannot be empty")

        return self._apply(user_id, update_data)

    def update_settings(self, user_id, caller_id, patch):
        self._check_owner(user_id, caller_id)
        if not isinstance(patch, dict):
            raise InvalidArgument("Invalid request body")

        update_data = {}
        for key, value in patch.items():
            if key not in SETTINGS_KEYS:
                continue
            allowed = SETTINGS_KEYS[key]
            # bool is checked by type; 1 == True would otherwise slip through
            if allowed == (True, False):
                if not isinstance(value, bool):
                    raise InvalidArgument(f"{key} must be true or false")
            elif value not in allowed:
                raise InvalidArgument(f"{key} must be one of: {', '.join(allowed)}")
            update_data[key] = value

        if not update_data:
            raise InvalidArgument("No valid settings provided")

        return self._apply(user_id, update_data)

    def _apply(self, user_id, update_data):
        update_data['updatedAt'] = utc_now()
        self.store.update(USERS, user_id, update_data)
        return self.get(user_id)

    def list_relations(self, user_id, kind):
        if not user_id or not kind:
            raise InvalidArgument("User ID and type required")
        if kind not in RELATION_KINDS:
            raise InvalidArgument('Type must be "followers" or "following"')

        profile = self.get(user_id)
        related_ids = profile.followers if kind == 'followers' else profile.following

        # Ids whose profile no longer exists are skipped
        related = []
        for related_id in related_ids:
            related_profile = self.find(related_id)
            if related_profile is not None:
                related.append(related_profile)
        return related

    def search(self, term, limit=20):
        """Case-insensitive substring match over name, institution and bio."""
        term = term.lower()
        candidates = self.store.query(USERS, limit=limit * 2)

        results = []
        for data in candidates:
            profile = UserProfile.from_dict(data)
            if profile.profile_visibility == 'private':
                continue
            haystacks = (profile.name, profile.institution, profile.bio)
            if any(term in (value or '').lower() for value in haystacks):
                results.append(profile)
        return results[:limit]
