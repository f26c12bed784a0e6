"""
Caller identity for ByteHub requests.

The identity provider (Firebase Auth) validates bearer ID tokens and owns the
accounts. AccessGuard only resolves a token to a caller; ownership checks are
done by the operation being called.
"""

import logging

from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from flask_login import UserMixin

from errors import InvalidArgument, NotFound, Unauthenticated

logger = logging.getLogger('bytehub.api')

BEARER_PREFIX = 'Bearer '


class CallerIdentity(UserMixin):
    """The resolved caller for the current request (what current_user holds)."""
    def __init__(self, uid, email=None, email_verified=False):
        self.id = uid
        self.email = email
        self.email_verified = email_verified


class FirebaseIdentityProvider:
    """Thin wrapper over firebase_admin.auth returning plain dicts."""

    @staticmethod
    def _record_to_dict(record):
        return {
            'uid': record.uid,
            'email': record.email,
            'name': record.display_name or '',
            'email_verified': record.email_verified,
        }

    def verify_token(self, token):
        """Returns the decoded claims; raises Unauthenticated when the provider rejects the token."""
        try:
            return firebase_auth.verify_id_token(token, check_revoked=True)
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            raise Unauthenticated() from e

    def create_user(self, email, password, name):
        try:
            record = firebase_auth.create_user(email=email, password=password, display_name=name)
        except firebase_auth.EmailAlreadyExistsError as e:
            raise InvalidArgument("An account with this email already exists") from e
        except ValueError as e:
            raise InvalidArgument(str(e)) from e
        return self._record_to_dict(record)

    def get_user(self, uid):
        try:
            return self._record_to_dict(firebase_auth.get_user(uid))
        except firebase_auth.UserNotFoundError as e:
            raise NotFound("User not found") from e

    def get_user_by_email(self, email):
        try:
            return self._record_to_dict(firebase_auth.get_user_by_email(email))
        except firebase_auth.UserNotFoundError as e:
            raise NotFound("User not found") from e
        except ValueError as e:
            raise InvalidArgument(str(e)) from e

    def generate_email_verification_link(self, email, continue_url):
        action_code_settings = firebase_auth.ActionCodeSettings(url=continue_url, handle_code_in_app=True)
        return firebase_auth.generate_email_verification_link(email, action_code_settings)


class AccessGuard:
    def __init__(self, identity):
        self.identity = identity

    def authenticate(self, authorization_header):
        """Resolve an Authorization header value to a CallerIdentity or raise Unauthenticated."""
        if not authorization_header or not authorization_header.startswith(BEARER_PREFIX):
            raise Unauthenticated()

        token = authorization_header[len(BEARER_PREFIX):].strip()
        if not token:
            raise Unauthenticated()

        claims = self.identity.verify_token(token)
        uid = claims.get('uid') or claims.get('sub')
        if not uid:
            raise Unauthenticated()

        return CallerIdentity(uid, email=claims.get('email'), email_verified=claims.get('email_verified', False))

    def resolve(self, authorization_header):
        """Same as authenticate() but returns None for anonymous or rejected callers."""
        try:
            return self.authenticate(authorization_header)
        except Unauthenticated:
            if authorization_header:
                logger.info("Rejected bearer token, treating request as anonymous")
            return None
