"""
Error taxonomy for the ByteHub API.
Stores and services raise these; app.py turns them into the failure envelope.
"""


class ByteHubError(Exception):
    """Base class for every error that is reported back to the caller."""
    code = 'internal'
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {
            'success': False,
            'error': self.message,
            'message': self.message,
            'code': self.code,
        }


class InvalidArgument(ByteHubError):
    code = 'invalid_argument'
    status_code = 400
    default_message = 'Invalid request'


class Unauthenticated(ByteHubError):
    code = 'unauthenticated'
    status_code = 401
    default_message = 'Authentication required'


class Forbidden(ByteHubError):
    code = 'forbidden'
    status_code = 403
    default_message = 'Unauthorized'


class NotFound(ByteHubError):
    code = 'not_found'
    status_code = 404
    default_message = 'Not found'


class Internal(ByteHubError):
    pass
