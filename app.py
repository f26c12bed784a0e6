# ==============================================================================
# 1. SETUP & IMPORTS
# ==============================================================================
import logging

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_login import LoginManager, current_user, login_required
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from auth_guard import AccessGuard, FirebaseIdentityProvider
from comment_store import CommentStore, HubHistory
from config import Config
from database import FirestoreStore, initialize_firebase
from debug_logging import log_api_call, log_user_action, setup_logging
from engagement import EngagementEngine
from errors import ByteHubError, Internal, InvalidArgument, NotFound, Unauthenticated
from file_store import FileStore
from hub_store import HubStore
from media import FirebaseMediaStore
from profile_store import ProfileStore

logger = logging.getLogger('bytehub.api')

SEARCH_TYPES = ('all', 'hubs', 'users')
FILE_LIST_LIMIT = 50

api = Blueprint('api', __name__)


class ByteHubServices:
    """The stores every route works through, built once per app."""

    def __init__(self, store, media, identity):
        self.store = store
        self.media = media
        self.identity = identity
        self.guard = AccessGuard(identity)
        self.history = HubHistory(store)
        self.profiles = ProfileStore(store)
        self.hubs = HubStore(store, history=self.history, media=media)
        self.files = FileStore(store, media, history=self.history, profiles=self.profiles)
        self.engagement = EngagementEngine(store)
        self.comments = CommentStore(store, self.profiles)


def services():
    return current_app.extensions['bytehub']


# ==============================================================================
# 2. CORE UTILITY & HELPER FUNCTIONS
# ==============================================================================
def api_response(data=None, message=None, status=200):
    body = {'success': True}
    if data is not None:
        body['data'] = data
    if message:
        body['message'] = message
    return jsonify(body), status


def error_response(error, status=None):
    return jsonify(error.to_dict()), status or error.status_code


def parse_json_body():
    """The JSON object sent with the request; anything else is rejected."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidArgument("Invalid request body")
    return data


def parse_limit(default=None):
    default = default or current_app.config['DEFAULT_LIST_LIMIT']
    raw = request.args.get('limit')
    if raw is None or raw == '':
        return default
    try:
        limit = int(raw)
    except ValueError:
        raise InvalidArgument("limit must be an integer")
    if limit < 1:
        raise InvalidArgument("limit must be a positive integer")
    return min(limit, current_app.config['MAX_LIST_LIMIT'])


def caller_id():
    """Id of the authenticated caller, or None for anonymous requests."""
    return current_user.id if current_user.is_authenticated else None


def can_open_hub(hub, viewer):
    """Private hubs are only visible to their owner."""
    return hub is not None and (hub.visibility == 'public' or hub.is_owned_by(viewer))


def visible_hub(hub_id):
    hub = services().hubs.get(hub_id)
    if not can_open_hub(hub, caller_id()):
        raise NotFound("Hub not found")
    return hub



# ==============================================================================
# 3. APP FACTORY
# ==============================================================================
def create_app(config=None, store=None, media=None, identity=None):
    """
    Build the Flask app. Collaborators that are not passed in are backed by
    Firebase, which then has to be configured through the environment.
    """
    app = Flask(__name__)
    app.config.from_object(config or Config)

    setup_logging(app.config['LOG_LEVEL'], app.config['LOG_DIR'])

    if store is None or media is None or identity is None:
        initialize_firebase(app.config)
        store = store or FirestoreStore()
        media = media or FirebaseMediaStore()
        identity = identity or FirebaseIdentityProvider()

    app.extensions['bytehub'] = ByteHubServices(store, media, identity)

    # --- Authentication: bearer tokens only, no session cookies ---
    login_manager = LoginManager()
    login_manager.session_protection = None
    login_manager.init_app(app)

    @login_manager.request_loader
    def load_user_from_request(req):
        return services().guard.resolve(req.headers.get('Authorization'))

    @login_manager.unauthorized_handler
    def unauthorized():
        return error_response(Unauthenticated())

    register_error_handlers(app)
    app.register_blueprint(api)

    @app.after_request
    def record_api_call(response):
        log_api_call(request.path, request.method, caller_id(), response.status_code)
        return response

    logger.info(f"ByteHub API ready ({app.config['BYTEHUB_ENV']})")
    return app


def register_error_handlers(app):
    @app.errorhandler(ByteHubError)
    def handle_bytehub_error(e):
        if e.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed: {e.message}")
        else:
            logger.info(f"{request.method} {request.path} -> {e.status_code}: {e.message}")
        return error_response(e)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        limit_mb = (current_app.config.get('MAX_CONTENT_LENGTH') or 0) // (1024 * 1024)
        return error_response(InvalidArgument(f"File exceeds the {limit_mb}MB upload limit"), 413)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'success': False, 'error': e.name, 'message': e.description, 'code': e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception(f"Unhandled error on {request.method} {request.path}: {e}")
        return error_response(Internal())


# ==============================================================================
# 4. HEALTH & AUTH ROUTES
# ==============================================================================
@api.route("/health", methods=["GET"])
def health():
    return api_response({'status': 'ok', 'environment': current_app.config['BYTEHUB_ENV']})


@api.route("/auth", methods=["POST"])
def auth():
    """POST /auth?action=signup|signin"""
    action = request.args.get('action')
    body = parse_json_body()

    if action == 'signup':
        email = (body.get('email') or '').strip()
        password = body.get('password') or ''
        name = (body.get('name') or '').strip()
        institution = (body.get('institution') or '').strip()

        if not email or not password or not name:
            raise InvalidArgument("Email, password and name are required")
        if len(password) < 6:
            raise InvalidArgument("Password must be at least 6 characters")

        record = services().identity.create_user(email, password, name)
        profile = services().profiles.upsert_on_auth(record['uid'], email, name, institution)
        log_user_action(record['uid'], 'signed_up')
        return api_response({'uid': record['uid'], 'profile': profile.to_dict()},
                            "User created successfully", 201)

    if action == 'signin':
        email = (body.get('email') or '').strip()
        if not email:
            raise InvalidArgument("Email is required")

        # Password checks happen client-side with the identity provider
        record = services().identity.get_user_by_email(email)
        profile = services().profiles.upsert_on_auth(record['uid'], record['email'] or email, record['name'])
        log_user_action(record['uid'], 'signed_in')
        return api_response({'uid': record['uid'], 'profile': profile.to_dict()}, "Sign in successful")

    raise InvalidArgument("Invalid action")


@api.route("/auth/verify-email", methods=["POST"])
@login_required
def send_verification_email():
    identity = services().identity
    record = identity.get_user(current_user.id)
    if record['email_verified']:
        raise InvalidArgument("Email is already verified")

    continue_url = f"{current_app.config['APP_BASE_URL']}/auth?verified=true"
    link = identity.generate_email_verification_link(record['email'], continue_url)
    log_user_action(current_user.id, 'verification_email_requested')

    data = {'email': record['email']}
    if current_app.config['BYTEHUB_ENV'] == 'development':
        data['verificationLink'] = link
    return api_response(data, "Verification email sent")


# ==============================================================================
# 5. HUB ROUTES
# ==============================================================================
@api.route("/hubs", methods=["GET"])
def list_hubs():
    hubs = services().hubs.list(
        owner_id=request.args.get('userId'),
        visibility=request.args.get('visibility'),
        search=request.args.get('search'),
        tags=request.args.get('tags'),
        limit=parse_limit(),
    )
    return api_response([hub.to_dict() for hub in hubs])


@api.route("/hubs", methods=["POST"])
@login_required
def create_hub():
    body = parse_json_body()
    owner = services().profiles.find(current_user.id)
    hub = services().hubs.create(
        owner_id=current_user.id,
        title=body.get('title'),
        description=body.get('description'),
        tags=body.get('tags'),
        visibility=body.get('visibility') or 'public',
        preview_image=body.get('previewImage'),
        owner_name=owner.name if owner else '',
    )
    log_user_action(current_user.id, 'hub_created', {'hubId': hub.id})
    return api_response(hub.to_dict(), "Hub created successfully", 201)


@api.route("/hubs/<hub_id>", methods=["GET"])
def get_hub(hub_id):
    hub = visible_hub(hub_id)
    data = hub.to_dict()
    data['isStarred'] = hub.is_starred_by(caller_id())
    return api_response(data)


@api.route("/hubs/<hub_id>", methods=["PUT"])
@login_required
def update_hub(hub_id):
    hub = services().hubs.update(hub_id, current_user.id, parse_json_body())
    log_user_action(current_user.id, 'hub_updated', {'hubId': hub_id})
    return api_response(hub.to_dict(), "Hub updated successfully")


@api.route("/hubs/<hub_id>", methods=["DELETE"])
@login_required
def delete_hub(hub_id):
    counts = services().hubs.delete(hub_id, current_user.id)
    log_user_action(current_user.id, 'hub_deleted', dict(counts, hubId=hub_id))
    return api_response(counts, "Hub deleted successfully")


@api.route("/hubs/<hub_id>/history", methods=["GET"])
def hub_history(hub_id):
    visible_hub(hub_id)
    items = services().history.history(hub_id, limit=parse_limit(50))
    return api_response([item.to_dict() for item in items])


# ==============================================================================
# 6. FILE & UPLOAD ROUTES
# ==============================================================================
def _delete_file(file_id):
    result = services().files.delete(file_id, current_user.id)
    log_user_action(current_user.id, 'file_deleted', {'fileId': file_id})
    return api_response(result, "File deleted successfully")


def _list_files(hub_id=None, user_id=None):
    if hub_id:
        visible_hub(hub_id)
    files = services().files.list(hub_id=hub_id, user_id=user_id, limit=parse_limit(FILE_LIST_LIMIT))
    if not hub_id:
        viewer = caller_id()
        hubs = {}
        for hub_file in files:
            if hub_file.hub_id not in hubs:
                hubs[hub_file.hub_id] = services().hubs.find(hub_file.hub_id)
        files = [hub_file for hub_file in files if can_open_hub(hubs[hub_file.hub_id], viewer)]
    return api_response([hub_file.to_dict() for hub_file in files])


@api.route("/files", methods=["GET"])
def list_files():
    return _list_files(request.args.get('hubId'), request.args.get('userId'))


@api.route("/files", methods=["DELETE"])
@login_required
def delete_file_by_query():
    file_id = request.args.get('fileId')
    if not file_id:
        raise InvalidArgument("File ID required")
    return _delete_file(file_id)


@api.route("/files/<file_id>", methods=["GET"])
def get_file(file_id):
    hub_file = services().files.get(file_id)
    visible_hub(hub_file.hub_id)
    data = hub_file.to_dict()
    data['versions'] = [version.to_dict() for version in services().files.list_versions(file_id)]
    return api_response(data)


@api.route("/files/<file_id>", methods=["DELETE"])
@login_required
def delete_file(file_id):
    return _delete_file(file_id)


@api.route("/upload", methods=["POST"])
@api.route("/files", methods=["POST"])
@login_required
def upload_file():
    """Multipart upload: file, hubId, and optionally fileName, description, fileId, changeNote."""
    upload = request.files.get('file')
    hub_file = services().files.upload(
        hub_id=request.form.get('hubId'),
        uploader_id=current_user.id,
        stream=upload,
        filename=upload.filename if upload else None,
        file_name=request.form.get('fileName'),
        content_type=upload.mimetype if upload else None,
        description=request.form.get('description', ''),
        file_id=request.form.get('fileId'),
        change_note=request.form.get('changeNote', ''),
    )
    action = 'file_updated' if hub_file.version > 1 else 'file_uploaded'
    log_user_action(current_user.id, action, {'fileId': hub_file.id, 'hubId': hub_file.hub_id})
    return api_response(hub_file.to_dict(), "File uploaded successfully", 201)


@api.route("/upload", methods=["GET"])
def list_uploads():
    hub_id = request.args.get('hubId')
    if not hub_id:
        raise InvalidArgument("Hub ID required")
    return _list_files(hub_id=hub_id)


@api.route("/upload", methods=["DELETE"])
@login_required
def delete_upload():
    file_id = request.args.get('fileId')
    if not file_id:
        raise InvalidArgument("File ID required")
    return _delete_file(file_id)


# ==============================================================================
# 7. COMMUNITY ROUTES (STARS, FOLLOWS, COMMENTS)
# ==============================================================================
@api.route("/stars", methods=["POST"])
@login_required
def toggle_star():
    body = parse_json_body()
    if body.get('hubId'):
        visible_hub(body.get('hubId'))
    result = services().engagement.toggle_star(body.get('hubId'), current_user.id)
    result['isStarred'] = result['starred']
    log_user_action(current_user.id, 'hub_starred' if result['starred'] else 'hub_unstarred',
                    {'hubId': result['hubId']})
    return api_response(result, "Hub starred" if result['starred'] else "Hub unstarred")


@api.route("/stars", methods=["GET"])
@login_required
def starred_hubs():
    hubs = services().engagement.starred_hubs(current_user.id)
    return api_response([hub.to_dict() for hub in hubs])


@api.route("/follows", methods=["POST"])
@login_required
def toggle_follow():
    body = parse_json_body()
    result = services().engagement.toggle_follow(current_user.id, body.get('targetUserId'))
    result['isFollowing'] = result['following']
    log_user_action(current_user.id, 'user_followed' if result['following'] else 'user_unfollowed',
                    {'targetUserId': result['targetUserId']})
    return api_response(result, "User followed" if result['following'] else "User unfollowed")


@api.route("/follows", methods=["GET"])
def list_follows():
    profiles = services().profiles.list_relations(request.args.get('userId'), request.args.get('type'))
    viewer = caller_id()
    return api_response([profile.to_public_dict(viewer) for profile in profiles])


@api.route("/comments", methods=["POST"])
@login_required
def create_comment():
    body = parse_json_body()
    if body.get('hubId'):
        visible_hub(body.get('hubId'))
    comment = services().comments.create(body.get('hubId'), current_user.id, body.get('text'))
    log_user_action(current_user.id, 'comment_created', {'hubId': comment.hub_id})
    return api_response(comment.to_dict(), "Comment added", 201)


@api.route("/comments", methods=["GET"])
def list_comments():
    hub_id = request.args.get('hubId')
    if not hub_id:
        raise InvalidArgument("Hub ID required")
    visible_hub(hub_id)
    comments = services().comments.list(hub_id)
    return api_response([comment.to_dict() for comment in comments])


# ==============================================================================
# 8. SEARCH & PROFILE ROUTES
# ==============================================================================
@api.route("/search", methods=["GET"])
def search():
    term = (request.args.get('q') or '').strip()
    search_type = request.args.get('type') or 'all'
    if not term:
        raise InvalidArgument("Search query required")
    if search_type not in SEARCH_TYPES:
        raise InvalidArgument('Type must be "all", "hubs" or "users"')

    limit = parse_limit()
    viewer = caller_id()
    results = {'hubs': [], 'users': []}
    if search_type in ('all', 'hubs'):
        results['hubs'] = [hub.to_dict() for hub in services().hubs.search(term, limit)]
    if search_type in ('all', 'users'):
        results['users'] = [profile.to_public_dict(viewer)
                            for profile in services().profiles.search(term, limit)]
    return api_response(results)


@api.route("/users/<user_id>", methods=["GET"])
def get_user_profile(user_id):
    profile = services().profiles.get(user_id)
    viewer = caller_id()
    data = profile.to_public_dict(viewer)
    if viewer and viewer != user_id:
        data['isFollowing'] = services().engagement.is_following(viewer, user_id)
    return api_response(data)


@api.route("/users/<user_id>", methods=["PUT"])
@login_required
def update_user_profile(user_id):
    profile = services().profiles.update_profile(user_id, current_user.id, parse_json_body())
    log_user_action(current_user.id, 'profile_updated')
    return api_response(profile.to_dict(), "Profile updated successfully")


@api.route("/users/<user_id>/settings", methods=["PUT"])
@login_required
def update_user_settings(user_id):
    profile = services().profiles.update_settings(user_id, current_user.id, parse_json_body())
    log_user_action(current_user.id, 'settings_updated')
    return api_response(profile.to_dict(), "Settings updated successfully")


# ==============================================================================
# 9. APP INITIALIZATION
# ==============================================================================
if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config['BYTEHUB_ENV'] == 'development', port=5000)
