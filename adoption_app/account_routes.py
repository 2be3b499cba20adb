import logging

from flask import Blueprint, jsonify, request

from .exceptions import ValidationError, AuthenticationError
from .models.user import UserProfile, ROLES, ROLE_USER
from .preferences import get_preferences
from .utils.image_staging import PendingUpload
from .web import get_services, request_data

account_bp = Blueprint('account', __name__)
logger = logging.getLogger(__name__)


@account_bp.route('/auth/register', methods=['POST'])
def register():
    services = get_services()
    data = request_data()
    role = data.get('role') or ROLE_USER
    if role not in ROLES:
        raise ValidationError("role", f"Role must be one of {', '.join(ROLES)}")

    identity = services.auth.register(
        data.get('email'), data.get('password'), data.get('display_name'), sign_in=False
    )
    services.users.create_profile(UserProfile(
        uid=identity.uid,
        email=identity.email,
        display_name=identity.display_name,
        role=role,
    ))
    services.auth.begin_session(identity)
    return jsonify({"status": "success", "identity": identity.to_dict()}), 201


@account_bp.route('/auth/login', methods=['POST'])
def login():
    data = request_data()
    identity = get_services().auth.sign_in(data.get('email'), data.get('password'))
    return jsonify({"status": "success", "identity": identity.to_dict()}), 200


@account_bp.route('/auth/logout', methods=['POST'])
def logout():
    get_services().auth.sign_out()
    return jsonify({"status": "success"}), 200


@account_bp.route('/auth/me', methods=['GET'])
def me():
    identity = get_services().auth.current_identity()
    if identity is None:
        raise AuthenticationError("Not signed in")
    return jsonify({"identity": identity.to_dict()}), 200


@account_bp.route('/users/<uid>', methods=['GET'])
def get_user(uid):
    services = get_services()
    profile = services.users.get_profile(uid)
    listings = services.listings.list_by_owner(uid)
    identity = services.auth.current_identity()
    return jsonify({
        "profile": profile.to_dict(),
        "listings": [x.to_dict() for x in listings],
        "is_me": bool(identity and identity.uid == uid),
    }), 200


@account_bp.route('/profile', methods=['POST'])
def update_profile():
    services = get_services()
    identity = services.auth.require_identity()
    display_name = (request.form.get('display_name') or "").strip() or None

    photo_url = None
    avatar = request.files.get('avatar')
    if avatar:
        photo_url = services.users.upload_avatar(identity.uid, PendingUpload.from_file_storage(avatar))

    services.users.update_profile(identity.uid, display_name, photo_url)
    fields = {"display_name": display_name}
    if photo_url:
        fields["photo_url"] = photo_url
    identity = services.auth.update_profile(identity, **fields)
    return jsonify({"status": "success", "identity": identity.to_dict()}), 200


@account_bp.route('/preferences/theme', methods=['GET'])
def get_theme():
    return jsonify({"theme": get_preferences().theme}), 200


@account_bp.route('/preferences/theme', methods=['PUT'])
def set_theme():
    theme = get_preferences().set_theme(request_data().get('theme'))
    return jsonify({"theme": theme}), 200
