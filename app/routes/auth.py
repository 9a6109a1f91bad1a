"""Authentication routes for MediCourier"""
import logging
from flask import Blueprint, g
from datetime import datetime
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    jwt_required, get_jwt_identity
)
from config.database import db
from app.models import User
from app.utils.security import (
    ROLE_PERMISSIONS, jwt_required_with_user, sanitize_string, verify_password
)
from app.utils.helpers import success_response, error_response, get_request_json
from app.services.activity_logger import log_activity, ActivityType, EntityType

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def serialize_user(user):
    permissions = ROLE_PERMISSIONS.get(user.role, ())
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'status': 'Active' if user.is_active else 'Inactive',
        'last_login_at': user.last_login_at.isoformat() if user.last_login_at else None,
        'permissions': ['*'] if user.role == 'Admin' else list(permissions)
    }


@auth_bp.route('/login', methods=['POST'])
def login():
    """Login with email and password"""
    data = get_request_json()

    email = sanitize_string(data.get('email') or '').lower()
    password = data.get('password') or ''
    if not email or not password:
        return error_response('Email and password are required')

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        return error_response('Invalid email or password', status_code=401)

    if not user.is_active:
        return error_response('Account is inactive', status_code=403)

    user.last_login_at = datetime.utcnow()
    log_activity(
        ActivityType.LOGIN, f'{user.name} logged in',
        entity_type=EntityType.USER, entity_id=user.id, user_id=user.id
    )
    db.session.commit()

    access_token = create_access_token(
        identity=str(user.id),
        additional_claims={'email': user.email, 'role': user.role}
    )
    refresh_token = create_refresh_token(identity=str(user.id))

    return success_response({
        'user': serialize_user(user),
        'access_token': access_token,
        'refresh_token': refresh_token
    })


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    """Issue a new access token from a refresh token"""
    user = db.session.get(User, int(get_jwt_identity()))
    if not user or not user.is_active:
        return error_response('User not found or inactive', status_code=401)

    access_token = create_access_token(
        identity=str(user.id),
        additional_claims={'email': user.email, 'role': user.role}
    )
    return success_response({'access_token': access_token})


@auth_bp.route('/me', methods=['GET'])
@jwt_required_with_user()
def me():
    """Current user profile"""
    return success_response(serialize_user(g.current_user))
