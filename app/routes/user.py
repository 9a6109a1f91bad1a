"""User management routes for MediCourier"""
from flask import Blueprint, g, request
from config.database import db
from app.models import User, UserRole
from app.utils.security import (
    jwt_required_with_user, permission_required, sanitize_string,
    validate_email, validate_phone, validate_password_strength, safe_like_query
)
from app.utils.helpers import success_response, error_response, get_request_json, paginate
from app.services.activity_logger import log_activity, ActivityType, EntityType

user_bp = Blueprint('user', __name__)


def serialize_user(user):
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'phone': user.phone,
        'is_active': user.is_active,
        'status': 'Active' if user.is_active else 'Inactive',
        'last_login_at': user.last_login_at.isoformat() if user.last_login_at else None,
        'created_at': user.created_at.isoformat() if user.created_at else None
    }


def load_user(user_id):
    return db.session.get(User, user_id)


def validate_user(data, partial=False):
    errors = {}
    if not partial or 'name' in data:
        if not sanitize_string(data.get('name') or ''):
            errors['name'] = 'Name is required'
    if not partial or 'email' in data:
        email = data.get('email')
        if not email or not validate_email(str(email)):
            errors['email'] = 'A valid email is required'
    if not partial or 'role' in data:
        if data.get('role') not in UserRole.ALL:
            errors['role'] = f"Must be one of {', '.join(UserRole.ALL)}"
    if not partial or 'password' in data:
        password = data.get('password')
        if not isinstance(password, str):
            errors['password'] = 'Password is required'
        else:
            is_valid, message = validate_password_strength(password)
            if not is_valid:
                errors['password'] = message
    phone = data.get('phone')
    if phone and not validate_phone(str(phone)):
        errors['phone'] = 'Invalid phone number'
    if 'is_active' in data and not isinstance(data['is_active'], bool):
        errors['is_active'] = 'Must be true or false'
    return errors


@user_bp.route('', methods=['GET'])
@jwt_required_with_user()
@permission_required('users.view')
def list_users():
    """List users, filtered by search, role and active flag"""
    query = User.query

    search = request.args.get('search', '')
    if search:
        term = f"%{safe_like_query(search)}%"
        query = query.filter(db.or_(User.name.ilike(term), User.email.ilike(term)))

    role = request.args.get('role')
    if role:
        query = query.filter(User.role == role)

    is_active = request.args.get('is_active')
    if is_active is not None:
        query = query.filter(User.is_active == (is_active.lower() == 'true'))

    return success_response(paginate(query.order_by(User.name), serialize_user))


@user_bp.route('', methods=['POST'])
@jwt_required_with_user()
@permission_required('users.create')
def create_user():
    """Create a user with a role"""
    data = get_request_json()

    errors = validate_user(data)
    if errors:
        return error_response('Invalid user data', errors)

    email = sanitize_string(data['email']).lower()
    if User.query.filter_by(email=email).first():
        return error_response('Email already exists', {'email': 'Already registered'}, 409)

    user = User(
        email=email,
        name=sanitize_string(data['name']),
        role=data['role'],
        phone=sanitize_string(data.get('phone') or '') or None,
        is_active=data.get('is_active', True)
    )
    user.set_password(data['password'])

    db.session.add(user)
    db.session.flush()

    log_activity(
        activity_type=ActivityType.CREATE,
        description=f"Created {user.role} user '{user.name}'",
        entity_type=EntityType.USER,
        entity_id=user.id
    )
    db.session.commit()

    return success_response(serialize_user(user), 'User created', 201)


@user_bp.route('/<int:id>', methods=['GET'])
@jwt_required_with_user()
@permission_required('users.view')
def get_user(id):
    """Get user details"""
    user = load_user(id)
    if not user:
        return error_response('User not found', status_code=404)

    return success_response(serialize_user(user))


@user_bp.route('/<int:id>', methods=['PUT'])
@jwt_required_with_user()
@permission_required('users.edit')
def update_user(id):
    """Update profile, role, active flag or password"""
    user = load_user(id)
    if not user:
        return error_response('User not found', status_code=404)

    data = get_request_json()
    errors = validate_user(data, partial=True)
    if errors:
        return error_response('Invalid user data', errors)

    if user.id == g.current_user.id:
        if data.get('is_active') is False or data.get('role', user.role) != user.role:
            return error_response('Cannot deactivate or change the role of your own account',
                                  status_code=409)

    changed = []
    if 'email' in data:
        email = sanitize_string(data['email']).lower()
        if email != user.email:
            if User.query.filter(User.email == email, User.id != user.id).first():
                return error_response('Email already exists', {'email': 'Already registered'}, 409)
            user.email = email
            changed.append('email')

    if 'name' in data:
        name = sanitize_string(data['name'])
        if name != user.name:
            user.name = name
            changed.append('name')

    if 'phone' in data:
        phone = sanitize_string(data['phone'] or '') or None
        if phone != user.phone:
            user.phone = phone
            changed.append('phone')

    for field in ('role', 'is_active'):
        if field in data and getattr(user, field) != data[field]:
            setattr(user, field, data[field])
            changed.append(field)

    if data.get('password'):
        user.set_password(data['password'])
        changed.append('password')

    if changed:
        log_activity(
            activity_type=ActivityType.UPDATE,
            description=f"Updated user '{user.name}'",
            entity_type=EntityType.USER,
            entity_id=user.id,
            extra_data={'changed_fields': changed}
        )
    db.session.commit()

    return success_response(serialize_user(user), 'User updated')


@user_bp.route('/<int:id>', methods=['DELETE'])
@jwt_required_with_user()
@permission_required('users.delete')
def delete_user(id):
    """Deactivate a user; records they created keep pointing at them"""
    user = load_user(id)
    if not user:
        return error_response('User not found', status_code=404)

    if user.id == g.current_user.id:
        return error_response('Cannot delete yourself', status_code=409)

    user.is_active = False

    log_activity(
        activity_type=ActivityType.DELETE,
        description=f"Deactivated user '{user.name}'",
        entity_type=EntityType.USER,
        entity_id=user.id
    )
    db.session.commit()

    return success_response(serialize_user(user), 'User deactivated')
