"""Security utilities for MediCourier"""
import logging
import re
from functools import wraps
from flask import request, g, jsonify
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
import bleach
from werkzeug.security import generate_password_hash, check_password_hash

logger = logging.getLogger(__name__)


# Role -> permission codes, module.action format. Admin holds every permission.
ROLE_PERMISSIONS = {
    'Admin': (),
    'Sales': (
        'dashboard.view',
        'customers.view', 'customers.create', 'customers.edit',
        'quotations.view', 'quotations.create', 'quotations.edit', 'quotations.delete',
        'quotations.convert',
        'invoices.view', 'invoices.payment',
        'shipments.view', 'shipments.create', 'shipments.edit',
    ),
    'Operations': (
        'dashboard.view',
        'shipments.view', 'shipments.create', 'shipments.edit',
    ),
    'Finance': (
        'dashboard.view', 'reports.view',
        'invoices.view', 'invoices.payment',
    ),
}


# Password hashing
def hash_password(password: str) -> str:
    return generate_password_hash(password, method='pbkdf2:sha256:600000')


def verify_password(password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, password)


def validate_password_strength(password: str) -> tuple[bool, str]:
    if len(password) < 8:
        return False, "Password must be at least 8 characters"
    if not re.search(r'[A-Z]', password):
        return False, "Password must contain uppercase letter"
    if not re.search(r'[a-z]', password):
        return False, "Password must contain lowercase letter"
    if not re.search(r'\d', password):
        return False, "Password must contain digit"
    if not re.search(r'[!@#$%^&*(),.?":{}|<>]', password):
        return False, "Password must contain special character"
    return True, "Password is strong"


# Input sanitization
def sanitize_string(text: str) -> str:
    if not text:
        return text
    if not isinstance(text, str):
        text = str(text)
    return bleach.clean(text, tags=[], strip=True).strip()


# Input validation
def validate_email(email: str) -> bool:
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_phone(phone: str) -> bool:
    pattern = r'^[+]?[\d\s-]{7,20}$'
    return bool(re.match(pattern, phone.replace(' ', '')))


# JWT authentication decorator
def jwt_required_with_user():
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            from flask_jwt_extended.exceptions import NoAuthorizationError, InvalidHeaderError
            from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

            try:
                verify_jwt_in_request()
                user_id = get_jwt_identity()
            except NoAuthorizationError:
                return jsonify({'error': 'Authorization header missing'}), 401
            except InvalidHeaderError as e:
                return jsonify({'error': f'Invalid authorization header: {str(e)}'}), 401
            except ExpiredSignatureError:
                return jsonify({'error': 'Token has expired'}), 401
            except InvalidTokenError as e:
                return jsonify({'error': f'Invalid token: {str(e)}'}), 401

            from app.models import User
            user = User.query.filter_by(id=int(user_id), is_active=True).first()

            if not user:
                logger.warning("Token for unknown or inactive user %s", user_id)
                return jsonify({'error': 'User not found or inactive'}), 401

            g.current_user = user

            return f(*args, **kwargs)
        return decorated_function
    return decorator


# Permission decorator
def permission_required(*permissions):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, 'current_user') or not g.current_user:
                return jsonify({'error': 'Authentication required'}), 401

            user = g.current_user

            # Check if user has any of the required permissions
            has_permission = any(user.has_permission(p) for p in permissions)

            if not has_permission:
                logger.info("Permission denied for %s on %s (%s)", user.email, request.path, ', '.join(permissions))
                return jsonify({'error': 'Permission denied'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


# XSS protection header middleware
def add_security_headers(response):
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-XSS-Protection'] = '1; mode=block'
    response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    response.headers['Content-Security-Policy'] = "default-src 'self'"
    return response


# SQL injection prevention helper
def safe_like_query(value: str) -> str:
    """Escape special characters for LIKE queries"""
    return value.replace('%', r'\%').replace('_', r'\_')
