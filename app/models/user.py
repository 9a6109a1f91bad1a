"""User models for MediCourier"""
from datetime import datetime
from config.database import db


class UserRole:
    ADMIN = 'Admin'
    SALES = 'Sales'
    OPERATIONS = 'Operations'
    FINANCE = 'Finance'

    ALL = (ADMIN, SALES, OPERATIONS, FINANCE)


class User(db.Model):
    """Back-office user with a single role"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)

    # Authentication
    email = db.Column(db.String(120), nullable=False, unique=True)
    password_hash = db.Column(db.String(256), nullable=False)

    # Profile
    name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=UserRole.SALES)
    phone = db.Column(db.String(20))

    # Status & Security
    is_active = db.Column(db.Boolean, default=True)
    last_login_at = db.Column(db.DateTime)
    password_changed_at = db.Column(db.DateTime)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password):
        from app.utils.security import hash_password
        self.password_hash = hash_password(password)
        self.password_changed_at = datetime.utcnow()

    def has_permission(self, permission_code):
        """Check if the user's role grants a specific permission"""
        from app.utils.security import ROLE_PERMISSIONS
        if self.role == UserRole.ADMIN:
            return True
        return permission_code in ROLE_PERMISSIONS.get(self.role, ())

    def __repr__(self):
        return f'<User {self.email}>'
