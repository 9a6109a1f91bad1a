"""Customer models for MediCourier"""
from datetime import datetime
from config.database import db


class Customer(db.Model):
    """Customer/Client model"""
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)
    customer_code = db.Column(db.String(20), nullable=False, unique=True)

    # Owning user (sales rep who registered the customer)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))

    # Basic Info
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(100))
    phone = db.Column(db.String(20))

    # Addresses
    address = db.Column(db.String(500))
    billing_address = db.Column(db.String(500))
    shipping_address = db.Column(db.String(500))
    billing_state = db.Column(db.String(100))
    country = db.Column(db.String(100), nullable=False, default='India')

    join_date = db.Column(db.Date, default=lambda: datetime.utcnow().date())

    is_active = db.Column(db.Boolean, default=True)

    # Audit
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_customers_name', 'name'),
    )

    def __repr__(self):
        return f'<Customer {self.name}>'
