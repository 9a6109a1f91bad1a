from datetime import datetime
from config.database import db


class QuoteStatus:
    DRAFT = 'Draft'
    SENT = 'Sent'
    ACCEPTED = 'Customer Accepted'
    REJECTED = 'Customer Rejected'
    CONVERTED = 'Converted to Invoice'

    ALL = (DRAFT, SENT, ACCEPTED, REJECTED, CONVERTED)
    TERMINAL = (REJECTED, CONVERTED)
    EDITABLE = (DRAFT, SENT)


class Quotation(db.Model):
    """Shipping quotation for a set of medicines"""
    __tablename__ = 'quotations'

    id = db.Column(db.Integer, primary_key=True)
    quotation_number = db.Column(db.String(30), nullable=False, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))

    # Customer
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    customer_name = db.Column(db.String(200))  # Denormalized for quick access
    customer_country = db.Column(db.String(100))

    # Route
    origin = db.Column(db.String(100), nullable=False)
    destination = db.Column(db.String(100), nullable=False)
    billing_state = db.Column(db.String(100))  # Drives the CGST/SGST vs IGST display only
    purpose = db.Column(db.String(200))

    # Weight in kg, always the sum of item line weights
    total_weight = db.Column(db.Numeric(12, 3), default=0)

    # Charges
    discount_percent = db.Column(db.Numeric(5, 2), default=0)
    delivery_charge = db.Column(db.Numeric(15, 2), default=0)
    remote_area_charge = db.Column(db.Numeric(15, 2), default=0)
    pickup_charge = db.Column(db.Numeric(15, 2), default=0)

    # Frozen cost breakdown
    tax_name = db.Column(db.String(20), default='GST')
    subtotal = db.Column(db.Numeric(15, 2), default=0)
    discount_amount = db.Column(db.Numeric(15, 2), default=0)
    item_tax = db.Column(db.Numeric(15, 2), default=0)
    charge_tax = db.Column(db.Numeric(15, 2), default=0)
    total_tax = db.Column(db.Numeric(15, 2), default=0)
    grand_total = db.Column(db.Numeric(15, 2), default=0)

    # Status
    status = db.Column(db.String(30), nullable=False, default=QuoteStatus.DRAFT)

    created_date = db.Column(db.Date, nullable=False)
    validity_date = db.Column(db.Date, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    sent_at = db.Column(db.DateTime)
    accepted_at = db.Column(db.DateTime)
    rejected_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.String(500))
    converted_at = db.Column(db.DateTime)

    # Relationships
    customer = db.relationship('Customer', foreign_keys=[customer_id])
    items = db.relationship('QuotationItem', backref='quotation', lazy='select',
                            order_by='QuotationItem.line_number',
                            cascade='all, delete-orphan')

    __table_args__ = (
        db.Index('idx_quotation_customer', 'customer_id'),
        db.Index('idx_quotation_status', 'status'),
    )

    def __repr__(self):
        return f'<Quotation {self.quotation_number}>'


class QuotationItem(db.Model):
    """Quotation line items (medicines)"""
    __tablename__ = 'quotation_items'

    id = db.Column(db.Integer, primary_key=True)
    quotation_id = db.Column(db.Integer, db.ForeignKey('quotations.id'), nullable=False)

    line_number = db.Column(db.Integer, default=1)

    name = db.Column(db.String(200), nullable=False)
    hs_code = db.Column(db.String(20), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_rate = db.Column(db.Numeric(15, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 2), default=0)

    # Weight in kg
    unit_weight = db.Column(db.Numeric(12, 4), default=0)
    line_weight = db.Column(db.Numeric(12, 3), default=0)

    # Calculated Amounts
    line_total = db.Column(db.Numeric(15, 2), default=0)
    line_tax = db.Column(db.Numeric(15, 2), default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<QuotationItem {self.name}>'
