from datetime import datetime
from config.database import db


class PaymentStatus:
    UNPAID = 'Unpaid'
    PARTIALLY_PAID = 'Partially Paid'
    PAID = 'Paid'

    ALL = (UNPAID, PARTIALLY_PAID, PAID)


class Invoice(db.Model):
    """Invoice issued from a converted quotation"""
    __tablename__ = 'invoices'

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(30), nullable=False, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))

    # Source - one invoice per quotation
    quotation_id = db.Column(db.Integer, db.ForeignKey('quotations.id'), nullable=False, unique=True)

    # Customer (copied at conversion, not referenced live)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    customer_name = db.Column(db.String(200))
    customer_email = db.Column(db.String(100))
    customer_country = db.Column(db.String(100))
    billing_state = db.Column(db.String(100))

    issue_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)

    # Copied from the quotation for audit display
    purpose = db.Column(db.String(200))
    tax_name = db.Column(db.String(20), default='GST')
    discount_percent = db.Column(db.Numeric(5, 2), default=0)
    delivery_charge = db.Column(db.Numeric(15, 2), default=0)
    remote_area_charge = db.Column(db.Numeric(15, 2), default=0)
    pickup_charge = db.Column(db.Numeric(15, 2), default=0)
    total_tax = db.Column(db.Numeric(15, 2), default=0)

    # Frozen grand total of the quotation
    total_amount = db.Column(db.Numeric(15, 2), nullable=False)
    currency = db.Column(db.String(3), default='INR')

    # Payment Tracking
    payment_status = db.Column(db.String(20), nullable=False, default=PaymentStatus.UNPAID)
    amount_paid = db.Column(db.Numeric(15, 2), default=0)
    balance_due = db.Column(db.Numeric(15, 2), default=0)
    payment_proofs = db.Column(db.JSON, default=list)
    payment_source = db.Column(db.String(100))

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    paid_at = db.Column(db.DateTime)

    # Relationships
    quotation = db.relationship('Quotation', foreign_keys=[quotation_id])
    customer = db.relationship('Customer', foreign_keys=[customer_id])

    __table_args__ = (
        db.Index('idx_invoice_customer', 'customer_id'),
        db.Index('idx_invoice_payment_status', 'payment_status'),
    )

    def __repr__(self):
        return f'<Invoice {self.invoice_number}>'
