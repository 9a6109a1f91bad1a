"""
Invoice payment ledger - amount paid, balance due and payment status.

balance_due is always total_amount - amount_paid and may go negative on an
overpayment. Manual entry and the advisory proof analysis both end up in
record_payment so they share one derivation.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation

from config.database import db
from app.models import Invoice, PaymentStatus
from app.services.activity_logger import ActivityType, EntityType, log_activity
from app.services.attachments import accept_attachments
from app.services.tax_calculator import round_money, to_decimal
from app.utils.errors import NotFoundError, ValidationError
from app.utils.security import sanitize_string

logger = logging.getLogger(__name__)

PAYMENT_SOURCES = (
    'PhonePe', 'Paytm', 'Google Pay',
    'Axis Bank', 'KVB Bank', 'Yes Bank',
    'PayPal', 'Razorpay', 'PayU Money',
    'Wise', 'Remitly', 'Revolut',
)


@dataclass
class LedgerResult:
    invoice: Invoice
    warnings: list = field(default_factory=list)


def derive_balance(total_amount, amount_paid):
    return round_money(to_decimal(total_amount) - to_decimal(amount_paid))


def derive_payment_status(total_amount, amount_paid, current_status):
    """Payment status after amount_paid changes.

    Nothing recorded leaves whatever status is currently set, so a manually
    chosen status survives a zero amount.
    """
    total = to_decimal(total_amount)
    paid = to_decimal(amount_paid)
    if paid == 0:
        return current_status
    if paid >= total:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIALLY_PAID


def get_invoice(invoice_id):
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError('Invoice not found', entity_type=EntityType.INVOICE, entity_id=invoice_id)
    return invoice


def record_payment(invoice, amount_paid, proofs=None, source=None, requested_status=None,
                   user_id=None, max_attachment_bytes=None, note=None):
    """Record the amount paid on an invoice and derive balance and status.

    Args:
        invoice: Invoice instance
        amount_paid: cumulative amount received (>= 0)
        proofs: new proof attachments to add; oversized ones are dropped
        source: payment source tag (catalogue entry or free text)
        requested_status: status chosen by the user, kept when nothing is paid

    Returns:
        LedgerResult with the updated invoice and any attachment warnings
    """
    errors = {}
    try:
        paid = to_decimal(amount_paid)
        if not paid.is_finite():
            raise InvalidOperation
    except (InvalidOperation, ValueError, TypeError):
        errors['amount_paid'] = 'Must be a number'
        paid = Decimal('0')
    if 'amount_paid' not in errors and paid < 0:
        errors['amount_paid'] = 'Must be at least 0'
    if requested_status is not None and requested_status not in PaymentStatus.ALL:
        errors['payment_status'] = f"Must be one of {', '.join(PaymentStatus.ALL)}"
    if errors:
        raise ValidationError('Invalid payment data', entity_type=EntityType.INVOICE,
                              entity_id=invoice.id, errors=errors)

    paid = round_money(paid)
    kept, warnings = accept_attachments(proofs, max_attachment_bytes, field='payment_proofs')

    old_status = invoice.payment_status
    current_status = requested_status or invoice.payment_status

    invoice.amount_paid = paid
    invoice.balance_due = derive_balance(invoice.total_amount, paid)
    invoice.payment_status = derive_payment_status(invoice.total_amount, paid, current_status)
    if kept:
        invoice.payment_proofs = list(invoice.payment_proofs or []) + kept
    if source is not None:
        invoice.payment_source = sanitize_string(source) if source else None
    if invoice.payment_status == PaymentStatus.PAID and old_status != PaymentStatus.PAID:
        invoice.paid_at = datetime.utcnow()

    if invoice.balance_due < 0:
        logger.info("Invoice %s overpaid by %s", invoice.invoice_number, -invoice.balance_due)

    log_activity(
        ActivityType.PAYMENT_RECEIVE,
        note or f'Payment of {invoice.amount_paid} recorded on invoice {invoice.invoice_number}',
        entity_type=EntityType.INVOICE,
        entity_id=invoice.id,
        entity_number=invoice.invoice_number,
        extra_data={
            'amount_paid': float(invoice.amount_paid),
            'balance_due': float(invoice.balance_due),
            'from': old_status,
            'to': invoice.payment_status,
            'proofs_added': len(kept),
            'proofs_dropped': len(warnings),
        },
        user_id=user_id,
    )
    db.session.commit()
    return LedgerResult(invoice=invoice, warnings=warnings)
