"""
Quotation lifecycle - validation, pricing snapshot, status changes and the
one-way conversion of a quotation into an invoice.
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from config.database import db
from app.models import Customer, Invoice, PaymentStatus, Quotation, QuotationItem, QuoteStatus
from app.services.activity_logger import ActivityType, EntityType, log_activity
from app.services.numbering import DocumentType, get_next_number
from app.services.place_of_supply import tax_summary
from app.services.tax_calculator import (
    ChargeSet, LineItem, compute, get_tax_config, round_money, to_decimal
)
from app.utils.errors import (
    ConflictError, InvalidTransitionError, NotFoundError, ValidationError
)
from app.utils.locks import conversion_locks
from app.utils.security import sanitize_string

logger = logging.getLogger(__name__)

WEIGHT_PLACES = Decimal('0.001')
UNIT_WEIGHT_PLACES = Decimal('0.0001')

ALLOWED_TRANSITIONS = {
    QuoteStatus.DRAFT: (QuoteStatus.SENT, QuoteStatus.REJECTED, QuoteStatus.CONVERTED),
    QuoteStatus.SENT: (QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.CONVERTED),
    QuoteStatus.ACCEPTED: (QuoteStatus.CONVERTED,),
    QuoteStatus.REJECTED: (),
    QuoteStatus.CONVERTED: (),
}

CHARGE_FIELDS = ('delivery_charge', 'remote_area_charge', 'pickup_charge')


def can_transition(current_status, new_status):
    if current_status in QuoteStatus.TERMINAL:
        return False
    return new_status in ALLOWED_TRANSITIONS.get(current_status, ())


def _parse_decimal(value, field, errors, minimum=Decimal('0'), maximum=None, places=2):
    try:
        number = to_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        errors[field] = 'Must be a number'
        return Decimal('0')
    if not number.is_finite():
        errors[field] = 'Must be a number'
        return Decimal('0')
    if number < minimum:
        errors[field] = f'Must be at least {minimum}'
    elif maximum is not None and number > maximum:
        errors[field] = f'Must be at most {maximum}'
    elif number.normalize().as_tuple().exponent < -places:
        errors[field] = f'At most {places} decimal places allowed'
    return number


def normalize_line_item(raw, config=None):
    """Bring a stored or submitted item onto the unit-weight rule.

    Older records carry only a total line weight and sometimes no tax rate;
    those get unit_weight = line_weight / quantity and the default rate.
    """
    config = config or get_tax_config()
    item = dict(raw or {})

    if item.get('tax_rate') in (None, ''):
        item['tax_rate'] = item.pop('gst_rate', None)
    if item.get('tax_rate') in (None, ''):
        item['tax_rate'] = config.default_item_tax_rate

    if item.get('line_weight') in (None, '') and item.get('weight') not in (None, ''):
        item['line_weight'] = item.pop('weight')

    try:
        quantity = int(item.get('quantity') or 0)
    except (TypeError, ValueError):
        quantity = 0

    if item.get('unit_weight') in (None, ''):
        line_weight = item.get('line_weight')
        if line_weight not in (None, '') and quantity > 0:
            try:
                item['unit_weight'] = (to_decimal(line_weight) / quantity).quantize(UNIT_WEIGHT_PLACES)
            except (InvalidOperation, ValueError):
                item['unit_weight'] = line_weight
        else:
            item['unit_weight'] = 0

    try:
        item['line_weight'] = (to_decimal(item['unit_weight']) * quantity).quantize(WEIGHT_PLACES)
    except (InvalidOperation, ValueError):
        item['line_weight'] = Decimal('0')

    return item


def build_line_items(raw_items, config=None, errors=None):
    """Validate raw item dicts and turn them into LineItem values.

    Field errors are collected into ``errors`` under ``items[<index>].<field>``.
    """
    config = config or get_tax_config()
    errors = errors if errors is not None else {}
    allowed_rates = {to_decimal(rate) for rate in config.allowed_tax_rates}
    items = []

    if not isinstance(raw_items, list):
        errors['items'] = 'Items must be a list'
        return items

    for index, raw in enumerate(raw_items):
        prefix = f'items[{index}]'
        if not isinstance(raw, dict):
            errors[prefix] = 'Item must be an object'
            continue
        item_errors = {}
        data = normalize_line_item(raw, config)

        name = sanitize_string(str(data.get('name') or ''))
        if not name:
            item_errors['name'] = 'Name is required'

        hs_code = sanitize_string(str(data.get('hs_code') or ''))
        if not hs_code:
            item_errors['hs_code'] = 'HS Code is required'

        quantity = data.get('quantity')
        text = '' if isinstance(quantity, bool) else str(quantity).strip()
        quantity = int(text) if text.isdecimal() else 0
        if quantity < 1:
            item_errors['quantity'] = 'Invalid quantity'

        unit_rate = _parse_decimal(data.get('unit_rate'), 'unit_rate', item_errors)
        tax_rate = _parse_decimal(data.get('tax_rate'), 'tax_rate', item_errors)
        if 'tax_rate' not in item_errors and tax_rate not in allowed_rates:
            allowed = ', '.join(str(r) for r in config.allowed_tax_rates)
            item_errors['tax_rate'] = f'Tax rate must be one of {allowed}'
        unit_weight = _parse_decimal(data.get('unit_weight'), 'unit_weight', item_errors, places=4)

        if item_errors:
            for field, message in item_errors.items():
                errors[f'{prefix}.{field}'] = message
            continue

        items.append(LineItem(
            name=name,
            quantity=quantity,
            unit_rate=unit_rate,
            hs_code=hs_code,
            tax_rate_percent=tax_rate,
            unit_weight=unit_weight,
            line_weight=unit_weight * quantity,
        ))

    return items


def build_charges(data, errors=None):
    errors = errors if errors is not None else {}
    discount = _parse_decimal(data.get('discount_percent'), 'discount_percent', errors,
                              maximum=Decimal('100'))
    values = {
        field: _parse_decimal(data.get(field), field, errors) for field in CHARGE_FIELDS
    }
    return ChargeSet(discount_percent=discount, **values)


def preview_quotation(data, config=None):
    """Live cost breakdown for unsaved input, with the display tax split"""
    config = config or get_tax_config()
    errors = {}
    items = build_line_items(data.get('items') or [], config, errors)
    charges = build_charges(data, errors)
    if errors:
        raise ValidationError('Invalid quotation data', entity_type=EntityType.QUOTATION, errors=errors)

    breakdown = compute(items, charges, config)
    result = breakdown.to_dict()
    result['tax_name'] = config.tax_name
    result['tax_split'] = tax_summary(
        breakdown.total_tax, data.get('customer_country'), data.get('billing_state'), config
    )
    return result


def _validate_header(data, errors):
    for field, label in (('customer_id', 'Customer'), ('origin', 'Origin country'),
                         ('destination', 'Destination')):
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors[field] = f'{label} is required'


def get_quotation(quotation_id):
    quotation = db.session.get(Quotation, quotation_id)
    if not quotation:
        raise NotFoundError('Quotation not found', entity_type=EntityType.QUOTATION, entity_id=quotation_id)
    return quotation


def save_quotation(data, quotation=None, user_id=None, config=None):
    """Create a quotation, or update one that is still Draft or Sent.

    The computed breakdown is frozen onto the record; historical views read
    these stored values and never recompute them.
    """
    config = config or get_tax_config()
    is_new = quotation is None

    if not is_new and quotation.status not in QuoteStatus.EDITABLE:
        raise ConflictError(
            f'Cannot edit a quotation in {quotation.status} status',
            entity_type=EntityType.QUOTATION, entity_id=quotation.id
        )

    if not is_new:
        # Partial updates keep stored values for missing header fields
        merged = {
            'customer_id': quotation.customer_id,
            'origin': quotation.origin,
            'destination': quotation.destination,
            'billing_state': quotation.billing_state,
            'purpose': quotation.purpose,
            'discount_percent': quotation.discount_percent,
            'delivery_charge': quotation.delivery_charge,
            'remote_area_charge': quotation.remote_area_charge,
            'pickup_charge': quotation.pickup_charge,
        }
        merged.update(data)
        if 'items' not in data:
            merged['items'] = [item_to_dict(item) for item in quotation.items]
        data = merged

    errors = {}
    _validate_header(data, errors)
    items = build_line_items(data.get('items') or [], config, errors)
    charges = build_charges(data, errors)

    customer = None
    if 'customer_id' not in errors:
        try:
            customer = db.session.get(Customer, int(data['customer_id']))
        except (TypeError, ValueError):
            customer = None
        if not customer:
            errors['customer_id'] = 'Invalid customer selected'

    breakdown = compute(items, charges, config)
    if not errors and breakdown.total_weight <= 0:
        errors['total_weight'] = 'A valid total weight (kg) is required'

    if errors:
        raise ValidationError(
            'Invalid quotation data', entity_type=EntityType.QUOTATION,
            entity_id=None if is_new else quotation.id, errors=errors
        )

    if is_new:
        today = date.today()
        quotation = Quotation(
            quotation_number=get_next_number(DocumentType.QUOTATION),
            user_id=user_id,
            status=QuoteStatus.DRAFT,
            created_date=today,
            validity_date=today + timedelta(days=current_app.config['QUOTATION_VALIDITY_DAYS']),
        )
        db.session.add(quotation)

    quotation.customer_id = customer.id
    quotation.customer_name = customer.name
    quotation.customer_country = customer.country
    quotation.origin = sanitize_string(str(data['origin']))
    quotation.destination = sanitize_string(str(data['destination']))
    billing_state = data.get('billing_state') or customer.billing_state
    quotation.billing_state = sanitize_string(billing_state) if billing_state else None
    purpose = data.get('purpose')
    quotation.purpose = sanitize_string(purpose) if purpose else None

    quotation.discount_percent = charges.discount_percent
    quotation.delivery_charge = charges.delivery_charge
    quotation.remote_area_charge = charges.remote_area_charge
    quotation.pickup_charge = charges.pickup_charge

    quotation.tax_name = config.tax_name
    quotation.subtotal = breakdown.subtotal
    quotation.discount_amount = breakdown.discount_amount
    quotation.item_tax = breakdown.item_tax
    quotation.charge_tax = breakdown.charge_tax
    quotation.total_tax = breakdown.total_tax
    quotation.grand_total = breakdown.grand_total
    quotation.total_weight = sum((item.line_weight for item in items), Decimal('0'))

    quotation.items = [
        QuotationItem(
            line_number=index + 1,
            name=item.name,
            hs_code=item.hs_code,
            quantity=item.quantity,
            unit_rate=item.unit_rate,
            tax_rate=item.tax_rate_percent,
            unit_weight=item.unit_weight,
            line_weight=item.line_weight,
            line_total=round_money(item.line_total),
            line_tax=round_money(item.line_tax),
        )
        for index, item in enumerate(items)
    ]

    db.session.flush()
    log_activity(
        ActivityType.CREATE if is_new else ActivityType.UPDATE,
        f"{'Created' if is_new else 'Updated'} quotation {quotation.quotation_number} for {customer.name}",
        entity_type=EntityType.QUOTATION,
        entity_id=quotation.id,
        entity_number=quotation.quotation_number,
        extra_data={'grand_total': float(breakdown.grand_total)},
        user_id=user_id,
    )
    db.session.commit()
    return quotation


def delete_quotation(quotation_id, user_id=None):
    quotation = get_quotation(quotation_id)
    if quotation.status != QuoteStatus.DRAFT:
        raise ConflictError(
            'Only draft quotations can be deleted',
            entity_type=EntityType.QUOTATION, entity_id=quotation.id
        )
    number = quotation.quotation_number
    db.session.delete(quotation)
    log_activity(
        ActivityType.DELETE, f'Deleted quotation {number}',
        entity_type=EntityType.QUOTATION, entity_id=quotation_id, entity_number=number,
        user_id=user_id,
    )
    db.session.commit()


def _swap_status(quotation_id, expected_status, new_status, **values):
    """Conditional status update; returns False when another writer got there first"""
    result = db.session.execute(
        update(Quotation)
        .where(Quotation.id == quotation_id, Quotation.status == expected_status)
        .values(status=new_status, updated_at=datetime.utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def change_status(quotation_id, new_status, reason=None, user_id=None):
    """Move a quotation to another status.

    A target of Converted to Invoice goes through convert_to_invoice so the
    invoice is always created with the status change.
    """
    if new_status not in QuoteStatus.ALL:
        raise ValidationError(
            f'Unknown quotation status: {new_status}',
            entity_type=EntityType.QUOTATION, entity_id=quotation_id,
            errors={'status': f"Must be one of {', '.join(QuoteStatus.ALL)}"}
        )

    if new_status == QuoteStatus.CONVERTED:
        convert_to_invoice(quotation_id, user_id=user_id)
        return get_quotation(quotation_id)

    quotation = get_quotation(quotation_id)
    old_status = quotation.status
    if old_status == new_status:
        return quotation

    if not can_transition(old_status, new_status):
        raise InvalidTransitionError(
            f'Cannot change quotation from {old_status} to {new_status}',
            entity_type=EntityType.QUOTATION, entity_id=quotation_id
        )

    now = datetime.utcnow()
    timestamps = {
        QuoteStatus.SENT: {'sent_at': now},
        QuoteStatus.ACCEPTED: {'accepted_at': now},
        QuoteStatus.REJECTED: {'rejected_at': now, 'rejection_reason': sanitize_string(str(reason)) if reason else None},
    }[new_status]

    if not _swap_status(quotation_id, old_status, new_status, **timestamps):
        db.session.rollback()
        raise ConflictError(
            'Quotation status was changed by another request',
            entity_type=EntityType.QUOTATION, entity_id=quotation_id
        )

    log_activity(
        ActivityType.STATUS_CHANGE,
        f'Quotation {quotation.quotation_number} changed from {old_status} to {new_status}',
        entity_type=EntityType.QUOTATION, entity_id=quotation_id,
        entity_number=quotation.quotation_number,
        extra_data={'from': old_status, 'to': new_status},
        user_id=user_id,
    )
    db.session.commit()
    db.session.refresh(quotation)
    return quotation


def convert_to_invoice(quotation_id, user_id=None, currency=None):
    """Convert a quotation into an unpaid invoice exactly once.

    The invoice total is the quotation's stored grand total. A second call,
    sequential or concurrent, raises ConflictError and creates nothing.
    """
    currencies = current_app.config['CURRENCIES']
    if currency is not None and currency not in currencies:
        raise ValidationError(
            f'Unsupported currency: {currency}', entity_type=EntityType.INVOICE,
            errors={'currency': f"Must be one of {', '.join(currencies)}"}
        )

    with conversion_locks.hold(quotation_id):
        quotation = get_quotation(quotation_id)
        # Re-read in case another session converted it while we waited
        db.session.refresh(quotation)

        if quotation.status == QuoteStatus.CONVERTED:
            raise ConflictError(
                f'Quotation {quotation.quotation_number} is already converted to an invoice',
                entity_type=EntityType.QUOTATION, entity_id=quotation_id
            )
        if not can_transition(quotation.status, QuoteStatus.CONVERTED):
            raise InvalidTransitionError(
                f'Cannot convert a quotation in {quotation.status} status',
                entity_type=EntityType.QUOTATION, entity_id=quotation_id
            )

        now = datetime.utcnow()
        if not _swap_status(quotation_id, quotation.status, QuoteStatus.CONVERTED, converted_at=now):
            db.session.rollback()
            raise ConflictError(
                f'Quotation {quotation.quotation_number} is already converted to an invoice',
                entity_type=EntityType.QUOTATION, entity_id=quotation_id
            )

        customer = quotation.customer
        issue_date = date.today()
        invoice = Invoice(
            invoice_number=get_next_number(DocumentType.INVOICE),
            user_id=user_id,
            quotation_id=quotation.id,
            customer_id=quotation.customer_id,
            customer_name=customer.name if customer else quotation.customer_name,
            customer_email=customer.email if customer else None,
            customer_country=customer.country if customer else quotation.customer_country,
            billing_state=quotation.billing_state,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=current_app.config['INVOICE_DUE_DAYS']),
            purpose=quotation.purpose,
            tax_name=quotation.tax_name,
            discount_percent=quotation.discount_percent,
            delivery_charge=quotation.delivery_charge,
            remote_area_charge=quotation.remote_area_charge,
            pickup_charge=quotation.pickup_charge,
            total_tax=quotation.total_tax,
            total_amount=quotation.grand_total,
            currency=currency or current_app.config['DEFAULT_CURRENCY'],
            payment_status=PaymentStatus.UNPAID,
            amount_paid=Decimal('0'),
            balance_due=quotation.grand_total,
            payment_proofs=[],
        )
        db.session.add(invoice)

        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            logger.warning("Duplicate invoice for quotation %s rejected by the database", quotation_id)
            raise ConflictError(
                'An invoice already exists for this quotation',
                entity_type=EntityType.QUOTATION, entity_id=quotation_id
            )

        log_activity(
            ActivityType.CONVERT,
            f'Converted quotation {quotation.quotation_number} to invoice {invoice.invoice_number}',
            entity_type=EntityType.INVOICE, entity_id=invoice.id,
            entity_number=invoice.invoice_number,
            extra_data={'quotation_id': quotation.id, 'total_amount': float(invoice.total_amount)},
            user_id=user_id,
        )
        db.session.commit()

    logger.info("Quotation %s converted to invoice %s", quotation_id, invoice.invoice_number)
    return invoice


def item_to_dict(item):
    return {
        'line_number': item.line_number,
        'name': item.name,
        'hs_code': item.hs_code,
        'quantity': item.quantity,
        'unit_rate': float(item.unit_rate or 0),
        'tax_rate': float(item.tax_rate or 0),
        'unit_weight': float(item.unit_weight or 0),
        'line_weight': float(item.line_weight or 0),
        'line_total': float(item.line_total or 0),
        'line_tax': float(item.line_tax or 0),
    }
