"""
Shipment provisioning - one shipment per paid invoice, plus the permissive
status tracking operations staff use afterwards.
"""
import logging
import secrets
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from config.database import db
from app.models import COURIERS, Invoice, PaymentStatus, Quotation, Shipment, ShipmentStatus
from app.services.activity_logger import ActivityType, EntityType, log_activity
from app.services.attachments import accept_attachments
from app.services.numbering import DocumentType, get_next_number
from app.utils.errors import ConflictError, NotFoundError, ValidationError
from app.utils.locks import shipment_locks
from app.utils.security import sanitize_string

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = 'Unknown'
DEFAULT_WEIGHT = Decimal('1.0')


def placeholder_awb():
    """Waybill placeholder until the courier assigns a real one"""
    return f'PENDING-{secrets.randbelow(1000000):06d}'


def get_shipment(shipment_id):
    shipment = db.session.get(Shipment, shipment_id)
    if not shipment:
        raise NotFoundError('Shipment not found', entity_type=EntityType.SHIPMENT, entity_id=shipment_id)
    return shipment


def _clean_tracking_url(tracking_url):
    if not tracking_url:
        return None
    url = sanitize_string(str(tracking_url))
    if not url.lower().startswith(('http://', 'https://')):
        raise ValidationError(
            'Invalid tracking URL', entity_type=EntityType.SHIPMENT,
            errors={'tracking_url': 'Must start with http:// or https://'}
        )
    return url


def create_shipment(invoice_id, documents=None, tracking_url=None, courier=None, user_id=None):
    """Create the shipment for an invoice.

    Returns:
        (shipment, warnings) where warnings lists documents dropped for size
    """
    if courier not in COURIERS:
        raise ValidationError(
            'Invalid courier', entity_type=EntityType.SHIPMENT,
            errors={'courier': f"Must be one of {', '.join(COURIERS)}"}
        )
    tracking_url = _clean_tracking_url(tracking_url)
    kept, warnings = accept_attachments(documents, field='documents')

    with shipment_locks.hold(invoice_id):
        invoice = db.session.get(Invoice, invoice_id)
        if not invoice:
            raise NotFoundError('Invoice not found', entity_type=EntityType.INVOICE, entity_id=invoice_id)
        db.session.refresh(invoice)

        if current_app.config['SHIPMENT_REQUIRES_PAYMENT'] and invoice.payment_status != PaymentStatus.PAID:
            raise ConflictError(
                f'Invoice {invoice.invoice_number} must be paid before shipping',
                entity_type=EntityType.INVOICE, entity_id=invoice_id
            )

        existing = db.session.scalar(select(Shipment.id).where(Shipment.invoice_id == invoice_id))
        if existing is not None:
            raise ConflictError(
                f'Invoice {invoice.invoice_number} already has a shipment',
                entity_type=EntityType.INVOICE, entity_id=invoice_id
            )

        quotation = db.session.get(Quotation, invoice.quotation_id) if invoice.quotation_id else None
        if quotation is None:
            logger.warning("Invoice %s has no quotation; using placeholder route and weight",
                           invoice.invoice_number)

        shipment = Shipment(
            shipment_number=get_next_number(DocumentType.SHIPMENT),
            user_id=user_id,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer_id=invoice.customer_id,
            customer_name=invoice.customer_name,
            awb=placeholder_awb(),
            courier=courier,
            status=ShipmentStatus.PENDING_PICKUP,
            origin=quotation.origin if quotation else UNKNOWN_LOCATION,
            destination=quotation.destination if quotation else UNKNOWN_LOCATION,
            weight=quotation.total_weight if quotation else DEFAULT_WEIGHT,
            documents=kept,
            tracking_url=tracking_url,
            last_update=date.today(),
        )
        db.session.add(shipment)

        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(
                'A shipment already exists for this invoice',
                entity_type=EntityType.INVOICE, entity_id=invoice_id
            )

        log_activity(
            ActivityType.CREATE,
            f'Created shipment {shipment.shipment_number} for invoice {invoice.invoice_number} via {courier}',
            entity_type=EntityType.SHIPMENT, entity_id=shipment.id,
            entity_number=shipment.shipment_number,
            extra_data={'invoice_id': invoice.id, 'awb': shipment.awb},
            user_id=user_id,
        )
        db.session.commit()

    return shipment, warnings


def update_status(shipment_id, new_status, user_id=None):
    """Set any of the shipment statuses; couriers report updates out of order"""
    if new_status not in ShipmentStatus.ALL:
        raise ValidationError(
            f'Unknown shipment status: {new_status}',
            entity_type=EntityType.SHIPMENT, entity_id=shipment_id,
            errors={'status': f"Must be one of {', '.join(ShipmentStatus.ALL)}"}
        )
    shipment = get_shipment(shipment_id)
    old_status = shipment.status
    shipment.status = new_status
    shipment.last_update = date.today()

    log_activity(
        ActivityType.STATUS_CHANGE,
        f'Shipment {shipment.shipment_number} changed from {old_status} to {new_status}',
        entity_type=EntityType.SHIPMENT, entity_id=shipment.id,
        entity_number=shipment.shipment_number,
        extra_data={'from': old_status, 'to': new_status},
        user_id=user_id,
    )
    db.session.commit()
    return shipment


def update_tracking_url(shipment_id, tracking_url, user_id=None):
    shipment = get_shipment(shipment_id)
    shipment.tracking_url = _clean_tracking_url(tracking_url)
    log_activity(
        ActivityType.UPDATE, f'Updated tracking URL of shipment {shipment.shipment_number}',
        entity_type=EntityType.SHIPMENT, entity_id=shipment.id,
        entity_number=shipment.shipment_number, user_id=user_id,
    )
    db.session.commit()
    return shipment


def add_documents(shipment_id, documents, user_id=None):
    """Append documents; returns (shipment, warnings)"""
    shipment = get_shipment(shipment_id)
    kept, warnings = accept_attachments(documents, field='documents')
    if kept:
        shipment.documents = list(shipment.documents or []) + kept
        shipment.last_update = date.today()
        log_activity(
            ActivityType.UPDATE,
            f'Added {len(kept)} document(s) to shipment {shipment.shipment_number}',
            entity_type=EntityType.SHIPMENT, entity_id=shipment.id,
            entity_number=shipment.shipment_number, user_id=user_id,
        )
        db.session.commit()
    return shipment, warnings
