"""Document number sequences"""
import logging
from datetime import datetime

from flask import current_app
from sqlalchemy import select, update

from config.database import db
from app.models.settings import SequenceNumber

logger = logging.getLogger(__name__)


class DocumentType:
    QUOTATION = 'quotation'
    INVOICE = 'invoice'
    SHIPMENT = 'shipment'
    CUSTOMER = 'customer'

    PREFIX_SETTINGS = {
        QUOTATION: 'QUOTATION_PREFIX',
        INVOICE: 'INVOICE_PREFIX',
        SHIPMENT: 'SHIPMENT_PREFIX',
        CUSTOMER: 'CUSTOMER_PREFIX',
    }


def _settings_for(document_type):
    config = current_app.config
    prefix = config.get(DocumentType.PREFIX_SETTINGS[document_type], '')
    length = config.get('DOCUMENT_NUMBER_LENGTH', 3)
    return prefix, length


def ensure_sequences():
    """Create the sequence rows that do not exist yet"""
    existing = set(db.session.scalars(select(SequenceNumber.document_type)))
    for document_type in DocumentType.PREFIX_SETTINGS:
        if document_type in existing:
            continue
        prefix, length = _settings_for(document_type)
        db.session.add(SequenceNumber(
            document_type=document_type,
            prefix=prefix,
            current_number=0,
            number_length=length
        ))
    db.session.commit()


def get_next_number(document_type):
    """Reserve the next number of a sequence and return it formatted.

    The increment is a single UPDATE so two transactions never read the same
    value; the row stays locked until the caller commits or rolls back.
    """
    if document_type not in DocumentType.PREFIX_SETTINGS:
        raise ValueError(f'Unknown document type: {document_type}')

    result = db.session.execute(
        update(SequenceNumber)
        .where(SequenceNumber.document_type == document_type)
        .values(current_number=SequenceNumber.current_number + 1,
                last_generated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        prefix, length = _settings_for(document_type)
        db.session.add(SequenceNumber(
            document_type=document_type,
            prefix=prefix,
            current_number=1,
            number_length=length
        ))
        db.session.flush()
        logger.info("Started %s sequence", document_type)

    # The UPDATE bypassed the identity map, so reload over any cached row
    sequence = db.session.execute(
        select(SequenceNumber)
        .where(SequenceNumber.document_type == document_type)
        .execution_options(populate_existing=True)
    ).scalar_one()
    return sequence.format_number(sequence.current_number)
