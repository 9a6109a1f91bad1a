"""Invoice routes for MediCourier"""
from flask import Blueprint, g
from config.database import db
from app.models import Invoice, PaymentStatus
from app.utils.security import jwt_required_with_user, permission_required, safe_like_query
from app.utils.helpers import (
    success_response, error_response, get_request_json,
    paginate, get_filters, apply_filters, model_to_dict
)
from app.services.activity_logger import log_activity, ActivityType, EntityType
from app.services.payment_ledger import PAYMENT_SOURCES, get_invoice as load_invoice, record_payment
from app.services.place_of_supply import tax_summary
from app.services.proof_analysis import try_analyze_proof
from app.services.tax_calculator import get_tax_config

invoice_bp = Blueprint('invoice', __name__)


def serialize_invoice(invoice, include_detail=False):
    data = model_to_dict(invoice, exclude=['payment_proofs'])
    data['payment_proof_count'] = len(invoice.payment_proofs or [])
    shipment = invoice.shipment
    data['shipment_id'] = shipment.id if shipment else None
    data['can_ship'] = invoice.payment_status == PaymentStatus.PAID and shipment is None
    if include_detail:
        data['payment_proofs'] = list(invoice.payment_proofs or [])
        data['quotation_number'] = invoice.quotation.quotation_number if invoice.quotation else None
        data['tax_split'] = tax_summary(
            invoice.total_tax, invoice.customer_country, invoice.billing_state, get_tax_config()
        )
    return data


@invoice_bp.route('', methods=['GET'])
@jwt_required_with_user()
@permission_required('invoices.view')
def list_invoices():
    """List invoices, searchable by number or customer name"""
    query = Invoice.query

    filters = get_filters()
    if filters.get('search'):
        search = f"%{safe_like_query(filters['search'])}%"
        query = query.filter(
            db.or_(
                Invoice.invoice_number.ilike(search),
                Invoice.customer_name.ilike(search)
            )
        )

    query = apply_filters(query, Invoice, filters, status_column='payment_status')

    return success_response(paginate(query, serialize_invoice))


@invoice_bp.route('/payment-sources', methods=['GET'])
@jwt_required_with_user()
@permission_required('invoices.view')
def payment_sources():
    """Known payment sources; free text is accepted as well"""
    return success_response({'sources': list(PAYMENT_SOURCES)})


@invoice_bp.route('/<int:id>', methods=['GET'])
@jwt_required_with_user()
@permission_required('invoices.view')
def get_invoice(id):
    """Get invoice with tax split"""
    return success_response(serialize_invoice(load_invoice(id), include_detail=True))


@invoice_bp.route('/<int:id>/payment', methods=['PUT', 'PATCH'])
@jwt_required_with_user()
@permission_required('invoices.payment')
def update_payment(id):
    """Record amount paid, proofs and payment source"""
    invoice = load_invoice(id)
    data = get_request_json()

    if 'amount_paid' not in data:
        return error_response('Amount paid is required', {'amount_paid': 'Required'})

    result = record_payment(
        invoice,
        data.get('amount_paid'),
        proofs=data.get('payment_proofs') or [],
        source=data.get('payment_source'),
        requested_status=data.get('payment_status'),
        user_id=g.current_user.id
    )
    return success_response(
        serialize_invoice(result.invoice, include_detail=True),
        'Payment updated',
        warnings=result.warnings
    )


@invoice_bp.route('/<int:id>/analyze-proof', methods=['POST'])
@jwt_required_with_user()
@permission_required('invoices.payment')
def analyze_payment_proof(id):
    """Advisory analysis of payment proof images.

    Uses the images in the request, or the proofs already stored on the
    invoice. With ``apply`` set, the detected amount is recorded through the
    payment ledger.
    """
    invoice = load_invoice(id)
    data = get_request_json()
    images = data.get('images') or list(invoice.payment_proofs or [])
    if not images:
        return error_response('No payment proof images to analyze', {'images': 'Required'})
    if not isinstance(images, list):
        return error_response('Invalid payment proof images', {'images': 'Must be a list of attachments'})

    analysis = try_analyze_proof(invoice.total_amount, images)
    if analysis is None:
        return success_response({'available': False, 'analysis': None}, 'Payment proof analysis unavailable')

    log_activity(
        ActivityType.PROOF_ANALYSIS,
        f'Analyzed payment proof for invoice {invoice.invoice_number}',
        entity_type=EntityType.INVOICE,
        entity_id=invoice.id,
        entity_number=invoice.invoice_number,
        extra_data=analysis.to_dict()
    )

    warnings = []
    if data.get('apply'):
        result = record_payment(
            invoice,
            analysis.paid_amount,
            proofs=data.get('images') or [],
            source=data.get('payment_source'),
            user_id=g.current_user.id,
            note=f'Payment of {analysis.paid_amount} detected on invoice {invoice.invoice_number}: {analysis.notes}'
        )
        invoice = result.invoice
        warnings = result.warnings
    else:
        db.session.commit()

    return success_response({
        'available': True,
        'analysis': analysis.to_dict(),
        'applied': bool(data.get('apply')),
        'invoice': serialize_invoice(invoice)
    }, warnings=warnings)
