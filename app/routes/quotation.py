"""Quotation routes for MediCourier"""
from flask import Blueprint, g
from config.database import db
from app.models import Quotation, QuoteStatus
from app.utils.security import jwt_required_with_user, permission_required, safe_like_query
from app.utils.helpers import (
    success_response, error_response, get_request_json,
    paginate, get_filters, apply_filters, model_to_dict
)
from app.services.place_of_supply import tax_summary
from app.services.quotation_lifecycle import (
    ALLOWED_TRANSITIONS, change_status, convert_to_invoice, delete_quotation,
    get_quotation as load_quotation, item_to_dict, preview_quotation, save_quotation
)
from app.services.tax_calculator import get_tax_config

quotation_bp = Blueprint('quotation', __name__)


def serialize_quotation(quotation, include_items=False):
    data = model_to_dict(quotation)
    data['allowed_transitions'] = list(ALLOWED_TRANSITIONS.get(quotation.status, ()))
    data['is_editable'] = quotation.status in QuoteStatus.EDITABLE
    if include_items:
        data['items'] = [item_to_dict(item) for item in quotation.items]
        # Split of the stored total, never a recomputation from items
        data['tax_split'] = tax_summary(
            quotation.total_tax, quotation.customer_country, quotation.billing_state, get_tax_config()
        )
    return data


@quotation_bp.route('', methods=['GET'])
@jwt_required_with_user()
@permission_required('quotations.view')
def list_quotations():
    """List quotations, searchable by number or customer name"""
    query = Quotation.query

    filters = get_filters()
    if filters.get('search'):
        search = f"%{safe_like_query(filters['search'])}%"
        query = query.filter(
            db.or_(
                Quotation.quotation_number.ilike(search),
                Quotation.customer_name.ilike(search)
            )
        )

    query = apply_filters(query, Quotation, filters)

    return success_response(paginate(query, serialize_quotation))


@quotation_bp.route('/preview', methods=['POST'])
@jwt_required_with_user()
@permission_required('quotations.create', 'quotations.edit')
def preview():
    """Cost breakdown for unsaved quotation data"""
    return success_response(preview_quotation(get_request_json(), get_tax_config()))


@quotation_bp.route('', methods=['POST'])
@jwt_required_with_user()
@permission_required('quotations.create')
def create_quotation():
    """Create a draft quotation"""
    quotation = save_quotation(get_request_json(), user_id=g.current_user.id, config=get_tax_config())
    return success_response(serialize_quotation(quotation, include_items=True), 'Quotation created', 201)


@quotation_bp.route('/<int:id>', methods=['GET'])
@jwt_required_with_user()
@permission_required('quotations.view')
def get_quotation(id):
    """Get quotation with items and tax split"""
    quotation = load_quotation(id)
    data = serialize_quotation(quotation, include_items=True)
    if quotation.status == QuoteStatus.CONVERTED:
        from app.models import Invoice
        invoice = Invoice.query.filter_by(quotation_id=quotation.id).first()
        data['invoice_id'] = invoice.id if invoice else None
        data['invoice_number'] = invoice.invoice_number if invoice else None
    return success_response(data)


@quotation_bp.route('/<int:id>', methods=['PUT'])
@jwt_required_with_user()
@permission_required('quotations.edit')
def update_quotation(id):
    """Update a Draft or Sent quotation"""
    quotation = load_quotation(id)
    data = get_request_json()
    if 'status' in data:
        return error_response('Use the status endpoint to change quotation status', {'status': 'Not editable here'})
    quotation = save_quotation(data, quotation=quotation, user_id=g.current_user.id, config=get_tax_config())
    return success_response(serialize_quotation(quotation, include_items=True), 'Quotation updated')


@quotation_bp.route('/<int:id>', methods=['DELETE'])
@jwt_required_with_user()
@permission_required('quotations.delete')
def remove_quotation(id):
    """Delete a draft quotation"""
    delete_quotation(id, user_id=g.current_user.id)
    return success_response(message='Quotation deleted')


@quotation_bp.route('/<int:id>/status', methods=['PATCH', 'POST'])
@jwt_required_with_user()
@permission_required('quotations.edit')
def update_status(id):
    """Change quotation status"""
    data = get_request_json()
    new_status = data.get('status')
    if not new_status:
        return error_response('Status is required', {'status': 'Required'})

    if new_status == QuoteStatus.CONVERTED and not g.current_user.has_permission('quotations.convert'):
        return error_response('Permission denied', status_code=403)

    quotation = change_status(id, new_status, reason=data.get('reason'), user_id=g.current_user.id)
    return success_response(serialize_quotation(quotation), f'Quotation marked as {quotation.status}')


@quotation_bp.route('/<int:id>/convert', methods=['POST'])
@jwt_required_with_user()
@permission_required('quotations.convert')
def convert(id):
    """Convert quotation to invoice"""
    data = get_request_json()
    invoice = convert_to_invoice(id, user_id=g.current_user.id, currency=data.get('currency'))
    return success_response({
        'invoice_id': invoice.id,
        'invoice_number': invoice.invoice_number,
        'total_amount': float(invoice.total_amount),
        'due_date': invoice.due_date.isoformat()
    }, 'Quotation converted to invoice', 201)
