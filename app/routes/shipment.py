"""Shipment routes for MediCourier"""
from flask import Blueprint, g
from config.database import db
from app.models import COURIERS, Shipment, ShipmentStatus
from app.utils.security import jwt_required_with_user, permission_required, safe_like_query
from app.utils.helpers import (
    success_response, error_response, get_request_json,
    paginate, get_filters, apply_filters, model_to_dict
)
from app.services.shipment_provisioning import (
    add_documents, create_shipment, get_shipment as load_shipment,
    update_status, update_tracking_url
)

shipment_bp = Blueprint('shipment', __name__)


def serialize_shipment(shipment, include_documents=False):
    data = model_to_dict(shipment, exclude=['documents'])
    data['document_count'] = len(shipment.documents or [])
    if include_documents:
        data['documents'] = list(shipment.documents or [])
    return data


@shipment_bp.route('', methods=['GET'])
@jwt_required_with_user()
@permission_required('shipments.view')
def list_shipments():
    """List shipments, searchable by number, AWB, invoice or customer"""
    query = Shipment.query

    filters = get_filters()
    if filters.get('search'):
        search = f"%{safe_like_query(filters['search'])}%"
        query = query.filter(
            db.or_(
                Shipment.shipment_number.ilike(search),
                Shipment.awb.ilike(search),
                Shipment.invoice_number.ilike(search),
                Shipment.customer_name.ilike(search)
            )
        )

    query = apply_filters(query, Shipment, filters)

    return success_response(paginate(query, serialize_shipment))


@shipment_bp.route('/options', methods=['GET'])
@jwt_required_with_user()
@permission_required('shipments.view')
def shipment_options():
    """Couriers and statuses for shipment forms"""
    return success_response({
        'couriers': list(COURIERS),
        'statuses': list(ShipmentStatus.ALL)
    })


@shipment_bp.route('', methods=['POST'])
@jwt_required_with_user()
@permission_required('shipments.create')
def create():
    """Create the shipment for a paid invoice"""
    data = get_request_json()
    if not data.get('invoice_id'):
        return error_response('Invoice is required', {'invoice_id': 'Required'})

    try:
        invoice_id = int(data['invoice_id'])
    except (TypeError, ValueError):
        return error_response('Invalid invoice', {'invoice_id': 'Must be an id'})

    shipment, warnings = create_shipment(
        invoice_id,
        documents=data.get('documents') or [],
        tracking_url=data.get('tracking_url'),
        courier=data.get('courier'),
        user_id=g.current_user.id
    )
    return success_response(
        serialize_shipment(shipment, include_documents=True), 'Shipment created', 201, warnings=warnings
    )


@shipment_bp.route('/<int:id>', methods=['GET'])
@jwt_required_with_user()
@permission_required('shipments.view')
def get_shipment(id):
    """Get shipment with documents"""
    return success_response(serialize_shipment(load_shipment(id), include_documents=True))


@shipment_bp.route('/<int:id>/status', methods=['PATCH', 'POST'])
@jwt_required_with_user()
@permission_required('shipments.edit')
def change_status(id):
    """Set shipment status"""
    data = get_request_json()
    if not data.get('status'):
        return error_response('Status is required', {'status': 'Required'})

    shipment = update_status(id, data['status'], user_id=g.current_user.id)
    return success_response(serialize_shipment(shipment), f'Shipment marked as {shipment.status}')


@shipment_bp.route('/<int:id>/tracking-url', methods=['PUT', 'PATCH'])
@jwt_required_with_user()
@permission_required('shipments.edit')
def change_tracking_url(id):
    """Set or clear the custom tracking URL"""
    data = get_request_json()
    shipment = update_tracking_url(id, data.get('tracking_url'), user_id=g.current_user.id)
    return success_response(serialize_shipment(shipment), 'Tracking URL updated')


@shipment_bp.route('/<int:id>/documents', methods=['POST'])
@jwt_required_with_user()
@permission_required('shipments.edit')
def upload_documents(id):
    """Attach shipping documents"""
    data = get_request_json()
    documents = data.get('documents') or []
    if not documents:
        return error_response('No documents provided', {'documents': 'Required'})

    shipment, warnings = add_documents(id, documents, user_id=g.current_user.id)
    return success_response(
        serialize_shipment(shipment, include_documents=True), 'Documents added', warnings=warnings
    )
