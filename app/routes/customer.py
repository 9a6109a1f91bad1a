"""Customer management routes for MediCourier"""
from flask import Blueprint, g
from config.database import db
from app.models import Customer
from app.utils.security import (
    jwt_required_with_user, permission_required, sanitize_string,
    validate_email, validate_phone, safe_like_query
)
from app.utils.helpers import (
    success_response, error_response, get_request_json,
    paginate, get_filters, apply_filters, model_to_dict
)
from app.services.activity_logger import log_activity, ActivityType, EntityType
from app.services.numbering import DocumentType, get_next_number

customer_bp = Blueprint('customer', __name__)

UPDATEABLE = [
    'name', 'email', 'phone', 'address', 'billing_address',
    'shipping_address', 'billing_state', 'country'
]


def validate_customer(data, partial=False):
    errors = {}
    if not partial or 'name' in data:
        if not sanitize_string(data.get('name') or ''):
            errors['name'] = 'Customer name is required'
    if not partial or 'country' in data:
        if not sanitize_string(data.get('country') or ''):
            errors['country'] = 'Country is required'
    email = data.get('email')
    if email and not validate_email(email):
        errors['email'] = 'Invalid email format'
    phone = data.get('phone')
    if phone and not validate_phone(phone):
        errors['phone'] = 'Invalid phone number'
    return errors


@customer_bp.route('', methods=['GET'])
@jwt_required_with_user()
@permission_required('customers.view')
def list_customers():
    """List all customers"""
    query = Customer.query

    filters = get_filters()
    if filters.get('search'):
        search = f"%{safe_like_query(filters['search'])}%"
        query = query.filter(
            db.or_(
                Customer.name.ilike(search),
                Customer.customer_code.ilike(search),
                Customer.email.ilike(search),
                Customer.country.ilike(search)
            )
        )

    query = apply_filters(query, Customer, filters)

    return success_response(paginate(query, model_to_dict))


@customer_bp.route('', methods=['POST'])
@jwt_required_with_user()
@permission_required('customers.create')
def create_customer():
    """Create new customer"""
    data = get_request_json()

    errors = validate_customer(data)
    if errors:
        return error_response('Invalid customer data', errors)

    email = sanitize_string(data.get('email') or '').lower() or None
    if email and Customer.query.filter_by(email=email).first():
        return error_response('A customer with this email already exists', {'email': 'Already registered'}, 409)

    address = sanitize_string(data.get('address') or '')
    customer = Customer(
        customer_code=get_next_number(DocumentType.CUSTOMER),
        user_id=g.current_user.id,
        name=sanitize_string(data['name']),
        email=email,
        phone=sanitize_string(data.get('phone') or ''),
        address=address,
        billing_address=sanitize_string(data.get('billing_address') or '') or address,
        shipping_address=sanitize_string(data.get('shipping_address') or '') or address,
        billing_state=sanitize_string(data.get('billing_state') or '') or None,
        country=sanitize_string(data['country']),
        is_active=True
    )

    db.session.add(customer)
    db.session.flush()

    log_activity(
        activity_type=ActivityType.CREATE,
        description=f"Created customer '{customer.name}' ({customer.customer_code})",
        entity_type=EntityType.CUSTOMER,
        entity_id=customer.id,
        entity_number=customer.customer_code
    )
    db.session.commit()

    return success_response(model_to_dict(customer), 'Customer created', 201)


@customer_bp.route('/<int:id>', methods=['GET'])
@jwt_required_with_user()
@permission_required('customers.view')
def get_customer(id):
    """Get customer details"""
    customer = db.session.get(Customer, id)
    if not customer:
        return error_response('Customer not found', status_code=404)

    return success_response(model_to_dict(customer))


@customer_bp.route('/<int:id>', methods=['PUT'])
@jwt_required_with_user()
@permission_required('customers.edit')
def update_customer(id):
    """Update customer"""
    customer = db.session.get(Customer, id)
    if not customer:
        return error_response('Customer not found', status_code=404)

    data = get_request_json()
    errors = validate_customer(data, partial=True)
    if errors:
        return error_response('Invalid customer data', errors)

    changed = []
    for field in UPDATEABLE:
        if field in data:
            value = sanitize_string(data[field]) if isinstance(data[field], str) else data[field]
            if field == 'email' and value:
                value = value.lower()
            if getattr(customer, field) != (value or None):
                setattr(customer, field, value or None)
                changed.append(field)

    if changed:
        log_activity(
            activity_type=ActivityType.UPDATE,
            description=f"Updated customer '{customer.name}'",
            entity_type=EntityType.CUSTOMER,
            entity_id=customer.id,
            entity_number=customer.customer_code,
            extra_data={'changed_fields': changed}
        )
    db.session.commit()

    return success_response(model_to_dict(customer), 'Customer updated')
