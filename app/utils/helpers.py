"""Response and helper utilities for MediCourier"""
from flask import current_app, jsonify, request
from decimal import Decimal


def success_response(data=None, message=None, status_code=200, warnings=None):
    response = {'success': True}
    if message:
        response['message'] = message
    if data is not None:
        response['data'] = data
    if warnings:
        response['warnings'] = warnings
    return jsonify(response), status_code


def error_response(message, errors=None, status_code=400, **context):
    response = {'success': False, 'error': message}
    if errors:
        response['errors'] = errors
    for key, value in context.items():
        if value is not None:
            response[key] = value
    return jsonify(response), status_code


def paginate(query, schema=None):
    page = request.args.get('page', 1, type=int)
    default_per_page = current_app.config.get('ITEMS_PER_PAGE', 20)
    per_page = min(request.args.get('per_page', default_per_page, type=int), 100)

    pagination = query.paginate(page=page, per_page=per_page, error_out=False)

    items = pagination.items
    if schema:
        items = [schema(i) for i in items]

    return {
        'items': items,
        'pagination': {
            'page': pagination.page,
            'per_page': pagination.per_page,
            'total_pages': pagination.pages,
            'total_items': pagination.total,
            'has_next': pagination.has_next,
            'has_prev': pagination.has_prev
        }
    }


def get_request_json():
    """Safely get JSON from request"""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def get_filters():
    """Extract common filter parameters"""
    return {
        'search': request.args.get('search', ''),
        'sort_by': request.args.get('sort_by', 'created_at'),
        'sort_order': request.args.get('sort_order', 'desc'),
        'status': request.args.get('status'),
        'from_date': request.args.get('from_date'),
        'to_date': request.args.get('to_date'),
    }


def apply_filters(query, model, filters, status_column='status'):
    """Apply common filters to query"""
    from sqlalchemy import desc, asc

    if filters.get('status') and hasattr(model, status_column):
        query = query.filter(getattr(model, status_column) == filters['status'])

    if filters.get('from_date') and hasattr(model, 'created_at'):
        query = query.filter(model.created_at >= filters['from_date'])

    if filters.get('to_date') and hasattr(model, 'created_at'):
        query = query.filter(model.created_at <= filters['to_date'])

    # Sorting
    sort_by = filters.get('sort_by', 'created_at')
    if hasattr(model, sort_by):
        sort_column = getattr(model, sort_by)
        if filters.get('sort_order', 'desc') == 'desc':
            query = query.order_by(desc(sort_column), desc(model.id))
        else:
            query = query.order_by(asc(sort_column), asc(model.id))

    return query


def model_to_dict(model, exclude=None, include=None):
    """Convert SQLAlchemy model to dictionary"""
    exclude = exclude or []
    result = {}

    for column in model.__table__.columns:
        if column.name in exclude:
            continue
        if include and column.name not in include:
            continue

        value = getattr(model, column.name)
        if hasattr(value, 'isoformat'):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        result[column.name] = value

    return result
