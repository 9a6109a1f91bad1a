"""Notification routes for MediCourier"""
from flask import Blueprint, request
from app.utils.security import jwt_required_with_user
from app.utils.helpers import success_response
from app.services.notification_service import (
    get_all_notifications,
    get_notification_counts,
    NotificationType
)

notification_bp = Blueprint('notification', __name__)


@notification_bp.route('', methods=['GET'])
@jwt_required_with_user()
def get_notifications():
    """
    Get all notifications

    Query params:
    - type: Filter by notification type (comma-separated)
    - limit: Maximum number of notifications (default: 50)
    """
    notification_types = request.args.get('type')
    limit = request.args.get('limit', 50, type=int)

    include_types = None
    if notification_types:
        include_types = [t.strip() for t in notification_types.split(',')]

    notifications = get_all_notifications(include_types=include_types, limit=limit)

    return success_response({
        'notifications': notifications,
        'total': len(notifications)
    })


@notification_bp.route('/count', methods=['GET'])
@jwt_required_with_user()
def get_notification_count():
    """
    Get notification counts by type and priority
    Used for badge display in header
    """
    return success_response(get_notification_counts())


@notification_bp.route('/types', methods=['GET'])
@jwt_required_with_user()
def get_notification_types():
    """
    Get available notification types
    """
    types = [
        {'value': NotificationType.INVOICE_OVERDUE, 'label': 'Overdue Invoices', 'color': 'red'},
        {'value': NotificationType.INVOICE_DUE_SOON, 'label': 'Invoices Due Soon', 'color': 'yellow'},
        {'value': NotificationType.QUOTATION_EXPIRING, 'label': 'Expiring Quotations', 'color': 'yellow'},
        {'value': NotificationType.AWAITING_SHIPMENT, 'label': 'Paid, Awaiting Shipment', 'color': 'blue'},
    ]

    return success_response({'types': types})
