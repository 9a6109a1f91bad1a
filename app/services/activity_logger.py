"""Activity Logging Service for MediCourier"""
import logging

from flask import request, g, has_request_context
from config.database import db
from app.models.audit import ActivityLog

logger = logging.getLogger(__name__)


class ActivityType:
    """Activity type constants"""
    # Auth
    LOGIN = 'login'

    # CRUD operations
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'

    # Business actions
    CONVERT = 'convert'
    STATUS_CHANGE = 'status_change'

    # Payments
    PAYMENT_RECEIVE = 'payment_receive'
    PROOF_ANALYSIS = 'proof_analysis'


class EntityType:
    """Entity type constants"""
    USER = 'user'
    CUSTOMER = 'customer'
    QUOTATION = 'quotation'
    INVOICE = 'invoice'
    SHIPMENT = 'shipment'


def get_client_info():
    """Extract client information from request"""
    if not has_request_context():
        return None, None

    ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
    if ip_address and ',' in ip_address:
        ip_address = ip_address.split(',')[0].strip()

    user_agent = request.headers.get('User-Agent', '')[:500]

    return ip_address, user_agent


def log_activity(
    activity_type: str,
    description: str,
    entity_type: str = None,
    entity_id: int = None,
    entity_number: str = None,
    extra_data: dict = None,
    user_id: int = None
):
    """
    Log a user activity.

    The entry is added to the current session; the caller's commit persists it
    together with the business change it describes.

    Args:
        activity_type: Type of activity (use ActivityType constants)
        description: Human-readable description of the activity
        entity_type: Type of entity being acted upon (use EntityType constants)
        entity_id: ID of the entity
        entity_number: Display number of the entity (e.g., invoice number)
        extra_data: Additional context data as dict
        user_id: Override user ID (uses current user if not provided)
    """
    ip_address, user_agent = get_client_info()

    user = g.get('current_user') if has_request_context() else None
    user_name = None
    if user_id is None and user is not None:
        user_id = user.id
        user_name = user.name

    log = ActivityLog(
        user_id=user_id,
        user_name=user_name,
        activity_type=activity_type,
        description=description,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_number=entity_number,
        extra_data=extra_data or {},
        ip_address=ip_address,
        user_agent=user_agent
    )
    db.session.add(log)

    logger.info("%s %s %s: %s", activity_type, entity_type or '-', entity_number or entity_id or '-', description)
    return log
