"""Activity log routes for MediCourier"""
from flask import Blueprint, request
from config.database import db
from app.models.audit import ActivityLog
from app.utils.security import jwt_required_with_user, permission_required, safe_like_query
from app.utils.helpers import success_response, paginate, get_filters

activity_bp = Blueprint('activity', __name__)


def serialize(log):
    return {
        'id': log.id,
        'activity_type': log.activity_type,
        'description': log.description,
        'entity_type': log.entity_type,
        'entity_id': log.entity_id,
        'entity_number': log.entity_number,
        'user_id': log.user_id,
        'user_name': log.user_name,
        'extra_data': log.extra_data,
        'created_at': log.created_at.isoformat() if log.created_at else None
    }


@activity_bp.route('', methods=['GET'])
@jwt_required_with_user()
@permission_required('activities.view')
def list_activities():
    """List activity logs with filtering"""
    query = ActivityLog.query

    filters = get_filters()

    if request.args.get('activity_type'):
        query = query.filter_by(activity_type=request.args.get('activity_type'))

    if request.args.get('entity_type'):
        query = query.filter_by(entity_type=request.args.get('entity_type'))

    if request.args.get('entity_id'):
        query = query.filter_by(entity_id=request.args.get('entity_id', type=int))

    if filters.get('search'):
        search = f"%{safe_like_query(filters['search'])}%"
        query = query.filter(
            db.or_(
                ActivityLog.description.ilike(search),
                ActivityLog.entity_number.ilike(search),
                ActivityLog.user_name.ilike(search)
            )
        )

    query = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())

    return success_response(paginate(query, serialize))
