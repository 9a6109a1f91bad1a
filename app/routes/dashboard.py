"""Dashboard routes for MediCourier"""
from flask import Blueprint, current_app
from datetime import datetime
from sqlalchemy import func
from config.database import db
from app.models import (
    Customer, Invoice, PaymentStatus, Quotation, QuoteStatus, Shipment, ShipmentStatus
)
from app.utils.security import jwt_required_with_user, permission_required
from app.utils.helpers import success_response

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/summary', methods=['GET'])
@jwt_required_with_user()
@permission_required('dashboard.view')
def get_summary():
    """Get dashboard summary"""
    today = datetime.utcnow().date()

    # Money received across all invoices
    total_revenue = db.session.query(func.sum(Invoice.amount_paid)).scalar() or 0

    # Receivables (positive balances on invoices not fully paid)
    outstanding = db.session.query(func.sum(Invoice.balance_due)).filter(
        Invoice.payment_status != PaymentStatus.PAID,
        Invoice.balance_due > 0
    ).scalar() or 0

    overdue_count = Invoice.query.filter(
        Invoice.due_date < today,
        Invoice.payment_status != PaymentStatus.PAID
    ).count()

    pending_quotations = Quotation.query.filter(
        Quotation.status.in_((QuoteStatus.DRAFT, QuoteStatus.SENT, QuoteStatus.ACCEPTED))
    ).count()

    active_shipments = Shipment.query.filter(
        Shipment.status.notin_((ShipmentStatus.DELIVERED,) + ShipmentStatus.EXCEPTIONAL)
    ).count()

    return success_response({
        'currency': current_app.config['DEFAULT_CURRENCY'],
        'total_revenue': float(total_revenue),
        'outstanding': float(outstanding),
        'overdue_invoices': overdue_count,
        'pending_quotations': pending_quotations,
        'active_shipments': active_shipments,
        'delivered_shipments': Shipment.query.filter_by(status=ShipmentStatus.DELIVERED).count(),
        'customers': Customer.query.filter_by(is_active=True).count(),
        'invoices': Invoice.query.count(),
        'invoices_by_status': {
            status: count for status, count in db.session.query(
                Invoice.payment_status, func.count(Invoice.id)
            ).group_by(Invoice.payment_status).all()
        }
    })


@dashboard_bp.route('/revenue-by-destination', methods=['GET'])
@jwt_required_with_user()
@permission_required('reports.view')
def revenue_by_destination():
    """Invoiced amounts grouped by shipment destination country"""
    rows = db.session.query(
        Quotation.destination,
        func.sum(Invoice.total_amount),
        func.sum(Invoice.amount_paid)
    ).join(Invoice, Invoice.quotation_id == Quotation.id).group_by(
        Quotation.destination
    ).order_by(func.sum(Invoice.total_amount).desc()).all()

    return success_response([
        {'name': destination, 'value': float(invoiced or 0), 'received': float(received or 0)}
        for destination, invoiced, received in rows
    ])


@dashboard_bp.route('/shipments-by-courier', methods=['GET'])
@jwt_required_with_user()
@permission_required('dashboard.view')
def shipments_by_courier():
    """Shipment counts per courier"""
    rows = db.session.query(Shipment.courier, func.count(Shipment.id)).group_by(
        Shipment.courier
    ).order_by(func.count(Shipment.id).desc()).all()

    return success_response([{'name': courier, 'value': count} for courier, count in rows])
