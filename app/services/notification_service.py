"""
Notification Service - Generates on-demand notifications for business alerts
"""
from datetime import datetime, timedelta, date

from app.models import Invoice, PaymentStatus, Quotation, QuoteStatus, Shipment


class NotificationType:
    INVOICE_OVERDUE = 'invoice_overdue'
    INVOICE_DUE_SOON = 'invoice_due_soon'
    QUOTATION_EXPIRING = 'quotation_expiring'
    AWAITING_SHIPMENT = 'awaiting_shipment'


class NotificationPriority:
    HIGH = 'high'
    NORMAL = 'normal'
    LOW = 'low'


OPEN_PAYMENT_STATUSES = (PaymentStatus.UNPAID, PaymentStatus.PARTIALLY_PAID)


def _notification(key, ntype, priority, title, message, entity_type, entity_id, data):
    return {
        'id': f'{ntype}_{key}',
        'type': ntype,
        'priority': priority,
        'title': title,
        'message': message,
        'entity_type': entity_type,
        'entity_id': entity_id,
        'action_url': f'/{entity_type}s/{entity_id}',
        'created_at': datetime.utcnow().isoformat(),
        'data': data,
    }


def get_overdue_invoices(today=None):
    """
    Get invoices past due date that are not fully paid
    """
    today = today or date.today()
    invoices = Invoice.query.filter(
        Invoice.due_date < today,
        Invoice.payment_status.in_(OPEN_PAYMENT_STATUSES)
    ).order_by(Invoice.due_date.asc()).all()

    notifications = []
    for invoice in invoices:
        days_overdue = (today - invoice.due_date).days
        notifications.append(_notification(
            invoice.id, NotificationType.INVOICE_OVERDUE, NotificationPriority.HIGH,
            'Invoice Overdue',
            f"Invoice {invoice.invoice_number} is {days_overdue} days overdue "
            f"({invoice.currency} {float(invoice.balance_due or 0):,.2f})",
            'invoice', invoice.id,
            {
                'invoice_number': invoice.invoice_number,
                'customer_name': invoice.customer_name,
                'due_date': invoice.due_date.isoformat(),
                'days_overdue': days_overdue,
                'balance_due': float(invoice.balance_due or 0),
                'total_amount': float(invoice.total_amount),
            }
        ))
    return notifications


def get_invoices_due_soon(today=None, days=7):
    """
    Get unpaid invoices due within specified days
    """
    today = today or date.today()
    invoices = Invoice.query.filter(
        Invoice.due_date >= today,
        Invoice.due_date <= today + timedelta(days=days),
        Invoice.payment_status.in_(OPEN_PAYMENT_STATUSES)
    ).order_by(Invoice.due_date.asc()).all()

    notifications = []
    for invoice in invoices:
        days_left = (invoice.due_date - today).days
        notifications.append(_notification(
            invoice.id, NotificationType.INVOICE_DUE_SOON, NotificationPriority.NORMAL,
            'Invoice Due Soon',
            f"Invoice {invoice.invoice_number} is due in {days_left} days",
            'invoice', invoice.id,
            {
                'invoice_number': invoice.invoice_number,
                'customer_name': invoice.customer_name,
                'due_date': invoice.due_date.isoformat(),
                'days_left': days_left,
                'balance_due': float(invoice.balance_due or 0),
            }
        ))
    return notifications


def get_expiring_quotations(today=None, days=3):
    """
    Get open quotations whose validity ends within specified days
    """
    today = today or date.today()
    quotations = Quotation.query.filter(
        Quotation.status.in_((QuoteStatus.DRAFT, QuoteStatus.SENT, QuoteStatus.ACCEPTED)),
        Quotation.validity_date >= today,
        Quotation.validity_date <= today + timedelta(days=days)
    ).order_by(Quotation.validity_date.asc()).all()

    notifications = []
    for quotation in quotations:
        days_left = (quotation.validity_date - today).days
        notifications.append(_notification(
            quotation.id, NotificationType.QUOTATION_EXPIRING, NotificationPriority.NORMAL,
            'Quotation Expiring',
            f"Quotation {quotation.quotation_number} for {quotation.customer_name} expires in {days_left} days",
            'quotation', quotation.id,
            {
                'quotation_number': quotation.quotation_number,
                'customer_name': quotation.customer_name,
                'validity_date': quotation.validity_date.isoformat(),
                'days_left': days_left,
                'grand_total': float(quotation.grand_total or 0),
            }
        ))
    return notifications


def get_awaiting_shipment(today=None):
    """
    Get paid invoices that have no shipment yet
    """
    invoices = Invoice.query.outerjoin(Shipment, Shipment.invoice_id == Invoice.id).filter(
        Invoice.payment_status == PaymentStatus.PAID,
        Shipment.id.is_(None)
    ).order_by(Invoice.paid_at.asc()).all()

    notifications = []
    for invoice in invoices:
        notifications.append(_notification(
            invoice.id, NotificationType.AWAITING_SHIPMENT, NotificationPriority.HIGH,
            'Ready to Ship',
            f"Invoice {invoice.invoice_number} is paid and awaiting shipment",
            'invoice', invoice.id,
            {
                'invoice_number': invoice.invoice_number,
                'customer_name': invoice.customer_name,
                'total_amount': float(invoice.total_amount),
            }
        ))
    return notifications


NOTIFICATION_SOURCES = {
    NotificationType.INVOICE_OVERDUE: get_overdue_invoices,
    NotificationType.INVOICE_DUE_SOON: get_invoices_due_soon,
    NotificationType.QUOTATION_EXPIRING: get_expiring_quotations,
    NotificationType.AWAITING_SHIPMENT: get_awaiting_shipment,
}


def get_all_notifications(include_types=None, limit=50, today=None):
    """
    Get all notifications, sorted by priority and date
    """
    sources = NOTIFICATION_SOURCES
    if include_types:
        sources = {k: v for k, v in sources.items() if k in include_types}

    all_notifications = []
    for func in sources.values():
        all_notifications.extend(func(today=today))

    priority_order = {
        NotificationPriority.HIGH: 0,
        NotificationPriority.NORMAL: 1,
        NotificationPriority.LOW: 2
    }
    all_notifications.sort(key=lambda x: (priority_order.get(x['priority'], 2), x['created_at']))

    if limit:
        all_notifications = all_notifications[:limit]

    return all_notifications


def get_notification_counts(today=None):
    """
    Get counts of notifications by type and priority
    """
    all_notifications = get_all_notifications(limit=None, today=today)

    counts = {
        'total': len(all_notifications),
        'high_priority': sum(1 for n in all_notifications if n['priority'] == NotificationPriority.HIGH),
        'by_type': {}
    }
    for notification in all_notifications:
        counts['by_type'][notification['type']] = counts['by_type'].get(notification['type'], 0) + 1

    return counts
