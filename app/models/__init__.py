from app.models.user import User, UserRole
from app.models.customer import Customer
from app.models.quotation import Quotation, QuotationItem, QuoteStatus
from app.models.invoice import Invoice, PaymentStatus
from app.models.shipment import Shipment, ShipmentStatus, COURIERS
from app.models.settings import SequenceNumber
from app.models.audit import ActivityLog

__all__ = [
    'User', 'UserRole',
    'Customer',
    'Quotation', 'QuotationItem', 'QuoteStatus',
    'Invoice', 'PaymentStatus',
    'Shipment', 'ShipmentStatus', 'COURIERS',
    'SequenceNumber',
    'ActivityLog'
]
