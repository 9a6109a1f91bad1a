"""Shipment models for MediCourier"""
from datetime import datetime
from config.database import db


class ShipmentStatus:
    PENDING_PICKUP = 'Pending Pickup'
    PICKED_UP = 'Picked Up'
    IN_TRANSIT = 'In Transit'
    ARRIVED_EXPORT_HUB = 'Arrived at Export Hub'
    CUSTOMS_CLEARANCE = 'Customs Clearance'
    DEPARTED_COUNTRY = 'Departed Country'
    ARRIVED_DESTINATION = 'Arrived Destination'
    OUT_FOR_DELIVERY = 'Out for Delivery'
    DELIVERED = 'Delivered'
    RETURNED = 'Returned / Failed Delivery'
    DESTROYED = 'Shipment Destroyed'

    # Documented order; operations staff may set any of these directly
    ALL = (
        PENDING_PICKUP, PICKED_UP, IN_TRANSIT, ARRIVED_EXPORT_HUB,
        CUSTOMS_CLEARANCE, DEPARTED_COUNTRY, ARRIVED_DESTINATION,
        OUT_FOR_DELIVERY, DELIVERED, RETURNED, DESTROYED,
    )
    EXCEPTIONAL = (RETURNED, DESTROYED)


COURIERS = ('DHL', 'FedEx', 'Aramex', 'UPS', 'India Post', 'EMS')


class Shipment(db.Model):
    """Shipment created from an invoice"""
    __tablename__ = 'shipments'

    id = db.Column(db.Integer, primary_key=True)
    shipment_number = db.Column(db.String(30), nullable=False, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))

    # One shipment per invoice
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id'), nullable=False, unique=True)
    invoice_number = db.Column(db.String(30))

    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'))
    customer_name = db.Column(db.String(200))

    awb = db.Column(db.String(50), nullable=False)
    courier = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(40), nullable=False, default=ShipmentStatus.PENDING_PICKUP)

    origin = db.Column(db.String(100))
    destination = db.Column(db.String(100))
    weight = db.Column(db.Numeric(12, 3), default=0)

    documents = db.Column(db.JSON, default=list)
    tracking_url = db.Column(db.String(500))

    last_update = db.Column(db.Date)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    invoice = db.relationship('Invoice', backref=db.backref('shipment', uselist=False))

    __table_args__ = (
        db.Index('idx_shipment_status', 'status'),
        db.Index('idx_shipment_courier', 'courier'),
    )

    def __repr__(self):
        return f'<Shipment {self.shipment_number}>'
