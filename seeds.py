"""Seed data for MediCourier - demo users, customers, quotations, invoices, shipments"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal

from config.database import db
from app.models import (
    Customer, Invoice, PaymentStatus, Quotation, QuotationItem, QuoteStatus,
    Shipment, ShipmentStatus, User, UserRole
)
from app.services.numbering import DocumentType, ensure_sequences, get_next_number
from app.services.tax_calculator import ChargeSet, LineItem, compute, get_tax_config, round_money
from app.utils.security import hash_password

logger = logging.getLogger(__name__)


DEMO_USERS = [
    # (name, email, role, password)
    ('Admin User', 'admin@example.com', UserRole.ADMIN, 'admin'),
    ('Sarah Sales', 'sales@example.com', UserRole.SALES, 'sales'),
    ('Mike Ops', 'ops@example.com', UserRole.OPERATIONS, 'ops'),
    ('Fiona Finance', 'finance@example.com', UserRole.FINANCE, 'finance'),
]

DEMO_CUSTOMERS = [
    {
        'owner': 'admin@example.com',
        'name': 'John Doe',
        'email': 'john.doe@example.com',
        'phone': '123-456-7890',
        'address': '123 Main St, New York, USA',
        'billing_address': '123 Main St, New York, USA',
        'shipping_address': '456 Warehouse Blvd, New Jersey, USA',
        'country': 'USA',
        'join_date': date(2023, 1, 15),
    },
    {
        'owner': 'sales@example.com',
        'name': 'Priya Sharma',
        'email': 'priya.sharma@example.com',
        'phone': '987-654-3210',
        'address': '456 MG Road, Mumbai, India',
        'billing_address': '456 MG Road, Mumbai, India',
        'shipping_address': '456 MG Road, Mumbai, India',
        'billing_state': 'Maharashtra',
        'country': 'India',
        'join_date': date(2023, 2, 20),
    },
    {
        'owner': 'sales@example.com',
        'name': 'Fatima Al Fassi',
        'email': 'fatima.fassi@example.com',
        'phone': '555-123-4567',
        'address': '789 Sheikh Zayed Rd, Dubai, UAE',
        'billing_address': '789 Sheikh Zayed Rd, Dubai, UAE',
        'shipping_address': 'P.O. Box 12345, Dubai, UAE',
        'country': 'UAE',
        'join_date': date(2023, 3, 10),
    },
    {
        'owner': 'admin@example.com',
        'name': 'Hans Müller',
        'email': 'hans.muller@example.com',
        'phone': '444-555-6666',
        'address': '10 Kurfürstendamm, Berlin, Germany',
        'billing_address': '10 Kurfürstendamm, Berlin, Germany',
        'shipping_address': 'Logistics Center 5, Hamburg, Germany',
        'country': 'Germany',
        'join_date': date(2023, 4, 5),
    },
]

# Items carry the historical total line weight; unit weight is derived on load
DEMO_QUOTATIONS = [
    {
        'owner': 'admin@example.com', 'customer': 'john.doe@example.com',
        'items': [('Metformin 500mg', 90, '132.28', '3004.90', 12, '0.9')],
        'origin': 'USA', 'destination': 'India', 'billing_state': 'Kerala',
        'status': QuoteStatus.CONVERTED, 'created_date': date(2023, 10, 1),
        'purpose': 'Personal Use', 'delivery_charge': 500, 'remote_area_charge': 0, 'pickup_charge': 100,
    },
    {
        'owner': 'sales@example.com', 'customer': 'priya.sharma@example.com',
        'items': [('Aspirin 81mg', 120, '47.62', '3004.50', 5, '0.6')],
        'origin': 'India', 'destination': 'UAE', 'billing_state': 'Maharashtra',
        'status': QuoteStatus.CONVERTED, 'created_date': date(2023, 10, 5),
        'purpose': 'Commercial Sample', 'delivery_charge': 250, 'remote_area_charge': 0, 'pickup_charge': 0,
    },
    {
        'owner': 'sales@example.com', 'customer': 'fatima.fassi@example.com',
        'items': [
            ('Lipitor 20mg', 60, '150', '3004.90', 18, '1.2'),
            ('Ibuprofen 200mg', 100, '80', '3004.50', 12, '1.0'),
        ],
        'origin': 'UAE', 'destination': 'Germany', 'billing_state': 'Delhi',
        'status': QuoteStatus.CONVERTED, 'created_date': date(2023, 10, 12),
        'purpose': 'Personal Medical Use', 'delivery_charge': 1000, 'remote_area_charge': 500, 'pickup_charge': 200,
    },
    {
        'owner': 'admin@example.com', 'customer': 'hans.muller@example.com',
        'items': [('Amoxicillin 250mg', 30, '142.85', '3004.10', 5, '0.45')],
        'origin': 'Germany', 'destination': 'USA', 'billing_state': 'Karnataka',
        'status': QuoteStatus.DRAFT, 'created_date': date(2023, 10, 20),
        'purpose': 'Research', 'delivery_charge': 200, 'remote_area_charge': 0, 'pickup_charge': 0,
    },
]

DEMO_INVOICES = [
    # (quotation index, owner, payment status, issue date)
    (0, 'admin@example.com', PaymentStatus.PAID, date(2023, 10, 2)),
    (1, 'sales@example.com', PaymentStatus.PAID, date(2023, 10, 6)),
    (2, 'sales@example.com', PaymentStatus.UNPAID, date(2023, 10, 13)),
]

DEMO_SHIPMENTS = [
    {
        'invoice': 0, 'owner': 'admin@example.com', 'awb': '1Z999AA10123456784',
        'origin': 'USA', 'destination': 'India', 'courier': 'FedEx',
        'status': ShipmentStatus.DELIVERED, 'last_update': date(2023, 10, 26), 'weight': '2.5',
        'tracking_url': 'https://www.fedex.com/fedextrack/?trknbr=1Z999AA10123456784',
    },
    {
        'invoice': 1, 'owner': 'sales@example.com', 'awb': '1Z999AA10123456785',
        'origin': 'India', 'destination': 'UAE', 'courier': 'DHL',
        'status': ShipmentStatus.IN_TRANSIT, 'last_update': date(2023, 10, 28), 'weight': '1.8',
    },
]


def _user_ids():
    return {user.email: user.id for user in User.query.all()}


def seed_users():
    """Create the demo users"""
    for name, email, role, password in DEMO_USERS:
        db.session.add(User(
            name=name,
            email=email,
            role=role,
            password_hash=hash_password(password),
            is_active=True
        ))
    db.session.commit()
    logger.info("Seeded %d users", len(DEMO_USERS))


def seed_customers():
    users = _user_ids()
    customers = []
    for data in DEMO_CUSTOMERS:
        data = dict(data)
        owner = data.pop('owner')
        customer = Customer(
            customer_code=get_next_number(DocumentType.CUSTOMER),
            user_id=users.get(owner),
            is_active=True,
            **data
        )
        db.session.add(customer)
        customers.append(customer)
    db.session.commit()
    logger.info("Seeded %d customers", len(customers))
    return customers


def seed_quotations(customers):
    """Create the demo quotations with breakdowns frozen by the calculator"""
    config = get_tax_config()
    users = _user_ids()
    by_email = {customer.email: customer for customer in customers}
    quotations = []

    for data in DEMO_QUOTATIONS:
        customer = by_email[data['customer']]
        items = []
        for name, quantity, rate, hs_code, tax_rate, line_weight in data['items']:
            unit_weight = Decimal(line_weight) / quantity
            items.append(LineItem(
                name=name,
                quantity=quantity,
                unit_rate=Decimal(rate),
                hs_code=hs_code,
                tax_rate_percent=Decimal(tax_rate),
                unit_weight=unit_weight,
                line_weight=unit_weight * quantity,
            ))
        charges = ChargeSet(
            delivery_charge=Decimal(data['delivery_charge']),
            remote_area_charge=Decimal(data['remote_area_charge']),
            pickup_charge=Decimal(data['pickup_charge']),
        )
        breakdown = compute(items, charges, config)

        quotation = Quotation(
            quotation_number=get_next_number(DocumentType.QUOTATION),
            user_id=users.get(data['owner']),
            customer_id=customer.id,
            customer_name=customer.name,
            customer_country=customer.country,
            origin=data['origin'],
            destination=data['destination'],
            billing_state=data['billing_state'],
            purpose=data['purpose'],
            total_weight=sum((item.line_weight for item in items), Decimal('0')),
            discount_percent=charges.discount_percent,
            delivery_charge=charges.delivery_charge,
            remote_area_charge=charges.remote_area_charge,
            pickup_charge=charges.pickup_charge,
            tax_name=config.tax_name,
            subtotal=breakdown.subtotal,
            discount_amount=breakdown.discount_amount,
            item_tax=breakdown.item_tax,
            charge_tax=breakdown.charge_tax,
            total_tax=breakdown.total_tax,
            grand_total=breakdown.grand_total,
            status=data['status'],
            created_date=data['created_date'],
            validity_date=data['created_date'] + timedelta(days=15),
            items=[
                QuotationItem(
                    line_number=index + 1,
                    name=item.name,
                    hs_code=item.hs_code,
                    quantity=item.quantity,
                    unit_rate=item.unit_rate,
                    tax_rate=item.tax_rate_percent,
                    unit_weight=item.unit_weight,
                    line_weight=item.line_weight,
                    line_total=round_money(item.line_total),
                    line_tax=round_money(item.line_tax),
                )
                for index, item in enumerate(items)
            ],
        )
        db.session.add(quotation)
        quotations.append(quotation)

    db.session.commit()
    logger.info("Seeded %d quotations", len(quotations))
    return quotations


def seed_invoices(quotations):
    users = _user_ids()
    invoices = []
    for index, owner, status, issue_date in DEMO_INVOICES:
        quotation = quotations[index]
        paid = quotation.grand_total if status == PaymentStatus.PAID else Decimal('0')
        invoice = Invoice(
            invoice_number=get_next_number(DocumentType.INVOICE),
            user_id=users.get(owner),
            quotation_id=quotation.id,
            customer_id=quotation.customer_id,
            customer_name=quotation.customer_name,
            customer_email=quotation.customer.email,
            customer_country=quotation.customer_country,
            billing_state=quotation.billing_state,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=15),
            purpose=quotation.purpose,
            tax_name=quotation.tax_name,
            discount_percent=quotation.discount_percent,
            delivery_charge=quotation.delivery_charge,
            remote_area_charge=quotation.remote_area_charge,
            pickup_charge=quotation.pickup_charge,
            total_tax=quotation.total_tax,
            total_amount=quotation.grand_total,
            currency='INR',
            payment_status=status,
            amount_paid=paid,
            balance_due=quotation.grand_total - paid,
            paid_at=datetime.combine(issue_date, datetime.min.time()) if paid else None,
            payment_proofs=[],
        )
        db.session.add(invoice)
        invoices.append(invoice)
    db.session.commit()
    logger.info("Seeded %d invoices", len(invoices))
    return invoices


def seed_shipments(invoices):
    users = _user_ids()
    for data in DEMO_SHIPMENTS:
        invoice = invoices[data['invoice']]
        db.session.add(Shipment(
            shipment_number=get_next_number(DocumentType.SHIPMENT),
            user_id=users.get(data['owner']),
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer_id=invoice.customer_id,
            customer_name=invoice.customer_name,
            awb=data['awb'],
            courier=data['courier'],
            status=data['status'],
            origin=data['origin'],
            destination=data['destination'],
            weight=Decimal(data['weight']),
            documents=[],
            tracking_url=data.get('tracking_url'),
            last_update=data['last_update'],
        ))
    db.session.commit()
    logger.info("Seeded %d shipments", len(DEMO_SHIPMENTS))


def seed_if_empty():
    """Load the demo dataset into empty collections.

    Users are independent. Customers, quotations, invoices and shipments form
    a chain: each is only seeded together with the records it references.

    Returns:
        list of collection names that were seeded
    """
    ensure_sequences()
    loaded = []

    if User.query.first() is None:
        seed_users()
        loaded.append('users')

    if Customer.query.first() is None:
        customers = seed_customers()
        loaded.append('customers')

        if Quotation.query.first() is None:
            quotations = seed_quotations(customers)
            loaded.append('quotations')

            if Invoice.query.first() is None:
                invoices = seed_invoices(quotations)
                loaded.append('invoices')

                if Shipment.query.first() is None:
                    seed_shipments(invoices)
                    loaded.append('shipments')

    return loaded


if __name__ == '__main__':
    from app import create_app
    app = create_app()
    with app.app_context():
        db.create_all()
        print(f"Seeded: {', '.join(seed_if_empty()) or 'nothing'}")
