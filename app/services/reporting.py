"""
GST register of issued invoices.

Each row splits the invoice's stored total tax into central/state or
integrated components; nothing is recomputed from line items.
"""
import csv
import io
import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select

from config.database import db
from app.models import Invoice, PaymentStatus, Shipment
from app.services.place_of_supply import SupplyType, resolve, split_tax
from app.services.tax_calculator import get_tax_config, round_money, to_decimal
from app.utils.errors import ValidationError

logger = logging.getLogger(__name__)

SAC_CODE = '9968'
SERVICE_DESCRIPTION = 'Courier / Logistics Services'

AMOUNT_FIELDS = ('taxable_value', 'cgst', 'sgst', 'igst', 'total_tax', 'invoice_value')


def parse_report_date(value, field, errors):
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        errors[field] = 'Use the YYYY-MM-DD format'
        return None


def report_filters(args):
    """Validated filters from query arguments"""
    errors = {}
    filters = {
        'from_date': parse_report_date(args.get('from_date'), 'from_date', errors),
        'to_date': parse_report_date(args.get('to_date'), 'to_date', errors),
        'country': (args.get('country') or '').strip() or None,
        'courier': (args.get('courier') or args.get('partner') or '').strip() or None,
        'payment_status': args.get('payment_status') or None,
    }
    if filters['payment_status'] and filters['payment_status'] not in PaymentStatus.ALL:
        errors['payment_status'] = f"Must be one of {', '.join(PaymentStatus.ALL)}"
    if filters['from_date'] and filters['to_date'] and filters['from_date'] > filters['to_date']:
        errors['to_date'] = 'Must not be before from_date'
    if errors:
        raise ValidationError('Invalid report filters', errors=errors)
    return filters


def _report_query(from_date=None, to_date=None, country=None, courier=None, payment_status=None):
    query = (
        select(Invoice, Shipment.courier)
        .outerjoin(Shipment, Shipment.invoice_id == Invoice.id)
        .order_by(Invoice.issue_date, Invoice.id)
    )
    if from_date:
        query = query.where(Invoice.issue_date >= from_date)
    if to_date:
        query = query.where(Invoice.issue_date <= to_date)
    if country:
        query = query.where(func.upper(func.trim(Invoice.customer_country)) == country.upper())
    if courier:
        query = query.where(func.upper(Shipment.courier) == courier.upper())
    if payment_status:
        query = query.where(Invoice.payment_status == payment_status)
    return query


def invoice_tax_row(invoice, courier=None, config=None):
    config = config or get_tax_config()
    total_tax = round_money(invoice.total_tax)
    invoice_value = round_money(invoice.total_amount)
    supply_type = resolve(invoice.customer_country, invoice.billing_state, config)
    amounts = {c['code']: c['amount'] for c in split_tax(total_tax, supply_type, config)}
    return {
        'invoice_id': invoice.id,
        'invoice_number': invoice.invoice_number,
        'issue_date': invoice.issue_date.isoformat() if invoice.issue_date else None,
        'customer_name': invoice.customer_name,
        'place_of_supply': invoice.customer_country,
        'billing_state': invoice.billing_state,
        'supply_type': supply_type,
        'hsn_sac': SAC_CODE,
        'description': SERVICE_DESCRIPTION,
        'courier': courier,
        'payment_status': invoice.payment_status,
        'currency': invoice.currency,
        'taxable_value': invoice_value - total_tax,
        'cgst': amounts.get('CGST', Decimal('0.00')),
        'sgst': amounts.get('SGST', Decimal('0.00')),
        'igst': amounts.get('IGST', Decimal('0.00')),
        'total_tax': total_tax,
        'invoice_value': invoice_value,
    }


def build_tax_report(filters=None, config=None):
    """Rows and column totals for the invoices matching ``filters``.

    Amounts are Decimals; the caller picks the output format.
    """
    config = config or get_tax_config()
    filters = filters or {}
    rows = [
        invoice_tax_row(invoice, courier, config)
        for invoice, courier in db.session.execute(_report_query(**filters)).all()
    ]
    totals = {
        field: sum((to_decimal(row[field]) for row in rows), Decimal('0.00'))
        for field in AMOUNT_FIELDS
    }
    logger.debug("Tax report with %d rows for %s", len(rows), filters)
    return {
        'tax_name': config.tax_name,
        'filters': {k: (v.isoformat() if hasattr(v, 'isoformat') else v) for k, v in filters.items()},
        'rows': rows,
        'totals': totals,
        'intrastate_count': sum(1 for row in rows if row['supply_type'] == SupplyType.INTRASTATE),
        'interstate_count': sum(1 for row in rows if row['supply_type'] == SupplyType.INTERSTATE),
    }


def report_to_json(report):
    def plain(row):
        return {k: (float(v) if isinstance(v, Decimal) else v) for k, v in row.items()}

    return dict(report, rows=[plain(row) for row in report['rows']], totals=plain(report['totals']))


def report_to_csv(report):
    tax_name = report['tax_name']
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([
        'Date', 'Invoice No', 'Customer', 'Place of Supply', 'HSN/SAC', 'Description',
        'Taxable Value', f'C{tax_name} Amt', f'S{tax_name} Amt', f'I{tax_name} Amt',
        'Total Inv Value', 'Payment Status',
    ])
    for row in report['rows']:
        writer.writerow([
            row['issue_date'], row['invoice_number'], row['customer_name'], row['place_of_supply'],
            row['hsn_sac'], row['description'],
            f"{row['taxable_value']:.2f}", f"{row['cgst']:.2f}", f"{row['sgst']:.2f}",
            f"{row['igst']:.2f}", f"{row['invoice_value']:.2f}", row['payment_status'],
        ])
    totals = report['totals']
    writer.writerow([
        '', 'TOTAL', '', '', '', '',
        f"{totals['taxable_value']:.2f}", f"{totals['cgst']:.2f}", f"{totals['sgst']:.2f}",
        f"{totals['igst']:.2f}", f"{totals['invoice_value']:.2f}", '',
    ])
    return output.getvalue()
