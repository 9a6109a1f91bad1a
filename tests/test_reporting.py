import csv
import io
from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.models import PaymentStatus, UserRole
from app.services.payment_ledger import record_payment
from app.services.place_of_supply import SupplyType
from app.services.reporting import build_tax_report, report_filters, report_to_csv
from app.services.shipment_provisioning import create_shipment
from app.services.shipping_cost import calculate_shipping_cost
from app.services.tax_calculator import TaxConfig
from app.utils.errors import ValidationError


@pytest.fixture
def invoices(make_invoice, export_customer):
    domestic = make_invoice()
    export = make_invoice(customer_id=export_customer.id)
    return domestic, export


class TestTaxReport:

    def test_rows_split_the_stored_tax_by_place_of_supply(self, invoices):
        report = build_tax_report()

        domestic, export = report['rows']
        assert domestic['supply_type'] == SupplyType.INTRASTATE
        assert domestic['taxable_value'] == Decimal('12505.20')
        assert domestic['cgst'] + domestic['sgst'] == Decimal('1518.62')
        assert domestic['igst'] == 0
        assert domestic['hsn_sac'] == '9968'
        assert export['supply_type'] == SupplyType.INTERSTATE
        assert export['igst'] == Decimal('1518.62')
        assert export['cgst'] == export['sgst'] == 0

        totals = report['totals']
        assert totals['total_tax'] == Decimal('3037.24')
        assert totals['cgst'] + totals['sgst'] + totals['igst'] == totals['total_tax']
        assert totals['invoice_value'] == Decimal('28047.64')
        assert (report['intrastate_count'], report['interstate_count']) == (1, 1)

    def test_rows_read_the_invoice_not_the_items(self, invoices, db):
        domestic, _ = invoices
        domestic.total_tax = Decimal('100.01')
        db.session.commit()

        row = build_tax_report()['rows'][0]

        assert row['total_tax'] == Decimal('100.01')
        assert row['cgst'] + row['sgst'] == Decimal('100.01')
        assert row['taxable_value'] == Decimal('14023.82') - Decimal('100.01')

    def test_filter_by_country_is_case_insensitive(self, invoices):
        rows = build_tax_report({'country': 'uae'})['rows']

        assert [row['customer_name'] for row in rows] == ['Fatima Al Fassi']

    def test_filter_by_payment_status_and_courier(self, invoices):
        domestic, _ = invoices
        record_payment(domestic, domestic.total_amount)
        create_shipment(domestic.id, courier='DHL')

        paid = build_tax_report({'payment_status': PaymentStatus.PAID})['rows']
        by_courier = build_tax_report({'courier': 'dhl'})['rows']

        assert [row['invoice_number'] for row in paid] == [domestic.invoice_number]
        assert [row['courier'] for row in by_courier] == ['DHL']

    def test_filter_by_issue_date(self, invoices):
        tomorrow = date.today() + timedelta(days=1)

        assert build_tax_report({'from_date': tomorrow})['rows'] == []
        assert len(build_tax_report({'to_date': tomorrow})['rows']) == 2

    def test_csv_has_header_rows_and_total(self, invoices):
        text = report_to_csv(build_tax_report())

        lines = list(csv.reader(io.StringIO(text)))
        assert lines[0][7:10] == ['CGST Amt', 'SGST Amt', 'IGST Amt']
        assert len(lines) == 4
        assert lines[-1][1] == 'TOTAL'
        assert lines[-1][10] == '28047.64'

    @pytest.mark.parametrize('args, field', [
        ({'from_date': '31-12-2024'}, 'from_date'),
        ({'from_date': '2024-02-01', 'to_date': '2024-01-01'}, 'to_date'),
        ({'payment_status': 'Refunded'}, 'payment_status'),
    ])
    def test_invalid_filters(self, args, field):
        with pytest.raises(ValidationError) as exc:
            report_filters(args)

        assert field in exc.value.errors

    def test_partner_is_an_alias_for_courier(self):
        assert report_filters({'partner': ' Aramex '})['courier'] == 'Aramex'


class TestShippingCost:

    def test_fuel_surcharge_applies_before_tax(self):
        cost = calculate_shipping_cost({'base_rate': 1000, 'peak_surcharge': 200, 'fuel_surcharge_percent': 10})

        assert cost.subtotal == Decimal('1200.00')
        assert cost.fuel_surcharge == Decimal('120.00')
        assert cost.subtotal_after_fuel == Decimal('1320.00')
        assert cost.tax == Decimal('237.60')
        assert cost.grand_total == Decimal('1557.60')

    def test_amounts_round_half_up(self):
        cost = calculate_shipping_cost({'base_rate': '99.99', 'fuel_surcharge_percent': '3.5'})

        assert cost.fuel_surcharge == Decimal('3.50')
        assert cost.tax == Decimal('18.63')
        assert cost.grand_total == Decimal('122.12')

    def test_missing_inputs_count_as_zero(self):
        assert calculate_shipping_cost({}).grand_total == 0

    def test_tax_rate_comes_from_config(self):
        cost = calculate_shipping_cost({'base_rate': 100}, TaxConfig(surcharge_tax_rate=Decimal('5')))

        assert cost.grand_total == Decimal('105.00')

    def test_invalid_inputs(self):
        with pytest.raises(ValidationError) as exc:
            calculate_shipping_cost({'base_rate': -1, 'fuel_surcharge_percent': 'lots'})

        assert set(exc.value.errors) == {'base_rate', 'fuel_surcharge_percent'}


class TestReportApi:

    def test_finance_reads_json_report(self, client, auth_headers, invoices):
        response = client.get('/api/reports/gst?country=India', headers=auth_headers(UserRole.FINANCE))

        data = response.get_json()['data']
        assert response.status_code == 200
        assert len(data['rows']) == 1
        assert data['totals']['cgst'] + data['totals']['sgst'] == 1518.62

    def test_csv_download(self, client, auth_headers, invoices):
        response = client.get('/api/reports/gst?format=csv', headers=auth_headers(UserRole.FINANCE))

        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert 'attachment' in response.headers['Content-Disposition']
        assert response.get_data(as_text=True).startswith('Date,Invoice No')

    def test_bad_filter_is_a_validation_error(self, client, auth_headers):
        response = client.get('/api/reports/gst?from_date=yesterday', headers=auth_headers())

        assert response.status_code == 400
        assert 'from_date' in response.get_json()['errors']

    def test_sales_cannot_read_report(self, client, auth_headers):
        assert client.get('/api/reports/gst', headers=auth_headers(UserRole.SALES)).status_code == 403

    def test_shipping_cost_estimate(self, client, auth_headers):
        response = client.post('/api/reports/shipping-cost', json={
            'base_rate': 1000, 'peak_surcharge': 200, 'fuel_surcharge_percent': 10
        }, headers=auth_headers(UserRole.OPERATIONS))

        assert response.get_json()['data']['grand_total'] == 1557.6
