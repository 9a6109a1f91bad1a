import threading
from decimal import Decimal

import pytest
from sqlalchemy import update

from app.models import Invoice, PaymentStatus, Quotation, QuoteStatus
from app.services import quotation_lifecycle
from app.services.quotation_lifecycle import (
    ALLOWED_TRANSITIONS, can_transition, change_status, convert_to_invoice, delete_quotation,
    normalize_line_item, preview_quotation, save_quotation
)
from app.services.tax_calculator import TaxConfig
from app.utils.errors import (
    ConflictError, InvalidTransitionError, NotFoundError, ValidationError
)


class TestNormalizeLineItem:

    def test_legacy_item_gets_unit_weight_from_total_weight(self):
        item = normalize_line_item({'name': 'Insulin', 'quantity': 4, 'weight': '0.5', 'gst_rate': 5},
                                   TaxConfig())

        assert item['unit_weight'] == Decimal('0.125')
        assert item['line_weight'] == Decimal('0.500')
        assert item['tax_rate'] == 5

    def test_missing_tax_rate_defaults_to_twelve(self):
        item = normalize_line_item({'name': 'Aspirin', 'quantity': 1, 'unit_weight': '0.1'}, TaxConfig())

        assert item['tax_rate'] == 12

    def test_line_weight_follows_unit_weight(self):
        item = normalize_line_item({'quantity': 3, 'unit_weight': '0.2', 'line_weight': '9'}, TaxConfig())

        assert item['line_weight'] == Decimal('0.600')


class TestSaveQuotation:

    def test_create_freezes_breakdown(self, make_quotation):
        quotation = make_quotation()

        assert quotation.quotation_number == 'QT001'
        assert quotation.status == QuoteStatus.DRAFT
        assert quotation.subtotal == Decimal('11905.20')
        assert quotation.total_tax == Decimal('1518.62')
        assert quotation.grand_total == Decimal('14023.82')
        assert quotation.total_weight == Decimal('0.9')
        assert quotation.customer_name == 'Anil Kumar'
        assert quotation.billing_state == 'Kerala'
        assert len(quotation.items) == 1
        assert quotation.items[0].line_tax == Decimal('1428.62')

    def test_numbers_are_sequential(self, make_quotation):
        first = make_quotation()
        second = make_quotation()

        assert (first.quotation_number, second.quotation_number) == ('QT001', 'QT002')

    def test_missing_header_fields_are_reported(self, app):
        with pytest.raises(ValidationError) as exc:
            save_quotation({'items': []})

        errors = exc.value.errors
        assert errors['customer_id'] == 'Customer is required'
        assert 'origin' in errors
        assert 'destination' in errors

    def test_item_errors_are_keyed_by_index(self, quotation_data):
        quotation_data['items'] = [
            {'name': 'Ok', 'hs_code': '3004', 'quantity': 1, 'unit_rate': 10, 'unit_weight': 1},
            {'name': '', 'hs_code': '3004', 'quantity': '1.5', 'unit_rate': -1, 'tax_rate': 7},
        ]

        with pytest.raises(ValidationError) as exc:
            save_quotation(quotation_data)

        errors = exc.value.errors
        assert errors['items[1].name'] == 'Name is required'
        assert errors['items[1].quantity'] == 'Invalid quantity'
        assert 'items[1].unit_rate' in errors
        assert 'items[1].tax_rate' in errors
        assert not any(key.startswith('items[0]') for key in errors)

    def test_discount_over_hundred_is_rejected(self, quotation_data):
        quotation_data['discount_percent'] = 101

        with pytest.raises(ValidationError) as exc:
            save_quotation(quotation_data)

        assert 'discount_percent' in exc.value.errors

    def test_zero_weight_is_rejected(self, quotation_data):
        quotation_data['items'][0] = dict(quotation_data['items'][0], unit_weight=0)

        with pytest.raises(ValidationError) as exc:
            save_quotation(quotation_data)

        assert 'total_weight' in exc.value.errors

    def test_unknown_customer_is_rejected(self, quotation_data):
        quotation_data['customer_id'] = 9999

        with pytest.raises(ValidationError) as exc:
            save_quotation(quotation_data)

        assert exc.value.errors['customer_id'] == 'Invalid customer selected'

    def test_over_precise_unit_rate_is_rejected(self, quotation_data, db):
        quotation_data['items'] = [{'name': 'Metformin', 'hs_code': '3004.90', 'quantity': 100,
                                    'unit_rate': '10.005', 'tax_rate': 12, 'unit_weight': '0.01'}]

        with pytest.raises(ValidationError) as exc:
            save_quotation(quotation_data)

        assert exc.value.errors['items[0].unit_rate'] == 'At most 2 decimal places allowed'
        assert db.session.query(Quotation).count() == 0

    @pytest.mark.parametrize('field, value', [
        ('discount_percent', '10.555'),
        ('delivery_charge', '500.001'),
    ])
    def test_over_precise_charges_are_rejected(self, quotation_data, field, value):
        quotation_data[field] = value

        with pytest.raises(ValidationError) as exc:
            save_quotation(quotation_data)

        assert field in exc.value.errors

    def test_trailing_zeros_and_four_place_weights_are_accepted(self, quotation_data):
        quotation_data['items'][0] = dict(quotation_data['items'][0], unit_rate='132.2800', unit_weight='0.0125')

        quotation = save_quotation(quotation_data)

        assert quotation.items[0].unit_rate == Decimal('132.28')
        assert quotation.items[0].unit_weight == Decimal('0.0125')

    def test_unit_weight_beyond_four_places_is_rejected(self, quotation_data):
        quotation_data['items'][0] = dict(quotation_data['items'][0], unit_weight='0.00001')

        with pytest.raises(ValidationError) as exc:
            save_quotation(quotation_data)

        assert 'items[0].unit_weight' in exc.value.errors

    @pytest.mark.parametrize('quantity', ['²', '₁', ' ', True, None, 2.0])
    def test_non_decimal_quantity_is_rejected(self, quotation_data, quantity):
        quotation_data['items'][0] = dict(quotation_data['items'][0], quantity=quantity)

        with pytest.raises(ValidationError) as exc:
            save_quotation(quotation_data)

        assert exc.value.errors['items[0].quantity'] == 'Invalid quantity'

    def test_partial_update_keeps_items(self, make_quotation):
        quotation = make_quotation()

        updated = save_quotation({'delivery_charge': 0, 'pickup_charge': 0}, quotation=quotation)

        assert len(updated.items) == 1
        assert updated.grand_total == Decimal('11905.20') + Decimal('1428.62')

    def test_converted_quotation_cannot_be_edited(self, make_quotation):
        quotation = make_quotation()
        convert_to_invoice(quotation.id)

        with pytest.raises(ConflictError):
            save_quotation({'delivery_charge': 0}, quotation=quotation)

    def test_preview_reports_split_without_saving(self, quotation_data, db):
        quotation_data['customer_country'] = 'India'
        quotation_data['billing_state'] = 'Kerala'

        result = preview_quotation(quotation_data)

        assert result['grand_total'] == 14023.82
        assert [c['code'] for c in result['tax_split']['components']] == ['CGST', 'SGST']
        assert db.session.query(Quotation).count() == 0


class TestStatusChanges:

    def test_transition_table(self):
        assert can_transition(QuoteStatus.DRAFT, QuoteStatus.SENT)
        assert can_transition(QuoteStatus.SENT, QuoteStatus.ACCEPTED)
        assert can_transition(QuoteStatus.ACCEPTED, QuoteStatus.CONVERTED)
        assert not can_transition(QuoteStatus.REJECTED, QuoteStatus.SENT)
        assert not can_transition(QuoteStatus.CONVERTED, QuoteStatus.DRAFT)
        assert not can_transition(QuoteStatus.ACCEPTED, QuoteStatus.DRAFT)

    @pytest.mark.parametrize('terminal', QuoteStatus.TERMINAL)
    def test_terminal_statuses_ignore_the_table(self, monkeypatch, terminal):
        monkeypatch.setitem(ALLOWED_TRANSITIONS, terminal, QuoteStatus.ALL)

        assert not any(can_transition(terminal, target) for target in QuoteStatus.ALL)

    def test_non_string_reason_is_stored_as_text(self, make_quotation):
        quotation = make_quotation()

        quotation = change_status(quotation.id, QuoteStatus.REJECTED, reason=5)

        assert quotation.rejection_reason == '5'

    def test_status_changed_by_another_writer_is_a_conflict(self, make_quotation, db, monkeypatch):
        quotation = make_quotation()
        quotation_id = quotation.id

        def competing_writer_commits_first(current_status, new_status):
            with db.engine.begin() as connection:
                connection.execute(update(Quotation).where(Quotation.id == quotation_id)
                                   .values(status=QuoteStatus.SENT))
            return can_transition(current_status, new_status)

        monkeypatch.setattr(quotation_lifecycle, 'can_transition', competing_writer_commits_first)

        with pytest.raises(ConflictError):
            change_status(quotation_id, QuoteStatus.REJECTED, reason='Too slow')

        db.session.expire_all()
        assert db.session.get(Quotation, quotation_id).status == QuoteStatus.SENT

    def test_send_then_accept(self, make_quotation):
        quotation = make_quotation()

        change_status(quotation.id, QuoteStatus.SENT)
        quotation = change_status(quotation.id, QuoteStatus.ACCEPTED)

        assert quotation.status == QuoteStatus.ACCEPTED
        assert quotation.sent_at is not None
        assert quotation.accepted_at is not None

    def test_reject_records_reason(self, make_quotation):
        quotation = make_quotation()

        quotation = change_status(quotation.id, QuoteStatus.REJECTED, reason='Price too high')

        assert quotation.status == QuoteStatus.REJECTED
        assert quotation.rejection_reason == 'Price too high'

    def test_rejected_is_terminal(self, make_quotation):
        quotation = make_quotation()
        change_status(quotation.id, QuoteStatus.REJECTED)

        with pytest.raises(InvalidTransitionError):
            change_status(quotation.id, QuoteStatus.SENT)

    def test_unknown_status_is_rejected(self, make_quotation):
        quotation = make_quotation()

        with pytest.raises(ValidationError):
            change_status(quotation.id, 'Shipped')

    def test_converted_target_creates_invoice(self, make_quotation, db):
        quotation = make_quotation()

        quotation = change_status(quotation.id, QuoteStatus.CONVERTED)

        assert quotation.status == QuoteStatus.CONVERTED
        assert db.session.query(Invoice).filter_by(quotation_id=quotation.id).count() == 1

    def test_missing_quotation(self, app):
        with pytest.raises(NotFoundError):
            change_status(12345, QuoteStatus.SENT)


class TestConversion:

    def test_invoice_copies_frozen_totals(self, make_quotation):
        quotation = make_quotation()

        invoice = convert_to_invoice(quotation.id, currency='USD')

        assert invoice.invoice_number == 'INV001'
        assert invoice.total_amount == quotation.grand_total == Decimal('14023.82')
        assert invoice.total_tax == Decimal('1518.62')
        assert invoice.balance_due == invoice.total_amount
        assert invoice.amount_paid == Decimal('0')
        assert invoice.payment_status == PaymentStatus.UNPAID
        assert invoice.currency == 'USD'
        assert (invoice.due_date - invoice.issue_date).days == 15
        assert quotation.status == QuoteStatus.CONVERTED

    def test_second_conversion_is_a_conflict(self, make_quotation, db):
        quotation = make_quotation()
        convert_to_invoice(quotation.id)

        with pytest.raises(ConflictError):
            convert_to_invoice(quotation.id)

        assert db.session.query(Invoice).count() == 1

    def test_rejected_quotation_cannot_convert(self, make_quotation, db):
        quotation = make_quotation()
        change_status(quotation.id, QuoteStatus.REJECTED)

        with pytest.raises(InvalidTransitionError):
            convert_to_invoice(quotation.id)

        assert db.session.query(Invoice).count() == 0

    def test_unknown_currency(self, make_quotation):
        quotation = make_quotation()

        with pytest.raises(ValidationError):
            convert_to_invoice(quotation.id, currency='GBP')

    def test_status_swap_guards_conversion_without_lock(self, make_quotation, db, monkeypatch,
                                                        without_entity_locks):
        quotation = make_quotation()
        quotation_id = quotation.id

        def competing_writer_commits_first(current_status, new_status):
            with db.engine.begin() as connection:
                connection.execute(update(Quotation).where(Quotation.id == quotation_id)
                                   .values(status=QuoteStatus.SENT))
            return can_transition(current_status, new_status)

        monkeypatch.setattr(quotation_lifecycle, 'can_transition', competing_writer_commits_first)

        with pytest.raises(ConflictError):
            convert_to_invoice(quotation_id)

        db.session.expire_all()
        assert db.session.query(Invoice).count() == 0
        assert db.session.get(Quotation, quotation_id).status == QuoteStatus.SENT

    def test_unique_quotation_link_guards_conversion_without_lock(self, make_quotation, db,
                                                                  without_entity_locks):
        quotation = make_quotation()
        quotation_id = quotation.id
        convert_to_invoice(quotation_id)
        # Status reset leaves the first invoice in place
        db.session.execute(update(Quotation).where(Quotation.id == quotation_id)
                           .values(status=QuoteStatus.DRAFT))
        db.session.commit()

        with pytest.raises(ConflictError):
            convert_to_invoice(quotation_id)

        db.session.expire_all()
        assert db.session.query(Invoice).filter_by(quotation_id=quotation_id).count() == 1
        assert db.session.get(Quotation, quotation_id).status == QuoteStatus.DRAFT

    def test_concurrent_conversions_create_one_invoice(self, app, make_quotation, db):
        quotation = make_quotation()
        quotation_id = quotation.id
        db.session.commit()

        workers = 6
        barrier = threading.Barrier(workers)
        outcomes = []
        outcomes_lock = threading.Lock()

        def convert():
            with app.app_context():
                barrier.wait()
                try:
                    invoice = convert_to_invoice(quotation_id)
                    result = ('ok', invoice.invoice_number)
                except ConflictError:
                    result = ('conflict', None)
                finally:
                    db.session.remove()
                with outcomes_lock:
                    outcomes.append(result)

        threads = [threading.Thread(target=convert) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert len(outcomes) == workers
        assert [kind for kind, _ in outcomes].count('ok') == 1
        assert [kind for kind, _ in outcomes].count('conflict') == workers - 1

        db.session.expire_all()
        assert db.session.query(Invoice).filter_by(quotation_id=quotation_id).count() == 1
        assert db.session.get(Quotation, quotation_id).status == QuoteStatus.CONVERTED


class TestDelete:

    def test_draft_can_be_deleted(self, make_quotation, db):
        quotation = make_quotation()

        delete_quotation(quotation.id)

        assert db.session.query(Quotation).count() == 0

    def test_sent_cannot_be_deleted(self, make_quotation):
        quotation = make_quotation()
        change_status(quotation.id, QuoteStatus.SENT)

        with pytest.raises(ConflictError):
            delete_quotation(quotation.id)
