from decimal import Decimal
from itertools import permutations

import pytest

from app.services.tax_calculator import (
    ChargeSet, LineItem, TaxConfig, compute, round_money
)


def item(quantity, rate, tax_rate, name='Medicine', weight='0'):
    return LineItem(
        name=name,
        quantity=quantity,
        unit_rate=Decimal(rate),
        hs_code='3004.90',
        tax_rate_percent=Decimal(tax_rate),
        unit_weight=Decimal(weight),
        line_weight=Decimal(weight) * quantity,
    )


def test_scenario_a_single_item_with_delivery_and_pickup():
    breakdown = compute(
        [item(90, '132.28', 12)],
        ChargeSet(delivery_charge=Decimal('500'), pickup_charge=Decimal('100')),
    )

    assert breakdown.subtotal == Decimal('11905.20')
    assert breakdown.item_tax == Decimal('1428.62')
    assert breakdown.charge_tax == Decimal('90.00')
    assert breakdown.total_tax == Decimal('1518.62')
    assert breakdown.grand_total == Decimal('14023.82')


def test_scenario_b_mixed_rates_are_taxed_per_line():
    items = [item(1, '1000', 18), item(10, '100', 12)]
    breakdown = compute(items, ChargeSet())

    # 180 + 120, a blended 15% on 2000 would also be 300, so check the lines
    assert breakdown.item_tax == Decimal('300.00')

    skewed = [item(1, '1000', 18), item(1, '100', 12)]
    breakdown = compute(skewed, ChargeSet())
    blended = (Decimal('1100') * Decimal('15') / 100)
    assert breakdown.item_tax == Decimal('192.00')
    assert breakdown.item_tax != blended


def test_scenario_c_discount_ignores_charges():
    items = [item(100, '100', 12)]
    breakdown = compute(items, ChargeSet(discount_percent=Decimal('10'), delivery_charge=Decimal('2000')))

    assert breakdown.subtotal == Decimal('10000.00')
    assert breakdown.discount_amount == Decimal('1000.00')
    assert breakdown.charge_tax == Decimal('360.00')
    assert breakdown.item_tax == Decimal('1200.00')
    assert breakdown.grand_total == Decimal('9000') + Decimal('2000') + Decimal('360') + Decimal('1200')


def test_subtotal_and_item_tax_are_order_independent():
    items = [item(3, '19.99', 5), item(7, '3.33', 18), item(12, '105.10', 12), item(1, '0.01', 0)]
    results = {
        (b.subtotal, b.item_tax)
        for b in (compute(list(order), ChargeSet()) for order in permutations(items))
    }

    assert len(results) == 1
    subtotal, _ = results.pop()
    assert subtotal == round_money(sum(i.quantity * i.unit_rate for i in items))


@pytest.mark.parametrize('charges', [
    ChargeSet(delivery_charge=Decimal('0')),
    ChargeSet(delivery_charge=Decimal('750')),
    ChargeSet(remote_area_charge=Decimal('300'), pickup_charge=Decimal('80')),
])
def test_discount_amount_does_not_depend_on_charges(charges):
    items = [item(4, '250', 12)]
    base = compute(items, ChargeSet(discount_percent=Decimal('15')))
    with_charges = compute(items, ChargeSet(
        discount_percent=Decimal('15'),
        delivery_charge=charges.delivery_charge,
        remote_area_charge=charges.remote_area_charge,
        pickup_charge=charges.pickup_charge,
    ))

    assert with_charges.discount_amount == base.discount_amount == Decimal('150.00')


def test_pickup_charge_is_never_taxed():
    breakdown = compute([item(1, '100', 0)], ChargeSet(pickup_charge=Decimal('450')))

    assert breakdown.charge_tax == Decimal('0.00')
    assert breakdown.grand_total == Decimal('550.00')


def test_remote_area_charge_is_taxed_at_surcharge_rate():
    breakdown = compute([], ChargeSet(delivery_charge=Decimal('100'), remote_area_charge=Decimal('50')))

    assert breakdown.charge_tax == Decimal('27.00')
    assert breakdown.grand_total == Decimal('177.00')


def test_empty_item_list_is_charges_plus_charge_tax():
    breakdown = compute([], ChargeSet(delivery_charge=Decimal('200'), pickup_charge=Decimal('50')))

    assert breakdown.subtotal == Decimal('0.00')
    assert breakdown.item_tax == Decimal('0.00')
    assert breakdown.grand_total == Decimal('286.00')


def test_surcharge_rate_comes_from_injected_config():
    config = TaxConfig(surcharge_tax_rate=Decimal('5'))
    breakdown = compute([], ChargeSet(delivery_charge=Decimal('1000')), config)

    assert breakdown.charge_tax == Decimal('50.00')


def test_rounding_is_half_up_at_output_only():
    # 3 x 0.335 at 5% = 1.005 -> 0.05025 tax; full precision until the end
    breakdown = compute([item(3, '0.335', 5)], ChargeSet())

    assert breakdown.subtotal == Decimal('1.01')
    assert breakdown.item_tax == Decimal('0.05')
    assert breakdown.grand_total == Decimal('1.06')


def test_total_weight_sums_line_weights():
    breakdown = compute([item(10, '1', 0, weight='0.05'), item(2, '1', 0, weight='0.6')], ChargeSet())

    assert breakdown.total_weight == Decimal('1.70')


def test_breakdown_to_dict_uses_floats():
    data = compute([item(90, '132.28', 12)], ChargeSet()).to_dict()

    assert data['subtotal'] == 11905.2
    assert isinstance(data['grand_total'], float)
