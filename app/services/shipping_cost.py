"""Quick courier cost estimate: base rate and peak surcharge, fuel surcharge, then tax"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from app.services.tax_calculator import DEFAULT_TAX_CONFIG, round_money, to_decimal
from app.utils.errors import ValidationError

INPUT_FIELDS = ('base_rate', 'peak_surcharge', 'fuel_surcharge_percent')


@dataclass(frozen=True)
class ShippingCost:
    base_rate: Decimal
    peak_surcharge: Decimal
    subtotal: Decimal
    fuel_surcharge_percent: Decimal
    fuel_surcharge: Decimal
    subtotal_after_fuel: Decimal
    tax_rate_percent: Decimal
    tax: Decimal
    grand_total: Decimal

    def to_dict(self):
        return {name: float(value) for name, value in self.__dict__.items()}


def _amount(data, field, errors):
    try:
        value = to_decimal(data.get(field))
    except (InvalidOperation, ValueError, TypeError):
        errors[field] = 'Must be a number'
        return Decimal('0')
    if not value.is_finite():
        errors[field] = 'Must be a number'
        return Decimal('0')
    if value < 0:
        errors[field] = 'Must be at least 0'
    return value


def calculate_shipping_cost(data, config=None):
    """Estimate from a mapping of base_rate, peak_surcharge and fuel_surcharge_percent.

    Missing fields count as zero. The fuel surcharge is a percentage of the
    base plus peak total and tax applies at the surcharge rate on the result.
    """
    config = config or DEFAULT_TAX_CONFIG
    errors = {}
    base_rate, peak_surcharge, fuel_percent = (_amount(data, field, errors) for field in INPUT_FIELDS)
    if errors:
        raise ValidationError('Invalid shipping cost input', errors=errors)

    subtotal = round_money(base_rate + peak_surcharge)
    fuel_surcharge = round_money(subtotal * fuel_percent / 100)
    subtotal_after_fuel = subtotal + fuel_surcharge
    tax_rate = to_decimal(config.surcharge_tax_rate)
    tax = round_money(subtotal_after_fuel * tax_rate / 100)

    return ShippingCost(
        base_rate=round_money(base_rate),
        peak_surcharge=round_money(peak_surcharge),
        subtotal=subtotal,
        fuel_surcharge_percent=fuel_percent,
        fuel_surcharge=fuel_surcharge,
        subtotal_after_fuel=subtotal_after_fuel,
        tax_rate_percent=tax_rate,
        tax=tax,
        grand_total=subtotal_after_fuel + tax,
    )
