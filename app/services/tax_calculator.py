"""
Tax Calculator - subtotal, discount, GST and grand total for a quotation.

All arithmetic is done on Decimal values at full precision; money outputs are
rounded half-up to two places only when the breakdown is produced. The
calculator is a pure function of its inputs and the injected TaxConfig, so it
can be called on every edit without any application context.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

TWO_PLACES = Decimal('0.01')
HUNDRED = Decimal('100')


def to_decimal(value):
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value):
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TaxConfig:
    """Company tax settings passed explicitly into the calculators."""
    tax_name: str = 'GST'
    home_country: str = 'India'
    home_state: str = 'Kerala'
    surcharge_tax_rate: Decimal = Decimal('18')
    allowed_tax_rates: tuple = (0, 5, 12, 18)
    default_item_tax_rate: int = 12
    currency: str = 'INR'

    @classmethod
    def from_mapping(cls, config):
        return cls(
            tax_name=config.get('TAX_NAME', cls.tax_name),
            home_country=config.get('HOME_COUNTRY', cls.home_country),
            home_state=config.get('HOME_STATE', cls.home_state),
            surcharge_tax_rate=to_decimal(config.get('SURCHARGE_TAX_RATE', cls.surcharge_tax_rate)),
            allowed_tax_rates=tuple(config.get('ALLOWED_TAX_RATES', cls.allowed_tax_rates)),
            default_item_tax_rate=config.get('DEFAULT_ITEM_TAX_RATE', cls.default_item_tax_rate),
            currency=config.get('DEFAULT_CURRENCY', cls.currency),
        )


DEFAULT_TAX_CONFIG = TaxConfig()


def get_tax_config():
    """TaxConfig for the running Flask app"""
    from flask import current_app
    return TaxConfig.from_mapping(current_app.config)


@dataclass(frozen=True)
class LineItem:
    name: str
    quantity: int
    unit_rate: Decimal
    hs_code: str
    tax_rate_percent: Decimal
    unit_weight: Decimal = Decimal('0')
    line_weight: Decimal = Decimal('0')

    @property
    def line_total(self):
        return self.quantity * to_decimal(self.unit_rate)

    @property
    def line_tax(self):
        return self.line_total * to_decimal(self.tax_rate_percent) / HUNDRED


@dataclass(frozen=True)
class ChargeSet:
    discount_percent: Decimal = Decimal('0')
    delivery_charge: Decimal = Decimal('0')
    remote_area_charge: Decimal = Decimal('0')
    pickup_charge: Decimal = Decimal('0')


@dataclass(frozen=True)
class CostBreakdown:
    subtotal: Decimal
    discount_amount: Decimal
    item_tax: Decimal
    charge_tax: Decimal
    total_tax: Decimal
    grand_total: Decimal
    total_weight: Decimal = field(default=Decimal('0'))

    def to_dict(self):
        return {
            'subtotal': float(self.subtotal),
            'discount_amount': float(self.discount_amount),
            'item_tax': float(self.item_tax),
            'charge_tax': float(self.charge_tax),
            'total_tax': float(self.total_tax),
            'grand_total': float(self.grand_total),
            'total_weight': float(self.total_weight),
        }


def compute(items, charges, config=DEFAULT_TAX_CONFIG):
    """Compute the cost breakdown for a set of line items and charges.

    Args:
        items: iterable of LineItem
        charges: ChargeSet
        config: TaxConfig supplying the surcharge tax rate

    Returns:
        CostBreakdown with money values rounded to two places
    """
    subtotal = Decimal('0')
    item_tax = Decimal('0')
    total_weight = Decimal('0')

    for item in items:
        # Tax per line so mixed rates are never blended
        subtotal += item.line_total
        item_tax += item.line_tax
        total_weight += to_decimal(item.line_weight)

    discount_amount = subtotal * to_decimal(charges.discount_percent) / HUNDRED

    delivery = to_decimal(charges.delivery_charge)
    remote = to_decimal(charges.remote_area_charge)
    pickup = to_decimal(charges.pickup_charge)

    # Pickup is untaxed principal
    charge_tax = (delivery + remote) * to_decimal(config.surcharge_tax_rate) / HUNDRED
    total_tax = item_tax + charge_tax

    grand_total = (subtotal - discount_amount) + delivery + remote + pickup + total_tax

    return CostBreakdown(
        subtotal=round_money(subtotal),
        discount_amount=round_money(discount_amount),
        item_tax=round_money(item_tax),
        charge_tax=round_money(charge_tax),
        total_tax=round_money(total_tax),
        grand_total=round_money(grand_total),
        total_weight=total_weight.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
    )
