"""Place of supply resolution and tax split for display"""
from decimal import ROUND_HALF_UP

from app.services.tax_calculator import DEFAULT_TAX_CONFIG, TWO_PLACES, round_money


class SupplyType:
    INTRASTATE = 'intrastate'
    INTERSTATE = 'interstate'


def _normalize(value):
    return (value or '').strip().lower()


def resolve(customer_country, billing_state, config=DEFAULT_TAX_CONFIG):
    """Intrastate only when both country and state match the seller's home."""
    if (_normalize(customer_country) == _normalize(config.home_country)
            and _normalize(billing_state) == _normalize(config.home_state)):
        return SupplyType.INTRASTATE
    return SupplyType.INTERSTATE


def split_tax(total_tax, supply_type, config=DEFAULT_TAX_CONFIG):
    """Break the stored total tax into the components shown on a document.

    The split only relabels the tax; the components always add back up to
    ``total_tax`` exactly.
    """
    total_tax = round_money(total_tax)
    tax_name = config.tax_name

    if supply_type == SupplyType.INTRASTATE:
        central = (total_tax / 2).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        state = total_tax - central
        return [
            {'code': 'CGST', 'label': f'Output C{tax_name}', 'amount': central},
            {'code': 'SGST', 'label': f'Output S{tax_name}', 'amount': state},
        ]

    return [{'code': 'IGST', 'label': f'Output I{tax_name}', 'amount': total_tax}]


def tax_summary(total_tax, customer_country, billing_state, config=DEFAULT_TAX_CONFIG):
    supply_type = resolve(customer_country, billing_state, config)
    components = split_tax(total_tax, supply_type, config)
    return {
        'supply_type': supply_type,
        'total_tax': float(round_money(total_tax)),
        'components': [
            {**c, 'amount': float(c['amount'])} for c in components
        ],
    }


