# -*- coding: utf-8 -*-
"""
Conversión numérica tolerante, redondeo de montos y motor de precios.
"""
from datetime import datetime, timezone

import pytest

from app_shop.models import Product, Variation, VariationSnapshot
from app_shop.services import pricing_service
from app_shop.utils import money, parse_datetime, to_float, to_minor_units


NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


# ==============================================================================
# to_float / money
# ==============================================================================

@pytest.mark.parametrize('value, expected', [
    (None, 0.0),
    ('', 0.0),
    ('abc', 0.0),
    ('12.5abc', 12.5),
    ('  7 ', 7.0),
    ('-3.25', -3.25),
    ('.5', 0.5),
    ('1e2', 100.0),
    (42, 42.0),
    (True, 0.0),
    (float('nan'), 0.0),
    ('inf', 0.0),
])
def test_to_float_contract(value, expected):
    assert to_float(value) == expected


def test_money_rounds_half_up_to_cents():
    assert money(2.675) == 2.68
    assert money('10.005') == 10.01
    assert money(None) == 0.0
    assert money(0.1 + 0.2) == 0.3


def test_to_minor_units():
    assert to_minor_units(19.99) == 1999
    assert to_minor_units('5') == 500


def test_parse_datetime_accepts_z_and_naive_values():
    assert parse_datetime('2025-01-01T10:00:00Z') == datetime(2025, 1, 1, 10, tzinfo=timezone.utc)
    assert parse_datetime('2025-01-01T10:00:00').tzinfo is not None
    assert parse_datetime('not a date') is None
    assert parse_datetime('') is None


# ==============================================================================
# Ofertas
# ==============================================================================

def _product(**kwargs):
    data = {'id': 1, 'price': 80, 'original_price': 100, 'on_sale': True}
    data.update(kwargs)
    return Product.from_dict(data)


def test_sale_price_applies_inside_window():
    product = _product(sale_start_date='2025-06-01T00:00:00Z', sale_end_date='2025-07-01T00:00:00Z')
    assert pricing_service.is_sale_active(product, NOW)
    assert pricing_service.effective_product_price(product, NOW) == 80.0


def test_sale_not_started_or_expired_uses_original_price():
    future = _product(sale_start_date='2025-07-01T00:00:00Z')
    past = _product(sale_end_date='2025-06-01T00:00:00Z')
    assert pricing_service.effective_product_price(future, NOW) == 100.0
    assert pricing_service.effective_product_price(past, NOW) == 100.0


def test_not_on_sale_without_original_price_uses_price():
    product = _product(on_sale=False, original_price=None)
    assert pricing_service.effective_product_price(product, NOW) == 80.0

    product = _product(on_sale=False, original_price='')
    assert pricing_service.effective_product_price(product, NOW) == 80.0


def test_variation_adjustment_follows_its_own_sale_flag():
    on_sale = Variation.from_dict({'id': 'x', 'price_adjustment': 5, 'original_price_adjustment': 8, 'on_sale': True})
    regular = Variation.from_dict({'id': 'y', 'price_adjustment': 5, 'original_price_adjustment': 8})
    no_original = Variation.from_dict({'id': 'z', 'price_adjustment': 5})

    assert pricing_service.effective_variation_adjustment(on_sale) == 5.0
    assert pricing_service.effective_variation_adjustment(regular) == 8.0
    assert pricing_service.effective_variation_adjustment(no_original) == 5.0
    assert pricing_service.effective_variation_adjustment(None) == 0.0


def test_snapshot_prices_like_the_variation():
    variation = Variation.from_dict({'id': 'x', 'price_adjustment': 12.5, 'stock': 4})
    snapshot = VariationSnapshot.of(variation)
    assert pricing_service.effective_variation_adjustment(snapshot) == 12.5
    assert snapshot.stock_at_snapshot == 4


def test_unit_price_adds_variation_to_product():
    product = _product(on_sale=False, original_price=None, price=30)
    variation = Variation.from_dict({'id': 'm', 'price_adjustment': 10})
    assert pricing_service.effective_unit_price(product, variation, NOW) == 40.0


def test_discount_percentage_stored_or_derived():
    derived = _product()
    stored = _product(discount_percentage=25)
    inactive = _product(on_sale=False)

    assert pricing_service.discount_percentage(derived, NOW) == 20.0
    assert pricing_service.discount_percentage(stored, NOW) == 25.0
    assert pricing_service.discount_percentage(inactive, NOW) == 0.0


def test_price_breakdown():
    product = _product()
    variation = Variation.from_dict({'id': 'v', 'price_adjustment': 5})

    breakdown = pricing_service.price_breakdown(product, variation, 3, NOW)

    assert breakdown['original_price'] == 105.0
    assert breakdown['final_unit_price'] == 85.0
    assert breakdown['discount_amount'] == 20.0
    assert breakdown['discount_percentage'] == 20.0
    assert breakdown['variation_adjustment'] == 5.0
    assert breakdown['line_total'] == 255.0
    assert breakdown['on_sale'] is True
