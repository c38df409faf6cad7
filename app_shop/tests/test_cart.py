# -*- coding: utf-8 -*-
"""
Carrito: alta con reemplazo de cantidad, bajas, totales y reparación de duplicados.
"""
import threading

import pytest

from app_shop.errors import (
    CartEmpty,
    InsufficientStock,
    NotFound,
    ValidationError,
    VariationRequired,
)
from app_shop.models import CartItem


USER_ID = 1


def test_cart_is_created_on_demand(container):
    cart = container.cart_service.get_or_create_cart(USER_ID)
    again = container.cart_service.get_or_create_cart(USER_ID)
    assert cart.id == again.id
    assert cart.items == []


def test_add_item_replaces_quantity(container):
    service = container.cart_service
    service.add_item(USER_ID, 1, 2)
    service.add_item(USER_ID, 1, 5)

    cart = service.get_or_create_cart(USER_ID)
    assert len(cart.items) == 1
    assert cart.items[0].quantity == 5
    assert cart.items[0].variation_id is None


def test_variation_lines_are_independent(container):
    service = container.cart_service
    service.add_item(USER_ID, 2, 1, 'v1')
    service.add_item(USER_ID, 1, 1)

    cart = service.get_or_create_cart(USER_ID)
    assert len(cart.items) == 2
    line = cart.find_item(2, 'v1')
    assert line.variation_details.size == 'M'
    assert line.variation_details.stock_at_snapshot == 5


def test_variation_id_ignored_for_plain_products(container):
    cart = container.cart_service.add_item(USER_ID, 1, 1, 'whatever')
    assert cart.items[0].variation_id is None


def test_subtotal_scenario(container):
    service = container.cart_service
    service.add_item(USER_ID, 1, 2)
    service.add_item(USER_ID, 2, 1, 'v1')

    totals = service.compute_totals(USER_ID)
    assert totals['subtotal'] == 140.00
    assert totals['item_count'] == 2
    assert totals['total_items'] == 3


def test_sale_price_used_in_totals(container):
    container.cart_service.add_item(USER_ID, 4, 2)
    assert container.cart_service.compute_totals(USER_ID)['subtotal'] == 160.00


def test_insufficient_stock_leaves_cart_unchanged(container):
    service = container.cart_service
    service.add_item(USER_ID, 1, 2)

    with pytest.raises(InsufficientStock):
        service.add_item(USER_ID, 1, 11)

    cart = service.get_or_create_cart(USER_ID)
    assert [(i.product_id, i.quantity) for i in cart.items] == [(1, 2)]


def test_variation_required_leaves_cart_unchanged(container):
    with pytest.raises(VariationRequired):
        container.cart_service.add_item(USER_ID, 2, 1)
    assert container.cart_service.get_or_create_cart(USER_ID).items == []


@pytest.mark.parametrize('quantity', [0, -1, 'abc', 1.5, None, True])
def test_add_item_rejects_bad_quantities(container, quantity):
    with pytest.raises(ValidationError):
        container.cart_service.add_item(USER_ID, 1, quantity)


def test_add_item_accepts_numeric_strings(container):
    cart = container.cart_service.add_item(USER_ID, '1', '3')
    assert cart.items[0].quantity == 3


def test_update_quantity_zero_removes_item(container):
    service = container.cart_service
    service.add_item(USER_ID, 1, 2)
    cart = service.update_item_quantity(USER_ID, 1, 0)
    assert cart.items == []


def test_update_quantity_checks_stock(container):
    service = container.cart_service
    service.add_item(USER_ID, 2, 1, 'v1')

    cart = service.update_item_quantity(USER_ID, 2, 4, 'v1')
    assert cart.find_item(2, 'v1').quantity == 4

    with pytest.raises(InsufficientStock):
        service.update_item_quantity(USER_ID, 2, 6, 'v1')


def test_update_quantity_of_absent_line(container):
    with pytest.raises(NotFound):
        container.cart_service.update_item_quantity(USER_ID, 1, 2)


def test_remove_item_legacy_path_is_idempotent(container):
    service = container.cart_service
    service.add_item(USER_ID, 2, 1, 'v1')

    # Sin variación: no hay línea "sin variación" del producto 2
    cart = service.remove_item(USER_ID, 2)
    assert len(cart.items) == 1

    cart = service.remove_item(USER_ID, 999)
    assert len(cart.items) == 1


def test_remove_specific_item(container):
    service = container.cart_service
    service.add_item(USER_ID, 2, 1, 'v1')

    with pytest.raises(NotFound):
        service.remove_item(USER_ID, 2, 'v2')

    cart = service.remove_item(USER_ID, 2, 'v1')
    assert cart.items == []


def test_clear_cart_is_idempotent(container):
    service = container.cart_service
    service.add_item(USER_ID, 1, 1)
    assert service.clear_cart(USER_ID).items == []
    assert service.clear_cart(USER_ID).items == []


def test_duplicate_carts_are_repaired(container):
    repo = container.cart_repo
    first = repo.create_for_user(USER_ID)
    repo.create_for_user(USER_ID)
    repo.create_for_user(USER_ID)

    cart = container.cart_service.get_or_create_cart(USER_ID)
    assert cart.id == first.id
    assert len(repo.find_by_user(USER_ID)) == 1


def test_missing_snapshot_is_backfilled(container):
    cart = container.cart_repo.create_for_user(USER_ID)
    container.cart_repo.update(cart.id, {'items': [{'product_id': 2, 'quantity': 1, 'variation_id': 'v1'}]})

    cart = container.cart_service.get_or_create_cart(USER_ID)
    assert cart.items[0].variation_details is not None
    assert container.cart_repo.get(cart.id).items[0].variation_details.sku == 'B-1-M'


def test_removed_product_prices_at_zero(container):
    cart = container.cart_repo.create_for_user(USER_ID)
    container.cart_repo.update(cart.id, {'items': [{'product_id': 999, 'quantity': 3}]})
    assert container.cart_service.compute_totals(USER_ID)['subtotal'] == 0.0


def test_validate_for_checkout(container):
    service = container.cart_service
    with pytest.raises(CartEmpty):
        service.validate_for_checkout(USER_ID)

    service.add_item(USER_ID, 1, 1)
    assert service.validate_for_checkout(USER_ID)['valid'] is True

    # El stock baja por debajo de la cantidad del carrito
    products = container.product_repo.find_all()
    products[0]['stock'] = 0
    container.product_repo.save_all(products)

    result = service.validate_for_checkout(USER_ID)
    assert result['valid'] is False
    assert result['invalid_items'][0]['kind'] == 'insufficient_stock'


def test_concurrent_adds_do_not_lose_updates(container):
    service = container.cart_service
    service.get_or_create_cart(USER_ID)
    errors = []

    def add(product_id, variation_id=None):
        try:
            service.add_item(USER_ID, product_id, 1, variation_id)
        except Exception as e:
            errors.append(e)

    threads = [
        threading.Thread(target=add, args=(1,)),
        threading.Thread(target=add, args=(2, 'v1')),
        threading.Thread(target=add, args=(4,)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(service.get_or_create_cart(USER_ID).items) == 3


def test_legacy_populated_product_reference():
    item = CartItem.from_dict({'product': {'id': 7, 'name': 'Old'}, 'quantity': '2'})
    assert item.product_id == 7
    assert item.quantity == 2
    assert item.variation_id is None
