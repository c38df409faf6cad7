# -*- coding: utf-8 -*-
"""
Rutas HTTP: formato de respuesta, sesión y traducción de errores.
"""
import pytest


USER_ID = 1


def _data(response):
    body = response.get_json()
    assert body['ok'] is True, body
    return body['data']


def test_requires_session(anonymous_client):
    r = anonymous_client.get('/cart/me')
    assert r.status_code == 401
    assert r.get_json() == {'ok': False, 'error': 'Debes iniciar sesión', 'kind': 'not_authenticated'}


def test_cart_flow(client):
    r = client.post('/cart/items', json={'productId': 1, 'quantity': 2})
    assert r.status_code == 200
    r = client.post('/cart/items', json={'productId': 2, 'quantity': 1, 'variationId': 'v1'})
    cart = _data(r)
    assert cart['subtotal'] == 140.0
    assert cart['total_items'] == 3
    assert cart['items'][0]['product']['name'] == 'Product A'

    cart = _data(client.put('/cart/items/1', json={'quantity': 3}))
    assert cart['subtotal'] == 190.0

    cart = _data(client.delete('/cart/items/2?variationId=v1'))
    assert len(cart['items']) == 1

    totals = _data(client.get('/cart/totals'))
    assert totals == {'subtotal': 150.0, 'item_count': 1, 'total_items': 3}

    cart = _data(client.delete('/cart/clear'))
    assert cart['items'] == []


@pytest.mark.parametrize('payload, status, kind', [
    ({'productId': 1, 'quantity': 99}, 400, 'insufficient_stock'),
    ({'productId': 2, 'quantity': 1}, 400, 'variation_required'),
    ({'productId': 2, 'quantity': 1, 'variationId': 'zz'}, 404, 'variation_not_found'),
    ({'productId': 3, 'quantity': 1}, 400, 'unavailable'),
    ({'productId': 404, 'quantity': 1}, 404, 'not_found'),
    ({'productId': 1}, 400, 'validation'),
    ({'quantity': 1}, 400, 'validation'),
])
def test_cart_errors_are_typed(client, payload, status, kind):
    r = client.post('/cart/items', json=payload)
    assert r.status_code == status
    assert r.get_json()['kind'] == kind


def test_insufficient_stock_reports_available(client):
    body = client.post('/cart/items', json={'productId': 1, 'quantity': 99}).get_json()
    assert body['available'] == 10


def test_remove_absent_variation_line(client):
    r = client.delete('/cart/items/2?variationId=v1')
    assert r.status_code == 404


def test_checkout_summary_and_card_checkout(client, checkout_data):
    client.post('/cart/items', json={'productId': 1, 'quantity': 2})

    summary = _data(client.get('/checkout/summary?deliveryType=Standard'))
    assert summary['total'] == 125.0

    r = client.post('/checkout', json=checkout_data)
    result = _data(r)
    assert result['requires_payment'] is True
    assert result['checkout_url'].startswith('https://checkout.test/')


def test_checkout_validation_error(client):
    client.post('/cart/items', json={'productId': 1, 'quantity': 1})
    r = client.post('/checkout', json={'deliveryType': 'Standard'})
    body = r.get_json()
    assert r.status_code == 400
    assert body['ok'] is False
    assert body['kind'] == 'validation'
    assert 'http_status' not in body
    assert 'success' not in body


def test_retry_payment_for_foreign_order(client, container, shipping_address):
    container.cart_service.add_item(2, 1, 1)
    order = container.order_service.create_from_cart(2, {'shipping_address': shipping_address})

    r = client.post(f'/checkout/pay/{order.id}')
    assert r.status_code == 403
    assert r.get_json()['kind'] == 'unauthorized'


def test_payment_methods_and_delivery_types(anonymous_client):
    methods = _data(anonymous_client.get('/checkout/payment-methods'))
    assert [m['id'] for m in methods] == ['card', 'cash_on_delivery']

    types = _data(anonymous_client.get('/delivery-types'))
    assert {t['type'] for t in types} == {'Standard', 'Express', 'Same-Day', 'Scheduled'}


def test_tax_calculate(anonymous_client):
    result = _data(anonymous_client.get('/tax/calculate?amount=200'))
    assert result['tax_amount'] == 10.0

    assert anonymous_client.get('/tax/calculate').status_code == 400


def test_orders_endpoints(client, container, checkout_data):
    client.post('/cart/items', json={'productId': 1, 'quantity': 1})
    checkout_data['paymentMethod'] = 'cash_on_delivery'
    order = _data(client.post('/checkout', json=checkout_data))['order']

    history = _data(client.get('/orders/me?page=1&pageSize=5'))
    assert [o['id'] for o in history['orders']] == [order['id']]

    detail = _data(client.get(f'/orders/{order["id"]}'))
    assert detail['current_status'] == 'Order Placed'

    assert _data(client.get('/orders/stats'))['total_orders'] == 1
    assert _data(client.get('/orders/search?searchTerm=dubai'))['pagination']['total'] == 1

    cancelled = _data(client.put(f'/orders/{order["id"]}/cancel', json={'reason': 'Too slow'}))
    assert cancelled['current_status'] == 'Cancelled'
    assert cancelled['is_cancelled'] is True

    r = client.put(f'/orders/{order["id"]}/cancel')
    assert r.status_code == 400
    assert r.get_json()['kind'] == 'cannot_cancel'

    payments = _data(client.get('/payments/me'))
    assert payments['payments'][0]['payment_method'] == 'cash_on_delivery'

    notifications = _data(client.get('/notifications/me'))
    assert isinstance(notifications, list)


def test_order_not_found(client):
    r = client.get('/orders/999')
    assert r.status_code == 404
    assert r.get_json()['kind'] == 'order_not_found'


def test_admin_status_update(client, container, shipping_address):
    container.cart_service.add_item(USER_ID, 1, 1)
    order = container.order_service.create_from_cart(USER_ID, {'shipping_address': shipping_address})

    r = client.put(f'/orders/{order.id}/status', json={'status': 'Shipped'})
    assert r.status_code == 403

    with client.session_transaction() as sess:
        sess['role'] = 'admin'
    updated = _data(client.put(f'/orders/{order.id}/status', json={'status': 'Shipped'}))
    assert updated['current_status'] == 'Shipped'


def test_webhook_route(anonymous_client, container, checkout_data, signed_webhook, completed_session):
    container.cart_service.add_item(USER_ID, 1, 2)
    result = container.checkout_service.process_checkout(USER_ID, checkout_data)
    order = container.order_service.get_order(result['order']['id'])

    body, header = signed_webhook('checkout.session.completed', completed_session(order))
    r = anonymous_client.post('/stripe/webhook', data=body, headers={'Stripe-Signature': header},
                              content_type='application/json')
    assert r.status_code == 200
    assert r.get_json() == {'received': True}
    assert container.order_service.get_order(order.id).is_paid

    r = anonymous_client.post('/stripe/webhook', data=body, headers={'Stripe-Signature': 'bad'},
                              content_type='application/json')
    assert r.status_code == 400


def test_unknown_route_is_json(anonymous_client):
    r = anonymous_client.get('/nope')
    assert r.status_code == 404
    assert r.get_json()['kind'] == 'http'


def test_unexpected_error_is_masked(anonymous_client, container, monkeypatch):
    def boom():
        raise RuntimeError('db exploded')

    monkeypatch.setattr(container.delivery_service, 'list_delivery_types', boom)
    r = anonymous_client.get('/delivery-types')
    assert r.status_code == 500
    assert r.get_json() == {'ok': False, 'error': 'Error interno del servidor', 'kind': 'internal'}


def test_wishlist_endpoints(client):
    wishlist = _data(client.post('/wishlist/products', json={'productId': 2, 'variationId': 'v1'}))
    assert wishlist['items'][0]['in_stock'] is True

    r = client.post('/wishlist/products', json={'productId': 2, 'variationId': 'v1'})
    assert r.status_code == 400
    assert r.get_json()['kind'] == 'already_in_wishlist'

    assert client.post('/wishlist/products', json={}).status_code == 400
    assert _data(client.get('/wishlist/check/2'))['is_in_wishlist'] is True
    assert _data(client.get('/wishlist/check/1'))['is_in_wishlist'] is False

    wishlist = _data(client.delete('/wishlist/products/2?variationId=v1'))
    assert wishlist['items'] == []
    assert client.delete('/wishlist/products/2').status_code == 404

    client.post('/wishlist/products', json={'productId': 1})
    assert _data(client.get('/wishlist/me'))['item_count'] == 1
    assert _data(client.delete('/wishlist/clear'))['items'] == []


def test_shipping_address_endpoints(client):
    home = {'name': 'Jane Doe', 'addressLine1': 'Street 12', 'emirate': 'Dubai', 'phoneNumber': '+971500000000'}
    r = client.post('/shipping-addresses', json=home)
    assert r.status_code == 201
    first = _data(r)
    assert first['is_default'] is True

    second = _data(client.post('/shipping-addresses', json=dict(home, addressLine1='Tower 2')))
    assert _data(client.put(f'/shipping-addresses/{second["id"]}/default'))['is_default'] is True
    assert [a['id'] for a in _data(client.get('/shipping-addresses/me'))] == [second['id'], first['id']]

    updated = _data(client.put(f'/shipping-addresses/{first["id"]}', json={'city': 'Abu Dhabi'}))
    assert updated['city'] == 'Abu Dhabi'

    r = client.post('/shipping-addresses', json={'name': 'Jane'})
    assert r.status_code == 400
    assert r.get_json()['errors'] == ['addressLine1 es obligatorio', 'emirate es obligatorio']

    remaining = _data(client.delete(f'/shipping-addresses/{second["id"]}'))
    assert [a['is_default'] for a in remaining] == [True]
    assert client.delete('/shipping-addresses/999').status_code == 404


def test_checkout_with_saved_address(client):
    saved = _data(client.post('/shipping-addresses', json={
        'name': 'Jane Doe', 'addressLine1': 'Street 12', 'apartmentOrVilla': 'Villa 3',
        'emirate': 'Dubai', 'phoneNumber': '+971500000000',
    }))
    client.post('/cart/items', json={'productId': 1, 'quantity': 1})

    result = _data(client.post('/checkout', json={
        'deliveryType': 'Standard',
        'paymentMethod': 'cash_on_delivery',
        'shippingAddressId': saved['id'],
    }))
    address = result['order']['shipping_address']
    assert address['address_line1'] == 'Street 12'
    assert address['address_line2'] == 'Villa 3'

    r = client.post('/checkout', json={'deliveryType': 'Standard', 'shippingAddressId': 999})
    assert r.status_code == 404


def test_pick_drop_endpoints(client, anonymous_client):
    quote = _data(anonymous_client.get('/pick-drops/calculate-price?weight=2'))
    assert quote == {'weight': 2.0, 'price': 20.0}
    assert anonymous_client.get('/pick-drops/calculate-price').status_code == 400

    r = client.post('/pick-drops', json={
        'senderName': 'Jane', 'senderContact': '1', 'receiverName': 'John', 'receiverContact': '2',
        'itemDescription': 'Keys', 'itemWeight': 1,
    })
    assert r.status_code == 201
    pick_drop = _data(r)
    assert pick_drop['status'] == 'Pending'

    history = _data(client.get('/pick-drops/me'))
    assert [p['id'] for p in history['pick_drops']] == [pick_drop['id']]
    assert _data(client.get(f'/pick-drops/{pick_drop["id"]}'))['price'] == 15.0

    r = client.put(f'/pick-drops/{pick_drop["id"]}/status', json={'status': 'Confirmed'})
    assert r.status_code == 403

    with client.session_transaction() as sess:
        sess['role'] = 'admin'
    updated = _data(client.put(f'/pick-drops/{pick_drop["id"]}/status',
                               json={'status': 'Confirmed', 'assignedRider': 'Rider 7'}))
    assert updated['assigned_rider'] == 'Rider 7'

    assert client.post('/pick-drops', json={}).status_code == 400


def test_wsgi_bootstrap_creates_default_tax(container):
    import wsgi

    wsgi.bootstrap()
    wsgi.bootstrap()
    assert len(container.tax_repo.find_all({'name': 'Default VAT'})) == 1
    assert wsgi.app.name == 'app_shop.main'
