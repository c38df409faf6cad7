# -*- coding: utf-8 -*-
"""
Checkout: resumen, validación de datos, tarjeta, contra entrega, pagos
simulados y reintentos de pago.
"""
import pytest

from app_shop.errors import AlreadyPaid, Conflict, OrderNotFound, Unauthorized, ValidationError


USER_ID = 1
OTHER_USER_ID = 2


def _titles(container, user_id=USER_ID):
    container.notification_service.flush(timeout=5)
    return [n['title'] for n in container.notification_service.get_user_notifications(user_id)]


# ==============================================================================
# Resumen
# ==============================================================================

def test_summary_subtotal_delivery_and_tax(container):
    container.cart_service.add_item(USER_ID, 1, 2)

    summary = container.checkout_service.calculate_order_summary(USER_ID, 'Standard')

    assert summary['subtotal'] == 100.00
    assert summary['delivery_fee'] == 20.00
    assert summary['tax'] == 5.00
    assert summary['tax_rate'] == 5.0
    assert summary['total'] == 125.00
    assert summary['selected_delivery_type'] == 'Standard'
    assert [o['type'] for o in summary['delivery_options']][0] == 'Standard'
    assert summary['items'][0]['line_total'] == 100.00


def test_summary_items_include_discounts(container):
    container.cart_service.add_item(USER_ID, 4, 1)
    item = container.checkout_service.calculate_order_summary(USER_ID)['items'][0]
    assert item['original_price'] == 100.0
    assert item['final_unit_price'] == 80.0
    assert item['discount_percentage'] == 20.0


def test_payment_methods_catalogue(container):
    methods = container.checkout_service.get_payment_methods()
    assert [m['id'] for m in methods] == ['card', 'cash_on_delivery']
    assert len(container.checkout_service.get_payment_methods(include_disabled=True)) == 5


# ==============================================================================
# Validación
# ==============================================================================

def test_validation_collects_all_errors(container):
    with pytest.raises(ValidationError) as exc:
        container.checkout_service.validate_checkout_input({
            'deliveryType': 'Teleport',
            'paymentMethod': 'bitcoin',
            'shippingAddress': {'name': 'Jane'},
        })
    errors = exc.value.errors
    assert len(errors) == 5
    assert any('Teleport' in e for e in errors)
    assert any('bitcoin' in e for e in errors)
    assert any('addressLine1' in e for e in errors)


def test_scheduled_delivery_requires_date(container, checkout_data):
    checkout_data['deliveryType'] = 'Scheduled'
    with pytest.raises(ValidationError):
        container.checkout_service.validate_checkout_input(checkout_data)

    checkout_data['scheduledDateTime'] = '2030-01-01T10:00:00Z'
    result = container.checkout_service.validate_checkout_input(checkout_data)
    assert result['scheduled_date_time'].startswith('2030-01-01T10:00:00')


def test_snake_case_input_is_accepted(container, shipping_address):
    result = container.checkout_service.validate_checkout_input({
        'delivery_type': 'Express',
        'payment_method': 'cash_on_delivery',
        'shipping_address': shipping_address,
    })
    assert result['delivery_type'] == 'Express'
    assert result['shipping_address'].phone_number == '+971500000000'


# ==============================================================================
# Procesar checkout
# ==============================================================================

def test_card_checkout_creates_hosted_session(container, gateway, checkout_data):
    container.cart_service.add_item(USER_ID, 1, 2)

    result = container.checkout_service.process_checkout(USER_ID, checkout_data, 'jane@example.com')

    assert result['success'] is True
    assert result['requires_payment'] is True
    assert result['checkout_url'] == 'https://checkout.test/cs_test_1'

    order = result['order']
    assert order['total_amount'] == 125.0
    assert order['payment_status'] == 'pending'

    session = gateway.sessions[0]
    assert session['metadata'] == {'order_id': str(order['id']), 'user_id': str(USER_ID)}
    assert 'order_id=%s' % order['id'] in session['success_url']
    assert [li['name'] for li in session['line_items']] == ['Product A', 'Delivery (Standard)', 'Tax']

    payment = container.payment_service.get_payment_for_order(order['id'])
    assert payment.status == 'pending'
    assert payment.transaction_id == 'cs_test_1'

    # El carrito se conserva hasta que llegue la confirmación del pago
    assert len(container.cart_service.get_or_create_cart(USER_ID).items) == 1
    assert 'Order Placed' in _titles(container)


def test_cash_on_delivery_checkout(container, checkout_data):
    container.cart_service.add_item(USER_ID, 1, 1)
    checkout_data['paymentMethod'] = 'cash_on_delivery'

    result = container.checkout_service.process_checkout(USER_ID, checkout_data)

    assert result['success'] is True
    assert result['requires_payment'] is False
    order_id = result['order']['id']
    assert container.order_service.get_order(order_id).payment_status == 'pending'
    payment = container.payment_service.get_payment_for_order(order_id)
    assert payment.payment_method == 'cash_on_delivery'
    assert payment.transaction_id == 'cod_%s' % order_id
    assert container.cart_service.get_or_create_cart(USER_ID).items == []
    assert 'Order Confirmed' in _titles(container)


def test_mock_payment_success_and_failure(container, checkout_data):
    container.cart_service.add_item(USER_ID, 1, 1)
    checkout_data['paymentMethod'] = 'paypal'

    failed = container.checkout_service.process_checkout(USER_ID, checkout_data)
    assert failed['success'] is False
    assert container.order_service.get_order(failed['order_id']).payment_status == 'failed'

    checkout_data['paymentDetails'] = {'email': 'jane@paypal.test'}
    result = container.checkout_service.process_checkout(USER_ID, checkout_data)
    assert result['success'] is True
    assert result['order']['payment_status'] == 'completed'
    assert container.cart_service.get_or_create_cart(USER_ID).items == []


def test_checkout_empty_cart(container, checkout_data):
    result = container.checkout_service.process_checkout(USER_ID, checkout_data)
    assert result['success'] is False
    assert result['kind'] == 'cart_empty'
    assert result['http_status'] == 400


def test_checkout_invalid_input(container):
    container.cart_service.add_item(USER_ID, 1, 1)
    result = container.checkout_service.process_checkout(USER_ID, {})
    assert result['kind'] == 'validation'
    assert result['errors']


def test_checkout_requires_user(container, checkout_data):
    result = container.checkout_service.process_checkout(None, checkout_data)
    assert result['http_status'] == 401


def test_gateway_failure_keeps_order(container, gateway, checkout_data):
    container.cart_service.add_item(USER_ID, 1, 1)
    gateway.fail_next = True

    result = container.checkout_service.process_checkout(USER_ID, checkout_data)

    assert result['success'] is False
    assert result['kind'] == 'external_service'
    assert container.order_service.get_order(result['order_id']).payment_status == 'pending'


# ==============================================================================
# Reintentos de pago
# ==============================================================================

def _card_order(container, checkout_data):
    container.cart_service.add_item(USER_ID, 1, 1)
    return container.checkout_service.process_checkout(USER_ID, checkout_data)['order']


def test_retry_payment_reuses_payment_record(container, gateway, checkout_data):
    order = _card_order(container, checkout_data)

    result = container.checkout_service.create_payment_for_order(USER_ID, order['id'])

    assert result['session_id'] == 'cs_test_2'
    assert len(gateway.sessions) == 2
    payments = container.payment_repo.find_all({'order_id': order['id']})
    assert len(payments) == 1
    assert payments[0]['transaction_id'] == 'cs_test_2'


def test_retry_payment_rules(container, checkout_data):
    order = _card_order(container, checkout_data)

    with pytest.raises(Unauthorized):
        container.checkout_service.create_payment_for_order(OTHER_USER_ID, order['id'])
    with pytest.raises(OrderNotFound):
        container.checkout_service.create_payment_for_order(USER_ID, 999)

    container.order_service.mark_paid(order['id'])
    with pytest.raises(AlreadyPaid):
        container.checkout_service.create_payment_for_order(USER_ID, order['id'])


def test_retry_payment_after_failure_and_cancellation(container, checkout_data):
    order = _card_order(container, checkout_data)
    container.order_service.mark_payment_failed(order['id'])

    result = container.checkout_service.create_payment_for_order(USER_ID, order['id'])
    assert result['order_id'] == order['id']

    other = _card_order(container, checkout_data)
    container.order_service.cancel(other['id'], USER_ID)
    with pytest.raises(Conflict):
        container.checkout_service.create_payment_for_order(USER_ID, other['id'])


def test_retry_converges_with_webhook_confirmed_meanwhile(
    container, gateway, checkout_data, signed_webhook, completed_session, monkeypatch,
):
    order = _card_order(container, checkout_data)
    create_session = gateway.create_hosted_session

    def create_and_confirm(*args, **kwargs):
        session = create_session(*args, **kwargs)
        # El webhook llega antes de que el reintento registre su sesión
        current = container.order_service.get_order(order['id'])
        body, header = signed_webhook('checkout.session.completed', completed_session(current), event_id='evt_meanwhile')
        assert container.webhook_service.handle(body, header) == ({'received': True}, 200)
        return session

    monkeypatch.setattr(gateway, 'create_hosted_session', create_and_confirm)

    with pytest.raises(AlreadyPaid):
        container.checkout_service.create_payment_for_order(USER_ID, order['id'])

    assert container.order_service.get_order(order['id']).payment_status == 'completed'
    payments = container.payment_repo.find_all({'order_id': order['id']})
    assert len(payments) == 1
    assert payments[0]['status'] == 'completed'
    assert payments[0]['transaction_id'] == 'pi_test_1'


def test_standalone_payment_intent(container, gateway):
    with pytest.raises(ValidationError):
        container.checkout_service.create_payment_intent(USER_ID, 0)

    result = container.checkout_service.create_payment_intent(USER_ID, '49.999', 'Gift card')
    assert result['amount'] == 50.0
    assert gateway.sessions[-1]['metadata'] == {'user_id': str(USER_ID)}
    assert gateway.sessions[-1]['line_items'][0]['name'] == 'Gift card'
